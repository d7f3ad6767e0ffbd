from collections import defaultdict
from collections.abc import Iterable

from loguru import logger

from clinic.domain.models import (
    NO_NUMBER,
    AppointmentStatus,
    NumberCategory,
    Patient,
    PatientNumber,
    PatientStatus,
)
from clinic.numbering.parsing_helpers import parse_patient_number
from clinic.numbering.pool import IdentifierPool

StatusLike = PatientStatus | AppointmentStatus | str | None

# Labels used by the clinic's existing records.
_STATUS_ALIASES: dict[str, PatientStatus] = {
    "": PatientStatus.PENDING,
    "en attente": PatientStatus.PENDING,
    "waiting": PatientStatus.PENDING,
    "validé": PatientStatus.VALIDATED,
    "valide": PatientStatus.VALIDATED,
    "confirmed": PatientStatus.VALIDATED,
    "annulé": PatientStatus.CANCELLED,
    "annule": PatientStatus.CANCELLED,
    "reporté": PatientStatus.POSTPONED,
    "reporte": PatientStatus.POSTPONED,
    "absent": PatientStatus.NO_SHOW,
    "noshow": PatientStatus.NO_SHOW,
    "supprimé": PatientStatus.DELETED,
    "supprime": PatientStatus.DELETED,
}

_CATEGORY_BY_STATUS: dict[PatientStatus, NumberCategory | None] = {
    PatientStatus.PENDING: None,
    PatientStatus.UNSET: NumberCategory.PENDING_OR_CANCELLED,
    PatientStatus.VALIDATED: NumberCategory.VALIDATED,
    PatientStatus.CANCELLED: NumberCategory.PENDING_OR_CANCELLED,
    PatientStatus.POSTPONED: NumberCategory.PENDING_OR_CANCELLED,
    PatientStatus.NO_SHOW: NumberCategory.PENDING_OR_CANCELLED,
    PatientStatus.DELETED: NumberCategory.DELETED,
}


def parse_status(status: StatusLike) -> PatientStatus | None:
    """Normalize a status value to a :class:`PatientStatus`.

    Appointment statuses map onto the patient status of the same name.
    Returns ``None`` for unrecognized text.
    """
    if status is None:
        return PatientStatus.PENDING
    if isinstance(status, PatientStatus):
        return status
    if isinstance(status, AppointmentStatus):
        return status.to_patient_status()

    text = status.strip().lower()
    try:
        return PatientStatus(text)
    except ValueError:
        return _STATUS_ALIASES.get(text)


def status_to_category(status: StatusLike) -> NumberCategory | None:
    """Category a patient with ``status`` should hold a number in, if any."""
    parsed = parse_status(status)
    if parsed is None:
        logger.warning("Unknown patient status {!r}; no number will be assigned", status)
        return None
    return _CATEGORY_BY_STATUS[parsed]


class PatientNumberLifecycle:
    """Keeps a patient's displayed number in the category matching its status."""

    def __init__(self, pool: IdentifierPool) -> None:
        self._pool = pool

    @property
    def pool(self) -> IdentifierPool:
        return self._pool

    def assign_or_update(self, current_number: str | None, new_status: StatusLike) -> str:
        """Return the number the patient should hold after moving to ``new_status``.

        Keeps ``current_number`` when it is already in the target category, so
        replaying the same transition never allocates twice. Otherwise the
        current number goes back to its pool and a new one is allocated.
        """
        target = status_to_category(new_status)
        current = self._parse_held(current_number)

        if target is None:
            if current:
                self._release(current)
            return NO_NUMBER

        if current and current.category == target:
            return current.render()

        if current:
            self._release(current)

        assigned = PatientNumber(category=target, sequence=self._pool.allocate(target))
        logger.info(
            "Patient number {} -> {} for status {!r}",
            current_number or NO_NUMBER,
            assigned,
            new_status,
        )
        return assigned.render()

    def release_number(self, number: str | None) -> None:
        """Return ``number`` to its category's pool, e.g. on hard deletion."""
        parsed = self._parse_held(number)
        if parsed:
            self._release(parsed)

    def bootstrap(self, patients: Iterable[Patient]) -> None:
        held: dict[NumberCategory, set[int]] = defaultdict(set)
        for patient in patients:
            parsed = self._parse_held(patient.number_assigned)
            if parsed:
                held[parsed.category].add(parsed.sequence)
        self._pool.bootstrap(held)

    def rebuild(self, patients: Iterable[Patient]) -> None:
        """Discard the pool's state and recompute it from patient records."""
        logger.info("Rebuilding patient number pool from records")
        self._pool.reset()
        self.bootstrap(patients)

    def _release(self, number: PatientNumber) -> None:
        self._pool.release(number.category, number.sequence)
        logger.info("Released patient number {}", number)

    @staticmethod
    def _parse_held(number: str | None) -> PatientNumber | None:
        parsed = parse_patient_number(number)
        if parsed is None and number and number.strip() != NO_NUMBER:
            logger.warning("Ignoring malformed patient number {!r}", number)
        return parsed
