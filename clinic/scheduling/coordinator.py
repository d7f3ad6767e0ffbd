from collections.abc import Iterable

from loguru import logger

from clinic.domain.models import Appointment, AppointmentStatus, Patient, PatientStatus
from clinic.numbering.lifecycle import PatientNumberLifecycle
from clinic.stores.ports import AppointmentStore, PatientStore


def effective_status(
    appointments: Iterable[Appointment], changed: Appointment
) -> PatientStatus | None:
    """Derive a patient's status from its appointments after ``changed`` was updated.

    Any non-deleted validated visit makes the patient validated. Otherwise the
    patient follows ``changed``; if ``changed`` was just deleted, the most
    recent remaining appointment is followed instead. Returns None when no
    non-deleted appointment is left.
    """
    live = sorted(
        (a for a in appointments if not a.is_deleted),
        key=lambda a: (a.start, a.id),
    )
    if any(a.status == AppointmentStatus.VALIDATED for a in live):
        return PatientStatus.VALIDATED
    if not changed.is_deleted:
        return changed.status.to_patient_status()
    if live:
        return live[-1].status.to_patient_status()
    return None


class AppointmentStatusCoordinator:
    """Keeps an appointment's status, its patient's status and number in step."""

    def __init__(
        self,
        lifecycle: PatientNumberLifecycle,
        appointments: AppointmentStore,
        patients: PatientStore,
    ) -> None:
        self._lifecycle = lifecycle
        self._appointments = appointments
        self._patients = patients

    def on_status_change(
        self, appointment: Appointment, new_status: AppointmentStatus
    ) -> tuple[Appointment, Patient | None]:
        """Apply ``new_status`` to ``appointment`` and update the owning patient.

        Returns the updated appointment and patient (None for blocks without
        a patient, or when the referenced patient no longer exists).
        """
        updated = appointment.model_copy(update={"status": new_status})
        patient_id = updated.patient_ref
        patient = self._patients.get(patient_id) if patient_id else None

        if patient is None:
            if patient_id:
                logger.warning(
                    "Appointment {} references unknown patient {}", updated.id, patient_id
                )
            self._appointments.upsert(updated)
            return updated, None

        history = [a for a in self._appointments.list_by_patient(patient.id) if a.id != updated.id]
        history.append(updated)
        status = effective_status(history, updated)
        if status is None:
            logger.info("Patient {} has no live appointment left; status kept", patient.id)
            status = patient.status

        number = self._lifecycle.assign_or_update(patient.number_assigned, status)
        updated_patient = patient.model_copy(update={"status": status, "number_assigned": number})

        # Patient before appointment; SchedulingService restores the patient
        # if the appointment write fails.
        self._patients.upsert(updated_patient)
        self._appointments.upsert(updated)
        logger.info(
            "Appointment {} -> {}; patient {} now {} ({})",
            updated.id,
            new_status.value,
            patient.id,
            status.value,
            number,
        )
        return updated, updated_patient
