import datetime as dt
import threading
from collections.abc import Callable, Iterator
from contextlib import contextmanager
from functools import partial

from loguru import logger

from clinic.config import ScheduleConfig
from clinic.domain.exceptions import (
    AppointmentNotFoundError,
    OutOfBusinessHoursError,
    PatientAlreadyExistsError,
    PatientNotFoundError,
    RecordStoreError,
    SchedulingError,
    SlotUnavailableError,
)
from clinic.domain.models import NO_NUMBER, Appointment, AppointmentStatus, Patient, Shift
from clinic.numbering.lifecycle import PatientNumberLifecycle
from clinic.scheduling.conflicts import ConflictResolver
from clinic.scheduling.coordinator import AppointmentStatusCoordinator
from clinic.scheduling.datetime_helpers import resolve_timezone
from clinic.scheduling.timeline import AppointmentTimeline
from clinic.stores.ports import AppointmentStore, PatientStore


class SchedulingService:
    """Entry points for agenda, dashboard and billing actions.

    Validation (business hours, slot availability) always runs before
    anything is written, so a rejected action leaves the stores untouched.
    If a store write fails part-way, the number pool is restored and the
    records already written are put back before the error is raised.
    Mutations share one lock, which serializes pool allocation and reflow
    when the service is used from several threads.
    """

    def __init__(
        self,
        patients: PatientStore,
        appointments: AppointmentStore,
        lifecycle: PatientNumberLifecycle,
        config: ScheduleConfig,
    ) -> None:
        self._patients = patients
        self._appointments = appointments
        self._lifecycle = lifecycle
        self._default_duration = config.default_duration_minutes
        self._timeline = AppointmentTimeline(appointments, resolve_timezone(config.clinic_timezone))
        self._resolver = ConflictResolver.from_config(self._timeline, config)
        self._coordinator = AppointmentStatusCoordinator(lifecycle, appointments, patients)
        self._lock = threading.RLock()

    @property
    def timeline(self) -> AppointmentTimeline:
        return self._timeline

    @property
    def resolver(self) -> ConflictResolver:
        return self._resolver

    @property
    def lifecycle(self) -> PatientNumberLifecycle:
        return self._lifecycle

    @contextmanager
    def _store_errors(self, action: str) -> Iterator[None]:
        try:
            yield
        except SchedulingError:
            raise
        except Exception as exc:
            raise RecordStoreError(f"{action} failed: {exc}") from exc

    @contextmanager
    def _rollback_on_error(self, action: str) -> Iterator[list[Callable[[], None]]]:
        """Undo number-pool changes and recorded writes if the block raises.

        Callers append an undo callable before each store write; undo steps
        run newest first.
        """
        pool_state = self._lifecycle.pool.state()
        undo: list[Callable[[], None]] = []
        try:
            yield undo
        except Exception:
            self._lifecycle.pool.restore(pool_state)
            if undo:
                logger.warning("{} failed; reverting {} write(s)", action, len(undo))
            for step in reversed(undo):
                try:
                    step()
                except Exception:
                    logger.exception("{} rollback step failed", action)
            raise

    def get_appointment(self, appointment_id: str) -> Appointment:
        with self._store_errors("Appointment lookup"):
            appointment = self._appointments.get(appointment_id)
        if appointment is None:
            raise AppointmentNotFoundError(appointment_id)
        return appointment

    def get_patient(self, patient_id: str) -> Patient:
        with self._store_errors("Patient lookup"):
            patient = self._patients.get(patient_id)
        if patient is None:
            raise PatientNotFoundError(patient_id)
        return patient

    def is_slot_available(
        self,
        start: dt.datetime,
        duration_minutes: int | None = None,
        excluding_id: str | None = None,
    ) -> bool:
        with self._store_errors("Slot lookup"):
            return self._timeline.is_slot_available(
                start, duration_minutes or self._default_duration, excluding_id
            )

    def register_patient(self, patient: Patient) -> Patient:
        """Store a new patient, giving it the number its status calls for.

        Any number already set on ``patient`` is replaced by one taken from
        the pool.

        Raises:
            PatientAlreadyExistsError: If a patient with this id is stored.
        """
        logger.info("Registering patient {}", patient.id)
        with self._lock, self._store_errors("Patient registration"):
            if self._patients.get(patient.id) is not None:
                raise PatientAlreadyExistsError(patient.id)
            with self._rollback_on_error("Patient registration"):
                number = self._lifecycle.assign_or_update(NO_NUMBER, patient.status)
                stored = patient.model_copy(update={"number_assigned": number})
                self._patients.upsert(stored)
        return stored

    def schedule(self, appointment: Appointment) -> Appointment:
        """Book a new appointment.

        Raises:
            OutOfBusinessHoursError: If the window falls outside opening hours.
            SlotUnavailableError: If a non-exempt appointment already holds
                part of the slot. Breaks and off-site blocks skip this check.
        """
        logger.info(
            "Scheduling {} {} at {} for {} min",
            appointment.kind,
            appointment.id,
            appointment.start.isoformat(),
            appointment.duration_minutes,
        )
        with self._lock, self._store_errors("Scheduling"):
            self._require_window(appointment.start, appointment.end)

            if not appointment.exempt:
                conflicts = self._timeline.conflicts_with(
                    appointment.start, appointment.duration_minutes, excluding_id=appointment.id
                )
                if conflicts:
                    raise SlotUnavailableError(
                        appointment.start,
                        appointment.duration_minutes,
                        [c.id for c in conflicts],
                    )

            if appointment.patient_ref:
                appointment, _ = self._apply_status(appointment, appointment.status)
            else:
                self._appointments.upsert(appointment)
        return appointment

    def reschedule(
        self,
        appointment_id: str,
        new_start: dt.datetime,
        duration_minutes: int | None = None,
    ) -> list[Shift]:
        """Move and/or resize an appointment, pushing later ones forward.

        Returns the shifts applied to the following appointments. Nothing is
        written if the new window is rejected.

        Raises:
            AppointmentNotFoundError: If the appointment is unknown or deleted.
            OutOfBusinessHoursError: If the new window falls outside opening hours.
        """
        with self._lock:
            current = self.get_appointment(appointment_id)
            if current.is_deleted:
                raise AppointmentNotFoundError(appointment_id)

            changed = type(current).model_validate(
                {
                    **current.model_dump(),
                    "start": new_start,
                    "duration_minutes": (
                        current.duration_minutes if duration_minutes is None else duration_minutes
                    ),
                }
            )
            logger.info(
                "Rescheduling {}: {} ({} min) -> {} ({} min)",
                appointment_id,
                current.start.isoformat(),
                current.duration_minutes,
                changed.start.isoformat(),
                changed.duration_minutes,
            )
            self._require_window(changed.start, changed.end)

            with self._store_errors("Rescheduling"):
                with self._rollback_on_error("Rescheduling") as undo:
                    shifts = self._resolver.reflow(changed)
                    for shift in shifts:
                        moved = self.get_appointment(shift.appointment_id)
                        undo.append(partial(self._appointments.upsert, moved))
                        self._appointments.upsert(moved.model_copy(update={"start": shift.new_start}))
                    undo.append(partial(self._appointments.upsert, current))
                    self._appointments.upsert(changed)
        return shifts

    def change_status(
        self, appointment_id: str, new_status: AppointmentStatus
    ) -> tuple[Appointment, Patient | None]:
        logger.info("Changing status of appointment {} to {}", appointment_id, new_status.value)
        with self._lock, self._store_errors("Status change"):
            appointment = self.get_appointment(appointment_id)
            return self._apply_status(appointment, new_status)

    def delete_appointment(self, appointment_id: str) -> tuple[Appointment, Patient | None]:
        """Soft-delete: the record stays in the store with status DELETED."""
        return self.change_status(appointment_id, AppointmentStatus.DELETED)

    def delete_patient(self, patient_id: str) -> None:
        """Hard-delete a patient and release its number for reuse."""
        logger.info("Deleting patient {}", patient_id)
        with self._lock, self._store_errors("Patient deletion"):
            patient = self.get_patient(patient_id)
            self._patients.delete(patient.id)
            self._lifecycle.release_number(patient.number_assigned)

    def _apply_status(
        self, appointment: Appointment, new_status: AppointmentStatus
    ) -> tuple[Appointment, Patient | None]:
        """Run the coordinator, undoing its pool and patient changes on failure."""
        with self._rollback_on_error("Status change") as undo:
            patient_id = appointment.patient_ref
            patient = self._patients.get(patient_id) if patient_id else None
            if patient is not None:
                undo.append(partial(self._patients.upsert, patient))
            return self._coordinator.on_status_change(appointment, new_status)

    def _require_window(self, start: dt.datetime, end: dt.datetime) -> None:
        reason = self._resolver.check_window(start, end)
        if reason:
            logger.info("Rejected window {} - {}: {}", start.isoformat(), end.isoformat(), reason)
            raise OutOfBusinessHoursError(start, end, reason)
