import datetime as dt


class SchedulingError(Exception):
    """Base exception for all scheduling and numbering errors."""


class RecordStoreError(SchedulingError):
    """Raised when a patient or appointment record store fails."""


class SlotUnavailableError(SchedulingError):
    """Raised when a new appointment overlaps an existing one."""

    def __init__(
        self,
        start: dt.datetime,
        duration_minutes: int,
        conflicting_ids: list[str] | None = None,
    ) -> None:
        self.start = start
        self.duration_minutes = duration_minutes
        self.conflicting_ids = conflicting_ids or []
        super().__init__(
            f"Slot unavailable: {start.isoformat()} (+{duration_minutes} min) "
            f"overlaps {', '.join(self.conflicting_ids) or 'an existing appointment'}"
        )


class OutOfBusinessHoursError(SchedulingError):
    """Raised when an appointment window falls outside business hours."""

    def __init__(self, start: dt.datetime, end: dt.datetime, reason: str) -> None:
        self.start = start
        self.end = end
        self.reason = reason
        super().__init__(f"Appointment window rejected: {reason}")


class AppointmentNotFoundError(SchedulingError):
    """Raised when an appointment id is not present in the store."""

    def __init__(self, appointment_id: str) -> None:
        self.appointment_id = appointment_id
        super().__init__(f"Appointment not found: {appointment_id}")


class PatientNotFoundError(SchedulingError):
    """Raised when a patient id is not present in the store."""

    def __init__(self, patient_id: str) -> None:
        self.patient_id = patient_id
        super().__init__(f"Patient not found: {patient_id}")


class PatientAlreadyExistsError(SchedulingError):
    """Raised when registering a patient id that is already stored."""

    def __init__(self, patient_id: str) -> None:
        self.patient_id = patient_id
        super().__init__(f"Patient already exists: {patient_id}")
