import datetime as dt
from typing import Protocol

from clinic.domain.models import Appointment, Patient


class PatientStore(Protocol):
    """Key-value store holding patient records."""

    def get(self, patient_id: str) -> Patient | None:
        """Return the patient, or None if unknown."""
        ...

    def list_all(self) -> list[Patient]:
        """Return every stored patient."""
        ...

    def upsert(self, patient: Patient) -> None:
        """Insert or replace a patient."""
        ...

    def delete(self, patient_id: str) -> None:
        """Remove a patient record permanently."""
        ...


class AppointmentStore(Protocol):
    """Key-value store holding appointment records, soft-deleted ones included."""

    def get(self, appointment_id: str) -> Appointment | None:
        """Return the appointment, or None if unknown."""
        ...

    def list_by_day(self, day: dt.date) -> list[Appointment]:
        """Return every appointment starting on ``day`` in clinic-local time."""
        ...

    def list_by_patient(self, patient_id: str) -> list[Appointment]:
        """Return every appointment referencing ``patient_id``."""
        ...

    def upsert(self, appointment: Appointment) -> None:
        """Insert or replace an appointment."""
        ...
