import datetime as dt
from typing import Any

from clinic.domain.models import APPOINTMENT_ADAPTER, Appointment, Patient
from clinic.scheduling.datetime_helpers import local_day


class InMemoryPatientStore:
    """Dict-backed patient store.

    Records are kept as plain JSON-compatible dicts, the way a browser
    key-value store holds them. Set ``get_error``, ``upsert_error``, etc. to
    make the corresponding method raise on the next call.
    """

    def __init__(self, patients: list[Patient] | None = None) -> None:
        self.records: dict[str, dict[str, Any]] = {}
        self.get_error: Exception | None = None
        self.list_error: Exception | None = None
        self.upsert_error: Exception | None = None
        self.delete_error: Exception | None = None
        for patient in patients or []:
            self.records[patient.id] = patient.model_dump(mode="json")

    def get(self, patient_id: str) -> Patient | None:
        if self.get_error:
            raise self.get_error
        record = self.records.get(patient_id)
        return Patient.model_validate(record) if record is not None else None

    def list_all(self) -> list[Patient]:
        if self.list_error:
            raise self.list_error
        return [Patient.model_validate(record) for record in self.records.values()]

    def upsert(self, patient: Patient) -> None:
        if self.upsert_error:
            raise self.upsert_error
        self.records[patient.id] = patient.model_dump(mode="json")

    def delete(self, patient_id: str) -> None:
        if self.delete_error:
            raise self.delete_error
        self.records.pop(patient_id, None)


class InMemoryAppointmentStore:
    """Dict-backed appointment store grouping days in the clinic's timezone.

    ``upserts`` records every write, in order, so tests can check exactly
    what was persisted.
    """

    def __init__(
        self,
        appointments: list[Appointment] | None = None,
        clinic_tz: dt.tzinfo = dt.timezone.utc,
    ) -> None:
        self.records: dict[str, dict[str, Any]] = {}
        self.upserts: list[Appointment] = []
        self._clinic_tz = clinic_tz
        self.get_error: Exception | None = None
        self.list_error: Exception | None = None
        self.upsert_error: Exception | None = None
        for appointment in appointments or []:
            self.records[appointment.id] = APPOINTMENT_ADAPTER.dump_python(appointment, mode="json")

    def get(self, appointment_id: str) -> Appointment | None:
        if self.get_error:
            raise self.get_error
        record = self.records.get(appointment_id)
        return APPOINTMENT_ADAPTER.validate_python(record) if record is not None else None

    def list_by_day(self, day: dt.date) -> list[Appointment]:
        if self.list_error:
            raise self.list_error
        return [
            appointment
            for appointment in self._all()
            if local_day(appointment.start, self._clinic_tz) == day
        ]

    def list_by_patient(self, patient_id: str) -> list[Appointment]:
        if self.list_error:
            raise self.list_error
        return [a for a in self._all() if a.patient_ref == patient_id]

    def upsert(self, appointment: Appointment) -> None:
        if self.upsert_error:
            raise self.upsert_error
        self.records[appointment.id] = APPOINTMENT_ADAPTER.dump_python(appointment, mode="json")
        self.upserts.append(appointment)

    def _all(self) -> list[Appointment]:
        return [APPOINTMENT_ADAPTER.validate_python(record) for record in self.records.values()]
