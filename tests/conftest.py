import datetime as dt
from zoneinfo import ZoneInfo

import pytest

from clinic.config import ScheduleConfig
from clinic.numbering.lifecycle import PatientNumberLifecycle
from clinic.numbering.pool import IdentifierPool
from clinic.scheduling.service import SchedulingService
from clinic.stores.memory import InMemoryAppointmentStore, InMemoryPatientStore


@pytest.fixture
def clinic_tz() -> dt.tzinfo:
    return ZoneInfo("Europe/Paris")


@pytest.fixture
def schedule_config() -> ScheduleConfig:
    return ScheduleConfig(
        opening_time=dt.time(9, 0),
        closing_time=dt.time(21, 0),
        default_duration_minutes=30,
        clinic_timezone="Europe/Paris",
    )


@pytest.fixture
def patient_store() -> InMemoryPatientStore:
    return InMemoryPatientStore()


@pytest.fixture
def appointment_store(clinic_tz: dt.tzinfo) -> InMemoryAppointmentStore:
    return InMemoryAppointmentStore(clinic_tz=clinic_tz)


@pytest.fixture
def pool() -> IdentifierPool:
    return IdentifierPool()


@pytest.fixture
def lifecycle(pool: IdentifierPool) -> PatientNumberLifecycle:
    return PatientNumberLifecycle(pool)


@pytest.fixture
def service(
    patient_store: InMemoryPatientStore,
    appointment_store: InMemoryAppointmentStore,
    lifecycle: PatientNumberLifecycle,
    schedule_config: ScheduleConfig,
) -> SchedulingService:
    return SchedulingService(patient_store, appointment_store, lifecycle, schedule_config)
