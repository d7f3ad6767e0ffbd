from loguru import logger

from clinic.config import AppConfig
from clinic.numbering.lifecycle import PatientNumberLifecycle
from clinic.numbering.pool import IdentifierPool, PoolState
from clinic.scheduling.datetime_helpers import resolve_timezone
from clinic.scheduling.service import SchedulingService
from clinic.stores.memory import InMemoryAppointmentStore, InMemoryPatientStore
from clinic.stores.ports import AppointmentStore, PatientStore


def build_scheduling_service(
    config: AppConfig,
    patients: PatientStore,
    appointments: AppointmentStore,
    pool_state: PoolState | None = None,
) -> SchedulingService:
    """Build a service over the given stores, bootstrapping the number pool.

    ``pool_state`` restores a persisted pool first; the bootstrap then drops
    any sequence a patient already holds and adds the gaps between them.
    """
    pool = IdentifierPool.from_state(pool_state) if pool_state else IdentifierPool()
    lifecycle = PatientNumberLifecycle(pool)

    existing = patients.list_all()
    logger.info("Bootstrapping patient number pool from {} patient(s)", len(existing))
    lifecycle.bootstrap(existing)

    return SchedulingService(patients, appointments, lifecycle, config.schedule)


def build_in_memory_service(config: AppConfig | None = None) -> SchedulingService:
    """Build a service backed by empty in-memory stores."""
    config = config or AppConfig()
    clinic_tz = resolve_timezone(config.schedule.clinic_timezone)
    return build_scheduling_service(
        config,
        InMemoryPatientStore(),
        InMemoryAppointmentStore(clinic_tz=clinic_tz),
    )
