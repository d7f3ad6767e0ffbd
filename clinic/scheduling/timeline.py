import datetime as dt
from collections.abc import Iterator
from typing import NamedTuple, Protocol

from clinic.domain.models import Appointment
from clinic.scheduling.datetime_helpers import local_day
from clinic.stores.ports import AppointmentStore


class HasWindow(Protocol):
    @property
    def start(self) -> dt.datetime: ...

    @property
    def end(self) -> dt.datetime: ...


class Window(NamedTuple):
    """A candidate ``[start, end)`` slot."""

    start: dt.datetime
    end: dt.datetime

    @classmethod
    def of(cls, start: dt.datetime, duration_minutes: int) -> "Window":
        return cls(start, start + dt.timedelta(minutes=duration_minutes))


def overlaps(a: HasWindow, b: HasWindow) -> bool:
    """Half-open interval overlap: touching ends do not count."""
    return a.start < b.end and a.end > b.start


class AppointmentTimeline:
    """Per-day, start-ordered view over the appointment store.

    Every query reads the store again; no ordering is cached between calls.
    """

    def __init__(self, store: AppointmentStore, clinic_tz: dt.tzinfo) -> None:
        self._store = store
        self._clinic_tz = clinic_tz

    @property
    def clinic_tz(self) -> dt.tzinfo:
        return self._clinic_tz

    def appointments_on(self, day: dt.date) -> list[Appointment]:
        """Non-deleted appointments on ``day``, ascending by start."""
        live = [a for a in self._store.list_by_day(day) if not a.is_deleted]
        return sorted(live, key=lambda a: (a.start, a.id))

    def appointments_on_or_after(
        self, instant: dt.datetime, excluding_id: str | None = None
    ) -> Iterator[Appointment]:
        """Same-day appointments starting at or after ``instant``, in order."""
        for appointment in self.appointments_on(local_day(instant, self._clinic_tz)):
            if appointment.id == excluding_id:
                continue
            if appointment.start >= instant:
                yield appointment

    def conflicts_with(
        self,
        start: dt.datetime,
        duration_minutes: int,
        excluding_id: str | None = None,
    ) -> list[Appointment]:
        """Non-exempt appointments overlapping the candidate slot."""
        candidate = Window.of(start, duration_minutes)
        return [
            appointment
            for appointment in self.appointments_on(local_day(start, self._clinic_tz))
            if appointment.id != excluding_id
            and not appointment.exempt
            and overlaps(appointment, candidate)
        ]

    def is_slot_available(
        self,
        start: dt.datetime,
        duration_minutes: int,
        excluding_id: str | None = None,
    ) -> bool:
        return not self.conflicts_with(start, duration_minutes, excluding_id)
