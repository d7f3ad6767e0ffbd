import datetime as dt

from loguru import logger

from clinic.config import ScheduleConfig
from clinic.domain.models import Appointment, Shift
from clinic.scheduling.datetime_helpers import at_local_time, local_day, local_time
from clinic.scheduling.timeline import AppointmentTimeline


class ConflictResolver:
    """Business-hours validation and cascading reflow for one clinic."""

    def __init__(
        self,
        timeline: AppointmentTimeline,
        opening_time: dt.time = dt.time(9, 0),
        closing_time: dt.time = dt.time(21, 0),
    ) -> None:
        self._timeline = timeline
        self._opening = opening_time
        self._closing = closing_time

    @classmethod
    def from_config(cls, timeline: AppointmentTimeline, config: ScheduleConfig) -> "ConflictResolver":
        return cls(timeline, config.opening_time, config.closing_time)

    @property
    def opening_time(self) -> dt.time:
        return self._opening

    @property
    def closing_time(self) -> dt.time:
        return self._closing

    def check_window(self, start: dt.datetime, end: dt.datetime) -> str | None:
        """Return why ``[start, end)`` is not bookable, or None if it is.

        Only the clinic-local time of day is compared against opening and
        closing; the date itself is not checked against a calendar.
        """
        tz = self._timeline.clinic_tz
        if end <= start:
            return "end must be after start"
        if local_day(start, tz) != local_day(end, tz):
            return "appointment must start and end on the same day"
        if local_time(start, tz) < self._opening:
            return f"starts before opening ({self._opening:%H:%M})"
        if local_time(end, tz) > self._closing:
            return f"ends after closing ({self._closing:%H:%M})"
        return None

    def validate_window(self, start: dt.datetime, end: dt.datetime) -> bool:
        return self.check_window(start, end) is None

    def reflow(self, changed: Appointment) -> list[Shift]:
        """Push later appointments forward until ``changed`` no longer overlaps.

        ``changed`` carries its new start and duration; the store still holds
        its old position, which is ignored. Each successor that starts before
        the running cursor moves to the cursor, keeping its duration. The
        first successor that already starts at or after the cursor ends the
        cascade.
        """
        cursor = changed.end
        shifts: list[Shift] = []

        for appointment in self._timeline.appointments_on_or_after(
            changed.start, excluding_id=changed.id
        ):
            if appointment.start >= cursor:
                break
            new_start = cursor
            cursor = new_start + dt.timedelta(minutes=appointment.duration_minutes)
            shifts.append(Shift(appointment_id=appointment.id, new_start=new_start))
            logger.debug(
                "Reflow: {} {} -> {}",
                appointment.id,
                appointment.start.isoformat(),
                new_start.isoformat(),
            )
            if self._ends_after_closing(new_start, cursor):
                logger.warning(
                    "Reflow pushed appointment {} past closing time (ends {})",
                    appointment.id,
                    cursor.isoformat(),
                )

        if shifts:
            logger.info("Reflow after {} shifted {} appointment(s)", changed.id, len(shifts))
        return shifts

    def _ends_after_closing(self, start: dt.datetime, end: dt.datetime) -> bool:
        tz = self._timeline.clinic_tz
        return end > at_local_time(local_day(start, tz), self._closing, tz)
