import datetime as dt
from zoneinfo import ZoneInfo

from loguru import logger


def resolve_timezone(name: str) -> dt.tzinfo:
    """Resolve a timezone name, falling back to UTC if invalid."""
    try:
        return ZoneInfo(name)
    except Exception:
        logger.warning("Invalid clinic timezone '{}'; defaulting to UTC", name)
        return dt.timezone.utc


def local_day(instant: dt.datetime, tz: dt.tzinfo) -> dt.date:
    """Calendar day of ``instant`` as seen from the clinic."""
    return instant.astimezone(tz).date()


def local_time(instant: dt.datetime, tz: dt.tzinfo) -> dt.time:
    """Wall-clock time of ``instant`` in the clinic, without tzinfo."""
    return instant.astimezone(tz).time().replace(tzinfo=None)


def at_local_time(day: dt.date, time: dt.time, tz: dt.tzinfo) -> dt.datetime:
    """Build the aware instant for ``time`` on ``day`` in the clinic.

    ``at_local_time(date(2026, 3, 2), time(21, 0), Paris)`` → ``2026-03-02T21:00+01:00``.
    """
    return dt.datetime.combine(day, time, tzinfo=tz)
