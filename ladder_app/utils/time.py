"""
Calendar-date helpers for comparing timestamps against date-only intervals.

Every function takes its reference time explicitly so results are
deterministic for a given input.
"""

from datetime import date, datetime, timedelta, timezone, tzinfo
from functools import lru_cache
from typing import Optional, Union
from zoneinfo import ZoneInfo

DateLike = Union[date, datetime]


@lru_cache(maxsize=32)
def get_zone(tz_name: str) -> tzinfo:
    """Resolve a timezone name, without touching the tz database for UTC."""
    if tz_name == "UTC":
        return timezone.utc
    return ZoneInfo(tz_name)


def to_calendar_date(value: DateLike, tz_name: str = "UTC") -> date:
    """
    Reduce a date or datetime to the calendar date it falls on.

    Args:
        value: Date, naive datetime or aware datetime
        tz_name: Timezone whose calendar is used for aware datetimes

    Returns:
        Calendar date
    """
    if isinstance(value, datetime):
        if value.tzinfo is not None:
            value = value.astimezone(get_zone(tz_name))
        return value.date()
    return value


def days_inclusive(start: date, end: date) -> int:
    """Number of calendar days covered by [start, end], counting both ends."""
    return (end - start).days + 1


def day_before(value: date) -> date:
    """Calendar day preceding value."""
    return value - timedelta(days=1)


def day_after(value: date) -> date:
    """Calendar day following value."""
    return value + timedelta(days=1)


def format_day(value: Optional[date]) -> Optional[str]:
    """ISO format for log and error output, None stays None."""
    return value.isoformat() if value is not None else None
