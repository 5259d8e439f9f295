"""
Interval algebra over date-only ranges.

All ranges are inclusive on both ends. An ongoing range (no end) extends to
the calendar date of ``now``; ``now`` is always supplied by the caller.
"""

from datetime import date
from typing import TYPE_CHECKING, Iterable, Optional

from ..utils.time import DateLike, day_before, days_inclusive, to_calendar_date

if TYPE_CHECKING:
    from .models import Period


def is_ongoing(period: 'Period') -> bool:
    """True iff the period has no recorded end."""
    return period.end_date is None


def resolve_end(end: Optional[date], now: DateLike, tz_name: str = "UTC") -> date:
    """Substitute the date of ``now`` for a missing end."""
    if end is not None:
        return end
    return to_calendar_date(now, tz_name)


def effective_end(period: 'Period', now: DateLike, tz_name: str = "UTC") -> date:
    """End date of the period, or the date of ``now`` while it is ongoing."""
    return resolve_end(period.end_date, now, tz_name)


def contains(start: Optional[date], end: Optional[date], day: date) -> bool:
    """
    Inclusive membership test where a missing bound is unbounded.

    Callers that want "ongoing extends to now" semantics resolve the end
    with ``resolve_end`` first.
    """
    if start is not None and day < start:
        return False
    if end is not None and day > end:
        return False
    return True


def period_contains(period: 'Period', day: date, now: DateLike, tz_name: str = "UTC") -> bool:
    """Inclusive membership test for a period, open periods ending at ``now``."""
    return period.start_date <= day <= effective_end(period, now, tz_name)


def ranges_overlap(a_start: date, a_end: date, b_start: date, b_end: date) -> bool:
    """Two resolved inclusive ranges share at least one day."""
    return a_start <= b_end and a_end >= b_start


def periods_overlap(a: 'Period', b: 'Period', now: DateLike, tz_name: str = "UTC") -> bool:
    """Two periods share at least one day, open ends resolved to ``now``."""
    return ranges_overlap(
        a.start_date, effective_end(a, now, tz_name),
        b.start_date, effective_end(b, now, tz_name),
    )


def find_overlapping_pair(periods: Iterable['Period'], now: DateLike,
                          tz_name: str = "UTC") -> Optional[tuple['Period', 'Period']]:
    """First pair of overlapping periods, scanning in start order."""
    ordered = sorted(periods, key=lambda p: p.start_date)
    for previous, current in zip(ordered, ordered[1:]):
        # Sorted by start: any overlap shows up between neighbours
        if periods_overlap(previous, current, now, tz_name):
            return previous, current
    return None


def trim_before(period: 'Period', day: date) -> Optional['Period']:
    """
    Shorten a period so it ends before ``day``.

    Returns None when nothing of the period is left (it started on or after
    ``day``), and the period unchanged when it already ends earlier.
    """
    if period.start_date >= day:
        return None
    if period.end_date is not None and period.end_date < day:
        return period
    return period.with_end(day_before(day))


def earliest_start(periods: Iterable['Period']) -> Optional[date]:
    starts = [p.start_date for p in periods]
    return min(starts) if starts else None


def latest_end(periods: Iterable['Period']) -> Optional[date]:
    """Latest end date, or None when there are no periods or any is ongoing."""
    periods = list(periods)
    if not periods or any(p.end_date is None for p in periods):
        return None
    return max(p.end_date for p in periods)


def span_days(start: Optional[date], end: Optional[date], now: DateLike,
              tz_name: str = "UTC") -> Optional[int]:
    """Whole calendar days in [start, end or now], counting both ends."""
    if start is None:
        return None
    return max(0, days_inclusive(start, resolve_end(end, now, tz_name)))
