"""
Conflict detection for proposed step intervals.

A child is on exactly one active step at a time, so a step's interval may
not share a day with any range held by another step of the same plan, and no
interval may start before the plan itself.
"""

from datetime import date
from typing import Iterable, Optional

from ..errors import ConflictError, ValidationError
from ..logging.config import get_lifecycle_logger, log_conflict_decision
from ..utils.time import DateLike, format_day
from .intervals import ranges_overlap, resolve_end
from .models import ConflictResult, OccupiedRange, Plan, RangeSource, Step

lifecycle_logger = get_lifecycle_logger(__name__)


def occupied_ranges(steps: Iterable[Step], exclude_step_id: Optional[str] = None) -> list[OccupiedRange]:
    """
    Collect every range held by the given steps.

    A step contributes one range per period plus one for its manual
    start/target dates; both kinds count as occupied. A manual range without
    a start date has no anchor and occupies nothing.
    """
    ranges = []
    for step in steps:
        if exclude_step_id is not None and step.id == exclude_step_id:
            continue
        for period in step.periods:
            ranges.append(OccupiedRange(
                step_id=step.id,
                step_title=step.title,
                start=period.start_date,
                end=period.end_date,
                source=RangeSource.PERIOD,
            ))
        if step.start_date is not None:
            ranges.append(OccupiedRange(
                step_id=step.id,
                step_title=step.title,
                start=step.start_date,
                end=step.target_end_date,
                source=RangeSource.DIRECT_DATES,
            ))
    return ranges


def check_candidate(
    candidate_start: date,
    candidate_end: Optional[date],
    plan: Plan,
    ranges: Iterable[OccupiedRange],
    now: DateLike,
    tz_name: str = "UTC"
) -> ConflictResult:
    """
    Check a candidate interval against the plan floor and occupied ranges.

    Args:
        candidate_start: Proposed first day
        candidate_end: Proposed last day, None for an ongoing interval
        plan: Plan owning the step
        ranges: Ranges held by the other steps of the plan
        now: Evaluation time, the end of every ongoing range
        tz_name: Timezone for reducing ``now`` to a date

    Returns:
        ConflictResult describing the first violation found, or a pass
    """
    if candidate_end is not None and candidate_end < candidate_start:
        raise ValidationError(
            "Start date must not be after end date",
            field="end_date",
            value=candidate_end,
        )

    if candidate_start < plan.start_date:
        return ConflictResult.before_plan(candidate_start, candidate_end, plan)

    span_end = max(candidate_start, resolve_end(candidate_end, now, tz_name))

    for occupied in ranges:
        occupied_end = resolve_end(occupied.end, now, tz_name)

        if occupied.start <= candidate_start <= occupied_end:
            return ConflictResult.overlapping(candidate_start, candidate_end, occupied)

        if candidate_end is not None and occupied.start <= candidate_end <= occupied_end:
            return ConflictResult.overlapping(candidate_start, candidate_end, occupied)

        # Candidate swallowing the whole range; ongoing candidates run to now
        if ranges_overlap(candidate_start, span_end, occupied.start, occupied_end):
            return ConflictResult.overlapping(candidate_start, candidate_end, occupied)

    return ConflictResult.passed(candidate_start, candidate_end)


class ConflictDetector:
    """Validates proposed step intervals against the rest of the plan."""

    def __init__(self, tz_name: str = "UTC"):
        self.tz_name = tz_name
        self.logger = lifecycle_logger

    def check(
        self,
        step: Step,
        candidate_start: date,
        candidate_end: Optional[date],
        plan: Plan,
        steps: Iterable[Step],
        now: DateLike
    ) -> ConflictResult:
        """Check a candidate interval for ``step``; other steps come from ``steps``."""
        ranges = occupied_ranges(steps, exclude_step_id=step.id)
        result = check_candidate(candidate_start, candidate_end, plan, ranges, now, self.tz_name)

        log_conflict_decision(
            self.logger,
            step_id=step.id,
            passed=result.ok,
            reason="ok" if result.ok else result.kind.value,
            context={
                "plan_id": plan.id,
                "candidate_start": format_day(candidate_start),
                "candidate_end": format_day(candidate_end),
                "ranges_checked": len(ranges),
                "conflicting_step_id": result.step_id,
                "conflicting_range": [format_day(result.range_start), format_day(result.range_end)],
            }
        )
        return result

    def ensure_free(
        self,
        step: Step,
        candidate_start: date,
        candidate_end: Optional[date],
        plan: Plan,
        steps: Iterable[Step],
        now: DateLike
    ) -> None:
        """Raise ConflictError unless the candidate interval is free."""
        result = self.check(step, candidate_start, candidate_end, plan, steps, now)
        if not result.ok:
            raise ConflictError.from_result(result)
