"""
Timeline data models for plans, steps, periods and tool entries.

This module defines immutable data structures for step ladders and the
result types produced by the lifecycle machine, the conflict detector and
the entry aggregator. State changes are expressed by building new instances
through the ``with_*`` helpers.
"""

from dataclasses import dataclass, field, replace
from datetime import date, datetime
from enum import Enum
from typing import Any, Optional

from ..errors import ValidationError
from ..utils.time import format_day
from .intervals import find_overlapping_pair


class ToolType(str, Enum):
    """Tools that produce timestamped entries."""
    BAROMETER = "barometer"
    DAGENS_SMILEY = "dagens-smiley"
    SENGETIDER = "sengetider"          # Bedtime log, never matched to steps


class StepLifecycleState(str, Enum):
    """Stored lifecycle states of a step."""
    INCOMPLETE = "incomplete"
    COMPLETED = "completed"


class MatchStrategy(str, Enum):
    """How entries are selected for a step, decided once per step."""
    BY_PERIODS = "by_periods"
    BY_DIRECT_DATES = "by_direct_dates"
    BY_FALLBACK_HEURISTIC = "by_fallback_heuristic"


class ConflictKind(str, Enum):
    """Reasons a candidate interval is rejected."""
    OVERLAP = "overlap"
    BEFORE_PLAN_START = "before_plan_start"


class RangeSource(str, Enum):
    """Where an occupied range came from."""
    PERIOD = "period"
    DIRECT_DATES = "direct_dates"


@dataclass(frozen=True)
class Period:
    """A date interval during which a step was the active step."""

    start_date: date
    end_date: Optional[date] = None                  # None means ongoing
    id: Optional[str] = None
    created_by: Optional[str] = None

    def __post_init__(self):
        if self.end_date is not None and self.end_date < self.start_date:
            raise ValidationError(
                f"Period end {self.end_date.isoformat()} is before start "
                f"{self.start_date.isoformat()}",
                field="end_date",
                value=self.end_date,
            )

    @property
    def is_ongoing(self) -> bool:
        return self.end_date is None

    def with_end(self, end_date: Optional[date]) -> 'Period':
        """Close (or reopen with None) this period."""
        return replace(self, end_date=end_date)


@dataclass(frozen=True)
class Plan:
    """An intervention step ladder for one child."""

    id: str
    child_id: str
    title: str
    start_date: date
    target_date: Optional[date] = None
    is_active: bool = True
    description: Optional[str] = None


@dataclass(frozen=True)
class Step:
    """One ordered stage of a plan."""

    id: str
    plan_id: str
    step_number: int
    title: str
    description: Optional[str] = None
    goal: Optional[str] = None

    # Completion tracking
    is_completed: bool = False
    completed_at: Optional[datetime] = None
    completed_by: Optional[str] = None

    # Manual range, only used for matching when no periods exist
    start_date: Optional[date] = None
    target_end_date: Optional[date] = None

    periods: tuple[Period, ...] = ()

    def __post_init__(self):
        if not isinstance(self.step_number, int) or self.step_number <= 0:
            raise ValidationError(
                "Step number must be a positive integer",
                field="step_number",
                value=self.step_number,
            )
        if not self.title or not self.title.strip():
            raise ValidationError("Step title is required", field="title", value=self.title)
        if (self.start_date is not None and self.target_end_date is not None
                and self.target_end_date < self.start_date):
            raise ValidationError(
                "Step start date must not be after its target end date",
                field="target_end_date",
                value=self.target_end_date,
            )
        # Accept any iterable of periods but store a tuple
        if not isinstance(self.periods, tuple):
            object.__setattr__(self, "periods", tuple(self.periods))

        if sum(1 for p in self.periods if p.is_ongoing) > 1:
            raise ValidationError(
                "A step can have at most one active period",
                field="periods",
                value=self.periods,
            )
        # Open ends run unbounded here
        overlap = find_overlapping_pair(self.periods, date.max)
        if overlap is not None:
            first, second = overlap
            raise ValidationError(
                f"Periods of step \"{self.title}\" overlap: "
                f"{format_day(first.start_date)} - {format_day(first.end_date) or 'ongoing'} and "
                f"{format_day(second.start_date)} - {format_day(second.end_date) or 'ongoing'}",
                field="periods",
                value=overlap,
            )

    @property
    def state(self) -> StepLifecycleState:
        return StepLifecycleState.COMPLETED if self.is_completed else StepLifecycleState.INCOMPLETE

    @property
    def has_periods(self) -> bool:
        return len(self.periods) > 0

    @property
    def has_direct_dates(self) -> bool:
        return self.start_date is not None or self.target_end_date is not None

    @property
    def open_period(self) -> Optional[Period]:
        """The ongoing period, if any."""
        for period in self.periods:
            if period.is_ongoing:
                return period
        return None

    @property
    def sorted_periods(self) -> tuple[Period, ...]:
        return tuple(sorted(self.periods, key=lambda p: p.start_date))

    def with_periods(self, periods) -> 'Step':
        return replace(self, periods=tuple(sorted(periods, key=lambda p: p.start_date)))

    def with_completion(self, completed_at: datetime, completed_by: Optional[str]) -> 'Step':
        return replace(self, is_completed=True, completed_at=completed_at,
                       completed_by=completed_by)

    def with_reopened(self) -> 'Step':
        return replace(self, is_completed=False, completed_at=None, completed_by=None)

    def with_details(self, title: Optional[str] = None,
                     start_date: Optional[date] = None,
                     target_end_date: Optional[date] = None) -> 'Step':
        """Replace the manual range, and the title when one is given."""
        return replace(
            self,
            title=title if title is not None else self.title,
            start_date=start_date,
            target_end_date=target_end_date,
        )


@dataclass(frozen=True)
class Entry:
    """A timestamped measurement produced by an external tool."""

    id: str
    tool_type: ToolType
    created_at: datetime
    tool_id: Optional[str] = None
    title: Optional[str] = None
    payload: dict[str, Any] = field(default_factory=dict, compare=False, hash=False)


@dataclass(frozen=True)
class StepTransition:
    """Result of a lifecycle transition, ready for the store to commit."""

    step: Step
    from_state: StepLifecycleState
    to_state: StepLifecycleState
    trigger: str
    timestamp: datetime

    # The period whose bounds changed or that was added
    affected_period: Optional[Period] = None
    period_created: bool = False


@dataclass(frozen=True)
class OccupiedRange:
    """A date range already held by some step of the plan."""

    step_id: str
    step_title: str
    start: date
    end: Optional[date]
    source: RangeSource = RangeSource.PERIOD


@dataclass(frozen=True)
class ConflictResult:
    """Outcome of checking a candidate interval against a plan."""

    ok: bool
    candidate_start: date
    candidate_end: Optional[date] = None
    kind: Optional[ConflictKind] = None
    step_id: Optional[str] = None
    step_title: Optional[str] = None
    range_start: Optional[date] = None
    range_end: Optional[date] = None

    @classmethod
    def passed(cls, candidate_start: date, candidate_end: Optional[date]) -> 'ConflictResult':
        return cls(ok=True, candidate_start=candidate_start, candidate_end=candidate_end)

    @classmethod
    def overlapping(cls, candidate_start: date, candidate_end: Optional[date],
                    occupied: OccupiedRange) -> 'ConflictResult':
        return cls(
            ok=False,
            candidate_start=candidate_start,
            candidate_end=candidate_end,
            kind=ConflictKind.OVERLAP,
            step_id=occupied.step_id,
            step_title=occupied.step_title,
            range_start=occupied.start,
            range_end=occupied.end,
        )

    @classmethod
    def before_plan(cls, candidate_start: date, candidate_end: Optional[date],
                    plan: Plan) -> 'ConflictResult':
        return cls(
            ok=False,
            candidate_start=candidate_start,
            candidate_end=candidate_end,
            kind=ConflictKind.BEFORE_PLAN_START,
            step_title=plan.title,
            range_start=plan.start_date,
            range_end=plan.target_date,
        )

    def describe(self) -> str:
        """Human-readable message for the caller to render."""
        if self.ok:
            return "No conflict"
        if self.kind == ConflictKind.BEFORE_PLAN_START:
            return (f"Start date {format_day(self.candidate_start)} is before the plan "
                    f"start date {format_day(self.range_start)}")
        end = format_day(self.range_end) or "ongoing"
        return (f"Dates overlap with step \"{self.step_title}\" "
                f"({format_day(self.range_start)} - {end})")


@dataclass(frozen=True)
class StepView:
    """Per-step projection used by progress displays."""

    step: Step
    strategy: MatchStrategy
    matched_entries: tuple[Entry, ...]
    overall_start: Optional[date] = None
    overall_end: Optional[date] = None               # None with a start means ongoing
    duration_days: Optional[int] = None
    is_current: bool = False

    @property
    def has_date_range(self) -> bool:
        return self.overall_start is not None

    @property
    def is_ongoing(self) -> bool:
        return self.overall_start is not None and self.overall_end is None


@dataclass(frozen=True)
class PlanProgress:
    """Summary counters for a plan."""

    plan_id: str
    total_steps: int
    completed_steps: int
    current_step: Optional[Step]
    days_since_start: int
    days_until_target: Optional[int] = None

    @property
    def percent_complete(self) -> float:
        if self.total_steps == 0:
            return 0.0
        return round(100.0 * self.completed_steps / self.total_steps, 1)
