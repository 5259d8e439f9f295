"""
Entry aggregation: assigning tool entries to the steps they belong to.

For every step a match strategy is chosen once, from the timing data the
step carries:

    BY_PERIODS             step has periods; entry date inside any period
    BY_DIRECT_DATES        no periods, manual start/target dates set
    BY_FALLBACK_HEURISTIC  no timing data; only the current step and the most
                           recently completed step receive entries

Entries from excluded tools (bedtime) are never assigned. Summary timing is
computed from periods only.
"""

from datetime import date
from typing import Iterable, Optional

from ..config.defaults import AggregationParams, TimelineParams
from ..logging.config import get_aggregation_logger, log_match_strategy
from ..utils.time import DateLike, format_day, to_calendar_date
from .intervals import contains, earliest_start, latest_end, period_contains, span_days
from .lifecycle import current_step, last_completed_step, sort_steps
from .models import Entry, MatchStrategy, Step, StepView

aggregation_logger = get_aggregation_logger(__name__)


def choose_strategy(step: Step) -> MatchStrategy:
    """Pick the matching strategy for a step from the timing data it holds."""
    if step.has_periods:
        return MatchStrategy.BY_PERIODS
    if step.has_direct_dates:
        return MatchStrategy.BY_DIRECT_DATES
    return MatchStrategy.BY_FALLBACK_HEURISTIC


def fallback_recipient_ids(steps: Iterable[Step], include_last_completed: bool = True) -> set[str]:
    """
    Ids of the steps that may take entries under the fallback heuristic.

    The current step (or the last step when all are completed), plus the most
    recently completed step. Empty for an empty plan.
    """
    ordered = sort_steps(steps)
    if not ordered:
        return set()

    recipients = set()
    current = current_step(ordered)
    recipients.add(current.id if current is not None else ordered[-1].id)

    if include_last_completed:
        completed = last_completed_step(ordered)
        if completed is not None:
            recipients.add(completed.id)

    return recipients


def step_timing(step: Step, now: DateLike, tz_name: str = "UTC") -> tuple[Optional[date], Optional[date], Optional[int]]:
    """
    Overall start, overall end and duration of a step, from its periods only.

    A single ongoing period makes the whole step open-ended. Steps without
    periods report no range at all.
    """
    start = earliest_start(step.periods)
    end = latest_end(step.periods)
    return start, end, span_days(start, end, now, tz_name)


class EntryAggregator:
    """Projects a plan's entries onto its steps."""

    def __init__(self, timeline_params: Optional[TimelineParams] = None,
                 aggregation_params: Optional[AggregationParams] = None,
                 tz_name: str = "UTC"):
        self.timeline_params = timeline_params or TimelineParams()
        self.aggregation_params = aggregation_params or AggregationParams()
        self.tz_name = tz_name
        self.logger = aggregation_logger

    def is_excluded(self, entry: Entry) -> bool:
        """Entries from tools that are never matched to steps."""
        return entry.tool_type in self.timeline_params.excluded_tool_types

    def match_entries(self, step: Step, strategy: MatchStrategy, entries: list[Entry],
                      fallback_ids: set[str], now: DateLike) -> list[Entry]:
        """Apply one strategy uniformly to every entry for ``step``."""
        if strategy == MatchStrategy.BY_FALLBACK_HEURISTIC:
            return list(entries) if step.id in fallback_ids else []

        matched = []
        for entry in entries:
            day = to_calendar_date(entry.created_at, self.tz_name)
            if strategy == MatchStrategy.BY_PERIODS:
                hit = any(period_contains(p, day, now, self.tz_name) for p in step.periods)
            else:
                hit = contains(step.start_date, step.target_end_date, day)
            if hit:
                matched.append(entry)
        return matched

    def compute(self, steps: Iterable[Step], entries: Iterable[Entry],
                now: DateLike) -> list[StepView]:
        """
        Build the per-step view of a plan.

        Args:
            steps: Every step of the plan, in any order
            entries: Every entry of the plan's child
            now: Evaluation time; ongoing periods end on its date

        Returns:
            StepView per step, ascending by step_number
        """
        ordered = sort_steps(steps)
        candidates = [e for e in entries if not self.is_excluded(e)]
        fallback_ids = fallback_recipient_ids(
            ordered, self.aggregation_params.fallback_include_last_completed
        )
        current = current_step(ordered)

        views = []
        for step in ordered:
            strategy = choose_strategy(step)
            matched = self.match_entries(step, strategy, candidates, fallback_ids, now)
            start, end, duration = step_timing(step, now, self.tz_name)

            log_match_strategy(
                self.logger,
                step_id=step.id,
                step_number=step.step_number,
                strategy=strategy.value,
                matched=len(matched),
                context={
                    "periods": len(step.periods),
                    "overall_start": format_day(start),
                    "overall_end": format_day(end),
                    "duration_days": duration
                }
            )

            views.append(StepView(
                step=step,
                strategy=strategy,
                matched_entries=tuple(matched),
                overall_start=start,
                overall_end=end,
                duration_days=duration,
                is_current=current is not None and current.id == step.id,
            ))

        return views
