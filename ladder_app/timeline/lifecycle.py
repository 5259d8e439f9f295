"""
Step lifecycle state machine.

Steps move between INCOMPLETE and COMPLETED. Completing a step closes its
open period (or records one when the step has none); reopening a step starts
a new open period. The current step is never stored: it is derived from the
completion flags and the step ordering on every call.
"""

from datetime import date, datetime
from typing import Iterable, Optional

from ..config.defaults import TimelineParams
from ..errors import PreconditionError
from ..logging.config import get_lifecycle_logger, log_step_transition
from ..utils.time import day_after, format_day, to_calendar_date
from .conflicts import ConflictDetector
from .intervals import trim_before
from .models import (
    Period,
    Plan,
    Step,
    StepLifecycleState,
    StepTransition,
)

lifecycle_logger = get_lifecycle_logger(__name__)


def sort_steps(steps: Iterable[Step]) -> list[Step]:
    """Steps in ascending step_number order."""
    return sorted(steps, key=lambda s: s.step_number)


def current_step(steps: Iterable[Step]) -> Optional[Step]:
    """First incomplete step by step_number, None when all are completed."""
    for step in sort_steps(steps):
        if not step.is_completed:
            return step
    return None


def last_completed_step(steps: Iterable[Step]) -> Optional[Step]:
    """Completed step with the highest step_number."""
    completed = [s for s in sort_steps(steps) if s.is_completed]
    return completed[-1] if completed else None


def previous_step(steps: Iterable[Step]) -> Optional[Step]:
    """
    Step to reopen when moving the active pointer backwards.

    That is the step before the current one, or the last step when every
    step is completed. None when the current step is the first step.
    """
    ordered = sort_steps(steps)
    if not ordered:
        return None

    current = current_step(ordered)
    if current is None:
        return ordered[-1]

    index = ordered.index(current)
    return ordered[index - 1] if index > 0 else None


def infer_first_start(step: Step, plan: Plan, steps: Iterable[Step],
                      use_previous_step: bool = True) -> date:
    """
    Start date for a step that is completed without any recorded period.

    The day after the latest closed period of any earlier step, so steps
    completed without a period of their own are skipped over; the plan
    start date when no earlier step has a closed period.
    """
    if use_previous_step:
        ends = [
            p.end_date
            for s in steps if s.step_number < step.step_number
            for p in s.periods if p.end_date is not None
        ]
        if ends:
            return max(plan.start_date, day_after(max(ends)))
    return plan.start_date


class StepLifecycleMachine:
    """Applies complete/uncomplete transitions with conflict validation."""

    def __init__(self, params: Optional[TimelineParams] = None,
                 detector: Optional[ConflictDetector] = None,
                 tz_name: str = "UTC"):
        self.params = params or TimelineParams()
        self.tz_name = tz_name
        self.detector = detector or ConflictDetector(tz_name)
        self.logger = lifecycle_logger

    def complete(self, step: Step, plan: Plan, steps: Iterable[Step],
                 now: datetime, actor: Optional[str] = None) -> StepTransition:
        """
        Mark a step completed at ``now``.

        Args:
            step: Step to complete, must be INCOMPLETE
            plan: Plan owning the step
            steps: Every step of the plan (the step itself may be included)
            now: Completion time
            actor: Identity recorded as the completer

        Returns:
            StepTransition holding the completed step

        Raises:
            PreconditionError: step is already completed
            ConflictError: the closed or recorded period collides with another step
        """
        if step.is_completed:
            self.logger.warning(
                "Complete requested for completed step",
                step_id=step.id,
                plan_id=plan.id
            )
            raise PreconditionError(
                f"Step \"{step.title}\" is already completed",
                current_state=step.state.value,
                attempted_transition="complete",
                context={"step_id": step.id}
            )

        steps = list(steps)
        today = to_calendar_date(now, self.tz_name)
        open_period = step.open_period
        affected: Optional[Period] = None
        created = False
        periods = list(step.periods)

        if open_period is not None:
            affected = open_period.with_end(max(open_period.start_date, today))
            periods[periods.index(open_period)] = affected
        elif not periods:
            start = infer_first_start(step, plan, steps, self.params.infer_start_from_previous_step)
            if start <= today:
                affected = Period(start_date=start, end_date=today, created_by=actor)
                periods.append(affected)
                created = True
            else:
                # Previous step ended today; this step never held a whole day
                self.logger.info(
                    "Step completed without an active day, no period recorded",
                    step_id=step.id,
                    inferred_start=format_day(start)
                )

        if affected is not None:
            self.detector.ensure_free(step, affected.start_date, affected.end_date,
                                      plan, steps, now)

        completed = step.with_periods(periods).with_completion(now, actor)

        log_step_transition(
            self.logger,
            step_id=step.id,
            from_state=StepLifecycleState.INCOMPLETE.value,
            to_state=StepLifecycleState.COMPLETED.value,
            trigger="complete",
            context={
                "plan_id": plan.id,
                "step_number": step.step_number,
                "actor": actor,
                "period_created": created,
                "period": [format_day(affected.start_date), format_day(affected.end_date)]
                if affected else None,
                "timestamp": now.isoformat()
            }
        )

        return StepTransition(
            step=completed,
            from_state=StepLifecycleState.INCOMPLETE,
            to_state=StepLifecycleState.COMPLETED,
            trigger="complete",
            timestamp=now,
            affected_period=affected,
            period_created=created,
        )

    def uncomplete(self, step: Step, plan: Plan, steps: Iterable[Step],
                   now: datetime, actor: Optional[str] = None) -> StepTransition:
        """
        Reopen a completed step, starting a new open period at ``now``.

        Earlier periods of the step are trimmed to end the day before, so the
        step never holds the same day twice.

        Raises:
            PreconditionError: step is not completed
            ConflictError: another step already occupies ``now``
        """
        if not step.is_completed:
            self.logger.warning(
                "Uncomplete requested for incomplete step",
                step_id=step.id,
                plan_id=plan.id
            )
            raise PreconditionError(
                f"Step \"{step.title}\" is not completed",
                current_state=step.state.value,
                attempted_transition="uncomplete",
                context={"step_id": step.id}
            )

        today = to_calendar_date(now, self.tz_name)
        opened = Period(start_date=today, end_date=None, created_by=actor)

        self.detector.ensure_free(step, opened.start_date, None, plan, steps, now)

        kept = [p for p in (trim_before(p, today) for p in step.periods) if p is not None]
        reopened = step.with_periods(kept + [opened]).with_reopened()

        log_step_transition(
            self.logger,
            step_id=step.id,
            from_state=StepLifecycleState.COMPLETED.value,
            to_state=StepLifecycleState.INCOMPLETE.value,
            trigger="uncomplete",
            context={
                "plan_id": plan.id,
                "step_number": step.step_number,
                "actor": actor,
                "periods_trimmed": len(step.periods) - len(kept),
                "period_start": format_day(today),
                "timestamp": now.isoformat()
            }
        )

        return StepTransition(
            step=reopened,
            from_state=StepLifecycleState.COMPLETED,
            to_state=StepLifecycleState.INCOMPLETE,
            trigger="uncomplete",
            timestamp=now,
            affected_period=opened,
            period_created=True,
        )

    def release(self, step: Step, now: datetime) -> Step:
        """
        Hand the current day back from a step that stops being current.

        The step's open period is closed the day before ``now``, or dropped
        if it only started today. Completion flags are left untouched.
        """
        open_period = step.open_period
        if open_period is None:
            return step

        today = to_calendar_date(now, self.tz_name)
        periods = [p for p in step.periods if p is not open_period]
        trimmed = trim_before(open_period, today)
        if trimmed is not None:
            periods.append(trimmed)

        self.logger.info(
            "Released open period",
            step_id=step.id,
            period_start=format_day(open_period.start_date),
            period_end=format_day(trimmed.end_date) if trimmed else None,
            dropped=trimmed is None
        )
        return step.with_periods(periods)
