"""
Step timeline engine coordinator.

Exposes the operations the HTTP layer calls: completing and reopening steps,
validating and editing step intervals, and building the per-step entry view
used by progress displays. Every operation reads a snapshot of one plan from
the store under the plan's lock and, for mutations, writes the changed step
back before releasing it.
"""

from datetime import date, datetime
from typing import Any, Optional

import structlog

from .config.defaults import DefaultConfig
from .config.loader import ConfigLoader
from .errors import (
    ConflictError,
    PreconditionError,
    ValidationError,
)
from .logging.config import get_lifecycle_logger
from .persistence.plan_store import PlanStore
from .timeline.aggregator import EntryAggregator
from .timeline.conflicts import ConflictDetector, check_candidate
from .timeline.lifecycle import StepLifecycleMachine, current_step, previous_step
from .timeline.models import (
    ConflictResult,
    OccupiedRange,
    Period,
    PlanProgress,
    RangeSource,
    Step,
    StepView,
)
from .utils.time import DateLike, format_day, to_calendar_date

logger = structlog.get_logger(__name__)
lifecycle_logger = get_lifecycle_logger(__name__)


class StepTimelineEngine:
    """
    Main coordinator for step period tracking.

    Manages the pipeline:
    Store snapshot → Lifecycle / Conflict check → Store commit
    Store snapshot → Entry aggregation → Step views
    """

    def __init__(
        self,
        store: PlanStore,
        config: Optional[DefaultConfig] = None,
        config_dir: Optional[str] = None,
        overrides: Optional[dict[str, Any]] = None
    ) -> None:
        """Initialize the engine over a plan store."""
        self.logger = logger
        self.lifecycle_logger = lifecycle_logger
        self.store = store

        if config is None:
            config = ConfigLoader.create(config_dir).load(overrides)
        self.config = config

        tz_name = config.time.timezone
        self.tz_name = tz_name
        self.detector = ConflictDetector(tz_name)
        self.machine = StepLifecycleMachine(config.timeline, self.detector, tz_name)
        self.aggregator = EntryAggregator(config.timeline, config.aggregation, tz_name)

        self.logger.info(
            "Step timeline engine initialized",
            timezone=tz_name,
            excluded_tool_types=list(config.timeline.excluded_tool_types)
        )

    # Lifecycle

    def complete_step(self, step_id: str, actor_id: Optional[str], now: datetime) -> Step:
        """
        Complete a step, closing (or recording) its active period.

        Raises:
            NotFoundError: unknown step
            PreconditionError: step already completed
            ConflictError: the period collides with another step
        """
        step = self.store.get_step(step_id)
        with self.store.plan_lock(step.plan_id):
            step = self.store.get_step(step_id)
            plan = self.store.get_plan(step.plan_id)
            steps = self.store.get_steps(plan.id)

            try:
                transition = self.machine.complete(step, plan, steps, now, actor_id)
            except ConflictError as e:
                self._log_conflict("complete_step", step, e)
                raise
            except PreconditionError as e:
                self._log_precondition("complete_step", step, e)
                raise

            self.store.save_step(transition.step)
            return transition.step

    def uncomplete_step(self, step_id: str, actor_id: Optional[str], now: datetime) -> Step:
        """
        Reopen a completed step with a new period starting at ``now``.

        Other steps are left untouched, so while the current step has an
        active period this conflicts with it. Use go_back_to_previous_step
        to move the active step backwards; it releases that period first.

        Raises:
            NotFoundError: unknown step
            PreconditionError: step is not completed
            ConflictError: another step already occupies ``now``
        """
        step = self.store.get_step(step_id)
        with self.store.plan_lock(step.plan_id):
            step = self.store.get_step(step_id)
            plan = self.store.get_plan(step.plan_id)
            steps = self.store.get_steps(plan.id)

            try:
                transition = self.machine.uncomplete(step, plan, steps, now, actor_id)
            except ConflictError as e:
                self._log_conflict("uncomplete_step", step, e)
                raise
            except PreconditionError as e:
                self._log_precondition("uncomplete_step", step, e)
                raise

            self.store.save_step(transition.step)
            return transition.step

    def go_back_to_previous_step(self, plan_id: str, actor_id: Optional[str],
                                 now: datetime) -> Optional[Step]:
        """
        Move the active step pointer one step backwards.

        The current step hands today's date back (its open period is closed
        the day before, or dropped if it started today) and the previous step
        is reopened. Returns the reopened step, or None when there is nothing
        to go back to.
        """
        with self.store.plan_lock(plan_id):
            plan = self.store.get_plan(plan_id)
            steps = self.store.get_steps(plan_id)

            target = previous_step(steps)
            if target is None:
                self.logger.info("No previous step to return to", plan_id=plan_id)
                return None

            current = current_step(steps)
            released = None
            if current is not None and current.open_period is not None:
                released = self.machine.release(current, now)
                steps = [released if s.id == released.id else s for s in steps]

            try:
                transition = self.machine.uncomplete(target, plan, steps, now, actor_id)
            except ConflictError as e:
                self._log_conflict("go_back_to_previous_step", target, e)
                raise
            except PreconditionError as e:
                self._log_precondition("go_back_to_previous_step", target, e)
                raise

            if released is not None:
                self.store.save_step(released)
            self.store.save_step(transition.step)
            return transition.step

    # Interval validation and editing

    def validate_step_interval(
        self,
        step_id: str,
        candidate_start: date,
        candidate_end: Optional[date] = None,
        *,
        now: DateLike
    ) -> ConflictResult:
        """
        Check a proposed interval for a step without changing anything.

        Returns:
            ConflictResult, ``ok`` or carrying the conflicting step title and range
        """
        if candidate_end is not None and candidate_end < candidate_start:
            raise ValidationError(
                "Start date must not be after end date",
                field="end_date",
                value=candidate_end
            )

        step = self.store.get_step(step_id)
        plan = self.store.get_plan(step.plan_id)
        steps = self.store.get_steps(plan.id)
        return self.detector.check(step, candidate_start, candidate_end, plan, steps, now)

    def add_step_period(
        self,
        step_id: str,
        actor_id: Optional[str],
        now: datetime,
        start_date: Optional[date] = None,
        end_date: Optional[date] = None
    ) -> Step:
        """
        Record a period for a step.

        Without an end date this activates the step (start defaults to the
        date of ``now``); with both dates it adds a backdated closed period.

        Raises:
            ValidationError: end before start, or an end without a start
            PreconditionError: an open period is requested while one exists,
                or for a completed step
            ConflictError: the period collides with another step or with
                one of the step's own periods
        """
        if start_date is None and end_date is not None:
            raise ValidationError("A period with an end date needs a start date", field="start_date")
        if start_date is None:
            start_date = to_calendar_date(now, self.tz_name)
        if end_date is not None and end_date < start_date:
            raise ValidationError(
                "Start date must not be after end date",
                field="end_date",
                value=end_date
            )

        step = self.store.get_step(step_id)
        with self.store.plan_lock(step.plan_id):
            step = self.store.get_step(step_id)
            plan = self.store.get_plan(step.plan_id)
            steps = self.store.get_steps(plan.id)

            if end_date is None and (step.is_completed or step.open_period is not None):
                error = PreconditionError(
                    f"Step \"{step.title}\" cannot get another active period",
                    current_state=step.state.value,
                    attempted_transition="add_open_period",
                    context={"has_open_period": step.open_period is not None}
                )
                self._log_precondition("add_step_period", step, error)
                raise error

            result = self.detector.check(step, start_date, end_date, plan, steps, now)
            if result.ok:
                own = [
                    OccupiedRange(step.id, step.title, p.start_date, p.end_date, RangeSource.PERIOD)
                    for p in step.periods
                ]
                result = check_candidate(start_date, end_date, plan, own, now, self.tz_name)
            if not result.ok:
                error = ConflictError.from_result(result)
                self._log_conflict("add_step_period", step, error)
                raise error

            period = Period(start_date=start_date, end_date=end_date, created_by=actor_id)
            updated = step.with_periods(list(step.periods) + [period])
            self.store.save_step(updated)

            self.lifecycle_logger.info(
                "Step period added",
                step_id=step.id,
                plan_id=plan.id,
                actor=actor_id,
                start_date=format_day(start_date),
                end_date=format_day(end_date)
            )
            return updated

    def update_step_dates(
        self,
        step_id: str,
        start_date: Optional[date],
        target_end_date: Optional[date],
        now: DateLike,
        title: Optional[str] = None
    ) -> Step:
        """
        Edit a step's manual date range (and optionally its title).

        Raises:
            ValidationError: empty title, or start after target end
            ConflictError: the new range collides with another step
        """
        if title is not None and not title.strip():
            raise ValidationError("Step title is required", field="title", value=title)
        if start_date is not None and target_end_date is not None and target_end_date < start_date:
            raise ValidationError(
                "Start date must not be after end date",
                field="target_end_date",
                value=target_end_date
            )

        step = self.store.get_step(step_id)
        with self.store.plan_lock(step.plan_id):
            step = self.store.get_step(step_id)
            plan = self.store.get_plan(step.plan_id)
            steps = self.store.get_steps(plan.id)

            if start_date is not None:
                try:
                    self.detector.ensure_free(step, start_date, target_end_date, plan, steps, now)
                except ConflictError as e:
                    self._log_conflict("update_step_dates", step, e)
                    raise

            updated = step.with_details(title=title, start_date=start_date,
                                        target_end_date=target_end_date)
            self.store.save_step(updated)
            return updated

    # Read-side projections

    def get_step_periods(self, step_id: str) -> tuple[Period, ...]:
        """A step's periods ordered by start date."""
        return self.store.get_step(step_id).sorted_periods

    def get_current_step(self, plan_id: str) -> Optional[Step]:
        """First incomplete step of the plan, None when all are completed."""
        return current_step(self.store.get_steps(plan_id))

    def compute_step_view(self, plan_id: str, now: DateLike) -> list[StepView]:
        """
        Per-step entries and summary timing for a plan.

        Returns:
            StepView per step, ascending by step_number
        """
        plan = self.store.get_plan(plan_id)
        steps = self.store.get_steps(plan_id)
        entries = self.store.get_entries(plan.child_id)

        views = self.aggregator.compute(steps, entries, now)

        self.logger.debug(
            "Computed step view",
            plan_id=plan_id,
            steps=len(views),
            entries=len(entries),
            matched=sum(len(v.matched_entries) for v in views)
        )
        return views

    def get_plan_progress(self, plan_id: str, now: DateLike) -> PlanProgress:
        """Completion counters and day counts for a plan."""
        plan = self.store.get_plan(plan_id)
        steps = self.store.get_steps(plan_id)
        today = to_calendar_date(now, self.tz_name)

        return PlanProgress(
            plan_id=plan.id,
            total_steps=len(steps),
            completed_steps=sum(1 for s in steps if s.is_completed),
            current_step=current_step(steps),
            days_since_start=max(0, (today - plan.start_date).days),
            days_until_target=(plan.target_date - today).days if plan.target_date else None,
        )

    # Logging helpers

    def _log_conflict(self, operation: str, step: Step, error: ConflictError) -> None:
        self.logger.warning(
            "Interval conflict",
            operation=operation,
            step_id=step.id,
            plan_id=step.plan_id,
            conflicting_step=error.step_title,
            range_start=format_day(error.range_start),
            range_end=format_day(error.range_end),
            kind=error.kind
        )

    def _log_precondition(self, operation: str, step: Step, error: PreconditionError) -> None:
        self.logger.warning(
            "Lifecycle precondition failed",
            operation=operation,
            step_id=step.id,
            plan_id=step.plan_id,
            current_state=error.current_state,
            attempted_transition=error.attempted_transition
        )
