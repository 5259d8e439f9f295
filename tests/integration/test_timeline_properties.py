"""Randomised operation sequences checking the timeline invariants."""

import random
import pytest
from datetime import datetime, timedelta

from ladder_app.config.defaults import get_default_config
from ladder_app.engine import StepTimelineEngine
from ladder_app.errors import ConflictError, PreconditionError
from ladder_app.persistence.plan_store import InMemoryPlanStore
from ladder_app.timeline.intervals import find_overlapping_pair
from ladder_app.timeline.lifecycle import current_step
from conftest import make_entry, make_step


def assert_invariants(store, plan, now):
    steps = store.get_steps(plan.id)
    all_periods = [p for s in steps for p in s.periods]

    assert find_overlapping_pair(all_periods, now) is None
    assert all(p.start_date >= plan.start_date for p in all_periods)
    for step in steps:
        assert sum(1 for p in step.periods if p.is_ongoing) <= 1
        if step.is_completed:
            assert step.open_period is None


def random_step(rng, store, plan):
    return rng.choice(store.get_steps(plan.id))


@pytest.mark.parametrize("seed", range(25))
def test_random_operations_keep_periods_disjoint(seed, plan):
    rng = random.Random(seed)
    store = InMemoryPlanStore()
    store.add_plan(plan)
    for number in range(1, 6):
        store.save_step(make_step(number))
    engine = StepTimelineEngine(store, config=get_default_config())

    now = datetime(2024, 1, 1, 9, 0)
    for _ in range(40):
        now += timedelta(days=rng.choice([0, 0, 1, 2, 3]), hours=rng.randint(0, 3))
        operation = rng.choice(["complete", "complete", "activate", "go_back", "reopen", "validate"])
        current = current_step(store.get_steps(plan.id))

        if operation == "complete" and current is not None:
            # Steps here have no manual ranges, so completing the current step never conflicts
            completed = engine.complete_step(current.id, "user-1", now)
            assert completed.is_completed
            assert_invariants(store, plan, now)
            continue

        try:
            if operation == "activate" and current is not None:
                engine.add_step_period(current.id, "user-1", now)
            elif operation == "go_back":
                engine.go_back_to_previous_step(plan.id, "user-1", now)
            elif operation == "reopen":
                engine.uncomplete_step(random_step(rng, store, plan).id, "user-1", now)
            elif operation == "validate":
                step = random_step(rng, store, plan)
                day = now.date() - timedelta(days=rng.randint(0, 10))
                first = engine.validate_step_interval(step.id, day, now=now)
                assert engine.validate_step_interval(step.id, day, now=now) == first
        except (ConflictError, PreconditionError):
            pass

        assert_invariants(store, plan, now)


@pytest.mark.parametrize("seed", range(10))
def test_views_partition_timed_entries(seed, plan):
    """Entries never land on two steps whose periods are disjoint."""
    rng = random.Random(seed)
    store = InMemoryPlanStore()
    store.add_plan(plan)
    for number in range(1, 4):
        store.save_step(make_step(number))
    engine = StepTimelineEngine(store, config=get_default_config())

    now = datetime(2024, 1, 1, 9, 0)
    for number in range(1, 4):
        now += timedelta(days=rng.randint(1, 5))
        engine.complete_step(f"step-{number}", "user-1", now)

    for index in range(30):
        created = datetime(2024, 1, 1, 8) + timedelta(hours=rng.randint(0, 24 * 16))
        store.add_entry("child-1", make_entry(f"e-{index}", created))

    views = engine.compute_step_view(plan.id, now)
    matched = [e.id for v in views for e in v.matched_entries]
    assert len(matched) == len(set(matched))
    for view in views:
        for entry in view.matched_entries:
            assert view.overall_start <= entry.created_at.date() <= view.overall_end
