"""Pytest configuration and shared fixtures."""

import pytest
from datetime import date, datetime

from ladder_app.config.defaults import get_default_config
from ladder_app.engine import StepTimelineEngine
from ladder_app.persistence.plan_store import InMemoryPlanStore
from ladder_app.timeline.models import Entry, Period, Plan, Step, ToolType


def make_step(number, completed=False, periods=(), start_date=None, target_end_date=None,
              plan_id="plan-1", title=None, completed_at=None):
    """Build a step with predictable id and title."""
    return Step(
        id=f"step-{number}",
        plan_id=plan_id,
        step_number=number,
        title=title or f"Trin {number}",
        is_completed=completed,
        completed_at=completed_at,
        start_date=start_date,
        target_end_date=target_end_date,
        periods=tuple(periods),
    )


def make_entry(entry_id, created_at, tool_type=ToolType.BAROMETER):
    return Entry(id=entry_id, tool_type=tool_type, created_at=created_at)


def period(start, end=None):
    return Period(start_date=start, end_date=end)


@pytest.fixture
def plan() -> Plan:
    """Plan starting 2024-01-01 for child-1."""
    return Plan(
        id="plan-1",
        child_id="child-1",
        title="Skolevaegring",
        start_date=date(2024, 1, 1),
        target_date=date(2024, 6, 30),
    )


@pytest.fixture
def now() -> datetime:
    return datetime(2024, 1, 20, 12, 0, 0)


@pytest.fixture
def store(plan) -> InMemoryPlanStore:
    """Store holding the plan and three untimed, incomplete steps."""
    store = InMemoryPlanStore()
    store.add_plan(plan)
    for number in (1, 2, 3):
        store.save_step(make_step(number))
    return store


@pytest.fixture
def engine(store) -> StepTimelineEngine:
    return StepTimelineEngine(store, config=get_default_config())


@pytest.fixture
def raw_snapshot():
    """Raw records as returned by the web API."""
    return {
        "plans": [
            {"id": 7, "childId": 3, "title": "Indsatstrappe", "startDate": "2024-01-01",
             "targetDate": "2024-03-31", "isActive": True},
        ],
        "steps": [
            {"id": 71, "planId": 7, "stepNumber": 1, "title": "Kortere skoledage",
             "isCompleted": True, "completedAt": "2024-01-10T08:30:00Z", "completedBy": 12,
             "activePeriods": [{"id": 1, "startDate": "2024-01-01", "endDate": "2024-01-10"}]},
            {"id": 72, "planId": 7, "stepNumber": 2, "title": "Hele skoledage",
             "isCompleted": False, "målsætning": "Fem hele dage",
             "activePeriods": [{"id": 2, "startDate": "2024-01-11", "endDate": None}]},
        ],
        "entries": [
            {"id": "b-1", "childId": 3, "toolType": "barometer",
             "createdAt": "2024-01-05T09:00:00", "rating": 4},
            {"id": "s-1", "childId": 3, "toolType": "dagens-smiley",
             "createdAt": "2024-01-12T15:00:00", "emoji": "😀"},
            {"id": "z-1", "childId": 3, "toolType": "sengetider",
             "createdAt": "2024-01-12T21:00:00", "puttetid": "20:00"},
        ],
    }
