#!/usr/bin/env python3
"""
Basic Usage Example - Step Timeline Engine

This script walks one plan through a few weeks of step changes. It shows how to:
- Load configuration and configure logging from it
- Build an in-memory store from raw records
- Complete, reopen and activate steps
- Read the per-step entry view and plan progress

Run: python examples/basic_usage.py
"""

from dataclasses import asdict
from datetime import date, datetime

from ladder_app.config.loader import ConfigLoader
from ladder_app.engine import StepTimelineEngine
from ladder_app.errors import ConflictError
from ladder_app.logging.config import configure_logging
from ladder_app.persistence.plan_store import InMemoryPlanStore


SNAPSHOT = {
    "plans": [
        {"id": 1, "childId": 10, "title": "Tilbage i skole", "startDate": "2024-03-01",
         "targetDate": "2024-05-31"},
    ],
    "steps": [
        {"id": 11, "planId": 1, "stepNumber": 1, "title": "Moed op til foerste time"},
        {"id": 12, "planId": 1, "stepNumber": 2, "title": "Bliv til frokost"},
        {"id": 13, "planId": 1, "stepNumber": 3, "title": "Hele skoledage"},
    ],
    "entries": [
        {"id": "b-1", "childId": 10, "toolType": "barometer", "createdAt": "2024-03-04T08:00:00"},
        {"id": "s-1", "childId": 10, "toolType": "dagens-smiley", "createdAt": "2024-03-12T15:00:00"},
        {"id": "s-2", "childId": 10, "toolType": "dagens-smiley", "createdAt": "2024-03-20T15:00:00"},
        {"id": "z-1", "childId": 10, "toolType": "sengetider", "createdAt": "2024-03-20T21:00:00"},
    ],
}


def print_views(engine: StepTimelineEngine, now: datetime) -> None:
    for view in engine.compute_step_view("1", now):
        marker = "*" if view.is_current else " "
        print(f"  {marker} {view.step.step_number}. {view.step.title:<28} "
              f"{view.strategy.value:<22} {view.overall_start} - {view.overall_end or 'ongoing'} "
              f"({view.duration_days} days) entries={[e.id for e in view.matched_entries]}")


def main() -> None:
    config = ConfigLoader.create().load()
    configure_logging(**asdict(config.logging))

    store = InMemoryPlanStore.from_snapshot(SNAPSHOT)
    engine = StepTimelineEngine(store, config=config)

    print("\n1. Untimed plan, entries go to the current step:")
    print_views(engine, datetime(2024, 3, 5, 12))

    print("\n2. Step 1 completed on 2024-03-08, step 2 activated on 2024-03-11:")
    engine.complete_step("11", "coordinator", datetime(2024, 3, 8, 16))
    engine.add_step_period("12", "coordinator", datetime(2024, 3, 11, 8))
    print_views(engine, datetime(2024, 3, 21, 12))

    print("\n3. Proposing an overlapping interval for step 3:")
    result = engine.validate_step_interval("13", date(2024, 3, 15), date(2024, 3, 25),
                                           now=datetime(2024, 3, 21, 12))
    print(f"   {result.describe()}")

    print("\n4. Reopening step 1 while step 2 is running:")
    try:
        engine.uncomplete_step("11", "coordinator", datetime(2024, 3, 21, 12))
    except ConflictError as e:
        print(f"   Rejected: {e.message}")

    print("\n5. Going back to the previous step instead:")
    engine.go_back_to_previous_step("1", "coordinator", datetime(2024, 3, 21, 12))
    print_views(engine, datetime(2024, 3, 22, 12))

    progress = engine.get_plan_progress("1", datetime(2024, 3, 22, 12))
    print(f"\nProgress: {progress.completed_steps}/{progress.total_steps} "
          f"({progress.percent_complete}%), {progress.days_until_target} days to target")


if __name__ == "__main__":
    main()
