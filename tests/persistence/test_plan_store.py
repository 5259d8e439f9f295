"""Tests for the in-memory plan store."""

import threading
import pytest
from datetime import date

from ladder_app.errors import MalformedDataError, NotFoundError, ValidationError
from ladder_app.persistence.plan_store import InMemoryPlanStore
from conftest import make_entry, make_step


class TestInMemoryPlanStore:
    """Test lookup and persistence behaviour."""

    def test_get_steps_sorted_and_scoped(self, store, plan):
        store.save_step(make_step(9, plan_id="plan-2"))
        store.save_step(make_step(4))
        steps = store.get_steps(plan.id)
        assert [s.step_number for s in steps] == [1, 2, 3, 4]

    def test_save_replaces_step(self, store):
        updated = store.get_step("step-1").with_details(title="Nyt navn")
        store.save_step(updated)
        assert store.get_step("step-1").title == "Nyt navn"

    def test_unknown_plan(self, store):
        with pytest.raises(NotFoundError) as exc_info:
            store.get_plan("nope")
        assert exc_info.value.entity == "plan"
        assert exc_info.value.entity_id == "nope"

    def test_unknown_plan_steps(self, store):
        with pytest.raises(NotFoundError):
            store.get_steps("nope")

    def test_unknown_step(self, store):
        with pytest.raises(NotFoundError) as exc_info:
            store.get_step("step-99")
        assert exc_info.value.entity == "step"

    def test_entries_per_child(self, store, now):
        store.add_entry("child-1", make_entry("a", now))
        assert [e.id for e in store.get_entries("child-1")] == ["a"]
        assert store.get_entries("child-2") == []

    def test_get_entries_returns_copy(self, store, now):
        store.add_entry("child-1", make_entry("a", now))
        store.get_entries("child-1").clear()
        assert len(store.get_entries("child-1")) == 1


class TestPlanLock:
    """Test per-plan serialisation."""

    def test_lock_is_reentrant(self, store):
        with store.plan_lock("plan-1"):
            with store.plan_lock("plan-1"):
                pass

    def test_lock_blocks_other_threads(self, store):
        acquired = threading.Event()

        def worker():
            with store.plan_lock("plan-1"):
                acquired.set()

        with store.plan_lock("plan-1"):
            thread = threading.Thread(target=worker)
            thread.start()
            assert acquired.wait(0.1) is False

        thread.join(timeout=2)
        assert acquired.is_set()

    def test_other_plans_not_blocked(self, store):
        acquired = threading.Event()

        def worker():
            with store.plan_lock("plan-2"):
                acquired.set()

        with store.plan_lock("plan-1"):
            thread = threading.Thread(target=worker)
            thread.start()
            assert acquired.wait(2) is True
        thread.join(timeout=2)


class TestFromSnapshot:
    """Test loading raw records."""

    def test_loads_records(self, raw_snapshot):
        store = InMemoryPlanStore.from_snapshot(raw_snapshot)

        plan = store.get_plan("7")
        assert plan.child_id == "3"
        steps = store.get_steps("7")
        assert [s.id for s in steps] == ["71", "72"]
        assert steps[0].periods[0].end_date == date(2024, 1, 10)
        assert steps[1].open_period.start_date == date(2024, 1, 11)
        assert [e.id for e in store.get_entries("3")] == ["b-1", "s-1", "z-1"]

    def test_entries_keyed_by_child(self, raw_snapshot):
        raw_snapshot["entries"] = {3: raw_snapshot["entries"][:1]}
        store = InMemoryPlanStore.from_snapshot(raw_snapshot)
        assert [e.id for e in store.get_entries("3")] == ["b-1"]

    def test_malformed_entry_rejected(self, raw_snapshot):
        raw_snapshot["entries"].append(
            {"id": "x", "childId": 3, "toolType": "dagbog", "createdAt": "2024-01-12"}
        )
        with pytest.raises(MalformedDataError):
            InMemoryPlanStore.from_snapshot(raw_snapshot)

    def test_step_with_two_active_periods_rejected(self, raw_snapshot):
        raw_snapshot["steps"][1]["activePeriods"].append(
            {"id": 3, "startDate": "2024-01-15", "endDate": None}
        )
        with pytest.raises(ValidationError):
            InMemoryPlanStore.from_snapshot(raw_snapshot)
