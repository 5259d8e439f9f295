"""Plan storage seam used by the timeline engine, with an in-memory implementation."""

import threading
from contextlib import contextmanager
from typing import Any, Iterator, Optional, Protocol

import structlog

from ..data.normalizer import RecordNormalizer
from ..errors import NotFoundError
from ..timeline.models import Entry, Plan, Step


class PlanStore(Protocol):
    """
    What the engine needs from persistence.

    ``plan_lock`` must serialise read-validate-write sequences for one plan:
    the engine reads every step of the plan, validates a proposed interval
    and writes the step back while holding it.
    """

    def get_plan(self, plan_id: str) -> Plan: ...

    def get_steps(self, plan_id: str) -> list[Step]: ...

    def get_step(self, step_id: str) -> Step: ...

    def get_entries(self, child_id: str) -> list[Entry]: ...

    def save_step(self, step: Step) -> None: ...

    def plan_lock(self, plan_id: str): ...


class InMemoryPlanStore:
    """Dict-backed plan store with per-plan locking."""

    def __init__(self):
        self.logger = structlog.get_logger("plan.store")
        self._plans: dict[str, Plan] = {}
        self._steps: dict[str, Step] = {}
        self._entries: dict[str, list[Entry]] = {}
        self._locks: dict[str, threading.RLock] = {}
        self._registry_lock = threading.Lock()

    @classmethod
    def from_snapshot(cls, snapshot: dict[str, Any],
                      normalizer: Optional[RecordNormalizer] = None) -> "InMemoryPlanStore":
        """
        Build a store from raw records.

        The snapshot holds ``plans`` and ``steps`` lists, and ``entries``
        either as a list of records carrying ``child_id`` or as a mapping of
        child id to records.
        """
        normalizer = normalizer or RecordNormalizer()
        store = cls()

        for raw in snapshot.get("plans", []):
            store.add_plan(normalizer.normalize_plan(raw))
        for raw in snapshot.get("steps", []):
            store.save_step(normalizer.normalize_step(raw))

        entries = snapshot.get("entries", [])
        if isinstance(entries, dict):
            for child_id, records in entries.items():
                for raw in records:
                    store.add_entry(str(child_id), normalizer.normalize_entry(raw))
        else:
            for raw in entries:
                child_id = raw.get("child_id", raw.get("childId"))
                store.add_entry(str(child_id), normalizer.normalize_entry(raw))

        store.logger.info(
            "Loaded plan snapshot",
            plans=len(store._plans),
            steps=len(store._steps),
            entries=sum(len(v) for v in store._entries.values())
        )
        return store

    def add_plan(self, plan: Plan) -> None:
        self._plans[plan.id] = plan

    def add_entry(self, child_id: str, entry: Entry) -> None:
        self._entries.setdefault(child_id, []).append(entry)

    def get_plan(self, plan_id: str) -> Plan:
        try:
            return self._plans[plan_id]
        except KeyError:
            raise NotFoundError(f"Plan {plan_id} not found", entity="plan", entity_id=plan_id) from None

    def get_steps(self, plan_id: str) -> list[Step]:
        self.get_plan(plan_id)
        steps = [s for s in self._steps.values() if s.plan_id == plan_id]
        return sorted(steps, key=lambda s: s.step_number)

    def get_step(self, step_id: str) -> Step:
        try:
            return self._steps[step_id]
        except KeyError:
            raise NotFoundError(f"Step {step_id} not found", entity="step", entity_id=step_id) from None

    def get_entries(self, child_id: str) -> list[Entry]:
        return list(self._entries.get(child_id, []))

    def save_step(self, step: Step) -> None:
        self._steps[step.id] = step
        self.logger.debug(
            "Saved step",
            step_id=step.id,
            plan_id=step.plan_id,
            is_completed=step.is_completed,
            periods=len(step.periods)
        )

    @contextmanager
    def plan_lock(self, plan_id: str) -> Iterator[None]:
        """Hold the plan's lock for a read-validate-write sequence."""
        with self._registry_lock:
            lock = self._locks.setdefault(plan_id, threading.RLock())
        with lock:
            yield
