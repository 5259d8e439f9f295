"""Tests for step interval conflict detection."""

import random
import pytest
from datetime import date, datetime, timedelta
from unittest.mock import Mock

from ladder_app.errors import ConflictError, ValidationError
from ladder_app.timeline.conflicts import ConflictDetector, check_candidate, occupied_ranges
from ladder_app.timeline.models import ConflictKind, RangeSource
from conftest import make_step, period


NOW = datetime(2024, 1, 20, 12, 0)


@pytest.fixture
def steps():
    """Step 1 under test; steps 2-4 hold a period, a manual range and an open period."""
    return [
        make_step(1, periods=[period(date(2024, 1, 2), date(2024, 1, 3))]),
        make_step(2, completed=True, periods=[period(date(2024, 1, 5), date(2024, 1, 10))]),
        make_step(3, start_date=date(2024, 1, 15), target_end_date=date(2024, 1, 18)),
        make_step(4, periods=[period(date(2024, 1, 19))]),
    ]


def check(plan, steps, start, end=None):
    ranges = occupied_ranges(steps, exclude_step_id="step-1")
    return check_candidate(start, end, plan, ranges, NOW)


class TestOccupiedRanges:
    """Test collection of occupied ranges."""

    def test_periods_and_direct_dates_collected(self, steps):
        ranges = occupied_ranges(steps, exclude_step_id="step-1")
        assert [(r.step_id, r.source) for r in ranges] == [
            ("step-2", RangeSource.PERIOD),
            ("step-3", RangeSource.DIRECT_DATES),
            ("step-4", RangeSource.PERIOD),
        ]

    def test_step_with_both_periods_and_manual_range(self):
        step = make_step(2, periods=[period(date(2024, 1, 5), date(2024, 1, 6))],
                         start_date=date(2024, 2, 1), target_end_date=date(2024, 2, 5))
        assert len(occupied_ranges([step])) == 2

    def test_manual_range_without_start_occupies_nothing(self):
        step = make_step(2, target_end_date=date(2024, 2, 5))
        assert occupied_ranges([step]) == []

    def test_many_unsorted_periods_per_step(self):
        step = make_step(2, periods=[
            period(date(2024, 3, 1), date(2024, 3, 2)),
            period(date(2024, 1, 1), date(2024, 1, 2)),
            period(date(2024, 2, 1), date(2024, 2, 2)),
        ])
        assert len(occupied_ranges([step])) == 3


class TestCheckCandidate:
    """Test the candidate interval checks."""

    def test_free_interval_passes(self, plan, steps):
        result = check(plan, steps, date(2024, 1, 1), date(2024, 1, 4))
        assert result.ok is True

    def test_own_periods_are_ignored(self, plan, steps):
        assert check(plan, steps, date(2024, 1, 2), date(2024, 1, 3)).ok is True

    def test_start_inside_other_period(self, plan, steps):
        result = check(plan, steps, date(2024, 1, 7))
        assert result.ok is False
        assert result.kind == ConflictKind.OVERLAP
        assert result.step_title == "Trin 2"
        assert (result.range_start, result.range_end) == (date(2024, 1, 5), date(2024, 1, 10))

    def test_end_inside_other_period(self, plan, steps):
        result = check(plan, steps, date(2024, 1, 1), date(2024, 1, 5))
        assert result.step_id == "step-2"

    def test_candidate_swallowing_range(self, plan, steps):
        result = check(plan, steps, date(2024, 1, 4), date(2024, 1, 12))
        assert result.ok is False
        assert result.step_id == "step-2"

    def test_start_inside_manual_range(self, plan, steps):
        result = check(plan, steps, date(2024, 1, 16), date(2024, 1, 16))
        assert result.step_id == "step-3"
        assert result.range_end == date(2024, 1, 18)

    def test_open_candidate_extends_to_now(self, plan, steps):
        result = check(plan, steps, date(2024, 1, 11))
        assert result.ok is False
        assert result.step_id == "step-3"

    def test_open_range_occupied_until_now(self, plan, steps):
        result = check(plan, steps, date(2024, 1, 20), date(2024, 1, 20))
        assert result.step_id == "step-4"
        assert result.range_end is None

    def test_open_range_does_not_reach_past_now(self, plan, steps):
        assert check(plan, steps, date(2024, 1, 21), date(2024, 1, 22)).ok is True

    def test_gap_between_ranges(self, plan, steps):
        assert check(plan, steps, date(2024, 1, 11), date(2024, 1, 14)).ok is True

    def test_before_plan_start(self, plan, steps):
        result = check(plan, steps, date(2023, 12, 31), date(2024, 1, 1))
        assert result.ok is False
        assert result.kind == ConflictKind.BEFORE_PLAN_START
        assert result.range_start == plan.start_date
        assert "before the plan start date" in result.describe()

    def test_end_before_start_is_validation_error(self, plan, steps):
        with pytest.raises(ValidationError):
            check(plan, steps, date(2024, 1, 12), date(2024, 1, 11))

    def test_repeated_check_is_stable(self, plan, steps):
        first = check(plan, steps, date(2024, 1, 7), date(2024, 1, 8))
        second = check(plan, steps, date(2024, 1, 7), date(2024, 1, 8))
        assert first == second


class TestConflictDetector:
    """Test ConflictDetector logging and raising."""

    def test_ensure_free_raises_with_details(self, plan, steps):
        detector = ConflictDetector()
        with pytest.raises(ConflictError) as exc_info:
            detector.ensure_free(steps[0], date(2024, 1, 6), None, plan, steps, NOW)

        error = exc_info.value
        assert error.step_title == "Trin 2"
        assert error.range_start == date(2024, 1, 5)
        assert error.range_end == date(2024, 1, 10)
        assert error.kind == "overlap"
        assert error.recoverable is True

    def test_ensure_free_passes_silently(self, plan, steps):
        detector = ConflictDetector()
        detector.ensure_free(steps[0], date(2024, 1, 11), date(2024, 1, 12), plan, steps, NOW)

    def test_decision_logged(self, plan, steps):
        detector = ConflictDetector()
        detector.logger = Mock()
        detector.logger.bind.return_value = detector.logger

        detector.check(steps[0], date(2024, 1, 7), None, plan, steps, NOW)

        first_bind = detector.logger.bind.call_args_list[0].kwargs
        assert first_bind["conflict_result"] == "CONFLICT"
        assert first_bind["reason"] == "overlap"
        detector.logger.warning.assert_called_once_with("interval_check")


def random_periods(rng, today):
    """Disjoint periods in shuffled order, at most one of them ongoing."""
    periods = []
    cursor = date(2023, 12, 20) + timedelta(days=rng.randint(0, 10))
    for _ in range(rng.randint(0, 4)):
        start = cursor + timedelta(days=rng.randint(0, 6))
        end = start + timedelta(days=rng.randint(0, 5))
        periods.append(period(start, end))
        cursor = end + timedelta(days=1)
    if cursor <= today and rng.random() < 0.3:
        periods.append(period(cursor + timedelta(days=rng.randint(0, (today - cursor).days))))
    rng.shuffle(periods)
    return periods


def random_manual_range(rng, today):
    if rng.random() < 0.6:
        return None, None
    start = date(2023, 12, 25) + timedelta(days=rng.randint(0, 60))
    if start <= today and rng.random() < 0.5:
        return start, None
    return start, start + timedelta(days=rng.randint(0, 8))


def days_between(start, end):
    return set(range(start.toordinal(), end.toordinal() + 1))


@pytest.mark.parametrize("seed", range(30))
def test_check_matches_day_by_day_overlap(seed, plan):
    rng = random.Random(seed)
    today = NOW.date()

    steps = []
    for number in range(1, 5):
        start_date, target_end_date = random_manual_range(rng, today)
        steps.append(make_step(number, periods=random_periods(rng, today),
                               start_date=start_date, target_end_date=target_end_date))
    ranges = occupied_ranges(steps, exclude_step_id="step-1")

    for _ in range(20):
        start = date(2023, 12, 25) + timedelta(days=rng.randint(0, 70))
        end = start + timedelta(days=rng.randint(0, 10)) if rng.random() < 0.7 else None

        candidate_days = days_between(start, end or max(start, today))
        clashing = [r for r in ranges if candidate_days & days_between(r.start, r.end or today)]

        result = check_candidate(start, end, plan, ranges, NOW)

        if start < plan.start_date:
            assert result.kind == ConflictKind.BEFORE_PLAN_START
        elif clashing:
            assert result.kind == ConflictKind.OVERLAP
            assert (result.step_id, result.range_start) == (clashing[0].step_id, clashing[0].start)
        else:
            assert result.ok is True
