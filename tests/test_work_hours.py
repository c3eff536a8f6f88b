from datetime import datetime, timezone

import pytest

from task_estimation.work_hours import (
    calculate_available_hours,
    calculate_minimum_personnel,
    generate_scenarios,
    plan_crew,
    task_available_hours,
)


def test_deadline_before_or_at_start_returns_floor():
    """A deadline at or before the start still yields one hour."""
    start = datetime(2024, 3, 4, 9, 0)
    assert calculate_available_hours(start, start) == 1.0
    assert calculate_available_hours(start, datetime(2024, 3, 3, 9, 0)) == 1.0


def test_same_day_inside_window_is_literal_difference():
    start = datetime(2024, 3, 4, 8, 0)
    deadline = datetime(2024, 3, 4, 13, 30)
    assert calculate_available_hours(start, deadline) == pytest.approx(5.5)


def test_same_day_clips_to_window():
    start = datetime(2024, 3, 4, 5, 0)
    deadline = datetime(2024, 3, 4, 20, 0)
    assert calculate_available_hours(start, deadline) == pytest.approx(8.0)


def test_multi_day_span():
    """09:00 day 0 to 09:00 day 2: 6h + 8h + 2h."""
    start = datetime(2024, 3, 4, 9, 0)
    deadline = datetime(2024, 3, 6, 9, 0)
    assert calculate_available_hours(start, deadline) == pytest.approx(16.0)


def test_start_after_window_counts_nothing_that_day():
    start = datetime(2024, 3, 4, 18, 0)
    deadline = datetime(2024, 3, 5, 11, 0)
    assert calculate_available_hours(start, deadline) == pytest.approx(4.0)


def test_outside_window_result_is_floored():
    start = datetime(2024, 3, 4, 16, 0)
    deadline = datetime(2024, 3, 4, 20, 0)
    assert calculate_available_hours(start, deadline) == 1.0


def test_custom_window():
    start = datetime(2024, 3, 4, 9, 0)
    deadline = datetime(2024, 3, 5, 12, 0)
    hours = calculate_available_hours(start, deadline, workday_start=9, workday_end=17)
    assert hours == pytest.approx(8.0 + 3.0)


def test_minimum_personnel():
    assert calculate_minimum_personnel(40, 16) == 3
    assert calculate_minimum_personnel(10, 0) == 1
    assert calculate_minimum_personnel(0, 8) == 1
    assert calculate_minimum_personnel(16, 16) == 1


def test_generate_scenarios():
    scenarios = generate_scenarios(30.0, 2)
    assert [s.people for s in scenarios] == [2, 3, 4]
    assert [s.status for s in scenarios] == ["Tight", "Safe", "Buffer"]
    assert scenarios[1].hours_per_person == pytest.approx(10.0)
    assert generate_scenarios(30.0, 0) == []


def test_plan_crew():
    plan = plan_crew(40.0, datetime(2024, 3, 4, 9, 0), datetime(2024, 3, 6, 9, 0))
    assert plan.available_hours == pytest.approx(16.0)
    assert plan.minimum_personnel == 3
    assert plan.scenarios[0].people == 3


def test_task_available_hours_needs_deadline():
    now = datetime(2024, 3, 4, 9, 0)
    assert task_available_hours(None, None, None, now=now) is None
    assert task_available_hours(None, None, datetime(2024, 3, 4, 12, 0), now=now) == pytest.approx(3.0)
    assert task_available_hours(datetime(2024, 3, 5, 9, 0), datetime(2024, 3, 4, 9, 0)) is None


def test_far_future_deadline_counts_days_arithmetically():
    start = datetime(2024, 3, 4, 9, 0)
    deadline = datetime(9999, 12, 31, 9, 0)
    between = (deadline.date() - start.date()).days - 1
    assert calculate_available_hours(start, deadline) == pytest.approx(6.0 + between * 8.0 + 2.0)


def test_aware_datetimes_are_accepted():
    start = datetime(2024, 3, 4, 9, 0, tzinfo=timezone.utc)
    deadline = datetime(2024, 3, 6, 9, 0, tzinfo=timezone.utc)
    assert calculate_available_hours(start, deadline) >= 1.0
    naive_now = datetime(2024, 3, 1, 9, 0)
    assert task_available_hours(None, None, deadline, now=naive_now) is not None
