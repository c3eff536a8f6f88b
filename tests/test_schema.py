from datetime import datetime, timedelta, timezone

import pytest

from task_estimation.schema import (
    DateRange,
    Task,
    TimeEntry,
    as_local_naive,
    default_productivity_rate,
)

# Thursday
NOW = datetime(2024, 3, 7, 14, 30)


def test_time_entry_person_hours():
    entry = TimeEntry(start_time=NOW, end_time=NOW + timedelta(minutes=90), personnel_count=2)
    assert entry.duration_seconds == 5400
    assert entry.person_hours == pytest.approx(3.0)
    assert TimeEntry(start_time=NOW, personnel_count=0).personnel_count == 1
    assert TimeEntry(start_time=NOW).person_hours == 0.0


def test_task_normalises_inputs():
    task = Task(task_id="t", estimated_seconds=-5, quantity=3)
    assert task.estimated_seconds == 0
    assert task.quantity == 3.0
    assert task.units_per_hour is None


def test_presets():
    assert DateRange.preset("today", now=NOW).start == datetime(2024, 3, 7)
    assert DateRange.preset("this-week", now=NOW).start == datetime(2024, 3, 4)
    assert DateRange.preset("this_month", now=NOW).start == datetime(2024, 3, 1)
    custom = DateRange.preset("custom", start=NOW - timedelta(days=3), end=NOW)
    assert custom.days == 3


def test_preset_errors():
    with pytest.raises(ValueError):
        DateRange.preset("fortnight", now=NOW)
    with pytest.raises(ValueError):
        DateRange.preset("custom", start=NOW)


def test_range_is_closed():
    window = DateRange(start=NOW, end=NOW + timedelta(hours=1))
    assert window.contains(NOW)
    assert window.contains(NOW + timedelta(hours=1))
    assert not window.contains(NOW + timedelta(hours=1, seconds=1))
    assert not window.contains(None)
    assert window.days == 0
    assert DateRange.from_dict(window.to_dict()) == window


def test_default_productivity_rate():
    assert default_productivity_rate("m²") == 10.0
    assert default_productivity_rate("pcs") == 2.0
    assert default_productivity_rate("furlongs") is None
    assert default_productivity_rate(None) is None


def test_aware_datetimes_become_local_naive():
    aware = datetime(2024, 3, 7, 12, 0, tzinfo=timezone.utc)
    local = as_local_naive(aware)
    assert local.tzinfo is None
    assert local == aware.astimezone().replace(tzinfo=None)
    assert as_local_naive(NOW) is NOW
    assert as_local_naive(None) is None

    entry = TimeEntry(start_time=aware, end_time=aware + timedelta(hours=1))
    assert entry.start_time.tzinfo is None
    assert entry.duration_seconds == 3600
    assert Task(completed_date=aware).completed_date.tzinfo is None


def test_naive_range_contains_aware_moment():
    aware = datetime(2024, 3, 7, 12, 0, tzinfo=timezone.utc)
    window = DateRange(start=datetime(2024, 3, 1), end=datetime(2024, 3, 14))
    assert window.contains(as_local_naive(aware))
    assert DateRange.preset("this-week", now=aware).start.tzinfo is None
