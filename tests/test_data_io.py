from datetime import datetime, timedelta

import pytest

from conftest import BASE, make_task

from task_estimation.data_io import (
    append_snapshot,
    load_snapshot_history,
    load_tasks_from_csv,
    load_time_entries_from_csv,
    save_snapshot_history,
    save_tasks_to_csv,
)
from task_estimation.kpi import calculate_kpis, create_snapshot
from task_estimation.schema import DateRange


def test_load_tasks_from_csv(tmp_path):
    path = tmp_path / "tasks.csv"
    path.write_text(
        "task_id,title,estimated_seconds,has_custom_estimate,task_type,quantity,unit,completed_date,parent_id,extra\n"
        "t1,Paint hall,3600,true,paint,40,m²,2024-03-04T17:00:00,,ignored\n"
        "t2,Prep,,,,,,,t1,\n"
        ",blank id row,,,,,,,,\n",
        encoding="utf-8",
    )
    tasks = load_tasks_from_csv(path)
    assert [t.task_id for t in tasks] == ["t1", "t2"]
    t1, t2 = tasks
    assert t1.estimated_seconds == 3600
    assert t1.has_custom_estimate
    assert t1.quantity == 40.0
    assert t1.unit == "m²"
    assert t1.completed_date == datetime(2024, 3, 4, 17, 0)
    assert t2.parent_id == "t1"
    assert t2.estimated_seconds is None
    assert not t2.is_completed


def test_load_tasks_reports_bad_cell(tmp_path):
    path = tmp_path / "tasks.csv"
    path.write_text("task_id,estimated_seconds\nt1,soon\n", encoding="utf-8")
    with pytest.raises(ValueError, match="Line 2"):
        load_tasks_from_csv(path)


def test_missing_file_raises(tmp_path):
    with pytest.raises(FileNotFoundError):
        load_tasks_from_csv(tmp_path / "nope.csv")
    with pytest.raises(FileNotFoundError):
        load_time_entries_from_csv(tmp_path / "nope.csv")


def test_load_time_entries(tmp_path):
    path = tmp_path / "entries.csv"
    path.write_text(
        "entry_id,task_id,start_time,end_time,personnel_count\n"
        "e1,t1,2024-03-04T09:00:00,2024-03-04T11:00:00,3\n"
        "e2,t1,2024-03-04T12:00:00,,\n",
        encoding="utf-8",
    )
    closed, running = load_time_entries_from_csv(path)
    assert closed.personnel_count == 3
    assert closed.person_hours == pytest.approx(6.0)
    assert running.is_open
    assert running.personnel_count == 1


def test_time_entry_needs_start(tmp_path):
    path = tmp_path / "entries.csv"
    path.write_text("task_id,start_time\nt1,\n", encoding="utf-8")
    with pytest.raises(ValueError, match="start_time is required"):
        load_time_entries_from_csv(path)


def test_tasks_survive_save_and_load(tmp_path):
    original = make_task("t1", estimate_minutes=90, task_type="paint", quantity=20, unit="m²")
    original.expected_personnel_count = 2
    path = tmp_path / "out" / "tasks.csv"
    save_tasks_to_csv([original], path)

    (loaded,) = load_tasks_from_csv(path)
    assert loaded.task_id == "t1"
    assert loaded.estimated_seconds == 90 * 60
    assert loaded.expected_personnel_count == 2
    assert loaded.quantity == 20.0
    assert loaded.created_date == original.created_date
    assert loaded.completed_date == original.completed_date
    assert not loaded.has_custom_estimate
    assert loaded.time_entries == []


def test_snapshot_history(tmp_path):
    path = tmp_path / "history" / "snapshots.json"
    assert load_snapshot_history(path) == []

    day = DateRange(start=BASE, end=BASE + timedelta(days=1))
    first = create_snapshot(calculate_kpis([], [], day, calculated_at=BASE), snapshot_id="a")
    second = create_snapshot(
        calculate_kpis([], [], day, calculated_at=BASE + timedelta(days=1)), snapshot_id="b"
    )

    save_snapshot_history([first], path)
    history = append_snapshot(second, path)
    assert [s.snapshot_id for s in history] == ["a", "b"]
    assert load_snapshot_history(path) == [first, second]


def test_snapshot_history_must_be_a_list(tmp_path):
    path = tmp_path / "snapshots.json"
    path.write_text('{"not": "a list"}', encoding="utf-8")
    with pytest.raises(ValueError):
        load_snapshot_history(path)


def test_offset_timestamps_load_as_local_time(tmp_path):
    path = tmp_path / "tasks.csv"
    path.write_text(
        "task_id,created_date,completed_date\n"
        "t,2024-03-04T08:00:00+00:00,2024-03-04T12:00:00+00:00\n",
        encoding="utf-8",
    )
    (task,) = load_tasks_from_csv(path)
    assert task.created_date.tzinfo is None
    assert task.completed_date.tzinfo is None
    assert task.completed_date - task.created_date == timedelta(hours=4)
    assert DateRange(start=BASE - timedelta(days=2), end=BASE + timedelta(days=2)).contains(
        task.completed_date
    )
