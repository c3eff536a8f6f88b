import json

import pytest

from app.cli import main


def _write_history_inputs(tmp_path):
    tasks = tmp_path / "tasks.csv"
    tasks.write_text(
        "task_id,estimated_seconds,task_type,completed_date\n"
        "a,3600,paint,2024-03-04T17:00:00\n"
        "b,3600,paint,2024-03-04T17:00:00\n"
        "c,3600,paint,2024-03-04T17:00:00\n",
        encoding="utf-8",
    )
    entries = tmp_path / "entries.csv"
    entries.write_text(
        "task_id,start_time,end_time\n"
        "a,2024-03-04T09:00:00,2024-03-04T10:30:00\n"
        "b,2024-03-04T09:00:00,2024-03-04T10:30:00\n"
        "c,2024-03-04T09:00:00,2024-03-04T10:30:00\n",
        encoding="utf-8",
    )
    return tasks, entries


def test_hours(capsys):
    main(["hours", "2024-03-04T09:00", "2024-03-06T09:00"])
    assert "[hours] Available work hours: 16.00" in capsys.readouterr().out


def test_hours_rejects_bad_datetime():
    with pytest.raises(SystemExit, match="Invalid ISO datetime"):
        main(["hours", "monday", "2024-03-06T09:00"])


def test_estimate_duration_and_personnel(capsys):
    main(["estimate", "100", "10", "--personnel", "2"])
    out = capsys.readouterr().out
    assert "Effort: 10.00 person-hours" in out
    assert "Duration: 5.00 hours (5h)" in out

    main(["estimate", "100", "10", "--duration-hours", "2"])
    assert "Personnel: 5 people" in capsys.readouterr().out


def test_estimate_needs_crew_or_duration():
    with pytest.raises(SystemExit):
        main(["estimate", "100", "10"])


def test_productivity(capsys):
    main(["productivity", "--expected", "10", "--historical", "13", "--unit", "m"])
    out = capsys.readouterr().out
    assert "Active rate: 10.0 m/person-hr" in out
    assert "30% faster than expected. (significant)" in out


def test_crew_with_history(tmp_path, capsys):
    tasks, entries = _write_history_inputs(tmp_path)
    main([
        "crew", "32", "2024-03-04T09:00", "2024-03-06T09:00",
        "--task-type", "paint", "--tasks-csv", str(tasks), "--entries-csv", str(entries),
    ])
    out = capsys.readouterr().out
    assert "32.0h -> 48.0h" in out
    assert "Minimum personnel: 3" in out


def test_analytics(tmp_path, capsys):
    tasks, entries = _write_history_inputs(tmp_path)
    main(["analytics", "paint", str(tasks), "--entries-csv", str(entries)])
    out = capsys.readouterr().out
    assert "Samples: 3 (significant: True)" in out
    assert "Typical overrun: +50.0%" in out


def test_kpi_snapshot_and_compare(tmp_path, capsys):
    tasks, entries = _write_history_inputs(tmp_path)
    history = tmp_path / "snapshots.json"
    args = [
        "kpi", str(tasks), str(entries),
        "--range", "custom", "--start", "2024-03-04T00:00", "--end", "2024-03-05T00:00",
        "--save-snapshot", "--history-path", str(history),
    ]
    main(args)
    main(args)
    out = capsys.readouterr().out
    assert "Completed tasks in range: 3 / 3" in out
    assert "Saved snapshot #2" in out

    main(["compare", "--history-path", str(history)])
    changes = json.loads(capsys.readouterr().out)
    assert changes["overall_health_score"] == pytest.approx(0.0)


def test_compare_needs_two_snapshots(tmp_path):
    with pytest.raises(SystemExit, match="at least two snapshots"):
        main(["compare", "--history-path", str(tmp_path / "none.json")])


def test_kpi_missing_file(tmp_path):
    with pytest.raises(SystemExit, match=r"\[kpi\]"):
        main(["kpi", str(tmp_path / "t.csv"), str(tmp_path / "e.csv")])


def test_productivity_uses_default_rate_for_unit(capsys):
    main(["productivity", "--unit", "pcs", "--historical", "4"])
    out = capsys.readouterr().out
    assert "using default for pcs" in out
    assert "Active rate: 2.0 pcs/person-hr" in out
    assert "(critical)" in out


def test_productivity_measures_history_from_csv(tmp_path, capsys):
    tasks = tmp_path / "tasks.csv"
    tasks.write_text(
        "task_id,task_type,quantity,unit,completed_date\n"
        "a,tile,10,m²,2024-03-04T17:00:00\n",
        encoding="utf-8",
    )
    entries = tmp_path / "entries.csv"
    entries.write_text(
        "task_id,start_time,end_time\n"
        "a,2024-03-04T09:00:00,2024-03-04T11:00:00\n",
        encoding="utf-8",
    )
    main([
        "productivity", "--expected", "10", "--unit", "m²",
        "--task-type", "tile", "--tasks-csv", str(tasks), "--entries-csv", str(entries),
    ])
    assert "Historical is 50% slower than expected. (critical)" in capsys.readouterr().out
