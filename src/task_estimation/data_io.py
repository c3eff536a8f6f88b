"""
Data I/O utilities.

Provides thin helpers to:
- Load tasks and time entries from local CSV exports
- Save tasks back to CSV
- Load/save KPI snapshot history as JSON

The engine itself never touches files; only the CLI and API call these.
"""

from __future__ import annotations

import csv
from datetime import datetime
import json
import logging
from pathlib import Path
from typing import Callable, Dict, Iterable, List, Optional, TypeVar, Union

from .kpi import KPISnapshot
from .schema import Task, TimeEntry

logger = logging.getLogger(__name__)

PathLike = Union[str, Path]
T = TypeVar("T")

TASK_FIELDS = [
    "task_id",
    "title",
    "estimated_seconds",
    "has_custom_estimate",
    "effort_hours",
    "expected_personnel_count",
    "task_type",
    "quantity",
    "expected_quantity",
    "unit",
    "custom_productivity_rate",
    "created_date",
    "completed_date",
    "is_archived",
    "parent_id",
]

TIME_ENTRY_FIELDS = [
    "entry_id",
    "task_id",
    "start_time",
    "end_time",
    "personnel_count",
]


# --- Cell parsing ----------------------------------------------------------


def _cell(row: Dict[str, Optional[str]], key: str) -> Optional[str]:
    val = row.get(key)
    if val is None:
        return None
    val = val.strip()
    return val or None


def _optional(
    row: Dict[str, Optional[str]],
    key: str,
    convert: Callable[[str], T],
    line: int,
) -> Optional[T]:
    val = _cell(row, key)
    if val is None:
        return None
    try:
        return convert(val)
    except ValueError as e:
        raise ValueError(f"Line {line}: invalid {key} {val!r} ({e})") from e


def _bool(value: str) -> bool:
    return value.strip().lower() in {"1", "true", "yes", "y", "on"}


def _int(value: str) -> int:
    return int(float(value))


def _format(value: object) -> Optional[str]:
    if value is None:
        return None
    if isinstance(value, datetime):
        return value.isoformat()
    return str(value)


def _require(path: Path, what: str) -> None:
    if not path.exists():
        raise FileNotFoundError(f"{what} file not found at {path}.")


# --- Local CSV helpers -----------------------------------------------------


def load_tasks_from_csv(path: PathLike) -> List[Task]:
    """
    Load tasks from a CSV file.

    Expected columns (case-sensitive):
    - Required: task_id
    - Optional: every other name in TASK_FIELDS

    Datetimes are ISO 8601. Extra columns are ignored. Malformed cells
    raise ValueError naming the line.
    """
    path = Path(path)
    _require(path, "Tasks CSV")

    tasks: List[Task] = []
    with open(path, mode="r", newline="", encoding="utf-8") as f:
        reader = csv.DictReader(f)
        for line, row in enumerate(reader, start=2):
            if not row or _cell(row, "task_id") is None:
                continue
            created = _optional(row, "created_date", datetime.fromisoformat, line)
            extra = {} if created is None else {"created_date": created}
            task = Task(
                task_id=_cell(row, "task_id"),
                title=_cell(row, "title") or "",
                estimated_seconds=_optional(row, "estimated_seconds", _int, line),
                has_custom_estimate=_optional(row, "has_custom_estimate", _bool, line) or False,
                effort_hours=_optional(row, "effort_hours", float, line),
                expected_personnel_count=_optional(row, "expected_personnel_count", _int, line),
                task_type=_cell(row, "task_type"),
                quantity=_optional(row, "quantity", float, line),
                expected_quantity=_optional(row, "expected_quantity", float, line),
                unit=_cell(row, "unit"),
                custom_productivity_rate=_optional(row, "custom_productivity_rate", float, line),
                completed_date=_optional(row, "completed_date", datetime.fromisoformat, line),
                is_archived=_optional(row, "is_archived", _bool, line) or False,
                parent_id=_cell(row, "parent_id"),
                **extra,
            )
            tasks.append(task)

    logger.info("Loaded %d tasks from %s", len(tasks), path)
    return tasks


def load_time_entries_from_csv(path: PathLike) -> List[TimeEntry]:
    """
    Load time entries from a CSV file.

    Expected columns: task_id, start_time (required); entry_id, end_time,
    personnel_count (optional, defaults to 1). Rows without end_time are
    kept as open entries.
    """
    path = Path(path)
    _require(path, "Time entries CSV")

    entries: List[TimeEntry] = []
    with open(path, mode="r", newline="", encoding="utf-8") as f:
        reader = csv.DictReader(f)
        for line, row in enumerate(reader, start=2):
            if not row:
                continue
            start = _optional(row, "start_time", datetime.fromisoformat, line)
            if start is None:
                raise ValueError(f"Line {line}: start_time is required.")
            entries.append(
                TimeEntry(
                    entry_id=_cell(row, "entry_id"),
                    task_id=_cell(row, "task_id"),
                    start_time=start,
                    end_time=_optional(row, "end_time", datetime.fromisoformat, line),
                    personnel_count=_optional(row, "personnel_count", _int, line) or 1,
                )
            )

    logger.info("Loaded %d time entries from %s", len(entries), path)
    return entries


def save_tasks_to_csv(tasks: Iterable[Task], path: PathLike) -> None:
    """
    Save tasks to a CSV file with the TASK_FIELDS columns.

    Time entries are not written; use a separate entries file.
    """
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)
    with open(path, mode="w", newline="", encoding="utf-8") as f:
        writer = csv.DictWriter(f, fieldnames=TASK_FIELDS)
        writer.writeheader()
        for task in tasks:
            writer.writerow({key: _format(getattr(task, key)) for key in TASK_FIELDS})


# --- Snapshot history ------------------------------------------------------


def load_snapshot_history(path: PathLike) -> List[KPISnapshot]:
    """Load snapshots from a JSON list; a missing file is an empty history."""
    path = Path(path)
    if not path.exists():
        return []
    data = json.loads(path.read_text(encoding="utf-8"))
    if not isinstance(data, list):
        raise ValueError(f"Snapshot history at {path} is not a JSON list.")
    return [KPISnapshot.from_dict(item) for item in data]


def save_snapshot_history(snapshots: Iterable[KPISnapshot], path: PathLike) -> None:
    """Overwrite the history file with `snapshots`, oldest first."""
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)
    payload = [s.to_dict() for s in snapshots]
    path.write_text(json.dumps(payload, indent=2), encoding="utf-8")
    logger.info("Saved %d KPI snapshots to %s", len(payload), path)


def append_snapshot(snapshot: KPISnapshot, path: PathLike) -> List[KPISnapshot]:
    """
    Append one snapshot to the history file and return the full history.

    Load existing, append, overwrite. Fine for low-volume history.
    """
    history = load_snapshot_history(path)
    history.append(snapshot)
    save_snapshot_history(history, path)
    return history
