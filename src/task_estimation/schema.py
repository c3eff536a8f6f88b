"""
Data schemas for the task-estimation engine.

Defines:
- TimeEntry: a tracked work interval with a crew size
- Task: a work item with estimate, quantity and tracked time
- DateRange: a closed [start, end] window plus named presets
- ProductivityMode: which productivity rate source is active

The engine only reads these objects. Derived values are returned as
fresh copies, never written back onto caller-owned instances.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, time, timedelta
from enum import Enum
from typing import Dict, List, Optional


SECONDS_PER_HOUR = 3600.0


@dataclass
class TimeEntry:
    """
    One tracked interval of work on a task.

    Open entries (no end_time) are a running timer and are excluded from
    every completed-duration calculation.
    """

    entry_id: Optional[str] = None
    task_id: Optional[str] = None
    start_time: datetime = field(default_factory=datetime.now)
    end_time: Optional[datetime] = None
    personnel_count: int = 1

    def __post_init__(self) -> None:
        self.personnel_count = max(int(self.personnel_count), 1)
        self.start_time = as_local_naive(self.start_time)
        self.end_time = as_local_naive(self.end_time)

    @property
    def is_open(self) -> bool:
        return self.end_time is None

    @property
    def duration_seconds(self) -> Optional[float]:
        if self.end_time is None:
            return None
        return max((self.end_time - self.start_time).total_seconds(), 0.0)

    @property
    def person_hours(self) -> float:
        """Duration in hours times crew size; 0 for open entries."""
        seconds = self.duration_seconds
        if seconds is None:
            return 0.0
        return (seconds / SECONDS_PER_HOUR) * self.personnel_count


@dataclass
class Task:
    """
    A single task as supplied by the surrounding application.

    Estimates are in seconds. `effective_estimate`, `tracked_seconds` and
    `tracked_person_hours` are filled in by rollup.TaskTree.resolve() and
    include subtasks; when they are None the task's own values are used.
    """

    task_id: Optional[str] = None
    title: str = ""

    # Estimation inputs
    estimated_seconds: Optional[int] = None
    has_custom_estimate: bool = False
    effort_hours: Optional[float] = None
    expected_personnel_count: Optional[int] = None

    # Quantity tracking
    task_type: Optional[str] = None
    quantity: Optional[float] = None
    expected_quantity: Optional[float] = None
    unit: Optional[str] = None
    custom_productivity_rate: Optional[float] = None

    # Lifecycle
    created_date: datetime = field(default_factory=datetime.now)
    completed_date: Optional[datetime] = None
    is_archived: bool = False

    # Hierarchy and tracking
    parent_id: Optional[str] = None
    time_entries: List[TimeEntry] = field(default_factory=list)

    # Resolved values (see rollup)
    effective_estimate: Optional[int] = None
    tracked_seconds: Optional[float] = None
    tracked_person_hours: Optional[float] = None

    def __post_init__(self) -> None:
        if self.estimated_seconds is not None:
            self.estimated_seconds = max(int(self.estimated_seconds), 0)
        if self.quantity is not None:
            self.quantity = float(self.quantity)
        self.created_date = as_local_naive(self.created_date)
        self.completed_date = as_local_naive(self.completed_date)

    @property
    def is_completed(self) -> bool:
        return self.completed_date is not None

    @property
    def resolved_estimate(self) -> Optional[int]:
        if self.effective_estimate is not None:
            return self.effective_estimate
        return self.estimated_seconds

    @property
    def direct_tracked_seconds(self) -> float:
        return sum(
            entry.duration_seconds
            for entry in self.time_entries
            if entry.duration_seconds is not None
        )

    @property
    def direct_person_hours(self) -> float:
        return sum(entry.person_hours for entry in self.time_entries)

    @property
    def actual_seconds(self) -> float:
        if self.tracked_seconds is not None:
            return self.tracked_seconds
        return self.direct_tracked_seconds

    @property
    def actual_person_hours(self) -> float:
        if self.tracked_person_hours is not None:
            return self.tracked_person_hours
        return self.direct_person_hours

    @property
    def units_per_hour(self) -> Optional[float]:
        """Units completed per tracked person-hour, None without data."""
        if not self.quantity or self.quantity <= 0:
            return None
        person_hours = self.actual_person_hours
        if person_hours <= 0:
            return None
        return self.quantity / person_hours


def start_of_day(moment: datetime) -> datetime:
    return datetime.combine(moment.date(), time.min, tzinfo=moment.tzinfo)


def as_local_naive(moment: Optional[datetime]) -> Optional[datetime]:
    """
    Timezone-aware datetimes converted to naive local wall time.

    Naive values pass through unchanged. Every datetime the engine compares
    goes through here, so inputs with offsets (e.g. "...Z" stamps) and naive
    presets built from datetime.now() stay comparable.
    """
    if moment is None or moment.tzinfo is None:
        return moment
    return moment.astimezone().replace(tzinfo=None)


@dataclass(frozen=True)
class DateRange:
    """
    Closed date window [start, end] used to filter KPI inputs.
    """

    start: datetime
    end: datetime

    def __post_init__(self) -> None:
        object.__setattr__(self, "start", as_local_naive(self.start))
        object.__setattr__(self, "end", as_local_naive(self.end))

    @property
    def days(self) -> int:
        """Whole days between start and end (0 for sub-day ranges)."""
        return max((self.end - self.start).days, 0)

    def contains(self, moment: Optional[datetime]) -> bool:
        if moment is None:
            return False
        return self.start <= moment <= self.end

    @classmethod
    def today(cls, now: Optional[datetime] = None) -> "DateRange":
        now = as_local_naive(now) or datetime.now()
        return cls(start=start_of_day(now), end=now)

    @classmethod
    def this_week(cls, now: Optional[datetime] = None) -> "DateRange":
        now = as_local_naive(now) or datetime.now()
        week_start = start_of_day(now) - timedelta(days=now.weekday())
        return cls(start=week_start, end=now)

    @classmethod
    def this_month(cls, now: Optional[datetime] = None) -> "DateRange":
        now = as_local_naive(now) or datetime.now()
        month_start = start_of_day(now).replace(day=1)
        return cls(start=month_start, end=now)

    @classmethod
    def custom(cls, start: datetime, end: datetime) -> "DateRange":
        return cls(start=start, end=end)

    @classmethod
    def preset(
        cls,
        name: str,
        *,
        now: Optional[datetime] = None,
        start: Optional[datetime] = None,
        end: Optional[datetime] = None,
    ) -> "DateRange":
        """
        Build a range from a preset name: today, this-week, this-month, custom.

        Raises ValueError for unknown names or a custom range without bounds.
        """
        key = name.strip().lower().replace("-", "_")
        if key == "today":
            return cls.today(now)
        if key == "this_week":
            return cls.this_week(now)
        if key == "this_month":
            return cls.this_month(now)
        if key == "custom":
            if start is None or end is None:
                raise ValueError("A custom date range needs both start and end.")
            return cls.custom(start, end)
        raise ValueError(
            f"Unknown date range preset {name!r}. "
            "Use today, this-week, this-month or custom."
        )

    def to_dict(self) -> Dict[str, str]:
        return {"start": self.start.isoformat(), "end": self.end.isoformat()}

    @classmethod
    def from_dict(cls, data: Dict[str, str]) -> "DateRange":
        return cls(
            start=datetime.fromisoformat(data["start"]),
            end=datetime.fromisoformat(data["end"]),
        )


class ProductivityMode(str, Enum):
    EXPECTED = "expected"
    HISTORICAL = "historical"
    CUSTOM = "custom"


# Fallback rates (units per person-hour) when no template or history exists.
DEFAULT_PRODUCTIVITY_RATES: Dict[str, float] = {
    "m²": 10.0,
    "m": 5.0,
    "pcs": 2.0,
    "kg": 50.0,
    "L": 100.0,
}


def default_productivity_rate(unit: Optional[str]) -> Optional[float]:
    if unit is None:
        return None
    return DEFAULT_PRODUCTIVITY_RATES.get(unit)
