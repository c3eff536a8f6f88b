"""
Pure math for work-hour availability and crew sizing.

No I/O. Just:
- Available working hours between two moments under a daily work window
- Minimum crew size to fit an effort into those hours
- Tight / Safe / Buffer crew scenarios
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
import math
from typing import List, Optional

from .config import get_config
from .schema import as_local_naive, start_of_day

MINIMUM_AVAILABLE_HOURS = 1.0

SCENARIO_LABELS = ("Tight", "Safe", "Buffer")


@dataclass(frozen=True)
class Scenario:
    people: int
    hours_per_person: float
    status: str


@dataclass(frozen=True)
class CrewPlan:
    effort_hours: float
    available_hours: float
    minimum_personnel: int
    scenarios: List[Scenario]


def _hour_of_day(moment: datetime) -> float:
    return moment.hour + moment.minute / 60.0


def _clamp(value: float, upper: float) -> float:
    return min(max(value, 0.0), upper)


def _window(workday_start: Optional[int], workday_end: Optional[int]) -> tuple[int, int]:
    cfg = get_config()
    start = cfg.workday_start if workday_start is None else workday_start
    end = cfg.workday_end if workday_end is None else workday_end
    return start, end


def calculate_available_hours(
    start: datetime,
    deadline: datetime,
    *,
    workday_start: Optional[int] = None,
    workday_end: Optional[int] = None,
) -> float:
    """
    Total working hours in [start, deadline] under a daily window.

    Counts calendar days from start's day to deadline's day inclusive:
    - first day counts from max(start, window open) to the window close,
      or to the deadline when it falls on the same day
    - the deadline day counts from window open to min(deadline, window close)
    - every day in between counts the full window

    Never returns less than 1.0, so callers can divide by the result.
    """
    start = as_local_naive(start)
    deadline = as_local_naive(deadline)
    if deadline <= start:
        return MINIMUM_AVAILABLE_HOURS

    open_hour, close_hour = _window(workday_start, workday_end)
    workday_hours = float(max(close_hour - open_hour, 0))

    first_day = start_of_day(start)
    last_day = start_of_day(deadline)

    total = 0.0
    now_hour = _hour_of_day(start)
    if now_hour < close_hour:
        begin = max(now_hour, float(open_hour))
        if first_day == last_day:
            end = min(_hour_of_day(deadline), float(close_hour))
        else:
            end = float(close_hour)
        total += _clamp(end - begin, workday_hours)

    if last_day > first_day:
        full_days = (last_day - first_day).days - 1
        total += full_days * workday_hours
        end = min(_hour_of_day(deadline), float(close_hour))
        total += _clamp(end - open_hour, workday_hours)

    return max(total, MINIMUM_AVAILABLE_HOURS)


def calculate_minimum_personnel(effort_hours: float, available_hours: float) -> int:
    """
    Smallest crew that fits `effort_hours` person-hours into `available_hours`.

    Always at least 1; 1 when no hours are available.
    """
    if available_hours <= 0:
        return 1
    return max(int(math.ceil(effort_hours / available_hours)), 1)


def generate_scenarios(effort_hours: float, minimum_personnel: int) -> List[Scenario]:
    """Three crew options at minimum, +1 and +2 people."""
    if minimum_personnel <= 0:
        return []
    return [
        Scenario(
            people=minimum_personnel + offset,
            hours_per_person=effort_hours / (minimum_personnel + offset),
            status=label,
        )
        for offset, label in enumerate(SCENARIO_LABELS)
    ]


def plan_crew(
    effort_hours: float,
    start: datetime,
    deadline: datetime,
    *,
    workday_start: Optional[int] = None,
    workday_end: Optional[int] = None,
) -> CrewPlan:
    """Available hours, minimum crew and scenarios for one effort/deadline."""
    available = calculate_available_hours(
        start,
        deadline,
        workday_start=workday_start,
        workday_end=workday_end,
    )
    minimum = calculate_minimum_personnel(effort_hours, available)
    return CrewPlan(
        effort_hours=effort_hours,
        available_hours=available,
        minimum_personnel=minimum,
        scenarios=generate_scenarios(effort_hours, minimum),
    )


def task_available_hours(
    start_date: Optional[datetime],
    end_date: Optional[datetime],
    due_date: Optional[datetime] = None,
    *,
    now: Optional[datetime] = None,
) -> Optional[float]:
    """
    Available hours in a task's working window.

    The window ends at end_date, else due_date, and starts at start_date,
    else `now`. None when there is no deadline or the window is empty.
    """
    deadline = as_local_naive(end_date or due_date)
    if deadline is None:
        return None
    begin = as_local_naive(start_date or now) or datetime.now()
    if begin >= deadline:
        return None
    return calculate_available_hours(begin, deadline)
