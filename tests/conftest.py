from datetime import datetime, timedelta
from typing import Optional

import pytest

from task_estimation.config import Config, get_config
from task_estimation.schema import Task, TimeEntry

# Monday
BASE = datetime(2024, 3, 4, 9, 0, 0)


def make_task(
    task_id: str,
    *,
    estimate_minutes: Optional[float] = None,
    actual_minutes: Optional[float] = None,
    personnel: int = 1,
    completed: Optional[datetime] = BASE + timedelta(hours=8),
    task_type: Optional[str] = None,
    quantity: Optional[float] = None,
    unit: Optional[str] = None,
    parent_id: Optional[str] = None,
    has_custom_estimate: bool = False,
    is_archived: bool = False,
    start: datetime = BASE,
) -> Task:
    """Task with one closed time entry of `actual_minutes` starting at `start`."""
    entries = []
    if actual_minutes is not None:
        entries.append(
            TimeEntry(
                entry_id=f"{task_id}-e1",
                task_id=task_id,
                start_time=start,
                end_time=start + timedelta(minutes=actual_minutes),
                personnel_count=personnel,
            )
        )
    return Task(
        task_id=task_id,
        title=f"Task {task_id}",
        estimated_seconds=None if estimate_minutes is None else int(estimate_minutes * 60),
        has_custom_estimate=has_custom_estimate,
        task_type=task_type,
        quantity=quantity,
        unit=unit,
        created_date=BASE - timedelta(days=1),
        completed_date=completed,
        is_archived=is_archived,
        parent_id=parent_id,
        time_entries=entries,
    )


@pytest.fixture
def config() -> Config:
    return Config()


@pytest.fixture
def reload_config():
    """Re-read the shared config from the (monkeypatched) environment, then reset it."""
    yield lambda: get_config(force_reload=True)
    get_config(force_reload=True)
