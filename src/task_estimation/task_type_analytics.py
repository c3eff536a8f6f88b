"""
Historical performance of a task type.

Responsibilities:
- Summarize completed tasks of one type into a variance profile
  (mean productivity, typical overrun vs. estimate).
- Turn that profile into an effort correction.
- Average historical productivity for a type (and unit).

Profiles are rebuilt from the task list on every call; nothing is cached.
"""

from __future__ import annotations

from dataclasses import dataclass
import logging
from typing import Iterable, List, Optional

import numpy as np

from .config import Config, MIN_SAMPLE_FLOOR, get_config
from .rollup import resolve_tasks
from .schema import Task

logger = logging.getLogger(__name__)

# Overruns smaller than this (in percent) read as "on target".
ON_TARGET_PERCENTAGE = 5.0


def _is_sample(task: Task, task_type: str) -> bool:
    if task.task_type != task_type or not task.is_completed:
        return False
    estimate = task.resolved_estimate
    if estimate is None or estimate <= 0:
        return False
    return task.actual_seconds > 0


@dataclass(frozen=True)
class TaskTypeAnalytics:
    """
    Expected-vs-actual profile of one task type.

    typical_overrun_percentage is signed: positive means tasks of this type
    usually take longer than estimated.
    """

    task_type: str
    sample_count: int
    mean_productivity: Optional[float]
    typical_overrun_percentage: float
    min_sample_threshold: int = MIN_SAMPLE_FLOOR

    @property
    def is_significant(self) -> bool:
        return self.sample_count >= max(self.min_sample_threshold, MIN_SAMPLE_FLOOR)

    @classmethod
    def calculate(
        cls,
        task_type: str,
        tasks: Iterable[Task],
        *,
        config: Optional[Config] = None,
    ) -> Optional["TaskTypeAnalytics"]:
        """
        Build the profile for `task_type` from all known tasks.

        Returns None when no completed task of the type has both an
        estimate and tracked time, so "no data" stays distinct from
        "zero variance".
        """
        cfg = config or get_config()
        samples = [t for t in resolve_tasks(tasks) if _is_sample(t, task_type)]
        if not samples:
            logger.debug("No analytics samples for task type %r.", task_type)
            return None

        estimated = np.asarray([t.resolved_estimate for t in samples], dtype=float)
        actual = np.asarray([t.actual_seconds for t in samples], dtype=float)
        overrun = float(((actual - estimated) / estimated * 100.0).mean())

        rates: List[float] = [
            t.units_per_hour for t in samples if t.units_per_hour is not None
        ]
        mean_productivity = float(np.mean(rates)) if rates else None

        return cls(
            task_type=task_type,
            sample_count=len(samples),
            mean_productivity=mean_productivity,
            typical_overrun_percentage=overrun,
            min_sample_threshold=cfg.min_sample_threshold,
        )

    def adjusted_effort(self, base_hours: float) -> float:
        """
        Scale an effort estimate by the typical overrun.

        Not gated on is_significant; callers decide whether to apply it.
        """
        return base_hours * (1.0 + self.typical_overrun_percentage / 100.0)

    @property
    def variance_description(self) -> str:
        overrun = self.typical_overrun_percentage
        if abs(overrun) < ON_TARGET_PERCENTAGE:
            return "typically on target"
        if overrun > 0:
            return f"typically {overrun:.0f}% over estimate"
        return f"typically {abs(overrun):.0f}% under estimate"


def historical_productivity(
    task_type: str,
    tasks: Iterable[Task],
    unit: Optional[str] = None,
) -> Optional[float]:
    """
    Mean units per person-hour over completed tasks of a type.

    When `unit` is given only tasks measured in that unit count.
    """
    rates = [
        t.units_per_hour
        for t in resolve_tasks(tasks)
        if t.task_type == task_type
        and t.is_completed
        and (unit is None or t.unit == unit)
        and t.units_per_hour is not None
    ]
    if not rates:
        return None
    return float(np.mean(rates))
