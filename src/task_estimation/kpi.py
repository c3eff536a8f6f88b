"""
KPI computation over completed tasks and time entries.

Metric groups for a date range:
- Efficiency:  actual / estimated time per completed task, bucketed
- Accuracy:    absolute percentage error of estimates (plus MAE, RMSE)
- Utilization: tracked person-hours against available capacity
- Composite:   weighted health score and its status bucket

Missing data is None, never zero: a range with no analyzable tasks has
no efficiency or accuracy score at all.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from enum import Enum
import logging
from typing import Any, Dict, Iterable, List, Optional, Sequence, Set, Tuple, Union
import uuid

import numpy as np

from .config import Config, get_config
from .rollup import TaskTree
from .schema import DateRange, Task, TimeEntry, start_of_day

logger = logging.getLogger(__name__)

IDEAL_UTILIZATION_PERCENTAGE = 85.0
WITHIN_10_PERCENT = 10.0
WITHIN_25_PERCENT = 25.0


class HealthStatus(str, Enum):
    EXCELLENT = "Excellent"
    GOOD = "Good"
    FAIR = "Fair"
    POOR = "Poor"
    CRITICAL = "Critical"

    @classmethod
    def from_score(cls, score: float) -> "HealthStatus":
        if score >= 80:
            return cls.EXCELLENT
        if score >= 60:
            return cls.GOOD
        if score >= 40:
            return cls.FAIR
        if score >= 20:
            return cls.POOR
        return cls.CRITICAL


# --- Metric groups ---------------------------------------------------------


@dataclass(frozen=True)
class TaskEfficiencyMetrics:
    average_efficiency_ratio: Optional[float]
    tasks_under_estimate: int
    tasks_on_estimate: int
    tasks_over_estimate: int
    total_tasks_analyzed: int
    total_time_spent: float
    total_time_estimated: float

    @property
    def efficiency_score(self) -> Optional[float]:
        """Percent of analyzed tasks finished under or on estimate."""
        if self.total_tasks_analyzed == 0:
            return None
        on_or_under = self.tasks_under_estimate + self.tasks_on_estimate
        return on_or_under / self.total_tasks_analyzed * 100.0

    @property
    def average_time_delta(self) -> Optional[float]:
        """Mean seconds saved per task (negative when over estimate)."""
        if self.total_tasks_analyzed == 0:
            return None
        return (self.total_time_estimated - self.total_time_spent) / self.total_tasks_analyzed


@dataclass(frozen=True)
class EstimateAccuracyMetrics:
    mean_absolute_error: Optional[float]
    mean_absolute_percentage_error: Optional[float]
    root_mean_square_error: Optional[float]
    estimates_within_10_percent: int
    estimates_within_25_percent: int
    total_tasks_analyzed: int

    @property
    def accuracy_score(self) -> Optional[float]:
        """
        Mean of the within-10% and within-25% fractions, as 0-100.

        A task within 10% counts toward both fractions.
        """
        if self.total_tasks_analyzed == 0:
            return None
        n = self.total_tasks_analyzed
        tight = self.estimates_within_10_percent / n
        loose = self.estimates_within_25_percent / n
        return (tight + loose) / 2.0 * 100.0


@dataclass(frozen=True)
class TeamUtilizationMetrics:
    total_person_hours_tracked: float
    total_person_hours_available: float
    utilization_rate: float
    active_contributors: int
    average_hours_per_contributor: float
    total_time_entries: int
    under_utilization_threshold: float = 0.70
    over_utilization_threshold: float = 1.0

    @property
    def utilization_percentage(self) -> float:
        return self.utilization_rate * 100.0

    @property
    def is_under_utilized(self) -> bool:
        return self.utilization_rate < self.under_utilization_threshold

    @property
    def is_over_utilized(self) -> bool:
        return self.utilization_rate > self.over_utilization_threshold


@dataclass(frozen=True)
class KPIResult:
    date_range: DateRange
    calculated_at: datetime
    efficiency: TaskEfficiencyMetrics
    accuracy: EstimateAccuracyMetrics
    utilization: TeamUtilizationMetrics
    total_tasks: int
    total_completed_tasks: int
    weights: Tuple[float, float, float] = (1.0, 1.0, 1.0)

    @property
    def overall_health_score(self) -> float:
        """
        Weighted mean of the scores that exist.

        Utilization is capped at 100 for scoring. Missing efficiency or
        accuracy scores drop out and the remaining weights renormalize.
        """
        utilization_score = min(self.utilization.utilization_percentage, 100.0)
        parts = [
            (self.efficiency.efficiency_score, self.weights[0]),
            (self.accuracy.accuracy_score, self.weights[1]),
            (utilization_score, self.weights[2]),
        ]
        scores = np.asarray([s for s, w in parts if s is not None and w > 0], dtype=float)
        weights = np.asarray([w for s, w in parts if s is not None and w > 0], dtype=float)
        if scores.size == 0:
            return 0.0
        return float(np.average(scores, weights=weights))

    @property
    def health_status(self) -> HealthStatus:
        return HealthStatus.from_score(self.overall_health_score)

    def scalar_metrics(self) -> Dict[str, float]:
        metrics: Dict[str, Optional[float]] = {
            "efficiency_score": self.efficiency.efficiency_score,
            "accuracy_score": self.accuracy.accuracy_score,
            "utilization_percentage": self.utilization.utilization_percentage,
            "overall_health_score": self.overall_health_score,
        }
        return {k: v for k, v in metrics.items() if v is not None}


@dataclass(frozen=True)
class KPISnapshot:
    """Scalar summary of a KPIResult kept for trend history."""

    snapshot_id: str
    date_range: DateRange
    calculated_at: datetime
    efficiency_score: Optional[float]
    accuracy_score: Optional[float]
    utilization_percentage: float
    overall_health_score: float
    health_status: HealthStatus

    def scalar_metrics(self) -> Dict[str, float]:
        metrics: Dict[str, Optional[float]] = {
            "efficiency_score": self.efficiency_score,
            "accuracy_score": self.accuracy_score,
            "utilization_percentage": self.utilization_percentage,
            "overall_health_score": self.overall_health_score,
        }
        return {k: v for k, v in metrics.items() if v is not None}

    def to_dict(self) -> Dict[str, Any]:
        return {
            "snapshot_id": self.snapshot_id,
            "date_range": self.date_range.to_dict(),
            "calculated_at": self.calculated_at.isoformat(),
            "efficiency_score": self.efficiency_score,
            "accuracy_score": self.accuracy_score,
            "utilization_percentage": self.utilization_percentage,
            "overall_health_score": self.overall_health_score,
            "health_status": self.health_status.value,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "KPISnapshot":
        return cls(
            snapshot_id=str(data["snapshot_id"]),
            date_range=DateRange.from_dict(data["date_range"]),
            calculated_at=datetime.fromisoformat(data["calculated_at"]),
            efficiency_score=data.get("efficiency_score"),
            accuracy_score=data.get("accuracy_score"),
            utilization_percentage=float(data["utilization_percentage"]),
            overall_health_score=float(data["overall_health_score"]),
            health_status=HealthStatus(data["health_status"]),
        )


# --- Filters ---------------------------------------------------------------


def _analyzable(task: Task) -> bool:
    estimate = task.resolved_estimate
    return estimate is not None and estimate > 0 and task.actual_seconds > 0


def filter_completed_tasks(tasks: Iterable[Task], date_range: DateRange) -> List[Task]:
    """Completed, non-archived tasks whose completion falls in the range."""
    return [
        t
        for t in tasks
        if t.is_completed and not t.is_archived and date_range.contains(t.completed_date)
    ]


def filter_time_entries(entries: Iterable[TimeEntry], date_range: DateRange) -> List[TimeEntry]:
    """Closed entries whose end time falls in the range."""
    return [e for e in entries if e.end_time is not None and date_range.contains(e.end_time)]


# --- Metric calculations ---------------------------------------------------


def calculate_efficiency_metrics(
    tasks: Sequence[Task],
    *,
    tolerance: float = 0.10,
) -> TaskEfficiencyMetrics:
    analyzable = [t for t in tasks if _analyzable(t)]
    if not analyzable:
        return TaskEfficiencyMetrics(
            average_efficiency_ratio=None,
            tasks_under_estimate=0,
            tasks_on_estimate=0,
            tasks_over_estimate=0,
            total_tasks_analyzed=0,
            total_time_spent=0.0,
            total_time_estimated=0.0,
        )

    actual = np.asarray([t.actual_seconds for t in analyzable], dtype=float)
    estimated = np.asarray([t.resolved_estimate for t in analyzable], dtype=float)
    ratios = actual / estimated

    lower, upper = 1.0 - tolerance, 1.0 + tolerance
    under = int((ratios < lower).sum())
    over = int((ratios > upper).sum())

    return TaskEfficiencyMetrics(
        average_efficiency_ratio=float(ratios.mean()),
        tasks_under_estimate=under,
        tasks_on_estimate=len(analyzable) - under - over,
        tasks_over_estimate=over,
        total_tasks_analyzed=len(analyzable),
        total_time_spent=float(actual.sum()),
        total_time_estimated=float(estimated.sum()),
    )


def calculate_accuracy_metrics(tasks: Sequence[Task]) -> EstimateAccuracyMetrics:
    analyzable = [t for t in tasks if _analyzable(t)]
    if not analyzable:
        return EstimateAccuracyMetrics(
            mean_absolute_error=None,
            mean_absolute_percentage_error=None,
            root_mean_square_error=None,
            estimates_within_10_percent=0,
            estimates_within_25_percent=0,
            total_tasks_analyzed=0,
        )

    actual = np.asarray([t.actual_seconds for t in analyzable], dtype=float)
    estimated = np.asarray([t.resolved_estimate for t in analyzable], dtype=float)

    errors = estimated - actual
    abs_errors = np.abs(errors)
    perc_errors = abs_errors / estimated * 100.0

    return EstimateAccuracyMetrics(
        mean_absolute_error=float(abs_errors.mean()),
        mean_absolute_percentage_error=float(perc_errors.mean()),
        root_mean_square_error=float(np.sqrt((errors**2).mean())),
        estimates_within_10_percent=int((perc_errors <= WITHIN_10_PERCENT).sum()),
        estimates_within_25_percent=int((perc_errors <= WITHIN_25_PERCENT).sum()),
        total_tasks_analyzed=len(analyzable),
    )


def _estimate_contributors(entries: Sequence[TimeEntry], days: int, proxy: str) -> int:
    """
    Approximate head-count; there is no person entity to count.

    person_days: distinct (day, crew slot) pairs averaged over the range.
    entries:     one contributor per time entry.
    """
    if proxy == "entries":
        return max(1, len(entries))

    slots: Set[Tuple[datetime, int]] = set()
    for entry in entries:
        if entry.end_time is None:
            continue
        day = start_of_day(entry.end_time)
        for slot in range(entry.personnel_count):
            slots.add((day, slot))
    return max(1, len(slots) // max(1, days))


def calculate_utilization_metrics(
    time_entries: Iterable[TimeEntry],
    date_range: DateRange,
    *,
    config: Optional[Config] = None,
) -> TeamUtilizationMetrics:
    cfg = config or get_config()
    relevant = filter_time_entries(time_entries, date_range)
    days = max(1, date_range.days)

    if not relevant:
        return TeamUtilizationMetrics(
            total_person_hours_tracked=0.0,
            total_person_hours_available=cfg.available_person_hours_per_day * days,
            utilization_rate=0.0,
            active_contributors=0,
            average_hours_per_contributor=0.0,
            total_time_entries=0,
            under_utilization_threshold=cfg.under_utilization_threshold,
            over_utilization_threshold=cfg.over_utilization_threshold,
        )

    tracked = float(np.sum([e.person_hours for e in relevant]))
    contributors = _estimate_contributors(relevant, days, cfg.contributor_proxy)
    available = cfg.available_person_hours_per_day * contributors * days
    rate = max(tracked / available, 0.0) if available > 0 else 0.0

    return TeamUtilizationMetrics(
        total_person_hours_tracked=tracked,
        total_person_hours_available=available,
        utilization_rate=rate,
        active_contributors=contributors,
        average_hours_per_contributor=tracked / contributors,
        total_time_entries=len(relevant),
        under_utilization_threshold=cfg.under_utilization_threshold,
        over_utilization_threshold=cfg.over_utilization_threshold,
    )


def calculate_kpis(
    tasks: Iterable[Task],
    time_entries: Iterable[TimeEntry],
    date_range: DateRange,
    *,
    config: Optional[Config] = None,
    calculated_at: Optional[datetime] = None,
) -> KPIResult:
    """
    Full KPI result for a date range.

    Time entries are attached to their tasks by task id before estimates
    and tracked time are rolled up through subtasks.
    """
    cfg = config or get_config()
    entries = list(time_entries)
    resolved = TaskTree(tasks, entries).resolve()
    completed = filter_completed_tasks(resolved, date_range)

    efficiency = calculate_efficiency_metrics(
        completed, tolerance=cfg.on_estimate_tolerance
    )
    accuracy = calculate_accuracy_metrics(completed)
    utilization = calculate_utilization_metrics(entries, date_range, config=cfg)

    logger.debug(
        "KPIs for %s..%s: %d tasks, %d completed in range, %d analyzable, %d entries.",
        date_range.start.isoformat(),
        date_range.end.isoformat(),
        len(resolved),
        len(completed),
        efficiency.total_tasks_analyzed,
        utilization.total_time_entries,
    )

    return KPIResult(
        date_range=date_range,
        calculated_at=calculated_at or datetime.now(),
        efficiency=efficiency,
        accuracy=accuracy,
        utilization=utilization,
        total_tasks=len(resolved),
        total_completed_tasks=len(completed),
        weights=(cfg.efficiency_weight, cfg.accuracy_weight, cfg.utilization_weight),
    )


# --- Single-task helpers ---------------------------------------------------


def get_task_efficiency_ratio(task: Task) -> Optional[float]:
    """actual / estimated, None without both values."""
    if not _analyzable(task):
        return None
    return task.actual_seconds / task.resolved_estimate


def get_task_accuracy_error(task: Task) -> Optional[float]:
    """Absolute percentage error of the estimate, None without both values."""
    if not _analyzable(task):
        return None
    estimated = float(task.resolved_estimate)
    return abs(estimated - task.actual_seconds) / estimated * 100.0


def was_task_completed_within_estimate(task: Task) -> bool:
    if not _analyzable(task):
        return False
    return task.actual_seconds <= task.resolved_estimate


# --- Trending & snapshots --------------------------------------------------

KPIComparable = Union[KPIResult, KPISnapshot]


def compare_kpis(current: KPIComparable, previous: KPIComparable) -> Dict[str, float]:
    """
    Signed change per metric, current minus previous.

    Metrics missing on either side are left out. utilization_improvement
    is positive when utilization moved closer to the ideal.
    """
    now = current.scalar_metrics()
    before = previous.scalar_metrics()
    changes = {key: now[key] - before[key] for key in now if key in before}

    if "utilization_percentage" in now and "utilization_percentage" in before:
        current_distance = abs(now["utilization_percentage"] - IDEAL_UTILIZATION_PERCENTAGE)
        previous_distance = abs(before["utilization_percentage"] - IDEAL_UTILIZATION_PERCENTAGE)
        changes["utilization_improvement"] = previous_distance - current_distance

    return changes


def create_snapshot(result: KPIResult, *, snapshot_id: Optional[str] = None) -> KPISnapshot:
    return KPISnapshot(
        snapshot_id=snapshot_id or uuid.uuid4().hex,
        date_range=result.date_range,
        calculated_at=result.calculated_at,
        efficiency_score=result.efficiency.efficiency_score,
        accuracy_score=result.accuracy.accuracy_score,
        utilization_percentage=result.utilization.utilization_percentage,
        overall_health_score=result.overall_health_score,
        health_status=result.health_status,
    )
