"""
Configuration module for the task-estimation engine.

Single source of truth for:
- Workday window and per-person capacity
- KPI bucketing and scoring policy
- Significance thresholds for historical corrections

All values can be overridden via environment variables (TE_*).
"""

from __future__ import annotations

from dataclasses import dataclass
import os
from typing import Optional


def _get_env_bool(name: str, default: bool) -> bool:
    value = os.getenv(name)
    if value is None:
        return default
    return value.strip().lower() in {"1", "true", "yes", "y", "on"}


def _get_env_float(name: str, default: float) -> float:
    value = os.getenv(name)
    if value is None:
        return default
    try:
        return float(value)
    except ValueError:
        return default


def _get_env_int(name: str, default: int) -> int:
    value = os.getenv(name)
    if value is None:
        return default
    try:
        return int(value)
    except ValueError:
        return default


def _get_env_str(name: str, default: str) -> str:
    value = os.getenv(name)
    if value is None or not value.strip():
        return default
    return value.strip()


# Variance corrections are never trusted on fewer samples than this.
MIN_SAMPLE_FLOOR = 3


@dataclass
class Config:
    """
    Runtime configuration for the estimation engine.

    All fields have defaults but can be overridden from the environment
    with Config.from_env() or programmatically by constructing Config(...).
    """

    # Capacity
    available_person_hours_per_day: float = 8.0
    workday_start: int = 7
    workday_end: int = 15

    # Efficiency "on estimate" band is [1 - tol, 1 + tol]
    on_estimate_tolerance: float = 0.10

    # Historical analytics
    min_sample_threshold: int = MIN_SAMPLE_FLOOR
    significant_variance_percentage: float = 30.0

    # Utilization flags (rates, not percentages)
    under_utilization_threshold: float = 0.70
    over_utilization_threshold: float = 1.0

    # Health score weights
    efficiency_weight: float = 1.0
    accuracy_weight: float = 1.0
    utilization_weight: float = 1.0

    # "person_days" or "entries"
    contributor_proxy: str = "person_days"

    snapshot_history_path: str = "data/kpi_snapshots.json"
    log_level: str = "INFO"
    debug: bool = False

    def __post_init__(self) -> None:
        self.min_sample_threshold = max(int(self.min_sample_threshold), MIN_SAMPLE_FLOOR)
        if self.contributor_proxy not in {"person_days", "entries"}:
            self.contributor_proxy = "person_days"

    @property
    def workday_hours(self) -> float:
        return float(max(self.workday_end - self.workday_start, 0))

    @classmethod
    def from_env(cls) -> "Config":
        """
        Construct a Config object by reading environment variables.

        Environment variables (all optional):
        - TE_AVAILABLE_PERSON_HOURS_PER_DAY  (float)
        - TE_WORKDAY_START / TE_WORKDAY_END  (int, hour of day)
        - TE_ON_ESTIMATE_TOLERANCE           (float, e.g. 0.10)
        - TE_MIN_SAMPLE_THRESHOLD            (int, floored at 3)
        - TE_SIGNIFICANT_VARIANCE_PERCENTAGE (float)
        - TE_UNDER_UTILIZATION_THRESHOLD / TE_OVER_UTILIZATION_THRESHOLD
        - TE_EFFICIENCY_WEIGHT / TE_ACCURACY_WEIGHT / TE_UTILIZATION_WEIGHT
        - TE_CONTRIBUTOR_PROXY               (person_days | entries)
        - TE_SNAPSHOT_HISTORY_PATH
        - TE_LOG_LEVEL
        - TE_DEBUG                           (true/false)
        """
        return cls(
            available_person_hours_per_day=_get_env_float(
                "TE_AVAILABLE_PERSON_HOURS_PER_DAY", default=8.0
            ),
            workday_start=_get_env_int("TE_WORKDAY_START", default=7),
            workday_end=_get_env_int("TE_WORKDAY_END", default=15),
            on_estimate_tolerance=_get_env_float(
                "TE_ON_ESTIMATE_TOLERANCE", default=0.10
            ),
            min_sample_threshold=_get_env_int(
                "TE_MIN_SAMPLE_THRESHOLD", default=MIN_SAMPLE_FLOOR
            ),
            significant_variance_percentage=_get_env_float(
                "TE_SIGNIFICANT_VARIANCE_PERCENTAGE", default=30.0
            ),
            under_utilization_threshold=_get_env_float(
                "TE_UNDER_UTILIZATION_THRESHOLD", default=0.70
            ),
            over_utilization_threshold=_get_env_float(
                "TE_OVER_UTILIZATION_THRESHOLD", default=1.0
            ),
            efficiency_weight=_get_env_float("TE_EFFICIENCY_WEIGHT", default=1.0),
            accuracy_weight=_get_env_float("TE_ACCURACY_WEIGHT", default=1.0),
            utilization_weight=_get_env_float("TE_UTILIZATION_WEIGHT", default=1.0),
            contributor_proxy=_get_env_str("TE_CONTRIBUTOR_PROXY", "person_days"),
            snapshot_history_path=_get_env_str(
                "TE_SNAPSHOT_HISTORY_PATH", "data/kpi_snapshots.json"
            ),
            log_level=_get_env_str("TE_LOG_LEVEL", "INFO"),
            debug=_get_env_bool("TE_DEBUG", default=False),
        )


# Convenience singleton-style accessor if you want a shared config
_DEFAULT_CONFIG: Optional[Config] = None


def get_config(force_reload: bool = False) -> Config:
    """
    Return a process-wide Config instance.

    Use `force_reload=True` if environment variables changed at runtime
    and you want to refresh.
    """
    global _DEFAULT_CONFIG
    if _DEFAULT_CONFIG is None or force_reload:
        _DEFAULT_CONFIG = Config.from_env()
    return _DEFAULT_CONFIG
