"""
Unified estimation solver.

Three mutually exclusive modes:
- duration: hours/minutes entered directly (parents may roll up subtasks)
- effort:   person-hours and crew size give duration = effort / personnel
- quantity: quantity / rate gives effort, then either duration (crew known)
            or personnel (duration known); manual entry defers to completion

Every derivation follows a skip-don't-fail policy: when a denominator is
zero or an input is missing, the dependent value is left unchanged.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
import logging
import math
from typing import List, Optional

from . import limits
from .schema import SECONDS_PER_HOUR, Task
from .task_type_analytics import TaskTypeAnalytics

logger = logging.getLogger(__name__)


class EstimationMode(str, Enum):
    DURATION = "duration"
    EFFORT = "effort"
    QUANTITY = "quantity"


class QuantityCalculationMode(str, Enum):
    CALCULATE_DURATION = "calculate_duration"
    CALCULATE_PERSONNEL = "calculate_personnel"
    MANUAL_ENTRY = "manual_entry"


@dataclass(frozen=True)
class EstimateResult:
    estimated_seconds: Optional[int] = None
    has_custom_estimate: bool = False
    effort_hours: Optional[float] = None
    expected_personnel_count: Optional[int] = None


@dataclass(frozen=True)
class QuantityDerivation:
    """Outcome of a quantity-mode solve; unknowns stay None when skipped."""

    mode: QuantityCalculationMode
    effort_hours: Optional[float] = None
    duration_hours: Optional[float] = None
    personnel: Optional[int] = None

    @property
    def duration_seconds(self) -> Optional[int]:
        if self.duration_hours is None:
            return None
        return int(self.duration_hours * SECONDS_PER_HOUR)


def format_duration(seconds: Optional[int]) -> str:
    """'3h 15m' style; 'Not set' for None or zero."""
    if not seconds:
        return "Not set"
    hours, remainder = divmod(int(seconds), 3600)
    minutes = remainder // 60
    if hours and minutes:
        return f"{hours}h {minutes}m"
    if hours:
        return f"{hours}h"
    return f"{minutes}m"


def calculate_estimate(
    mode: EstimationMode,
    *,
    effort_hours: float = 0.0,
    has_estimate: bool = False,
    estimate_hours: int = 0,
    estimate_minutes: int = 0,
    has_custom_estimate: bool = False,
    has_personnel: bool = False,
    expected_personnel_count: Optional[int] = None,
) -> EstimateResult:
    """
    Resolve the estimate stored on a task for duration or effort mode.

    Quantity mode stores its derived duration through the duration inputs,
    so it is handled like duration here.
    """
    personnel_out = expected_personnel_count if has_personnel else None

    if mode == EstimationMode.EFFORT and effort_hours > 0:
        personnel = expected_personnel_count if expected_personnel_count is not None else 1
        if personnel <= 0:
            logger.debug("Effort estimate skipped: personnel is %s.", personnel)
            return EstimateResult(expected_personnel_count=personnel_out)
        duration_hours = effort_hours / personnel
        return EstimateResult(
            estimated_seconds=int(duration_hours * SECONDS_PER_HOUR),
            has_custom_estimate=True,
            effort_hours=effort_hours,
            expected_personnel_count=personnel_out,
        )

    if has_estimate:
        total_seconds = (estimate_hours * 60 + estimate_minutes) * 60
        final_seconds = total_seconds if total_seconds > 0 else None
        return EstimateResult(
            estimated_seconds=final_seconds,
            has_custom_estimate=has_custom_estimate and final_seconds is not None,
            expected_personnel_count=personnel_out,
        )

    return EstimateResult(expected_personnel_count=personnel_out)


def quantity_to_effort_hours(quantity: float, productivity_rate: float) -> Optional[float]:
    if quantity <= 0 or productivity_rate <= 0:
        return None
    return quantity / productivity_rate


def effort_hours_to_quantity(effort_hours: float, productivity_rate: float) -> Optional[float]:
    if effort_hours <= 0 or productivity_rate <= 0:
        return None
    return effort_hours * productivity_rate


def derive_from_quantity(
    mode: QuantityCalculationMode,
    quantity: Optional[float],
    productivity_rate: Optional[float],
    *,
    personnel: Optional[int] = None,
    duration_hours: Optional[float] = None,
) -> QuantityDerivation:
    """
    Solve the quantity triangle for the unknown the mode asks for.

    calculate_duration:  duration = (quantity / rate) / personnel
    calculate_personnel: personnel = ceil((quantity / rate) / duration), min 1
    manual_entry:        nothing derived; productivity comes at completion
    """
    mode = QuantityCalculationMode(mode)
    effort = quantity_to_effort_hours(quantity or 0.0, productivity_rate or 0.0)

    if mode == QuantityCalculationMode.MANUAL_ENTRY or effort is None:
        if effort is None and mode != QuantityCalculationMode.MANUAL_ENTRY:
            logger.debug(
                "Quantity derivation skipped: quantity=%s rate=%s.",
                quantity,
                productivity_rate,
            )
        return QuantityDerivation(mode=mode, effort_hours=effort)

    if mode == QuantityCalculationMode.CALCULATE_DURATION:
        if personnel is None or personnel <= 0:
            logger.debug("Duration derivation skipped: personnel=%s.", personnel)
            return QuantityDerivation(mode=mode, effort_hours=effort)
        return QuantityDerivation(
            mode=mode,
            effort_hours=effort,
            duration_hours=effort / personnel,
        )

    if duration_hours is None or duration_hours <= 0:
        logger.debug("Personnel derivation skipped: duration=%s.", duration_hours)
        return QuantityDerivation(mode=mode, effort_hours=effort)
    return QuantityDerivation(
        mode=mode,
        effort_hours=effort,
        personnel=max(int(math.ceil(effort / duration_hours)), 1),
    )


def productivity_at_completion(task: Task) -> Optional[float]:
    """Units per person-hour measured on a finished manual-entry task."""
    if not task.is_completed:
        return None
    return task.units_per_hour


def apply_historical_correction(
    effort_hours: float,
    analytics: Optional[TaskTypeAnalytics],
) -> float:
    """Apply a task type's overrun correction only when it is significant."""
    if analytics is None or not analytics.is_significant:
        return effort_hours
    return analytics.adjusted_effort(effort_hours)


@dataclass(frozen=True)
class CalculationComparison:
    """Difference between two ways of estimating the same work."""

    primary_value: float
    alternative_value: float
    threshold: float = 0.15

    @property
    def difference_percent(self) -> Optional[float]:
        if self.primary_value == 0:
            return None
        return (self.alternative_value - self.primary_value) / self.primary_value * 100.0

    @property
    def is_significant(self) -> bool:
        diff = self.difference_percent
        if diff is None:
            return False
        return abs(diff / 100.0) > self.threshold

    @property
    def formatted_difference(self) -> str:
        diff = self.difference_percent
        if diff is None:
            return "n/a"
        sign = "+" if diff > 0 else ""
        return f"{sign}{diff:.0f}%"


@dataclass
class EstimationState:
    """
    Live estimation inputs for one task form.

    Switching modes never re-runs a derivation; callers trigger
    recalculate() from the input that changed.
    """

    mode: EstimationMode = EstimationMode.DURATION

    # Duration mode
    has_estimate: bool = False
    estimate_hours: int = 0
    estimate_minutes: int = 0
    has_custom_estimate: bool = False

    # Effort mode
    effort_hours: float = 0.0
    has_personnel: bool = False
    expected_personnel_count: Optional[int] = None

    # Quantity mode
    task_type: Optional[str] = None
    unit: Optional[str] = None
    quantity: str = ""
    quantity_calculation_mode: QuantityCalculationMode = (
        QuantityCalculationMode.CALCULATE_DURATION
    )
    productivity_rate: Optional[float] = None

    @classmethod
    def from_task(cls, task: Task) -> "EstimationState":
        state = cls()
        state.has_estimate = task.estimated_seconds is not None
        if task.estimated_seconds is not None:
            state.estimate_hours = task.estimated_seconds // 3600
            state.estimate_minutes = (task.estimated_seconds % 3600) // 60
        state.has_custom_estimate = task.has_custom_estimate
        state.effort_hours = task.effort_hours or 0.0
        state.has_personnel = task.expected_personnel_count is not None
        state.expected_personnel_count = task.expected_personnel_count
        state.task_type = task.task_type
        state.unit = task.unit
        state.quantity = "" if task.quantity is None else repr(task.quantity)
        # A saved custom rate beats the measured one
        state.productivity_rate = task.custom_productivity_rate or task.units_per_hour
        return state

    @property
    def total_estimate_seconds(self) -> int:
        return self.estimate_hours * 3600 + self.estimate_minutes * 60

    @property
    def formatted_estimate(self) -> str:
        return format_duration(self.total_estimate_seconds)

    @property
    def has_valid_estimate(self) -> bool:
        return self.has_estimate and self.total_estimate_seconds >= 60

    @property
    def quantity_value(self) -> Optional[float]:
        try:
            return float(self.quantity)
        except ValueError:
            return None

    def set_mode(self, mode: EstimationMode) -> None:
        self.mode = EstimationMode(mode)

    def set_duration(self, seconds: int) -> None:
        """Store a duration, clamped to the allowed estimate range."""
        seconds = max(int(seconds), 0)
        max_seconds = limits.MAX_DURATION_HOURS * 3600
        if seconds > max_seconds:
            logger.debug("Duration %ss clamped to %sh.", seconds, limits.MAX_DURATION_HOURS)
            seconds = max_seconds
        self.estimate_hours = seconds // 3600
        self.estimate_minutes = (seconds % 3600) // 60
        self.has_estimate = seconds > 0

    def validate(self) -> List[str]:
        """
        Error messages for out-of-range inputs; empty when the form is valid.

        Quantity is only checked in quantity mode.
        """
        errors: List[str] = []
        if self.has_personnel and self.expected_personnel_count is not None:
            if not limits.is_valid_personnel(self.expected_personnel_count):
                errors.append(limits.personnel_error_message(self.expected_personnel_count))
        if not limits.is_valid_duration_hours(self.estimate_hours):
            errors.append(limits.duration_error_message(self.estimate_hours))
        if self.mode == EstimationMode.QUANTITY:
            quantity = self.quantity_value
            if not self.quantity.strip():
                errors.append("Quantity cannot be empty")
            elif quantity is None:
                errors.append("Please enter a valid number")
            elif not limits.is_valid_quantity(quantity):
                errors.append(limits.quantity_error_message(quantity))
        return errors

    def recalculate(self) -> QuantityDerivation:
        """
        Re-derive the quantity-mode unknown from current inputs.

        Only updates the dependent field when the derivation produced a
        value; otherwise the previous value is kept.
        """
        duration_hours = self.total_estimate_seconds / SECONDS_PER_HOUR
        derivation = derive_from_quantity(
            self.quantity_calculation_mode,
            self.quantity_value,
            self.productivity_rate,
            personnel=self.expected_personnel_count,
            duration_hours=duration_hours if duration_hours > 0 else None,
        )
        if self.mode != EstimationMode.QUANTITY:
            return derivation

        if derivation.duration_seconds is not None:
            self.set_duration(derivation.duration_seconds)
        if derivation.personnel is not None:
            self.expected_personnel_count = limits.clamp_personnel(derivation.personnel)
            self.has_personnel = True
        return derivation

    def to_result(self) -> EstimateResult:
        return calculate_estimate(
            self.mode,
            effort_hours=self.effort_hours,
            has_estimate=self.has_estimate,
            estimate_hours=self.estimate_hours,
            estimate_minutes=self.estimate_minutes,
            has_custom_estimate=self.has_custom_estimate,
            has_personnel=self.has_personnel,
            expected_personnel_count=self.expected_personnel_count,
        )
