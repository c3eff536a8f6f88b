"""
Productivity rate selection for a single task-edit session.

Holds the expected (template), historical (measured) and custom (typed)
rates, exposes the active one and how far history drifts from the goal.
"""

from __future__ import annotations

from dataclasses import dataclass
import logging
import math
from typing import Optional

from . import limits
from .config import get_config
from .schema import ProductivityMode

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Variance:
    percentage: float
    is_positive: bool


@dataclass(frozen=True)
class ValidationResult:
    is_valid: bool
    value: Optional[float] = None
    error: Optional[str] = None


def parse_rate(text: Optional[str]) -> Optional[float]:
    """Parse a user-typed rate; anything unparsable or non-finite is None."""
    if text is None:
        return None
    try:
        value = float(text.strip())
    except ValueError:
        return None
    if not math.isfinite(value):
        return None
    return value


class ProductivityRateViewModel:
    """
    Mutable state behind a productivity-rate picker.

    Parse failures in the custom input are never surfaced: the custom rate
    simply reads as absent and the active rate falls back to expected.
    """

    def __init__(
        self,
        expected_productivity: Optional[float] = None,
        historical_productivity: Optional[float] = None,
        custom_productivity_input: str = "",
        productivity_mode: ProductivityMode = ProductivityMode.EXPECTED,
        significant_variance_percentage: Optional[float] = None,
    ) -> None:
        self.expected_productivity = expected_productivity
        self.historical_productivity = historical_productivity
        self.custom_productivity_input = custom_productivity_input
        self.productivity_mode = productivity_mode
        if significant_variance_percentage is None:
            significant_variance_percentage = get_config().significant_variance_percentage
        self.significant_variance_percentage = significant_variance_percentage

    @classmethod
    def for_rates(
        cls,
        expected: Optional[float],
        historical: Optional[float],
    ) -> "ProductivityRateViewModel":
        vm = cls()
        vm.load_productivity_rates(expected=expected, historical=historical)
        return vm

    # --- Derived state ----------------------------------------------------

    @property
    def custom_rate(self) -> Optional[float]:
        return parse_rate(self.custom_productivity_input)

    @property
    def active_rate(self) -> float:
        if (
            self.productivity_mode == ProductivityMode.HISTORICAL
            and self.historical_productivity is not None
        ):
            return self.historical_productivity
        if self.productivity_mode == ProductivityMode.CUSTOM:
            custom = self.custom_rate
            if custom is not None:
                return custom
        if self.expected_productivity is not None:
            return self.expected_productivity
        return 0.0

    def calculate_variance(self) -> Optional[Variance]:
        """
        Relative gap between historical and expected rates, in percent.

        None unless both rates exist and expected is non-zero.
        """
        historical = self.historical_productivity
        expected = self.expected_productivity
        if historical is None or expected is None or expected == 0:
            return None
        percentage = abs(historical - expected) * 100.0 / expected
        return Variance(percentage=percentage, is_positive=historical > expected)

    @property
    def has_significant_variance(self) -> bool:
        """True when the variance is at or above the threshold (inclusive)."""
        variance = self.calculate_variance()
        if variance is None:
            return False
        return variance.percentage >= self.significant_variance_percentage

    @property
    def has_critical_variance(self) -> bool:
        variance = self.calculate_variance()
        if variance is None:
            return False
        return variance.percentage >= limits.CRITICAL_VARIANCE_PERCENTAGE

    # --- Mutations --------------------------------------------------------

    def select_mode(self, mode: ProductivityMode) -> None:
        self.productivity_mode = ProductivityMode(mode)

    def set_custom_rate(self, text: str) -> None:
        self.custom_productivity_input = text
        self.productivity_mode = ProductivityMode.CUSTOM
        if self.custom_rate is None:
            logger.debug("Custom rate %r did not parse; treating as absent.", text)

    def load_productivity_rates(
        self,
        expected: Optional[float],
        historical: Optional[float],
        existing_custom: Optional[float] = None,
    ) -> None:
        """
        Seed the session for a task.

        A saved custom rate that differs from the expected rate restores
        custom mode; otherwise the session starts on the expected rate.
        """
        self.expected_productivity = expected
        self.historical_productivity = historical

        if existing_custom is not None and existing_custom != expected:
            self.productivity_mode = ProductivityMode.CUSTOM
            self.custom_productivity_input = repr(float(existing_custom))
            return

        self.productivity_mode = ProductivityMode.EXPECTED
        self.custom_productivity_input = ""

    # --- Presentation -----------------------------------------------------

    def validate(self, unit: str) -> ValidationResult:
        rate = self.active_rate
        if rate <= 0:
            return ValidationResult(is_valid=False, error="Productivity rate not set")
        if not limits.is_valid_productivity_rate(rate):
            return ValidationResult(
                is_valid=False,
                error=limits.productivity_error_message(rate),
            )
        return ValidationResult(is_valid=True, value=rate)

    def formatted_rate(self, unit: str) -> str:
        return f"{self.active_rate:.1f} {unit}/person-hr"

    def variance_message(self) -> Optional[str]:
        variance = self.calculate_variance()
        if variance is None:
            return None
        direction = "faster" if variance.is_positive else "slower"
        return f"Historical is {variance.percentage:.0f}% {direction} than expected."
