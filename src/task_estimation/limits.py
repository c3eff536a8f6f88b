"""
Input limits for estimation values.

Sized for large crews and multi-day jobs; used by form validation to
reject or clamp out-of-range inputs.
"""

from __future__ import annotations

MIN_PERSONNEL = 1
MAX_PERSONNEL = 100

MIN_DURATION_HOURS = 0
MAX_DURATION_HOURS = 500

MIN_QUANTITY = 0.0
MAX_QUANTITY = 1_000_000.0

MIN_PRODUCTIVITY_RATE = 0.01
MAX_PRODUCTIVITY_RATE = 10_000.0

# Percent difference between historical and expected rates
CRITICAL_VARIANCE_PERCENTAGE = 50.0


def is_valid_personnel(count: int) -> bool:
    return MIN_PERSONNEL <= count <= MAX_PERSONNEL


def is_valid_duration_hours(hours: int) -> bool:
    return MIN_DURATION_HOURS <= hours <= MAX_DURATION_HOURS


def is_valid_quantity(quantity: float) -> bool:
    return MIN_QUANTITY <= quantity <= MAX_QUANTITY


def is_valid_productivity_rate(rate: float) -> bool:
    return MIN_PRODUCTIVITY_RATE <= rate <= MAX_PRODUCTIVITY_RATE


def clamp_personnel(count: int) -> int:
    return max(MIN_PERSONNEL, min(count, MAX_PERSONNEL))


def personnel_error_message(count: int) -> str:
    if count < MIN_PERSONNEL:
        return f"Personnel must be at least {MIN_PERSONNEL}"
    if count > MAX_PERSONNEL:
        return f"Personnel cannot exceed {MAX_PERSONNEL}"
    return ""


def duration_error_message(hours: int) -> str:
    if hours < MIN_DURATION_HOURS:
        return "Duration must be at least 0 hours"
    if hours > MAX_DURATION_HOURS:
        return (
            f"Duration cannot exceed {MAX_DURATION_HOURS} hours "
            f"({MAX_DURATION_HOURS // 24} days)"
        )
    return ""


def quantity_error_message(quantity: float) -> str:
    if quantity < MIN_QUANTITY:
        return "Quantity must be greater than 0"
    if quantity > MAX_QUANTITY:
        return f"Quantity cannot exceed {MAX_QUANTITY:.0f}"
    return ""


def productivity_error_message(rate: float) -> str:
    if rate < MIN_PRODUCTIVITY_RATE:
        return f"Productivity rate must be at least {MIN_PRODUCTIVITY_RATE:.2f}"
    if rate > MAX_PRODUCTIVITY_RATE:
        return f"Productivity rate cannot exceed {MAX_PRODUCTIVITY_RATE:.0f}"
    return ""
