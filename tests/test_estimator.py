import pytest

from conftest import make_task

from task_estimation.estimator import (
    CalculationComparison,
    EstimationMode,
    EstimationState,
    QuantityCalculationMode,
    apply_historical_correction,
    calculate_estimate,
    derive_from_quantity,
    effort_hours_to_quantity,
    format_duration,
    productivity_at_completion,
    quantity_to_effort_hours,
)
from task_estimation.task_type_analytics import TaskTypeAnalytics


def test_quantity_to_duration():
    """100 m² at 10 m²/person-hr with 2 people takes 5 hours."""
    result = derive_from_quantity(
        QuantityCalculationMode.CALCULATE_DURATION, 100.0, 10.0, personnel=2
    )
    assert result.effort_hours == pytest.approx(10.0)
    assert result.duration_hours == pytest.approx(5.0)
    assert result.duration_seconds == 5 * 3600
    assert result.personnel is None


def test_quantity_to_personnel_rounds_up():
    result = derive_from_quantity(
        QuantityCalculationMode.CALCULATE_PERSONNEL, 100.0, 10.0, duration_hours=2.0
    )
    assert result.personnel == 5
    result = derive_from_quantity(
        QuantityCalculationMode.CALCULATE_PERSONNEL, 100.0, 10.0, duration_hours=3.0
    )
    assert result.personnel == 4


def test_personnel_never_below_one():
    result = derive_from_quantity(
        QuantityCalculationMode.CALCULATE_PERSONNEL, 1.0, 10.0, duration_hours=8.0
    )
    assert result.personnel == 1


@pytest.mark.parametrize(
    "quantity, rate, kwargs",
    [
        (0.0, 10.0, {"personnel": 2}),
        (100.0, 0.0, {"personnel": 2}),
        (None, 10.0, {"personnel": 2}),
        (100.0, 10.0, {"personnel": 0}),
        (100.0, 10.0, {}),
    ],
)
def test_duration_derivation_skips_on_missing_inputs(quantity, rate, kwargs):
    result = derive_from_quantity(
        QuantityCalculationMode.CALCULATE_DURATION, quantity, rate, **kwargs
    )
    assert result.duration_hours is None
    assert result.personnel is None


def test_manual_entry_derives_nothing():
    result = derive_from_quantity(
        QuantityCalculationMode.MANUAL_ENTRY, 100.0, 10.0, personnel=2, duration_hours=4.0
    )
    assert result.duration_hours is None
    assert result.personnel is None


def test_effort_quantity_conversions():
    assert quantity_to_effort_hours(50.0, 10.0) == pytest.approx(5.0)
    assert quantity_to_effort_hours(50.0, 0.0) is None
    assert effort_hours_to_quantity(5.0, 10.0) == pytest.approx(50.0)
    assert effort_hours_to_quantity(0.0, 10.0) is None


def test_effort_mode_divides_by_personnel():
    result = calculate_estimate(
        EstimationMode.EFFORT,
        effort_hours=12.0,
        has_personnel=True,
        expected_personnel_count=3,
    )
    assert result.estimated_seconds == 4 * 3600
    assert result.has_custom_estimate
    assert result.effort_hours == 12.0
    assert result.expected_personnel_count == 3


def test_effort_mode_defaults_to_one_person():
    result = calculate_estimate(EstimationMode.EFFORT, effort_hours=2.5)
    assert result.estimated_seconds == int(2.5 * 3600)
    assert result.expected_personnel_count is None


def test_duration_mode():
    result = calculate_estimate(
        EstimationMode.DURATION,
        has_estimate=True,
        estimate_hours=1,
        estimate_minutes=30,
        has_custom_estimate=True,
    )
    assert result.estimated_seconds == 5400
    assert result.has_custom_estimate


def test_zero_duration_clears_estimate_and_override():
    result = calculate_estimate(
        EstimationMode.DURATION, has_estimate=True, has_custom_estimate=True
    )
    assert result.estimated_seconds is None
    assert not result.has_custom_estimate


def test_format_duration():
    assert format_duration(None) == "Not set"
    assert format_duration(0) == "Not set"
    assert format_duration(3 * 3600 + 15 * 60) == "3h 15m"
    assert format_duration(3 * 3600) == "3h"
    assert format_duration(15 * 60) == "15m"


def test_historical_correction_needs_significance():
    significant = TaskTypeAnalytics("paint", 4, None, 25.0)
    sparse = TaskTypeAnalytics("paint", 2, None, 25.0)
    assert apply_historical_correction(8.0, significant) == pytest.approx(10.0)
    assert apply_historical_correction(8.0, sparse) == 8.0
    assert apply_historical_correction(8.0, None) == 8.0


def test_productivity_at_completion():
    done = make_task("d", actual_minutes=120, personnel=2, quantity=40, unit="m²")
    assert productivity_at_completion(done) == pytest.approx(10.0)
    running = make_task("r", actual_minutes=120, quantity=40, completed=None)
    assert productivity_at_completion(running) is None


def test_calculation_comparison():
    comparison = CalculationComparison(primary_value=10.0, alternative_value=12.0)
    assert comparison.difference_percent == pytest.approx(20.0)
    assert comparison.is_significant
    assert comparison.formatted_difference == "+20%"
    close = CalculationComparison(primary_value=10.0, alternative_value=9.0)
    assert not close.is_significant
    assert close.formatted_difference == "-10%"
    assert CalculationComparison(0.0, 5.0).formatted_difference == "n/a"


def test_state_recalculate_in_quantity_mode():
    state = EstimationState(
        mode=EstimationMode.QUANTITY,
        quantity="100",
        productivity_rate=10.0,
        expected_personnel_count=2,
    )
    state.recalculate()
    assert state.estimate_hours == 5
    assert state.estimate_minutes == 0
    assert state.has_estimate
    assert state.formatted_estimate == "5h"


def test_state_recalculate_personnel():
    state = EstimationState(
        mode=EstimationMode.QUANTITY,
        quantity="100",
        productivity_rate=10.0,
        quantity_calculation_mode=QuantityCalculationMode.CALCULATE_PERSONNEL,
    )
    state.set_duration(2 * 3600)
    state.recalculate()
    assert state.expected_personnel_count == 5
    assert state.has_personnel


def test_state_keeps_previous_value_when_derivation_skips():
    state = EstimationState(
        mode=EstimationMode.QUANTITY,
        quantity="abc",
        productivity_rate=10.0,
        expected_personnel_count=2,
        estimate_hours=3,
        has_estimate=True,
    )
    state.recalculate()
    assert state.estimate_hours == 3


def test_set_mode_does_not_rederive():
    state = EstimationState(quantity="100", productivity_rate=10.0, expected_personnel_count=2)
    state.recalculate()
    assert state.estimate_hours == 0
    state.set_mode(EstimationMode.QUANTITY)
    assert state.estimate_hours == 0
    assert state.mode == EstimationMode.QUANTITY


def test_state_from_task_round_trip():
    task = make_task("t", estimate_minutes=95, task_type="paint", quantity=20, unit="m²")
    task.custom_productivity_rate = 12.0
    state = EstimationState.from_task(task)
    assert state.estimate_hours == 1
    assert state.estimate_minutes == 35
    assert state.productivity_rate == 12.0
    assert state.quantity_value == 20.0
    assert state.has_valid_estimate
    assert state.to_result().estimated_seconds == 95 * 60


def test_set_duration_clamps_to_limit():
    state = EstimationState()
    state.set_duration(900 * 3600)
    assert state.estimate_hours == 500
    assert state.estimate_minutes == 0


def test_derived_personnel_is_clamped():
    state = EstimationState(
        mode=EstimationMode.QUANTITY,
        quantity="100000",
        productivity_rate=1.0,
        quantity_calculation_mode=QuantityCalculationMode.CALCULATE_PERSONNEL,
    )
    state.set_duration(3600)
    state.recalculate()
    assert state.expected_personnel_count == 100


def test_validate_reports_out_of_range_inputs():
    state = EstimationState(
        mode=EstimationMode.QUANTITY,
        quantity="2000000",
        has_personnel=True,
        expected_personnel_count=0,
        estimate_hours=600,
    )
    assert state.validate() == [
        "Personnel must be at least 1",
        "Duration cannot exceed 500 hours (20 days)",
        "Quantity cannot exceed 1000000",
    ]


def test_validate_quantity_text():
    state = EstimationState(mode=EstimationMode.QUANTITY)
    assert state.validate() == ["Quantity cannot be empty"]
    state.quantity = "lots"
    assert state.validate() == ["Please enter a valid number"]
    state.quantity = "12.5"
    assert state.validate() == []
    # Quantity is ignored outside quantity mode
    assert EstimationState(quantity="lots").validate() == []
