"""
FastAPI app for the task-estimation engine.

Endpoints:
- POST /available_hours
- POST /crew_plan
- POST /estimate/quantity
- POST /estimate/effort
- POST /productivity/variance
- POST /task_type_analytics
- POST /kpis
- POST /kpis/compare

Every endpoint is a stateless wrapper: callers send the full task and
time entry sets and get freshly computed results back.
"""

from __future__ import annotations

from dataclasses import asdict
from datetime import datetime
import sys
from pathlib import Path
from typing import Dict, List, Optional

# --- Make src/ importable ----------------------------------------------------

REPO_ROOT = Path(__file__).resolve().parents[1]
SRC_PATH = REPO_ROOT / "src"
if str(SRC_PATH) not in sys.path:
    sys.path.insert(0, str(SRC_PATH))

from fastapi import FastAPI, HTTPException
from pydantic import BaseModel, Field

from task_estimation.estimator import (
    EstimationMode,
    QuantityCalculationMode,
    apply_historical_correction,
    calculate_estimate,
    derive_from_quantity,
)
from task_estimation.kpi import (
    KPIResult,
    KPISnapshot,
    calculate_kpis,
    compare_kpis,
    create_snapshot,
)
from task_estimation.logging_config import configure_logging
from task_estimation.productivity import ProductivityRateViewModel
from task_estimation.schema import (
    DateRange,
    ProductivityMode,
    Task,
    TimeEntry,
    default_productivity_rate,
)
from task_estimation.task_type_analytics import TaskTypeAnalytics, historical_productivity
from task_estimation.work_hours import calculate_available_hours, plan_crew

configure_logging()

app = FastAPI(title="Task Estimation API")


# --- Request / Response schemas ----------------------------------------------


class TimeEntryPayload(BaseModel):
    entry_id: Optional[str] = None
    task_id: Optional[str] = None
    start_time: datetime
    end_time: Optional[datetime] = None
    personnel_count: int = Field(default=1, ge=1)

    def to_entry(self) -> TimeEntry:
        return TimeEntry(**self.model_dump())


class TaskPayload(BaseModel):
    """
    A task as the surrounding application stores it.

    Time entries may be embedded here or sent separately with task_id set.
    """

    task_id: Optional[str] = None
    title: str = ""
    estimated_seconds: Optional[int] = Field(default=None, ge=0)
    has_custom_estimate: bool = False
    effort_hours: Optional[float] = None
    expected_personnel_count: Optional[int] = None
    task_type: Optional[str] = None
    quantity: Optional[float] = None
    expected_quantity: Optional[float] = None
    unit: Optional[str] = None
    custom_productivity_rate: Optional[float] = None
    created_date: Optional[datetime] = None
    completed_date: Optional[datetime] = None
    is_archived: bool = False
    parent_id: Optional[str] = None
    time_entries: List[TimeEntryPayload] = Field(default_factory=list)

    def to_task(self) -> Task:
        data = self.model_dump(exclude={"time_entries"})
        if data["created_date"] is None:
            del data["created_date"]
        return Task(**data, time_entries=[e.to_entry() for e in self.time_entries])


class AvailableHoursRequest(BaseModel):
    start: datetime
    deadline: datetime
    workday_start: Optional[int] = Field(default=None, ge=0, le=24)
    workday_end: Optional[int] = Field(default=None, ge=0, le=24)


class AvailableHoursResponse(BaseModel):
    available_hours: float


class CrewPlanRequest(BaseModel):
    effort_hours: float = Field(ge=0)
    start: datetime
    deadline: datetime
    task_type: Optional[str] = None
    history: List[TaskPayload] = Field(default_factory=list)


class ScenarioModel(BaseModel):
    people: int
    hours_per_person: float
    status: str


class CrewPlanResponse(BaseModel):
    effort_hours: float
    corrected: bool
    available_hours: float
    minimum_personnel: int
    scenarios: List[ScenarioModel]


class QuantityEstimateRequest(BaseModel):
    mode: QuantityCalculationMode = QuantityCalculationMode.CALCULATE_DURATION
    quantity: Optional[float] = None
    productivity_rate: Optional[float] = None
    personnel: Optional[int] = None
    duration_hours: Optional[float] = None


class QuantityEstimateResponse(BaseModel):
    mode: QuantityCalculationMode
    effort_hours: Optional[float]
    duration_hours: Optional[float]
    duration_seconds: Optional[int]
    personnel: Optional[int]


class EffortEstimateRequest(BaseModel):
    effort_hours: float = Field(ge=0)
    personnel: Optional[int] = None


class EstimateResultModel(BaseModel):
    estimated_seconds: Optional[int]
    has_custom_estimate: bool
    effort_hours: Optional[float]
    expected_personnel_count: Optional[int]


class ProductivityRequest(BaseModel):
    expected: Optional[float] = None
    historical: Optional[float] = None
    existing_custom: Optional[float] = None
    mode: Optional[ProductivityMode] = None
    custom_input: Optional[str] = None
    unit: str = "units"
    task_type: Optional[str] = None
    history: List[TaskPayload] = Field(default_factory=list)


class ProductivityResponse(BaseModel):
    mode: ProductivityMode
    active_rate: float
    formatted_rate: str
    variance_percentage: Optional[float]
    historical_is_faster: Optional[bool]
    has_significant_variance: bool
    has_critical_variance: bool
    message: Optional[str]
    is_valid: bool
    error: Optional[str]


class TaskTypeAnalyticsRequest(BaseModel):
    task_type: str
    tasks: List[TaskPayload]


class TaskTypeAnalyticsResponse(BaseModel):
    task_type: str
    sample_count: int
    mean_productivity: Optional[float]
    typical_overrun_percentage: float
    is_significant: bool
    variance_description: str


class KPIRequest(BaseModel):
    tasks: List[TaskPayload] = Field(default_factory=list)
    time_entries: List[TimeEntryPayload] = Field(default_factory=list)
    preset: str = "this-week"
    start: Optional[datetime] = None
    end: Optional[datetime] = None


class KPIResponse(BaseModel):
    date_range: Dict[str, str]
    calculated_at: datetime
    efficiency: dict
    accuracy: dict
    utilization: dict
    total_tasks: int
    total_completed_tasks: int
    efficiency_score: Optional[float]
    accuracy_score: Optional[float]
    utilization_percentage: float
    overall_health_score: float
    health_status: str
    snapshot: dict


class CompareRequest(BaseModel):
    current: dict
    previous: dict


# --- Helpers -----------------------------------------------------------------


def _kpi_response(result: KPIResult) -> KPIResponse:
    snapshot = create_snapshot(result)
    return KPIResponse(
        date_range=result.date_range.to_dict(),
        calculated_at=result.calculated_at,
        efficiency=asdict(result.efficiency),
        accuracy=asdict(result.accuracy),
        utilization={
            **asdict(result.utilization),
            "is_under_utilized": result.utilization.is_under_utilized,
            "is_over_utilized": result.utilization.is_over_utilized,
        },
        total_tasks=result.total_tasks,
        total_completed_tasks=result.total_completed_tasks,
        efficiency_score=result.efficiency.efficiency_score,
        accuracy_score=result.accuracy.accuracy_score,
        utilization_percentage=result.utilization.utilization_percentage,
        overall_health_score=result.overall_health_score,
        health_status=result.health_status.value,
        snapshot=snapshot.to_dict(),
    )


# --- Endpoints ---------------------------------------------------------------


@app.post("/available_hours", response_model=AvailableHoursResponse)
def available_hours(payload: AvailableHoursRequest) -> AvailableHoursResponse:
    """
    Working hours between start and deadline.

    Body example:
    {
      "start": "2024-03-04T09:00:00",
      "deadline": "2024-03-06T09:00:00"
    }
    """
    hours = calculate_available_hours(
        payload.start,
        payload.deadline,
        workday_start=payload.workday_start,
        workday_end=payload.workday_end,
    )
    return AvailableHoursResponse(available_hours=hours)


@app.post("/crew_plan", response_model=CrewPlanResponse)
def crew_plan(payload: CrewPlanRequest) -> CrewPlanResponse:
    """
    Minimum crew and scenarios, optionally corrected by a task type's history.
    """
    effort = payload.effort_hours
    corrected = False
    if payload.task_type and payload.history:
        analytics = TaskTypeAnalytics.calculate(
            payload.task_type, [t.to_task() for t in payload.history]
        )
        effort = apply_historical_correction(effort, analytics)
        corrected = analytics is not None and analytics.is_significant

    plan = plan_crew(effort, payload.start, payload.deadline)
    return CrewPlanResponse(
        effort_hours=plan.effort_hours,
        corrected=corrected,
        available_hours=plan.available_hours,
        minimum_personnel=plan.minimum_personnel,
        scenarios=[ScenarioModel(**asdict(s)) for s in plan.scenarios],
    )


@app.post("/estimate/quantity", response_model=QuantityEstimateResponse)
def estimate_quantity(payload: QuantityEstimateRequest) -> QuantityEstimateResponse:
    """
    Quantity-mode solve. Unknowns stay null when inputs cannot support them.

    Body example:
    {
      "mode": "calculate_duration",
      "quantity": 100,
      "productivity_rate": 10,
      "personnel": 2
    }
    """
    result = derive_from_quantity(
        payload.mode,
        payload.quantity,
        payload.productivity_rate,
        personnel=payload.personnel,
        duration_hours=payload.duration_hours,
    )
    return QuantityEstimateResponse(
        mode=result.mode,
        effort_hours=result.effort_hours,
        duration_hours=result.duration_hours,
        duration_seconds=result.duration_seconds,
        personnel=result.personnel,
    )


@app.post("/estimate/effort", response_model=EstimateResultModel)
def estimate_effort(payload: EffortEstimateRequest) -> EstimateResultModel:
    """Effort-mode estimate: duration = effort / personnel."""
    result = calculate_estimate(
        EstimationMode.EFFORT,
        effort_hours=payload.effort_hours,
        has_personnel=payload.personnel is not None,
        expected_personnel_count=payload.personnel,
    )
    return EstimateResultModel(**asdict(result))


@app.post("/productivity/variance", response_model=ProductivityResponse)
def productivity_variance(payload: ProductivityRequest) -> ProductivityResponse:
    """Active rate and expected-vs-historical variance for one task."""
    expected = payload.expected
    if expected is None:
        expected = default_productivity_rate(payload.unit)
    historical = payload.historical
    if historical is None and payload.task_type and payload.history:
        historical = historical_productivity(
            payload.task_type, [t.to_task() for t in payload.history], unit=payload.unit
        )

    vm = ProductivityRateViewModel()
    vm.load_productivity_rates(
        expected=expected,
        historical=historical,
        existing_custom=payload.existing_custom,
    )
    if payload.custom_input is not None:
        vm.set_custom_rate(payload.custom_input)
    if payload.mode is not None:
        vm.select_mode(payload.mode)

    variance = vm.calculate_variance()
    validation = vm.validate(payload.unit)
    return ProductivityResponse(
        mode=vm.productivity_mode,
        active_rate=vm.active_rate,
        formatted_rate=vm.formatted_rate(payload.unit),
        variance_percentage=variance.percentage if variance else None,
        historical_is_faster=variance.is_positive if variance else None,
        has_significant_variance=vm.has_significant_variance,
        has_critical_variance=vm.has_critical_variance,
        message=vm.variance_message(),
        is_valid=validation.is_valid,
        error=validation.error,
    )


@app.post("/task_type_analytics", response_model=TaskTypeAnalyticsResponse)
def task_type_analytics(payload: TaskTypeAnalyticsRequest) -> TaskTypeAnalyticsResponse:
    analytics = TaskTypeAnalytics.calculate(
        payload.task_type, [t.to_task() for t in payload.tasks]
    )
    if analytics is None:
        raise HTTPException(
            status_code=404,
            detail=f"No completed {payload.task_type!r} tasks with estimates and tracked time.",
        )
    return TaskTypeAnalyticsResponse(
        task_type=analytics.task_type,
        sample_count=analytics.sample_count,
        mean_productivity=analytics.mean_productivity,
        typical_overrun_percentage=analytics.typical_overrun_percentage,
        is_significant=analytics.is_significant,
        variance_description=analytics.variance_description,
    )


@app.post("/kpis", response_model=KPIResponse)
def kpis(payload: KPIRequest) -> KPIResponse:
    """
    KPIs for a preset (today, this-week, this-month) or a custom range.
    """
    try:
        date_range = DateRange.preset(payload.preset, start=payload.start, end=payload.end)
    except ValueError as e:
        raise HTTPException(status_code=422, detail=str(e))

    result = calculate_kpis(
        [t.to_task() for t in payload.tasks],
        [e.to_entry() for e in payload.time_entries],
        date_range,
    )
    return _kpi_response(result)


@app.post("/kpis/compare")
def kpis_compare(payload: CompareRequest) -> Dict[str, float]:
    """Signed metric deltas between two snapshots (as returned by /kpis)."""
    try:
        current = KPISnapshot.from_dict(payload.current)
        previous = KPISnapshot.from_dict(payload.previous)
    except (KeyError, ValueError, TypeError) as e:
        raise HTTPException(status_code=422, detail=f"Invalid snapshot: {e}")
    return compare_kpis(current, previous)


# Convenience for local dev:
# uvicorn app.api:app --reload
if __name__ == "__main__":
    import uvicorn

    uvicorn.run("app.api:app", host="0.0.0.0", port=8000, reload=True)
