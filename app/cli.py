"""
CLI for the task-estimation engine.

Usage examples:

    # Working hours between now-ish and a deadline
    python -m app.cli hours 2024-03-04T09:00 2024-03-06T09:00

    # Crew plan for 40 person-hours, corrected by history for a task type
    python -m app.cli crew 40 2024-03-04T09:00 2024-03-06T09:00 \
        --task-type Carpet --tasks-csv data/tasks.csv --entries-csv data/entries.csv

    # Quantity mode: 100 m² at 10 m²/person-hr with 2 people
    python -m app.cli estimate 100 10 --personnel 2

    # KPIs for this week, saved to the snapshot history
    python -m app.cli kpi data/tasks.csv data/entries.csv --range this-week --save-snapshot

    # Trend between the two most recent snapshots
    python -m app.cli compare
"""

from __future__ import annotations

import argparse
from datetime import datetime
import json
import sys
from pathlib import Path
from typing import List, Optional

# --- Make src/ importable ----------------------------------------------------

REPO_ROOT = Path(__file__).resolve().parents[1]
SRC_PATH = REPO_ROOT / "src"
if str(SRC_PATH) not in sys.path:
    sys.path.insert(0, str(SRC_PATH))

from task_estimation.config import get_config
from task_estimation.data_io import (
    append_snapshot,
    load_snapshot_history,
    load_tasks_from_csv,
    load_time_entries_from_csv,
)
from task_estimation.estimator import (
    QuantityCalculationMode,
    apply_historical_correction,
    derive_from_quantity,
    format_duration,
)
from task_estimation.kpi import calculate_kpis, compare_kpis, create_snapshot
from task_estimation.logging_config import configure_logging
from task_estimation.productivity import ProductivityRateViewModel
from task_estimation.schema import DateRange, Task, default_productivity_rate
from task_estimation.task_type_analytics import TaskTypeAnalytics, historical_productivity
from task_estimation.work_hours import calculate_available_hours, plan_crew


# --- Helpers -----------------------------------------------------------------


def _parse_datetime(value: str, label: str) -> datetime:
    try:
        return datetime.fromisoformat(value)
    except ValueError:
        raise SystemExit(f"[{label}] Invalid ISO datetime: {value!r}")


def _load_tasks(tasks_csv: str, entries_csv: Optional[str], label: str) -> List[Task]:
    try:
        tasks = load_tasks_from_csv(tasks_csv)
        if entries_csv:
            entries = load_time_entries_from_csv(entries_csv)
            by_task = {}
            for entry in entries:
                by_task.setdefault(entry.task_id, []).append(entry)
            for task in tasks:
                task.time_entries = by_task.get(task.task_id, [])
    except (FileNotFoundError, ValueError) as e:
        raise SystemExit(f"[{label}] {e}")
    return tasks


# --- Commands ----------------------------------------------------------------


def cmd_hours(args: argparse.Namespace) -> None:
    """
    Print available working hours between two moments.
    """
    start = _parse_datetime(args.start, "hours")
    deadline = _parse_datetime(args.deadline, "hours")
    hours = calculate_available_hours(
        start,
        deadline,
        workday_start=args.workday_start,
        workday_end=args.workday_end,
    )
    print(f"[hours] Available work hours: {hours:.2f}")


def cmd_crew(args: argparse.Namespace) -> None:
    """
    Print minimum crew and Tight/Safe/Buffer scenarios for an effort.
    """
    start = _parse_datetime(args.start, "crew")
    deadline = _parse_datetime(args.deadline, "crew")
    effort = args.effort_hours

    if args.task_type and args.tasks_csv:
        tasks = _load_tasks(args.tasks_csv, args.entries_csv, "crew")
        analytics = TaskTypeAnalytics.calculate(args.task_type, tasks)
        corrected = apply_historical_correction(effort, analytics)
        if analytics is None:
            print(f"[crew] No history for {args.task_type!r}; using raw effort.")
        elif not analytics.is_significant:
            print(
                f"[crew] Only {analytics.sample_count} samples for "
                f"{args.task_type!r}; correction not applied."
            )
        else:
            print(
                f"[crew] {args.task_type!r} is {analytics.variance_description}: "
                f"{effort:.1f}h -> {corrected:.1f}h"
            )
        effort = corrected

    plan = plan_crew(effort, start, deadline)
    print(f"[crew] Effort: {plan.effort_hours:.1f} person-hours")
    print(f"[crew] Available: {plan.available_hours:.1f} hours")
    print(f"[crew] Minimum personnel: {plan.minimum_personnel}")
    for scenario in plan.scenarios:
        print(
            f"[crew]   {scenario.status:<6} {scenario.people:>3} people, "
            f"{scenario.hours_per_person:.1f} h/person"
        )


def cmd_estimate(args: argparse.Namespace) -> None:
    """
    Solve quantity mode for duration (given personnel) or personnel
    (given duration).
    """
    if args.personnel is None and args.duration_hours is None:
        raise SystemExit("[estimate] Pass --personnel or --duration-hours.")

    mode = (
        QuantityCalculationMode.CALCULATE_DURATION
        if args.personnel is not None
        else QuantityCalculationMode.CALCULATE_PERSONNEL
    )
    result = derive_from_quantity(
        mode,
        args.quantity,
        args.rate,
        personnel=args.personnel,
        duration_hours=args.duration_hours,
    )

    if result.effort_hours is None:
        print("[estimate] Quantity and rate must both be positive; nothing derived.")
        return
    print(f"[estimate] Effort: {result.effort_hours:.2f} person-hours")
    if result.duration_hours is not None:
        print(
            f"[estimate] Duration: {result.duration_hours:.2f} hours "
            f"({format_duration(result.duration_seconds)})"
        )
    elif result.personnel is not None:
        label = "person" if result.personnel == 1 else "people"
        print(f"[estimate] Personnel: {result.personnel} {label}")
    else:
        print("[estimate] Crew size or duration must be positive; nothing derived.")


def cmd_productivity(args: argparse.Namespace) -> None:
    """
    Compare expected and historical rates and show the active one.
    """
    expected = args.expected
    if expected is None:
        expected = default_productivity_rate(args.unit)
        if expected is not None:
            print(f"[productivity] No expected rate given; using default for {args.unit}.")

    historical = args.historical
    if historical is None and args.task_type and args.tasks_csv:
        tasks = _load_tasks(args.tasks_csv, args.entries_csv, "productivity")
        historical = historical_productivity(args.task_type, tasks, unit=args.unit)
        if historical is None:
            print(f"[productivity] No measured {args.unit} history for {args.task_type!r}.")

    vm = ProductivityRateViewModel.for_rates(expected, historical)
    if args.custom is not None:
        vm.set_custom_rate(args.custom)

    print(f"[productivity] Mode: {vm.productivity_mode.value}")
    print(f"[productivity] Active rate: {vm.formatted_rate(args.unit)}")
    message = vm.variance_message()
    if message:
        flag = ""
        if vm.has_critical_variance:
            flag = " (critical)"
        elif vm.has_significant_variance:
            flag = " (significant)"
        print(f"[productivity] {message}{flag}")
    result = vm.validate(args.unit)
    if not result.is_valid:
        print(f"[productivity] Invalid: {result.error}")


def cmd_analytics(args: argparse.Namespace) -> None:
    """
    Summarize history for one task type.
    """
    tasks = _load_tasks(args.tasks_csv, args.entries_csv, "analytics")
    analytics = TaskTypeAnalytics.calculate(args.task_type, tasks)
    if analytics is None:
        print(f"[analytics] No completed {args.task_type!r} tasks with estimates and tracked time.")
        return

    print(f"[analytics] Task type: {analytics.task_type}")
    print(f"[analytics] Samples: {analytics.sample_count} (significant: {analytics.is_significant})")
    print(f"[analytics] Typical overrun: {analytics.typical_overrun_percentage:+.1f}%")
    print(f"[analytics] {analytics.variance_description}")
    if analytics.mean_productivity is not None:
        print(f"[analytics] Mean productivity: {analytics.mean_productivity:.2f} units/person-hr")


def cmd_kpi(args: argparse.Namespace) -> None:
    """
    Compute KPIs for a date range from task and time entry CSVs.
    """
    try:
        tasks = load_tasks_from_csv(args.tasks_csv)
        entries = load_time_entries_from_csv(args.entries_csv)
        date_range = DateRange.preset(
            args.range,
            start=_parse_datetime(args.start, "kpi") if args.start else None,
            end=_parse_datetime(args.end, "kpi") if args.end else None,
        )
    except (FileNotFoundError, ValueError) as e:
        raise SystemExit(f"[kpi] {e}")

    result = calculate_kpis(tasks, entries, date_range)

    def _fmt(value: Optional[float]) -> str:
        return "n/a" if value is None else f"{value:.1f}"

    print(f"[kpi] Range: {date_range.start.isoformat()} .. {date_range.end.isoformat()}")
    print(f"[kpi] Completed tasks in range: {result.total_completed_tasks} / {result.total_tasks}")
    print(
        f"[kpi] Efficiency score: {_fmt(result.efficiency.efficiency_score)} "
        f"(under {result.efficiency.tasks_under_estimate}, "
        f"on {result.efficiency.tasks_on_estimate}, "
        f"over {result.efficiency.tasks_over_estimate})"
    )
    print(
        f"[kpi] Accuracy score: {_fmt(result.accuracy.accuracy_score)} "
        f"(MAPE {_fmt(result.accuracy.mean_absolute_percentage_error)}%)"
    )
    print(
        f"[kpi] Utilization: {result.utilization.utilization_percentage:.1f}% of "
        f"{result.utilization.total_person_hours_available:.1f} person-hours"
    )
    print(
        f"[kpi] Health: {result.overall_health_score:.1f} "
        f"({result.health_status.value})"
    )

    if args.save_snapshot:
        history_path = Path(args.history_path).resolve()
        history = append_snapshot(create_snapshot(result), history_path)
        print(f"[kpi] Saved snapshot #{len(history)} to {history_path}")


def cmd_compare(args: argparse.Namespace) -> None:
    """
    Show metric deltas between the two most recent snapshots.
    """
    history_path = Path(args.history_path).resolve()
    try:
        history = load_snapshot_history(history_path)
    except ValueError as e:
        raise SystemExit(f"[compare] {e}")
    if len(history) < 2:
        raise SystemExit(
            f"[compare] Need at least two snapshots in {history_path}, found {len(history)}."
        )

    previous, current = history[-2], history[-1]
    changes = compare_kpis(current, previous)
    print(json.dumps(changes, indent=2, sort_keys=True))


# --- Main --------------------------------------------------------------------


def build_parser() -> argparse.ArgumentParser:
    history_default = get_config().snapshot_history_path

    parser = argparse.ArgumentParser(
        description="Task estimation CLI – work hours, crew plans, estimates, KPIs."
    )
    parser.add_argument("--log-level", default=None, help="Override TE_LOG_LEVEL.")
    subparsers = parser.add_subparsers(dest="command", required=True)

    # hours
    hours_p = subparsers.add_parser("hours", help="Available work hours until a deadline.")
    hours_p.add_argument("start", help="ISO datetime the work can start.")
    hours_p.add_argument("deadline", help="ISO datetime of the deadline.")
    hours_p.add_argument("--workday-start", type=int, default=None)
    hours_p.add_argument("--workday-end", type=int, default=None)
    hours_p.set_defaults(func=cmd_hours)

    # crew
    crew_p = subparsers.add_parser("crew", help="Minimum crew and scenarios for an effort.")
    crew_p.add_argument("effort_hours", type=float, help="Total effort in person-hours.")
    crew_p.add_argument("start", help="ISO datetime the work can start.")
    crew_p.add_argument("deadline", help="ISO datetime of the deadline.")
    crew_p.add_argument("--task-type", default=None, help="Apply this type's historical overrun.")
    crew_p.add_argument("--tasks-csv", default=None, help="Historical tasks CSV.")
    crew_p.add_argument("--entries-csv", default=None, help="Historical time entries CSV.")
    crew_p.set_defaults(func=cmd_crew)

    # estimate
    est_p = subparsers.add_parser("estimate", help="Quantity-based duration or personnel.")
    est_p.add_argument("quantity", type=float, help="Units of work.")
    est_p.add_argument("rate", type=float, help="Units per person-hour.")
    group = est_p.add_mutually_exclusive_group()
    group.add_argument("--personnel", type=int, default=None, help="Crew size -> duration.")
    group.add_argument("--duration-hours", type=float, default=None, help="Duration -> crew size.")
    est_p.set_defaults(func=cmd_estimate)

    # productivity
    prod_p = subparsers.add_parser("productivity", help="Expected vs historical rate variance.")
    prod_p.add_argument("--expected", type=float, default=None)
    prod_p.add_argument("--historical", type=float, default=None)
    prod_p.add_argument("--custom", default=None, help="Custom rate as typed by a user.")
    prod_p.add_argument("--unit", default="units")
    prod_p.add_argument("--task-type", default=None, help="Measure historical rate from this type.")
    prod_p.add_argument("--tasks-csv", default=None, help="Historical tasks CSV.")
    prod_p.add_argument("--entries-csv", default=None, help="Historical time entries CSV.")
    prod_p.set_defaults(func=cmd_productivity)

    # analytics
    an_p = subparsers.add_parser("analytics", help="Historical profile of a task type.")
    an_p.add_argument("task_type")
    an_p.add_argument("tasks_csv")
    an_p.add_argument("--entries-csv", default=None)
    an_p.set_defaults(func=cmd_analytics)

    # kpi
    kpi_p = subparsers.add_parser("kpi", help="KPIs for a date range.")
    kpi_p.add_argument("tasks_csv")
    kpi_p.add_argument("entries_csv")
    kpi_p.add_argument(
        "--range",
        default="this-week",
        help="today, this-week, this-month or custom (default: this-week).",
    )
    kpi_p.add_argument("--start", default=None, help="ISO start for --range custom.")
    kpi_p.add_argument("--end", default=None, help="ISO end for --range custom.")
    kpi_p.add_argument("--save-snapshot", action="store_true")
    kpi_p.add_argument(
        "--history-path",
        default=history_default,
        help=f"Snapshot history JSON (default: {history_default}).",
    )
    kpi_p.set_defaults(func=cmd_kpi)

    # compare
    cmp_p = subparsers.add_parser("compare", help="Delta between the last two snapshots.")
    cmp_p.add_argument(
        "--history-path",
        default=history_default,
        help=f"Snapshot history JSON (default: {history_default}).",
    )
    cmp_p.set_defaults(func=cmd_compare)

    return parser


def main(argv: list[str] | None = None) -> None:
    parser = build_parser()
    args = parser.parse_args(argv)
    configure_logging(args.log_level)
    args.func(args)


if __name__ == "__main__":
    main()
