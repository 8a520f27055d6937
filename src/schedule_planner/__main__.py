from __future__ import annotations

import argparse
import datetime as dt
import logging
import sys
from pathlib import Path

import yaml

from .blueprints import ensure_action_steps
from .dates import format_date
from .dependencies import find_cycle, get_dependency_warnings
from .editing import gesture_dates
from .errors import ContextValidationError, ScheduleStoreError
from .models import DependencyWarning, Schedule
from .parse_context import load_context
from .render_gantt import render_schedule
from .schedule import auto_shift_schedule, edit_task_dates, remove_task
from .store import ScheduleStore

logger = logging.getLogger("schedule_planner")


def _parse_date(value: str) -> dt.date:
    try:
        return dt.date.fromisoformat(value)
    except ValueError as exc:
        raise argparse.ArgumentTypeError(f"invalid date '{value}', expected YYYY-MM-DD") from exc


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="Project schedule planner",
        formatter_class=argparse.ArgumentDefaultsHelpFormatter,
    )
    parser.add_argument("--store", default="schedules", help="Directory holding schedule YAML files")
    parser.add_argument("--actor", default="local-user", help="Name recorded in the change log")
    parser.add_argument("-v", "--verbose", action="store_true", help="Enable debug logging")

    commands = parser.add_subparsers(dest="command", required=True)

    generate = commands.add_parser("generate", help="Create (or load) a schedule from a context YAML")
    generate.add_argument("context", help="Path to context YAML")

    show = commands.add_parser("show", help="List tasks of a stored schedule")
    show.add_argument("project_id")

    warnings = commands.add_parser("warnings", help="List dependency warnings and cycles")
    warnings.add_argument("project_id")

    move = commands.add_parser("move", help="Set a task's date range")
    move.add_argument("project_id")
    move.add_argument("task_id")
    move.add_argument("--start", type=_parse_date, required=True, help="New start date (YYYY-MM-DD)")
    move.add_argument("--end", type=_parse_date, required=True, help="New end date (YYYY-MM-DD)")
    move.add_argument("--auto-shift", action="store_true", help="Push dependents forward")

    drag = commands.add_parser("drag", help="Apply a drag/resize gesture expressed in days")
    drag.add_argument("project_id")
    drag.add_argument("task_id")
    drag.add_argument("mode", choices=["move", "resize-start", "resize-end"])
    drag.add_argument("delta", type=int, help="Signed number of days")
    drag.add_argument("--auto-shift", action="store_true", help="Push dependents forward")

    expand = commands.add_parser("expand", help="Generate the step plan for an action task")
    expand.add_argument("project_id")
    expand.add_argument("task_id")

    shift = commands.add_parser("shift", help="Auto-shift dependents of a task")
    shift.add_argument("project_id")
    shift.add_argument("task_id")

    delete = commands.add_parser("delete", help="Remove a task")
    delete.add_argument("project_id")
    delete.add_argument("task_id")

    render = commands.add_parser("render", help="Render a stored schedule to SVG")
    render.add_argument("project_id")
    render.add_argument("--out", default="output/schedule.svg", help="Output SVG path")
    render.add_argument("--min-date", type=_parse_date, help="Override inferred minimum date (YYYY-MM-DD)")
    render.add_argument("--max-date", type=_parse_date, help="Override inferred maximum date (YYYY-MM-DD)")
    return parser


def _print_schedule(schedule: Schedule) -> None:
    print(f"{schedule.title} [{schedule.project_id}] {format_date(schedule.start_date)} .. {format_date(schedule.end_date)}")
    for task in schedule.tasks:
        deps = ",".join(task.dependencies) or "-"
        print(
            f"  {task.id:<40} {format_date(task.start_date)} .. {format_date(task.end_date)} "
            f"{task.category:<11} {task.status:<11} deps={deps}  {task.title}"
        )


def _print_warnings(warnings: list[DependencyWarning]) -> None:
    for warning in warnings:
        print(f"  ! {warning.task_id} <- {warning.dependency_id}: {warning.message}")


def _load(store: ScheduleStore, project_id: str) -> Schedule:
    schedule = store.read(project_id)
    if schedule is None:
        raise FileNotFoundError(project_id)
    return schedule


def _run(args: argparse.Namespace, store: ScheduleStore) -> int:
    if args.command == "generate":
        context = load_context(args.context)
        schedule = store.ensure_schedule(context)
        _print_schedule(schedule)
        return 0

    schedule = _load(store, args.project_id)

    if args.command == "show":
        _print_schedule(schedule)
        return 0

    if args.command == "warnings":
        warnings = get_dependency_warnings(schedule.tasks)
        _print_warnings(warnings)
        cycle = find_cycle(schedule.tasks)
        if cycle:
            print(f"  ! dependency cycle: {cycle}")
        return 1 if warnings or cycle else 0

    if args.command in ("move", "drag"):
        task = schedule.get_task(args.task_id)
        if task is None:
            print(f"Error: unknown task '{args.task_id}'", file=sys.stderr)
            return 2
        if args.command == "move":
            start, end = args.start, args.end
        else:
            start, end = gesture_dates(task, args.mode, args.delta)
        schedule, result = edit_task_dates(
            schedule, args.task_id, start, end, auto_shift=args.auto_shift, actor=args.actor
        )
        schedule = store.write(schedule)
        if result.shifted_task_ids:
            print(f"Shifted: {', '.join(result.shifted_task_ids)}")
        _print_warnings(result.warnings)
        return 0

    if args.command == "expand":
        schedule = store.write(ensure_action_steps(schedule, args.task_id, actor=args.actor))
        _print_schedule(schedule)
        return 0

    if args.command == "shift":
        schedule, result = auto_shift_schedule(schedule, args.task_id, actor=args.actor)
        store.write(schedule)
        print(f"Shifted: {', '.join(result.shifted_task_ids) or '-'}")
        return 0

    if args.command == "delete":
        store.write(remove_task(schedule, args.task_id, actor=args.actor))
        return 0

    if args.command == "render":
        render_schedule(schedule, args.out, min_date=args.min_date, max_date=args.max_date)
        print(Path(args.out).resolve())
        return 0

    return 2  # pragma: no cover - argparse rejects unknown commands


def main(argv: list[str] | None = None) -> int:
    parser = _build_parser()
    args = parser.parse_args(argv)
    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.WARNING,
        format="%(levelname)s %(name)s: %(message)s",
    )

    try:
        store = ScheduleStore(args.store)
        return _run(args, store)
    except (yaml.YAMLError, ContextValidationError, ScheduleStoreError) as exc:
        print(f"Error: {exc}", file=sys.stderr)
        return 2
    except FileNotFoundError as exc:
        print(f"Error: not found: {exc.filename or exc}", file=sys.stderr)
        return 1
    except Exception as exc:  # Unexpected
        logger.exception("Unexpected error")
        print(f"Unexpected error: {exc}", file=sys.stderr)
        return 1


if __name__ == "__main__":  # pragma: no cover
    sys.exit(main())
