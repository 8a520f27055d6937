from __future__ import annotations

import logging
from dataclasses import dataclass, replace
from datetime import date, datetime
from typing import Any, Iterable, Sequence

from .dates import clamp_range, format_date, max_date, min_date, parse_date, utcnow
from .dependencies import auto_shift_dependents, get_dependency_warnings
from .editing import apply_date_change
from .models import (
    GROUP_BYS,
    OWNER_ROLES,
    TASK_CATEGORIES,
    TASK_STATUSES,
    ZOOMS,
    ChangeLogEntry,
    DateChangeResult,
    Schedule,
    Task,
    ViewSettings,
    coerce_choice,
)

logger = logging.getLogger(__name__)

CHANGE_LOG_LIMIT = 300
DEFAULT_ACTOR = "local-user"

_TEXT_FIELDS = ("title", "phase", "notes")
_LOGGED_FIELDS = ("title", "phase", "status")


@dataclass(frozen=True)
class ChangeRequest:
    """A change-log entry before it is stamped with an id and timestamp."""

    task_id: str
    field: str
    from_value: str
    to_value: str
    actor: str = DEFAULT_ACTOR


def schedule_bounds(tasks: Iterable[Task], fallback_start: date, fallback_end: date) -> tuple[date, date]:
    """Min start and max end over `tasks`, or the fallbacks when there are none."""

    task_list = list(tasks)
    if not task_list:
        return fallback_start, fallback_end
    start = task_list[0].start_date
    end = task_list[0].end_date
    for task in task_list[1:]:
        start = min_date(start, task.start_date)
        end = max_date(end, task.end_date)
    return start, end


def with_tasks(schedule: Schedule, tasks: Iterable[Task]) -> Schedule:
    """Replace the task collection and recompute the derived bounds."""

    task_tuple = tuple(tasks)
    start, end = schedule_bounds(task_tuple, schedule.start_date, schedule.end_date)
    return replace(schedule, tasks=task_tuple, start_date=start, end_date=end)


def append_change_log(
    schedule: Schedule,
    entries: Sequence[ChangeRequest],
    now: datetime | None = None,
) -> Schedule:
    """Prepend `entries` (in the given order) and trim the log to `CHANGE_LOG_LIMIT`."""

    if not entries:
        return schedule
    now = now or utcnow()
    stamp = int(now.timestamp() * 1000)
    stamped = tuple(
        ChangeLogEntry(
            id=f"{entry.task_id}-{entry.field}-{stamp}-{index}",
            task_id=entry.task_id,
            field=entry.field,
            from_value=entry.from_value,
            to_value=entry.to_value,
            timestamp=now,
            actor=entry.actor,
        )
        for index, entry in enumerate(entries)
    )
    return replace(schedule, change_log=(stamped + schedule.change_log)[:CHANGE_LOG_LIMIT])


def _date_range_label(start: date, end: date) -> str:
    return f"{format_date(start)} -> {format_date(end)}"


def add_task(schedule: Schedule, task: Task, actor: str = DEFAULT_ACTOR, now: datetime | None = None) -> Schedule:
    """Append `task` (dates clamped) and log its creation."""

    clamped = clamp_range(task.start_date, task.end_date)
    task = replace(task, project_id=schedule.project_id, start_date=clamped.start, end_date=clamped.end)
    next_schedule = with_tasks(schedule, schedule.tasks + (task,))
    logger.info("Added task %s to %s", task.id, schedule.project_id)
    return append_change_log(
        next_schedule,
        [ChangeRequest(task.id, "task_created", "-", task.title, actor)],
        now=now,
    )


def create_manual_task(
    schedule: Schedule,
    title: str = "Ny aktivitet",
    actor: str = DEFAULT_ACTOR,
    now: datetime | None = None,
) -> Schedule:
    """Add a one-day planning task at the schedule's current end date."""

    now = now or utcnow()
    task = Task(
        id=f"{schedule.project_id}-manual-{int(now.timestamp() * 1000)}",
        project_id=schedule.project_id,
        title=title,
        category="pre",
        phase="Planering",
        start_date=schedule.end_date,
        end_date=schedule.end_date,
        status="planned",
        kind="pipeline",
        source="manual",
        updated_at=now,
    )
    return add_task(schedule, task, actor=actor, now=now)


def remove_task(schedule: Schedule, task_id: str, actor: str = DEFAULT_ACTOR, now: datetime | None = None) -> Schedule:
    """Delete a task and strip its id from every remaining dependency list."""

    task = schedule.get_task(task_id)
    if task is None:
        return schedule
    remaining = [
        replace(item, dependencies=tuple(dep for dep in item.dependencies if dep != task_id))
        if task_id in item.dependencies
        else item
        for item in schedule.tasks
        if item.id != task_id
    ]
    logger.info("Removed task %s from %s", task_id, schedule.project_id)
    return append_change_log(
        with_tasks(schedule, remaining),
        [ChangeRequest(task_id, "task_deleted", task.title, "deleted", actor)],
        now=now,
    )


def update_task(
    schedule: Schedule,
    task_id: str,
    actor: str = DEFAULT_ACTOR,
    now: datetime | None = None,
    **changes: Any,
) -> Schedule:
    """
    Edit a task's user-editable fields.

    Accepted keys: title, phase, notes, status, category, owner_role,
    start_date, end_date, dependencies. Unknown keys are ignored, invalid
    enum values fall back to the task's current value and dates are clamped.
    Title, phase, status and date range edits are recorded in the change log.
    """

    task = schedule.get_task(task_id)
    if task is None:
        return schedule
    now = now or utcnow()

    fields: dict[str, Any] = {}
    for key in _TEXT_FIELDS:
        if key in changes and isinstance(changes[key], str):
            fields[key] = changes[key]
    if "status" in changes:
        fields["status"] = coerce_choice(changes["status"], TASK_STATUSES, task.status)
    if "category" in changes:
        fields["category"] = coerce_choice(changes["category"], TASK_CATEGORIES, task.category)
    if changes.get("owner_role") in OWNER_ROLES:
        fields["owner_role"] = changes["owner_role"]
    if "dependencies" in changes:
        raw = changes["dependencies"] or ()
        fields["dependencies"] = tuple(dep for dep in raw if isinstance(dep, str) and dep != task_id)

    start = parse_date(changes.get("start_date", task.start_date), task.start_date)
    end = parse_date(changes.get("end_date", task.end_date), task.end_date)
    clamped = clamp_range(start, end)
    fields["start_date"] = clamped.start
    fields["end_date"] = clamped.end

    fields = {key: value for key, value in fields.items() if getattr(task, key) != value}
    if not fields:
        return schedule
    updated = replace(task, source="manual", updated_at=now, **fields)

    requests = [
        ChangeRequest(task_id, key, str(getattr(task, key)), str(getattr(updated, key)), actor)
        for key in _LOGGED_FIELDS
        if getattr(task, key) != getattr(updated, key)
    ]
    if (task.start_date, task.end_date) != (updated.start_date, updated.end_date):
        requests.append(
            ChangeRequest(
                task_id,
                "date_range",
                _date_range_label(task.start_date, task.end_date),
                _date_range_label(updated.start_date, updated.end_date),
                actor,
            )
        )

    next_schedule = with_tasks(schedule, (updated if item.id == task_id else item for item in schedule.tasks))
    return append_change_log(next_schedule, requests, now=now)


def apply_view_settings(schedule: Schedule, **settings: Any) -> Schedule:
    """Update zoom/show_weekends/group_by, coercing unknown values to defaults."""

    current = schedule.view_settings
    view = ViewSettings(
        zoom=coerce_choice(settings.get("zoom", current.zoom), ZOOMS, "month"),
        show_weekends=bool(settings.get("show_weekends", current.show_weekends)),
        group_by=coerce_choice(settings.get("group_by", current.group_by), GROUP_BYS, "phase"),
    )
    return replace(schedule, view_settings=view)


def edit_task_dates(
    schedule: Schedule,
    task_id: str,
    start: date,
    end: date,
    auto_shift: bool = False,
    actor: str = DEFAULT_ACTOR,
    now: datetime | None = None,
) -> tuple[Schedule, DateChangeResult]:
    """
    Apply an interactive date edit to a whole schedule.

    Returns the new schedule (bounds recomputed, change log extended) along
    with the raw edit result so callers can surface warnings.
    """

    now = now or utcnow()
    previous = schedule.get_task(task_id)
    result = apply_date_change(schedule.tasks, task_id, start, end, auto_shift_dependents=auto_shift, now=now)
    if previous is None:
        return schedule, result

    changed = next(task for task in result.tasks if task.id == task_id)
    requests: list[ChangeRequest] = []
    if (changed.start_date, changed.end_date) != (previous.start_date, previous.end_date):
        requests.append(
            ChangeRequest(
                task_id,
                "date_range",
                _date_range_label(previous.start_date, previous.end_date),
                _date_range_label(changed.start_date, changed.end_date),
                actor,
            )
        )
    requests.extend(
        ChangeRequest(shifted_id, "dependency_auto_shift", "dependency warning", "auto-shifted", actor)
        for shifted_id in result.shifted_task_ids
    )
    next_schedule = append_change_log(with_tasks(schedule, result.tasks), requests, now=now)
    if result.warnings:
        logger.info("Date edit on %s left %s dependency warnings", task_id, len(result.warnings))
    return next_schedule, result


def auto_shift_schedule(
    schedule: Schedule,
    task_id: str,
    actor: str = DEFAULT_ACTOR,
    now: datetime | None = None,
) -> tuple[Schedule, DateChangeResult]:
    """Re-run auto-shift from `task_id` without moving the task itself."""

    now = now or utcnow()
    before = {task.id: task for task in schedule.tasks}
    tasks = auto_shift_dependents(schedule.tasks, task_id, now=now)
    shifted_task_ids = [
        task.id
        for task in tasks
        if (before[task.id].start_date, before[task.id].end_date) != (task.start_date, task.end_date)
    ]
    result = DateChangeResult(
        tasks=tasks,
        warnings=get_dependency_warnings(tasks),
        shifted_task_ids=shifted_task_ids,
    )
    if not shifted_task_ids:
        return schedule, result

    requests = [
        ChangeRequest(shifted_id, "dependency_auto_shift", "dependency warning", "auto-shifted", actor)
        for shifted_id in shifted_task_ids
    ]
    return append_change_log(with_tasks(schedule, tasks), requests, now=now), result
