from __future__ import annotations

import logging
from dataclasses import replace
from datetime import date, datetime
from typing import Sequence

from . import dependencies
from .dates import DateRange, add_days, clamp_range, utcnow
from .dependencies import get_dependency_warnings
from .models import DateChangeResult, DragMode, Task

logger = logging.getLogger(__name__)


def apply_date_change(
    tasks: Sequence[Task],
    task_id: str,
    proposed_start: date,
    proposed_end: date,
    auto_shift_dependents: bool = False,
    now: datetime | None = None,
) -> DateChangeResult:
    """
    Commit a new date range for one task and report the consequences.

    The range is clamped so end >= start, the task is marked as manually
    edited, and, when requested, dependents are auto-shifted. Warnings are
    computed over the final task set. An unknown `task_id` leaves the tasks
    untouched but still reports the current warnings.
    """

    now = now or utcnow()
    clamped = clamp_range(proposed_start, proposed_end)
    next_tasks = [
        replace(task, start_date=clamped.start, end_date=clamped.end, source="manual", updated_at=now)
        if task.id == task_id
        else task
        for task in tasks
    ]

    shifted_task_ids: list[str] = []
    if auto_shift_dependents:
        before = {task.id: task for task in next_tasks}
        next_tasks = dependencies.auto_shift_dependents(next_tasks, task_id, now=now)
        shifted_task_ids = [
            task.id
            for task in next_tasks
            if task.id in before
            and (before[task.id].start_date != task.start_date or before[task.id].end_date != task.end_date)
        ]
        if shifted_task_ids:
            logger.debug("Date change on %s shifted %s dependents", task_id, len(shifted_task_ids))

    return DateChangeResult(
        tasks=next_tasks,
        warnings=get_dependency_warnings(next_tasks),
        shifted_task_ids=shifted_task_ids,
    )


def gesture_dates(task: Task, mode: DragMode | str, delta_days: int) -> DateRange:
    """
    Translate a drag/resize gesture into a clamped proposed range.

    "move" shifts both ends, "resize-start" only the start and "resize-end"
    only the end. Unknown modes are treated as "move".
    """

    start, end = task.start_date, task.end_date
    if mode == "resize-start":
        start = add_days(start, delta_days)
    elif mode == "resize-end":
        end = add_days(end, delta_days)
    else:
        start = add_days(start, delta_days)
        end = add_days(end, delta_days)
    return clamp_range(start, end)


def apply_gesture(
    tasks: Sequence[Task],
    task_id: str,
    mode: DragMode | str,
    delta_days: int,
    auto_shift_dependents: bool = False,
    now: datetime | None = None,
) -> DateChangeResult:
    target = next((task for task in tasks if task.id == task_id), None)
    if target is None:
        return DateChangeResult(tasks=list(tasks), warnings=get_dependency_warnings(tasks))
    proposed = gesture_dates(target, mode, delta_days)
    return apply_date_change(
        tasks,
        task_id,
        proposed.start,
        proposed.end,
        auto_shift_dependents=auto_shift_dependents,
        now=now,
    )
