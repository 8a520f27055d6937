from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date
from typing import Literal

from .models import Schedule, Task

RowType = Literal["group", "bar"]
"""Allowed render row types: group heading or task bar."""


@dataclass
class RenderRow:
    """
    Flattened view of a schedule used by renderers.

    Only the fields relevant to drawing are kept: positional order,
    indentation level, row type, grouping and date boundaries.
    """

    order: int
    indent: int
    node_type: RowType
    node_id: str
    name: str
    group: str
    category: str | None = None
    status: str | None = None
    depends_on: list[str] = field(default_factory=list)
    start_date: date | None = None
    finish_date: date | None = None


def group_key(task: Task, schedule: Schedule) -> str:
    group_by = schedule.view_settings.group_by
    if group_by == "category":
        return task.category
    if group_by == "project":
        return schedule.title
    return task.phase or "-"


def to_render_rows(schedule: Schedule) -> list[RenderRow]:
    """
    Convert a schedule into a flat list of render rows with indentation.

    Group headings (by `view_settings.group_by`) are emitted in order of first
    appearance, followed by their tasks in schedule order. Action steps are
    listed directly under their parent action, one level deeper; steps whose
    parent is gone are grouped like ordinary tasks.
    """

    task_ids = {task.id for task in schedule.tasks}
    steps_by_parent: dict[str, list[Task]] = {}
    top_level: list[Task] = []
    for task in schedule.tasks:
        if task.parent_action_id and task.parent_action_id in task_ids:
            steps_by_parent.setdefault(task.parent_action_id, []).append(task)
        else:
            top_level.append(task)

    groups: dict[str, list[Task]] = {}
    for task in top_level:
        groups.setdefault(group_key(task, schedule), []).append(task)

    rows: list[RenderRow] = []
    order = 0
    for name, tasks in groups.items():
        rows.append(RenderRow(order=order, indent=0, node_type="group", node_id=f"group:{name}", name=name, group=name))
        order += 1
        for task in tasks:
            order = _append_task(task, rows, order, indent=1, group=name, steps_by_parent=steps_by_parent)
    return rows


def _append_task(
    task: Task,
    rows: list[RenderRow],
    order: int,
    indent: int,
    group: str,
    steps_by_parent: dict[str, list[Task]],
) -> int:
    """Append the task and its generated steps (if any); return updated order counter."""

    rows.append(
        RenderRow(
            order=order,
            indent=indent,
            node_type="bar",
            node_id=task.id,
            name=task.title,
            group=group,
            category=task.category,
            status=task.status,
            depends_on=list(task.dependencies),
            start_date=task.start_date,
            finish_date=task.end_date,
        )
    )
    order += 1
    for step in steps_by_parent.get(task.id, []):
        order = _append_task(step, rows, order, indent + 1, group, steps_by_parent)
    return order
