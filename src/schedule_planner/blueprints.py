"""
Action-step blueprints.

A parent action task (typically a maintenance action) is expanded into a
detailed, linearly chained plan. Selection is two steps: `classify_action`
derives a `BlueprintKey` from the title, and `BLUEPRINTS` maps that key to
the step templates.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime
from typing import Literal

from .dates import add_days, utcnow
from .models import Schedule, Task, TaskCategory
from .schedule import DEFAULT_ACTOR, ChangeRequest, append_change_log, with_tasks

logger = logging.getLogger(__name__)

BlueprintKey = Literal["lighting", "painting", "generic"]


@dataclass(frozen=True)
class StepTemplate:
    """One generated step; `start_offset_days` is relative to the parent's start and may be negative."""

    title: str
    category: TaskCategory
    phase: str
    duration_days: int
    start_offset_days: int


# Checked in order; the first key with a matching keyword wins.
CLASSIFICATION_KEYWORDS: tuple[tuple[BlueprintKey, tuple[str, ...]], ...] = (
    ("lighting", ("lamp", "belys", "armatur")),
    ("painting", ("måla", "vägg", "tak", "färg")),
)

BLUEPRINTS: dict[BlueprintKey, tuple[StepTemplate, ...]] = {
    "lighting": (
        StepTemplate("Inventera armaturer och placering", "pre", "Inventering", 4, -14),
        StepTemplate("Speca armaturtyp och styrning", "pre", "Projektering", 5, -10),
        StepTemplate("Beställning och leveransplan", "pre", "Inköp", 6, -8),
        StepTemplate("Demontering och förberedande elarbete", "build", "Utförande", 5, 0),
        StepTemplate("Montering etapp 1", "build", "Utförande", 7, 4),
        StepTemplate("Montering etapp 2", "build", "Utförande", 7, 8),
        StepTemplate("Funktionsprov och injustering", "post", "Kontroll", 3, 14),
        StepTemplate("Slutkontroll och dokumentation", "post", "Överlämning", 3, 16),
    ),
    "painting": (
        StepTemplate("Inventera ytor och underlag", "pre", "Inventering", 4, -12),
        StepTemplate("Material- och färgsystemval", "pre", "Projektering", 5, -9),
        StepTemplate("Etablering och skyddstäckning", "build", "Utförande", 3, 0),
        StepTemplate("Spackling och förarbete", "build", "Utförande", 5, 2),
        StepTemplate("Målning etapp 1", "build", "Utförande", 6, 5),
        StepTemplate("Målning etapp 2", "build", "Utförande", 6, 9),
        StepTemplate("Efterkontroll och bättring", "post", "Kontroll", 3, 14),
        StepTemplate("Besiktning och överlämning", "post", "Överlämning", 3, 16),
    ),
    "generic": (
        StepTemplate("Inventering och omfattningskontroll", "pre", "Inventering", 4, -14),
        StepTemplate("Teknisk planering och specifikation", "pre", "Projektering", 6, -11),
        StepTemplate("Inköp och leveransplanering", "pre", "Inköp", 7, -9),
        StepTemplate("Utförande etapp 1", "build", "Utförande", 7, 0),
        StepTemplate("Utförande etapp 2", "build", "Utförande", 8, 5),
        StepTemplate("Kvalitetskontroll", "post", "Kontroll", 3, 14),
        StepTemplate("Dokumentation och överlämning", "post", "Överlämning", 4, 16),
    ),
}


def classify_action(title: str) -> BlueprintKey:
    """Case-insensitive keyword match of `title` against `CLASSIFICATION_KEYWORDS`."""
    lowered = (title or "").lower()
    for key, keywords in CLASSIFICATION_KEYWORDS:
        if any(keyword in lowered for keyword in keywords):
            return key
    return "generic"


def blueprint_for(title: str) -> tuple[StepTemplate, ...]:
    return BLUEPRINTS[classify_action(title)]


def build_action_steps(parent: Task, project_id: str, now: datetime | None = None) -> list[Task]:
    """Instantiate the blueprint for `parent` as a linear chain of `action_step` tasks."""

    now = now or utcnow()
    steps: list[Task] = []
    for index, template in enumerate(blueprint_for(parent.title)):
        start = add_days(parent.start_date, template.start_offset_days)
        end = add_days(start, max(1, template.duration_days) - 1)
        steps.append(
            Task(
                id=f"{project_id}-{parent.id}-step-{index + 1}",
                project_id=project_id,
                title=template.title,
                category=template.category,
                phase=template.phase,
                start_date=start,
                end_date=end,
                status="planned",
                dependencies=(steps[-1].id,) if steps else (),
                parent_action_id=parent.id,
                kind="action_step",
                owner_role=parent.owner_role,
                source="auto",
                updated_at=now,
            )
        )
    return steps


def ensure_action_steps(
    schedule: Schedule,
    action_task_id: str,
    actor: str = DEFAULT_ACTOR,
    now: datetime | None = None,
) -> Schedule:
    """
    Make sure `action_task_id` has a detailed step plan.

    Safe to call repeatedly: when the parent is unknown or any task already
    points at it through `parent_action_id`, the schedule is returned as is.
    """

    parent = schedule.get_task(action_task_id)
    if parent is None:
        logger.debug("No task %s in %s; nothing to expand", action_task_id, schedule.project_id)
        return schedule
    if any(task.parent_action_id == action_task_id for task in schedule.tasks):
        return schedule

    now = now or utcnow()
    steps = build_action_steps(parent, schedule.project_id, now=now)
    if not steps:
        return schedule

    logger.info(
        "Expanded %s into %s steps using the %s blueprint",
        action_task_id,
        len(steps),
        classify_action(parent.title),
    )
    next_schedule = with_tasks(schedule, schedule.tasks + tuple(steps))
    return append_change_log(
        next_schedule,
        [ChangeRequest(action_task_id, "action_step_plan_created", "saknas", f"{len(steps)} steg", actor)],
        now=now,
    )


def action_steps(tasks: tuple[Task, ...] | list[Task], action_task_id: str) -> list[Task]:
    """The steps generated for one action, in schedule order (the per-action sub-view)."""
    return [task for task in tasks if task.parent_action_id == action_task_id]
