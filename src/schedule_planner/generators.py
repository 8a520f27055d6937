from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import MAXYEAR, MINYEAR, date, datetime
from typing import Sequence

from .dates import add_days, today, utcnow
from .models import (
    Audience,
    MaintenanceAction,
    OwnerRole,
    Schedule,
    ScheduleProjectContext,
    Task,
    TaskCategory,
    TaskStatus,
    ViewSettings,
)
from .schedule import schedule_bounds

logger = logging.getLogger(__name__)

_SWEDISH_LETTERS = str.maketrans({"å": "{", "ä": "|", "ö": "}"})

MAINTENANCE_PLAN_PROJECT_ID = "brf-maintenance-plan"
"""Project id of the association-wide maintenance plan; it carries no pipeline tasks."""

WARRANTY_PHASE = "Warranty"
WARRANTY_WAIT_DAYS = 365
DEFAULT_LEAD_DAYS = 30

MAINTENANCE_ANCHOR_MONTH = 3
MAINTENANCE_ANCHOR_DAY = 15
MAINTENANCE_STAGGER_DAYS = 21
# Long enough to stay readable in a multi-year overview.
MAINTENANCE_DURATION_DAYS = 44

_DONE_STATUSES = {"genomförd", "completed"}
_BLOCKED_STATUSES = {"eftersatt", "overdue"}


@dataclass(frozen=True)
class PipelineStep:
    title: str
    category: TaskCategory
    phase: str
    duration_days: int


PIPELINE_STEPS: tuple[PipelineStep, ...] = (
    PipelineStep("Behovsanalys och scope", "pre", "Behovsanalys", 14),
    PipelineStep("Budget och finansiering", "pre", "Budget", 14),
    PipelineStep("Upphandling och anbudsunderlag", "pre", "Procurement", 21),
    PipelineStep("Kontraktering", "pre", "Avtal", 14),
    PipelineStep("Planering och tillstånd", "pre", "Planering", 21),
    PipelineStep("Etablering och startmöte", "build", "Etablering", 7),
    PipelineStep("Genomförande etapp 1", "build", "Execution", 28),
    PipelineStep("Genomförande etapp 2", "build", "Execution", 28),
    PipelineStep("Färdigställande", "build", "Execution", 14),
    PipelineStep("Slutbesiktning", "post", "Inspection", 5),
    PipelineStep("Dokumentationsöverlämning", "post", "Handover", 7),
    PipelineStep("Garantikontroll 12 månader", "post", WARRANTY_PHASE, 3),
)


def owner_role_for(audience: Audience) -> OwnerRole:
    return "brf" if audience == "brf" else "privatperson"


def build_pipeline_tasks(
    project_id: str,
    audience: Audience,
    base_start: date,
    now: datetime | None = None,
) -> list[Task]:
    """
    Emit the fixed 12-step project pipeline starting at `base_start`.

    Steps form a strict chain: each depends on its predecessor and starts the
    day after it ends. The warranty check is the exception: it waits
    `WARRANTY_WAIT_DAYS` after the handover task ends and does not advance the
    cursor for anything generated after it.
    """

    now = now or utcnow()
    owner_role = owner_role_for(audience)
    tasks: list[Task] = []
    cursor = base_start

    for index, step in enumerate(PIPELINE_STEPS):
        if step.phase == WARRANTY_PHASE and tasks:
            start = add_days(tasks[-1].end_date, WARRANTY_WAIT_DAYS)
        else:
            start = cursor
        end = add_days(start, max(1, step.duration_days) - 1)
        dependencies = (tasks[-1].id,) if tasks else ()

        tasks.append(
            Task(
                id=f"{project_id}-base-{index + 1}",
                project_id=project_id,
                title=step.title,
                category=step.category,
                phase=step.phase,
                start_date=start,
                end_date=end,
                status="planned",
                dependencies=dependencies,
                kind="pipeline",
                owner_role=owner_role,
                source="auto",
                updated_at=now,
            )
        )

        if step.phase != WARRANTY_PHASE:
            cursor = add_days(end, 1)

    return tasks


def map_maintenance_status(status: str | None) -> TaskStatus:
    value = (status or "").strip().lower()
    if value in _DONE_STATUSES:
        return "done"
    if value in _BLOCKED_STATUSES:
        return "blocked"
    return "planned"


def build_maintenance_tasks(
    project_id: str,
    actions: Sequence[MaintenanceAction],
    owner_role: OwnerRole,
    now: datetime | None = None,
) -> list[Task]:
    """
    Produce one maintenance task per action.

    Actions are ordered by planned year, then title. Within a year tasks start
    at March 15 and are staggered by `MAINTENANCE_STAGGER_DAYS` so bars do not
    overlap completely in a calendar view.
    """

    if not actions:
        return []

    now = now or utcnow()
    current_year = today().year
    per_year: dict[int, int] = {}
    ordered = sorted(
        actions,
        key=lambda action: (_action_year(action, current_year), _swedish_sort_key(action.title)),
    )

    tasks: list[Task] = []
    for index, action in enumerate(ordered):
        year = _action_year(action, current_year)
        offset = per_year.get(year, 0)
        per_year[year] = offset + 1

        anchor = date(year, MAINTENANCE_ANCHOR_MONTH, MAINTENANCE_ANCHOR_DAY)
        start = add_days(anchor, offset * MAINTENANCE_STAGGER_DAYS)
        end = add_days(start, MAINTENANCE_DURATION_DAYS)
        tasks.append(
            Task(
                id=f"{project_id}-maint-{index + 1}",
                project_id=project_id,
                title=action.title,
                category="maintenance",
                phase=f"Underhåll {year}",
                start_date=start,
                end_date=end,
                status=map_maintenance_status(action.status),
                dependencies=(),
                kind="maintenance_action",
                owner_role=owner_role,
                notes=action.details,
                tags=(action.category,) if action.category else (),
                source="auto",
                updated_at=now,
            )
        )
    return tasks


def _action_year(action: MaintenanceAction, current_year: int) -> int:
    year = action.planned_year
    if year is None or not MINYEAR <= year <= MAXYEAR:
        return current_year
    return year


def _swedish_sort_key(title: str) -> str:
    # å, ä, ö sort after z and in that order.
    return title.lower().translate(_SWEDISH_LETTERS)


def fallback_start_date(context: ScheduleProjectContext) -> date:
    """Snapshot start wins over the request's start; otherwise a month from today."""
    if context.desired_start is not None:
        return context.desired_start
    if context.request_desired_start is not None:
        return context.request_desired_start
    return add_days(today(), DEFAULT_LEAD_DAYS)


def generate_default_schedule(context: ScheduleProjectContext, now: datetime | None = None) -> Schedule:
    """Synthesize a fresh schedule for `context`."""

    now = now or utcnow()
    base_start = fallback_start_date(context)
    owner_role = owner_role_for(context.audience)

    pipeline = build_pipeline_tasks(context.project_id, context.audience, base_start, now=now)
    actions = context.maintenance_actions or context.request_actions
    maintenance = build_maintenance_tasks(context.project_id, actions, owner_role, now=now)

    if context.project_id == MAINTENANCE_PLAN_PROJECT_ID and maintenance:
        tasks = maintenance
    else:
        tasks = pipeline + maintenance

    start, end = schedule_bounds(tasks, base_start, add_days(base_start, 90))
    logger.info(
        "Generated schedule for %s: %s pipeline, %s maintenance tasks",
        context.project_id,
        len(tasks) - len(maintenance),
        len(maintenance),
    )
    return Schedule(
        id=f"schedule-{context.project_id}",
        project_id=context.project_id,
        title=context.title,
        audience=context.audience,
        start_date=start,
        end_date=end,
        tasks=tuple(tasks),
        view_settings=ViewSettings(),
        change_log=(),
    )
