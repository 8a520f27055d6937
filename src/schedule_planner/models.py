from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date, datetime
from typing import Literal

from .dates import duration_days, utcnow


TaskCategory = Literal["pre", "build", "post", "maintenance"]
"""Coarse stage classification: before, during and after construction, or recurring upkeep."""

TaskStatus = Literal["planned", "in_progress", "blocked", "done"]

TaskKind = Literal["pipeline", "maintenance_action", "action_step"]
"""Which generator (or user action) a task belongs to."""

TaskSource = Literal["auto", "manual"]
"""Provenance: generated by the engine or touched by a user edit."""

OwnerRole = Literal["brf", "privatperson", "entreprenor", "consultant"]

Audience = Literal["brf", "privat"]
"""Originating party type: housing association or private individual."""

Zoom = Literal["week", "month", "quarter", "year"]

GroupBy = Literal["phase", "category", "project"]

DragMode = Literal["move", "resize-start", "resize-end"]

TASK_CATEGORIES: tuple[str, ...] = ("pre", "build", "post", "maintenance")
TASK_STATUSES: tuple[str, ...] = ("planned", "in_progress", "blocked", "done")
TASK_KINDS: tuple[str, ...] = ("pipeline", "maintenance_action", "action_step")
OWNER_ROLES: tuple[str, ...] = ("brf", "privatperson", "entreprenor", "consultant")
ZOOMS: tuple[str, ...] = ("week", "month", "quarter", "year")
GROUP_BYS: tuple[str, ...] = ("phase", "category", "project")


@dataclass(frozen=True)
class Task:
    """A unit of planned work with an inclusive date range."""

    id: str
    project_id: str
    title: str
    category: TaskCategory
    phase: str
    start_date: date
    end_date: date
    status: TaskStatus = "planned"
    dependencies: tuple[str, ...] = ()
    parent_action_id: str | None = None
    kind: TaskKind = "pipeline"
    owner_role: OwnerRole | None = None
    notes: str | None = None
    tags: tuple[str, ...] = ()
    source: TaskSource = "auto"
    updated_at: datetime = field(default_factory=utcnow)

    @property
    def duration_days(self) -> int:
        """Inclusive duration; a single-day task lasts 1 day."""
        return duration_days(self.start_date, self.end_date)


@dataclass(frozen=True)
class ViewSettings:
    """Presentation preferences; they never influence scheduling."""

    zoom: Zoom = "month"
    show_weekends: bool = False
    group_by: GroupBy = "phase"


@dataclass(frozen=True)
class ChangeLogEntry:
    """Immutable audit record of one field-level edit."""

    id: str
    task_id: str
    field: str
    from_value: str
    to_value: str
    timestamp: datetime
    actor: str


@dataclass(frozen=True)
class Schedule:
    """
    Aggregate root for one project.

    `start_date`/`end_date` are derived from `tasks`; use the helpers in
    `schedule_planner.schedule` to mutate so the bounds stay in sync.
    `change_log` is ordered most-recent-first.
    """

    id: str
    project_id: str
    title: str
    audience: Audience
    start_date: date
    end_date: date
    tasks: tuple[Task, ...] = ()
    view_settings: ViewSettings = field(default_factory=ViewSettings)
    change_log: tuple[ChangeLogEntry, ...] = ()

    def get_task(self, task_id: str) -> Task | None:
        for task in self.tasks:
            if task.id == task_id:
                return task
        return None


@dataclass(frozen=True)
class MaintenanceAction:
    """Externally supplied maintenance action (e.g. from a housing association's plan)."""

    title: str
    planned_year: int | None = None
    category: str | None = None
    status: str | None = None
    details: str | None = None
    id: str | None = None


@dataclass(frozen=True)
class ScheduleProjectContext:
    """Read-only seed used once to generate a schedule."""

    project_id: str
    title: str
    audience: Audience = "privat"
    desired_start: date | None = None
    request_desired_start: date | None = None
    maintenance_actions: tuple[MaintenanceAction, ...] = ()
    request_actions: tuple[MaintenanceAction, ...] = ()


@dataclass(frozen=True)
class DependencyWarning:
    task_id: str
    dependency_id: str
    message: str


@dataclass(frozen=True)
class DateChangeResult:
    """Outcome of an interactive date edit."""

    tasks: list[Task]
    warnings: list[DependencyWarning]
    shifted_task_ids: list[str] = field(default_factory=list)


@dataclass(frozen=True)
class Cycle:
    """Represents a detected dependency cycle for reporting."""

    path: list[str]

    def __str__(self) -> str:  # pragma: no cover - simple formatting
        return " -> ".join(self.path)


def coerce_choice(value: object, allowed: tuple[str, ...], default: str) -> str:
    """Return `value` when it is one of `allowed`, otherwise `default`."""
    if isinstance(value, str) and value in allowed:
        return value
    return default
