from __future__ import annotations

import datetime as _dt
import logging
from typing import Any, Mapping

from .dates import add_days, clamp_range, format_date, parse_date, today, utcnow
from .models import (
    GROUP_BYS,
    OWNER_ROLES,
    TASK_CATEGORIES,
    TASK_KINDS,
    TASK_STATUSES,
    Audience,
    ChangeLogEntry,
    Schedule,
    Task,
    ViewSettings,
    coerce_choice,
)
from .schedule import CHANGE_LOG_LIMIT, schedule_bounds

logger = logging.getLogger(__name__)

DEFAULT_END_OFFSET_DAYS = 7
_PERSISTED_ZOOMS = ("week", "month", "year")


def normalize_task(data: Mapping[str, Any], project_id: str, fallback_date: _dt.date) -> Task:
    """
    Build a well-typed Task from a loosely-typed mapping.

    Never raises: bad dates fall back to `fallback_date` (start) and start + 7
    days (end), unknown enum values to their defaults, and non-string
    dependency entries are dropped.
    """

    start = parse_date(data.get("startDate"), fallback_date)
    end = parse_date(data.get("endDate"), add_days(start, DEFAULT_END_OFFSET_DAYS))
    clamped = clamp_range(start, end)

    raw_dependencies = data.get("dependencies")
    dependencies = (
        tuple(dep for dep in raw_dependencies if isinstance(dep, str))
        if isinstance(raw_dependencies, list)
        else ()
    )
    raw_tags = data.get("tags")
    tags = tuple(tag for tag in raw_tags if isinstance(tag, str)) if isinstance(raw_tags, list) else ()
    parent_action_id = data.get("parentActionId")
    owner_role = data.get("ownerRole")
    notes = data.get("notes")

    return Task(
        id=data["id"],
        project_id=project_id,
        title=_str_or(data.get("title"), ""),
        category=coerce_choice(data.get("category"), TASK_CATEGORIES, "pre"),
        phase=_str_or(data.get("phase"), ""),
        start_date=clamped.start,
        end_date=clamped.end,
        status=coerce_choice(data.get("status"), TASK_STATUSES, "planned"),
        dependencies=dependencies,
        parent_action_id=parent_action_id if isinstance(parent_action_id, str) else None,
        kind=coerce_choice(data.get("kind"), TASK_KINDS, "pipeline"),
        owner_role=owner_role if owner_role in OWNER_ROLES else None,
        notes=notes if isinstance(notes, str) else None,
        tags=tags,
        source="manual" if data.get("source") == "manual" else "auto",
        updated_at=_parse_timestamp(data.get("updatedAt")),
    )


def normalize_schedule(
    data: Any,
    project_id: str,
    fallback_title: str = "Projekt",
    fallback_audience: Audience = "privat",
) -> Schedule | None:
    """
    Validate a persisted schedule blob.

    Returns None when the blob is unusable (not a mapping, no task list, or no
    task with a string id); callers then regenerate from the seed context.
    """

    if not isinstance(data, Mapping) or not isinstance(data.get("tasks"), list):
        logger.warning("Discarding schedule blob for %s: missing task list", project_id)
        return None

    fallback_date = today()
    tasks = tuple(
        normalize_task(raw, project_id, fallback_date)
        for raw in data["tasks"]
        if isinstance(raw, Mapping) and isinstance(raw.get("id"), str)
    )
    if not tasks:
        logger.warning("Discarding schedule blob for %s: no valid tasks", project_id)
        return None

    start, end = schedule_bounds(tasks, tasks[0].start_date, tasks[0].end_date)
    return Schedule(
        id=_str_or(data.get("id"), f"schedule-{project_id}"),
        project_id=project_id,
        title=_str_or(data.get("title"), fallback_title),
        audience="brf" if data.get("audience") == "brf" else fallback_audience,
        start_date=start,
        end_date=end,
        tasks=tasks,
        view_settings=_normalize_view_settings(data.get("viewSettings")),
        change_log=_normalize_change_log(data.get("changeLog")),
    )


def _normalize_view_settings(data: Any) -> ViewSettings:
    if not isinstance(data, Mapping):
        return ViewSettings()
    # Quarter zoom is not offered when loading; it collapses to month.
    return ViewSettings(
        zoom=coerce_choice(data.get("zoom"), _PERSISTED_ZOOMS, "month"),
        show_weekends=bool(data.get("showWeekends")),
        group_by=coerce_choice(data.get("groupBy"), GROUP_BYS, "phase"),
    )


def _normalize_change_log(data: Any) -> tuple[ChangeLogEntry, ...]:
    if not isinstance(data, list):
        return ()
    entries: list[ChangeLogEntry] = []
    for raw in data:
        if not isinstance(raw, Mapping):
            continue
        if not all(isinstance(raw.get(key), str) for key in ("id", "taskId", "field")):
            continue
        entries.append(
            ChangeLogEntry(
                id=raw["id"],
                task_id=raw["taskId"],
                field=raw["field"],
                from_value=str(raw.get("fromValue", "")),
                to_value=str(raw.get("toValue", "")),
                timestamp=_parse_timestamp(raw.get("timestamp")),
                actor=_str_or(raw.get("actor"), ""),
            )
        )
    return tuple(entries[:CHANGE_LOG_LIMIT])


def _str_or(value: Any, default: str) -> str:
    return value if isinstance(value, str) and value else default


def _parse_timestamp(value: Any) -> _dt.datetime:
    if isinstance(value, _dt.datetime):
        return value if value.tzinfo else value.replace(tzinfo=_dt.timezone.utc)
    if isinstance(value, str) and value:
        try:
            parsed = _dt.datetime.fromisoformat(value.replace("Z", "+00:00"))
        except ValueError:
            return utcnow()
        return parsed if parsed.tzinfo else parsed.replace(tzinfo=_dt.timezone.utc)
    return utcnow()


def task_to_dict(task: Task) -> dict[str, Any]:
    data: dict[str, Any] = {
        "id": task.id,
        "projectId": task.project_id,
        "title": task.title,
        "category": task.category,
        "phase": task.phase,
        "startDate": format_date(task.start_date),
        "endDate": format_date(task.end_date),
        "status": task.status,
        "dependencies": list(task.dependencies),
        "kind": task.kind,
        "source": task.source,
        "updatedAt": task.updated_at.isoformat(),
    }
    if task.parent_action_id is not None:
        data["parentActionId"] = task.parent_action_id
    if task.owner_role is not None:
        data["ownerRole"] = task.owner_role
    if task.notes is not None:
        data["notes"] = task.notes
    if task.tags:
        data["tags"] = list(task.tags)
    return data


def schedule_to_dict(schedule: Schedule) -> dict[str, Any]:
    """Serialize a schedule to the persisted blob shape (camelCase keys, ISO strings)."""

    return {
        "id": schedule.id,
        "projectId": schedule.project_id,
        "title": schedule.title,
        "audience": schedule.audience,
        "startDate": format_date(schedule.start_date),
        "endDate": format_date(schedule.end_date),
        "tasks": [task_to_dict(task) for task in schedule.tasks],
        "viewSettings": {
            "zoom": schedule.view_settings.zoom,
            "showWeekends": schedule.view_settings.show_weekends,
            "groupBy": schedule.view_settings.group_by,
        },
        "changeLog": [
            {
                "id": entry.id,
                "taskId": entry.task_id,
                "field": entry.field,
                "fromValue": entry.from_value,
                "toValue": entry.to_value,
                "timestamp": entry.timestamp.isoformat(),
                "actor": entry.actor,
            }
            for entry in schedule.change_log
        ],
    }
