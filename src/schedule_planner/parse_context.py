from __future__ import annotations

import datetime as _dt
from dataclasses import dataclass
from typing import Any

import yaml

from .errors import ContextValidationError
from .models import MaintenanceAction, ScheduleProjectContext


@dataclass(frozen=True)
class _Path:
    """Helper to produce readable YAML path strings like maintenance_actions[1].title."""

    parts: tuple[str, ...] = ()

    def child(self, segment: str) -> "_Path":
        return _Path(self.parts + (segment,))

    def __str__(self) -> str:  # pragma: no cover - trivial
        return ".".join(self.parts) if self.parts else "root"


def load_context(path: str) -> ScheduleProjectContext:
    """Load a seed context from a YAML file at the given path."""

    with open(path, "r", encoding="utf-8") as fh:
        raw = yaml.safe_load(fh)

    return parse_context(raw)


def parse_context(data: Any) -> ScheduleProjectContext:
    """
    Validate a mapping shaped like::

        project: {id, title, audience}
        snapshot: {desired_start}            # optional
        request: {desired_start, actions}    # optional
        maintenance_actions: [...]           # optional
    """

    path = _Path()
    if not isinstance(data, dict):
        raise ContextValidationError(f"{path}: expected mapping at top level")
    _assert_allowed_keys(data, {"project", "snapshot", "request", "maintenance_actions"}, path)

    project_raw = data.get("project")
    if not isinstance(project_raw, dict):
        raise ContextValidationError(f"{path}: missing required mapping 'project'")
    project_path = path.child("project")
    _assert_allowed_keys(project_raw, {"id", "title", "audience"}, project_path)
    project_id = _require_str(project_raw, "id", project_path)
    title = _require_str(project_raw, "title", project_path)
    audience = project_raw.get("audience", "privat")
    if audience not in ("brf", "privat"):
        raise ContextValidationError(f"{project_path.child('audience')}: expected 'brf' or 'privat'")

    desired_start = None
    snapshot_raw = data.get("snapshot")
    if snapshot_raw is not None:
        snapshot_path = path.child("snapshot")
        if not isinstance(snapshot_raw, dict):
            raise ContextValidationError(f"{snapshot_path}: expected mapping")
        _assert_allowed_keys(snapshot_raw, {"desired_start"}, snapshot_path)
        desired_start = _optional_date(snapshot_raw.get("desired_start"), snapshot_path.child("desired_start"))

    request_desired_start = None
    request_actions: tuple[MaintenanceAction, ...] = ()
    request_raw = data.get("request")
    if request_raw is not None:
        request_path = path.child("request")
        if not isinstance(request_raw, dict):
            raise ContextValidationError(f"{request_path}: expected mapping")
        _assert_allowed_keys(request_raw, {"desired_start", "actions"}, request_path)
        request_desired_start = _optional_date(request_raw.get("desired_start"), request_path.child("desired_start"))
        request_actions = _parse_actions(request_raw.get("actions"), request_path, "actions")

    maintenance_actions = _parse_actions(data.get("maintenance_actions"), path, "maintenance_actions")

    return ScheduleProjectContext(
        project_id=project_id,
        title=title,
        audience=audience,
        desired_start=desired_start,
        request_desired_start=request_desired_start,
        maintenance_actions=maintenance_actions,
        request_actions=request_actions,
    )


def _parse_actions(value: Any, path: _Path, key: str) -> tuple[MaintenanceAction, ...]:
    if value is None:
        return ()
    if not isinstance(value, list):
        raise ContextValidationError(f"{path.child(key)}: expected list of actions")
    return tuple(_parse_action(item, path.child(f"{key}[{idx}]")) for idx, item in enumerate(value))


def _parse_action(data: Any, path: _Path) -> MaintenanceAction:
    if not isinstance(data, dict):
        raise ContextValidationError(f"{path}: expected mapping for action")
    _assert_allowed_keys(data, {"id", "title", "category", "status", "planned_year", "details"}, path)
    planned_year = data.get("planned_year")
    if planned_year is not None and (not isinstance(planned_year, int) or isinstance(planned_year, bool)):
        raise ContextValidationError(f"{path.child('planned_year')}: expected integer year")
    if planned_year is not None and not _dt.MINYEAR <= planned_year <= _dt.MAXYEAR:
        raise ContextValidationError(
            f"{path.child('planned_year')}: expected year between {_dt.MINYEAR} and {_dt.MAXYEAR}"
        )
    return MaintenanceAction(
        title=_require_str(data, "title", path),
        planned_year=planned_year,
        category=_optional_str(data, "category", path),
        status=_optional_str(data, "status", path),
        details=_optional_str(data, "details", path),
        id=_optional_str(data, "id", path),
    )


def _assert_allowed_keys(data: dict[str, Any], allowed: set[str], path: _Path) -> None:
    extras = sorted(set(data.keys()) - allowed)
    if extras:
        raise ContextValidationError(f"{path}: unexpected fields {extras}")


def _require_str(data: dict[str, Any], key: str, path: _Path) -> str:
    if key not in data:
        raise ContextValidationError(f"{path}: missing required field '{key}'")
    value = data[key]
    if not isinstance(value, str) or not value.strip():
        raise ContextValidationError(f"{path.child(key)}: expected non-empty string")
    return value


def _optional_str(data: dict[str, Any], key: str, path: _Path) -> str | None:
    value = data.get(key)
    if value is None:
        return None
    if not isinstance(value, str):
        raise ContextValidationError(f"{path.child(key)}: expected string")
    return value


def _optional_date(value: Any, path: _Path) -> _dt.date | None:
    if value is None:
        return None
    # PyYAML already turns unquoted YYYY-MM-DD into a date.
    if isinstance(value, _dt.date) and not isinstance(value, _dt.datetime):
        return value
    if not isinstance(value, str):
        raise ContextValidationError(f"{path}: expected YYYY-MM-DD string")
    try:
        return _dt.date.fromisoformat(value)
    except ValueError as exc:
        raise ContextValidationError(f"{path}: expected YYYY-MM-DD string") from exc
