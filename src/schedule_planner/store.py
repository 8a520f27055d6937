from __future__ import annotations

import logging
from pathlib import Path
from typing import Callable

import yaml

from .dates import duration_days
from .errors import ScheduleStoreError
from .generators import MAINTENANCE_PLAN_PROJECT_ID, generate_default_schedule
from .models import Audience, Schedule, ScheduleProjectContext
from .normalize import normalize_schedule, schedule_to_dict

logger = logging.getLogger(__name__)

FILE_PREFIX = "schedule-"
FILE_SUFFIX = ".yaml"
# Maintenance bars shorter than this come from an older generator and are regenerated.
LEGACY_MAINTENANCE_MIN_DAYS = 30

Listener = Callable[[str], None]


class ScheduleStore:
    """
    One YAML file per project under `root`.

    Reads go through `normalize_schedule`, so a corrupted file behaves like a
    missing one. Subscribers are called with the project id after each write.
    """

    def __init__(self, root: str | Path) -> None:
        self.root = Path(root)
        if self.root.exists() and not self.root.is_dir():
            raise ScheduleStoreError(f"store path is not a directory: {self.root}")
        self._listeners: list[Listener] = []

    def path_for(self, project_id: str) -> Path:
        return self.root / f"{FILE_PREFIX}{project_id}{FILE_SUFFIX}"

    def read(
        self,
        project_id: str,
        fallback_title: str = "Projekt",
        fallback_audience: Audience = "privat",
    ) -> Schedule | None:
        path = self.path_for(project_id)
        if not path.exists():
            return None
        try:
            with path.open("r", encoding="utf-8") as fh:
                raw = yaml.safe_load(fh)
        except (yaml.YAMLError, UnicodeDecodeError) as exc:
            logger.warning("Ignoring unreadable schedule file %s: %s", path, exc)
            return None
        return normalize_schedule(raw, project_id, fallback_title, fallback_audience)

    def write(self, schedule: Schedule) -> Schedule:
        """Persist `schedule` and notify subscribers; returns the normalized value."""

        blob = schedule_to_dict(schedule)
        normalized = normalize_schedule(blob, schedule.project_id, schedule.title, schedule.audience) or schedule
        self.root.mkdir(parents=True, exist_ok=True)
        path = self.path_for(schedule.project_id)
        with path.open("w", encoding="utf-8") as fh:
            yaml.safe_dump(schedule_to_dict(normalized), fh, allow_unicode=True, sort_keys=False)
        logger.info("Wrote schedule %s (%s tasks) to %s", schedule.project_id, len(schedule.tasks), path)

        for listener in list(self._listeners):
            listener(schedule.project_id)
        return normalized

    def list_project_ids(self) -> list[str]:
        if not self.root.is_dir():
            return []
        return sorted(
            path.name[len(FILE_PREFIX) : -len(FILE_SUFFIX)]
            for path in self.root.glob(f"{FILE_PREFIX}*{FILE_SUFFIX}")
        )

    def subscribe(self, callback: Listener) -> Callable[[], None]:
        """Register `callback`; the returned function unregisters it."""

        self._listeners.append(callback)

        def unsubscribe() -> None:
            if callback in self._listeners:
                self._listeners.remove(callback)

        return unsubscribe

    def ensure_schedule(self, context: ScheduleProjectContext) -> Schedule:
        """
        Return the stored schedule for `context`, generating one if needed.

        The maintenance-plan project is also regenerated when its stored
        maintenance tasks no longer match the context's actions.
        """

        existing = self.read(context.project_id, context.title, context.audience)
        if existing is not None:
            if context.project_id != MAINTENANCE_PLAN_PROJECT_ID or not context.maintenance_actions:
                return existing
            if _maintenance_matches(existing, context):
                return existing
            logger.info("Maintenance actions changed for %s; regenerating", context.project_id)
        return self.write(generate_default_schedule(context))


def _maintenance_matches(schedule: Schedule, context: ScheduleProjectContext) -> bool:
    current = [
        task for task in schedule.tasks if task.category == "maintenance" and task.parent_action_id is None
    ]
    expected = sorted(f"{action.title.lower()}-{action.planned_year}" for action in context.maintenance_actions)
    actual = sorted(f"{task.title.lower()}-{task.start_date.year}" for task in current)
    if expected != actual:
        return False
    return all(
        duration_days(task.start_date, task.end_date) >= LEGACY_MAINTENANCE_MIN_DAYS for task in current
    )
