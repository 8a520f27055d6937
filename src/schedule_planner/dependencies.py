from __future__ import annotations

import logging
from collections import deque
from dataclasses import replace
from datetime import datetime
from typing import Iterable, Sequence

from .dates import add_days, utcnow
from .models import Cycle, DependencyWarning, Task

logger = logging.getLogger(__name__)


def get_dependency_warnings(tasks: Iterable[Task]) -> list[DependencyWarning]:
    """
    Report every task that starts before one of its dependencies has finished.

    A dependency is satisfied when the dependent starts at least one day after
    the dependency's end date. Ids that do not resolve are skipped.
    """

    task_list = list(tasks)
    by_id = {task.id: task for task in task_list}
    warnings: list[DependencyWarning] = []

    for task in task_list:
        for dependency_id in task.dependencies:
            dependency = by_id.get(dependency_id)
            if dependency is None:
                continue
            earliest_start = add_days(dependency.end_date, 1)
            if task.start_date < earliest_start:
                warnings.append(
                    DependencyWarning(
                        task_id=task.id,
                        dependency_id=dependency_id,
                        message=f'"{task.title}" startar före att beroendet "{dependency.title}" är klart.',
                    )
                )
    return warnings


def collect_dependents(tasks: Sequence[Task], task_id: str) -> list[str]:
    """Ids of every task that transitively depends on `task_id`, in BFS order."""

    dependents: list[str] = []
    seen: set[str] = set()
    queue = deque([task_id])
    visited: set[str] = set()

    while queue:
        current = queue.popleft()
        if current in visited:
            continue
        visited.add(current)
        for task in tasks:
            if current in task.dependencies and task.id not in seen:
                seen.add(task.id)
                dependents.append(task.id)
                queue.append(task.id)
    return dependents


def find_cycle(tasks: Sequence[Task]) -> Cycle | None:
    """Return the first dependency cycle found (depth-first), ignoring dangling ids."""

    known = {task.id for task in tasks}
    dependencies: dict[str, list[str]] = {
        task.id: [dep for dep in task.dependencies if dep in known] for task in tasks
    }
    state: dict[str, str] = {}
    stack: list[str] = []
    positions: dict[str, int] = {}

    def dfs(task_id: str) -> Cycle | None:
        state[task_id] = "visiting"
        positions[task_id] = len(stack)
        stack.append(task_id)

        for dep_id in dependencies.get(task_id, []):
            dep_state = state.get(dep_id)
            if dep_state == "visiting":
                return Cycle(stack[positions[dep_id] :] + [dep_id])
            if dep_state is None:
                found = dfs(dep_id)
                if found:
                    return found

        stack.pop()
        positions.pop(task_id, None)
        state[task_id] = "done"
        return None

    for task in tasks:
        if state.get(task.id) is None:
            found = dfs(task.id)
            if found:
                return found
    return None


def auto_shift_dependents(
    tasks: Sequence[Task],
    changed_task_id: str,
    now: datetime | None = None,
) -> list[Task]:
    """
    Push dependents of `changed_task_id` forward until every dependency is met.

    Breadth-first from the changed task: each direct dependent is checked
    against the latest end date over all of its resolved dependencies and, if
    it starts too early, moved to the day after that end with its duration
    preserved. Moved tasks become `source="manual"` and are enqueued in turn.

    A task is shifted at most `len(tasks)` times per call. Acyclic graphs
    never reach that budget; a cycle would, and propagation stops there with
    the shifts made so far.
    """

    now = now or utcnow()
    by_id: dict[str, Task] = {task.id: task for task in tasks}
    if changed_task_id not in by_id:
        return list(tasks)

    budget = len(by_id)
    shift_counts: dict[str, int] = {}
    queue = deque([changed_task_id])

    while queue:
        current_id = queue.popleft()
        if current_id not in by_id:
            continue

        for task_id, task in list(by_id.items()):
            if current_id not in task.dependencies:
                continue
            dependency_ends = [by_id[dep].end_date for dep in task.dependencies if dep in by_id]
            if not dependency_ends:
                continue
            earliest_start = add_days(max(dependency_ends), 1)
            if task.start_date >= earliest_start:
                continue

            count = shift_counts.get(task_id, 0) + 1
            if count > budget:
                logger.warning(
                    "Stopping auto-shift from %s: %s shifted more than %s times (dependency cycle?)",
                    changed_task_id,
                    task_id,
                    budget,
                )
                return [by_id.get(t.id, t) for t in tasks]
            shift_counts[task_id] = count

            shifted = replace(
                task,
                start_date=earliest_start,
                end_date=add_days(earliest_start, task.duration_days - 1),
                source="manual",
                updated_at=now,
            )
            logger.debug("Shifted %s to %s..%s", task_id, shifted.start_date, shifted.end_date)
            by_id[task_id] = shifted
            queue.append(task_id)

    return [by_id.get(task.id, task) for task in tasks]
