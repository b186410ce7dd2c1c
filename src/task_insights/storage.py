"""File-backed task snapshots for the CLI and tests.

A snapshot is a YAML (or JSON) document::

    users:    [{id: 1, name: Ana, role: admin}]
    teams:    [{id: 1, name: Core, members: [1, 2]}]
    projects: [{id: 3, name: Site, manager_id: 1, members: [2], team_id: 1}]
    tasks:
      - {id: 10, project_id: 3, status: completed, priority: urgent,
         estimated_hours: 4, created_at: 2024-05-06T09:00:00Z,
         completed_at: 2024-05-07T12:00:00Z, assignees: [2], depends_on: [9]}

``depends_on`` lists upstream task ids; the repository resolves them into
dependency edges and fills in each task's ``dependent_ids``.
"""

import asyncio
import json
import logging
from pathlib import Path
from typing import Any, Collection, Dict, List, Optional

import yaml

from .access import EntityDirectory
from .domain import EntityType, Task, TaskDependency, TaskFilter
from .services.report import TaskSource
from .utils.datetime import ensure_aware

logger = logging.getLogger(__name__)


class SnapshotError(Exception):
    """The snapshot file could not be read or has the wrong shape."""


def build_tasks(raw_tasks: List[Dict[str, Any]]) -> List[Task]:
    """Resolve ``depends_on`` ids into edges and reverse edges."""
    by_id = {raw.get("id"): raw for raw in raw_tasks}
    dependents: Dict[Any, List[Any]] = {task_id: [] for task_id in by_id}

    tasks = []
    for raw in raw_tasks:
        task = Task.from_dict(raw)
        edges = []
        for upstream_id in raw.get("depends_on") or []:
            upstream = by_id.get(upstream_id)
            if upstream is None:
                logger.debug("Task %s depends on unknown task %s", task.id, upstream_id)
                continue
            upstream_task = Task.from_dict(upstream)
            edges.append(TaskDependency(
                task_id=upstream_id,
                status=upstream_task.status,
                completed_at=upstream_task.completed_at,
                due_date=upstream_task.due_date,
                is_final=upstream_task.is_final,
            ))
            dependents[upstream_id].append(task.id)
        if edges:
            task.dependencies = task.dependencies + edges
        tasks.append(task)

    for task in tasks:
        task.dependent_ids = sorted(set(task.dependent_ids) | set(dependents.get(task.id, [])), key=str)
    return tasks


class SnapshotRepository(TaskSource, EntityDirectory):
    """Task source and entity directory over one snapshot document."""

    def __init__(self, data: Dict[str, Any]):
        self.users = {u.get("id"): u for u in data.get("users") or []}
        self.teams = {t.get("id"): t for t in data.get("teams") or []}
        self.projects = {p.get("id"): p for p in data.get("projects") or []}
        self.tasks = build_tasks(data.get("tasks") or [])

        # tasks inherit their project's team unless they name one
        for task in self.tasks:
            if task.team_id is None and task.project_id in self.projects:
                task.team_id = self.projects[task.project_id].get("team_id")

    @classmethod
    def from_file(cls, path: Path) -> "SnapshotRepository":
        path = Path(path)
        try:
            text = path.read_text()
        except OSError as e:
            raise SnapshotError(f"Cannot read snapshot {path}: {e}") from e

        try:
            if path.suffix == ".json":
                data = json.loads(text)
            else:
                data = yaml.safe_load(text)
        except (json.JSONDecodeError, yaml.YAMLError) as e:
            raise SnapshotError(f"Cannot parse snapshot {path}: {e}") from e

        if not isinstance(data, dict):
            raise SnapshotError(f"Snapshot {path} must be a mapping")

        repo = cls(data)
        logger.debug("Loaded %d tasks from %s", len(repo.tasks), path)
        return repo

    # TaskSource

    async def fetch_tasks(self, task_filter: TaskFilter, period_end) -> List[Task]:
        return await asyncio.to_thread(self.tasks_as_of, task_filter, period_end)

    def tasks_as_of(self, task_filter: TaskFilter, period_end) -> List[Task]:
        """Tasks of the entity created on or before ``period_end``.

        Tasks with no creation time are always included.
        """
        period_end = ensure_aware(period_end)
        return [
            task for task in self.tasks
            if task_filter.matches(task)
            and (task.created_at is None or task.created_at <= period_end)
        ]

    def get_task(self, task_id: Any) -> Optional[Task]:
        return next((task for task in self.tasks if task.id == task_id), None)

    # EntityDirectory

    def exists(self, entity_type: EntityType, entity_id: Any) -> bool:
        if entity_type == EntityType.PROJECT:
            return entity_id in self.projects
        if entity_type == EntityType.TEAM:
            return entity_id in self.teams
        if entity_type == EntityType.USER:
            return entity_id in self.users
        return True

    def project_manager(self, project_id: Any) -> Optional[Any]:
        return (self.projects.get(project_id) or {}).get("manager_id")

    def project_members(self, project_id: Any) -> Collection[Any]:
        return set((self.projects.get(project_id) or {}).get("members") or [])

    def team_members(self, team_id: Any) -> Collection[Any]:
        return set((self.teams.get(team_id) or {}).get("members") or [])

    def user_role(self, user_id: Any) -> str:
        return (self.users.get(user_id) or {}).get("role", "member")
