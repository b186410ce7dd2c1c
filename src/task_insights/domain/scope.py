"""Entity scopes and the task-selection filter shared by all scorers."""

from dataclasses import dataclass
from enum import Enum
from typing import Any, Iterable, List, Optional

from .task import Task


class EntityType(Enum):
    """Entities analytics can be requested for."""
    PROJECT = "project"
    TEAM = "team"
    USER = "user"
    GLOBAL = "global"


@dataclass(frozen=True)
class TaskFilter:
    """Selects the tasks belonging to one entity.

    Global scope carries no id and matches every task.
    """
    entity_type: EntityType = EntityType.GLOBAL
    entity_id: Optional[Any] = None

    def matches(self, task: Task) -> bool:
        if self.entity_type == EntityType.PROJECT:
            return task.project_id == self.entity_id
        if self.entity_type == EntityType.TEAM:
            return task.team_id == self.entity_id
        if self.entity_type == EntityType.USER:
            return self.entity_id in task.assignees
        return True

    def apply(self, tasks: Iterable[Task]) -> List[Task]:
        return [task for task in tasks if self.matches(task)]

    @property
    def key(self) -> str:
        """Stable label, e.g. ``project:3`` or ``global``."""
        if self.entity_id is None:
            return self.entity_type.value
        return f"{self.entity_type.value}:{self.entity_id}"

    @classmethod
    def for_project(cls, project_id: Any) -> "TaskFilter":
        return cls(EntityType.PROJECT, project_id)

    @classmethod
    def for_user(cls, user_id: Any) -> "TaskFilter":
        return cls(EntityType.USER, user_id)

    @classmethod
    def for_team(cls, team_id: Any) -> "TaskFilter":
        return cls(EntityType.TEAM, team_id)

    @classmethod
    def everything(cls) -> "TaskFilter":
        return cls(EntityType.GLOBAL, None)
