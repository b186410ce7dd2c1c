"""Read-only task snapshot model consumed by the analytics engine."""

import logging
import math
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Dict, FrozenSet, Iterable, List, Optional

from ..errors import ComputationDegraded
from ..utils.datetime import ensure_aware, parse_datetime, to_iso_string

logger = logging.getLogger(__name__)


class TaskStatus:
    """Well-known status strings. Statuses are free-form; these are the ones
    the engine gives meaning to."""
    PENDING = "pending"
    IN_PROGRESS = "in_progress"
    WAITING = "waiting"
    REVIEW = "review"
    COMPLETED = "completed"
    CANCELLED = "cancelled"


class Priority:
    """Well-known priority strings."""
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    URGENT = "urgent"


DONE_STATUSES: FrozenSet[str] = frozenset({TaskStatus.COMPLETED})

TIMESTAMP_FIELDS = ("due_date", "planned_date", "created_at", "started_at", "completed_at")

TRUE_STRINGS = frozenset({"true", "yes", "y", "1"})
FALSE_STRINGS = frozenset({"false", "no", "n", "0", ""})


@dataclass(frozen=True)
class TaskDependency:
    """A depends-on edge, carrying the upstream task's state at snapshot time."""
    task_id: Any
    status: str = TaskStatus.PENDING
    completed_at: Optional[datetime] = None
    due_date: Optional[datetime] = None
    is_final: bool = False

    def __post_init__(self):
        object.__setattr__(self, "completed_at", ensure_aware(self.completed_at))
        object.__setattr__(self, "due_date", ensure_aware(self.due_date))

    def is_done(self, final_statuses: Iterable[str] = ()) -> bool:
        return (
            self.is_final
            or self.status in DONE_STATUSES
            or self.status in final_statuses
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "task_id": self.task_id,
            "status": self.status,
            "completed_at": to_iso_string(self.completed_at),
            "due_date": to_iso_string(self.due_date),
            "is_final": self.is_final,
        }


@dataclass
class Task:
    """Snapshot of a task record.

    ``is_final`` mirrors an external status taxonomy flagging a custom status
    as final. ``dependencies`` point upstream, ``dependent_ids`` list the
    tasks waiting on this one.
    """

    id: Any
    status: str = TaskStatus.PENDING
    priority: str = Priority.MEDIUM
    estimated_hours: float = 0.0
    actual_hours: float = 0.0

    due_date: Optional[datetime] = None
    planned_date: Optional[datetime] = None
    created_at: Optional[datetime] = None
    started_at: Optional[datetime] = None
    completed_at: Optional[datetime] = None

    project_id: Optional[int] = None
    team_id: Optional[int] = None
    assignees: List[Any] = field(default_factory=list)
    dependencies: List[TaskDependency] = field(default_factory=list)
    dependent_ids: List[Any] = field(default_factory=list)
    is_final: bool = False

    degraded: List[ComputationDegraded] = field(default_factory=list, compare=False, repr=False)

    def __post_init__(self):
        # naive timestamps are UTC
        for name in TIMESTAMP_FIELDS:
            setattr(self, name, ensure_aware(getattr(self, name)))

    def is_done(self, final_statuses: Iterable[str] = ()) -> bool:
        """Completed, or in a status the taxonomy marks as final."""
        return (
            self.is_final
            or self.status in DONE_STATUSES
            or self.status in final_statuses
        )

    def is_terminal(self, final_statuses: Iterable[str] = ()) -> bool:
        """Out of the flow of remaining work (done or cancelled)."""
        return self.status == TaskStatus.CANCELLED or self.is_done(final_statuses)

    def has_incomplete_dependency(self, final_statuses: Iterable[str] = ()) -> bool:
        final_statuses = tuple(final_statuses)
        return any(not dep.is_done(final_statuses) for dep in self.dependencies)

    @property
    def has_dependents(self) -> bool:
        return bool(self.dependent_ids)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "status": self.status,
            "priority": self.priority,
            "estimated_hours": self.estimated_hours,
            "actual_hours": self.actual_hours,
            "due_date": to_iso_string(self.due_date),
            "planned_date": to_iso_string(self.planned_date),
            "created_at": to_iso_string(self.created_at),
            "started_at": to_iso_string(self.started_at),
            "completed_at": to_iso_string(self.completed_at),
            "project_id": self.project_id,
            "team_id": self.team_id,
            "assignees": list(self.assignees),
            "dependencies": [dep.to_dict() for dep in self.dependencies],
            "dependent_ids": list(self.dependent_ids),
            "is_final": self.is_final,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Task":
        """Build a Task from loosely-typed data.

        Malformed optional fields fall back to neutral values and are
        recorded in ``degraded`` rather than raising.
        """
        task_id = data.get("id")
        degraded: List[ComputationDegraded] = []

        def note(name: str, raw: Any, fallback: Any) -> Any:
            degraded.append(ComputationDegraded(task_id, name, raw, fallback))
            return fallback

        def hours(name: str) -> float:
            raw = data.get(name)
            if raw is None:
                return 0.0
            try:
                value = float(raw)
            except (TypeError, ValueError):
                return note(name, raw, 0.0)
            if value < 0 or not math.isfinite(value):
                return note(name, raw, 0.0)
            return value

        def timestamp(name: str) -> Optional[datetime]:
            raw = data.get(name)
            parsed = parse_datetime(raw)
            if parsed is None and raw not in (None, ""):
                return note(name, raw, None)
            return parsed

        def flag(name: str, raw: Any) -> bool:
            if raw is None:
                return False
            if isinstance(raw, bool):
                return raw
            if isinstance(raw, (int, float)):
                return raw != 0
            if isinstance(raw, str) and raw.strip().lower() in TRUE_STRINGS:
                return True
            if isinstance(raw, str) and raw.strip().lower() in FALSE_STRINGS:
                return False
            return note(name, raw, False)

        def id_list(name: str) -> List[Any]:
            raw = data.get(name)
            if raw is None:
                return []
            if isinstance(raw, (list, tuple, set)):
                return list(raw)
            return note(name, raw, [])

        dependencies = []
        for raw_dep in data.get("dependencies") or []:
            if isinstance(raw_dep, TaskDependency):
                dependencies.append(raw_dep)
            elif isinstance(raw_dep, dict):
                dependencies.append(TaskDependency(
                    task_id=raw_dep.get("task_id"),
                    status=str(raw_dep.get("status") or TaskStatus.PENDING),
                    completed_at=parse_datetime(raw_dep.get("completed_at")),
                    due_date=parse_datetime(raw_dep.get("due_date")),
                    is_final=flag("dependencies.is_final", raw_dep.get("is_final")),
                ))
            else:
                note("dependencies", raw_dep, None)

        task = cls(
            id=task_id,
            status=str(data.get("status") or TaskStatus.PENDING),
            priority=str(data.get("priority") or Priority.MEDIUM),
            estimated_hours=hours("estimated_hours"),
            actual_hours=hours("actual_hours"),
            due_date=timestamp("due_date"),
            planned_date=timestamp("planned_date"),
            created_at=timestamp("created_at"),
            started_at=timestamp("started_at"),
            completed_at=timestamp("completed_at"),
            project_id=data.get("project_id"),
            team_id=data.get("team_id"),
            assignees=id_list("assignees"),
            dependencies=dependencies,
            dependent_ids=id_list("dependent_ids"),
            is_final=flag("is_final", data.get("is_final")),
        )
        task.degraded = degraded
        for item in degraded:
            logger.debug("Degraded input: %s", item)
        return task
