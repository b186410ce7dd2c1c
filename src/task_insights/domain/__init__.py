"""Domain models for Task Insights."""

from .task import Task, TaskDependency, TaskStatus, Priority
from .period import Period, PeriodMode, AnalyticsTimeframe
from .scope import EntityType, TaskFilter

__all__ = [
    "Task",
    "TaskDependency",
    "TaskStatus",
    "Priority",
    "Period",
    "PeriodMode",
    "AnalyticsTimeframe",
    "EntityType",
    "TaskFilter",
]
