"""Task Insights - productivity scoring, trend comparison and forecasting for task data."""

__version__ = "0.1.0"
__author__ = "Task Insights Team"

from .domain import (
    Task,
    TaskDependency,
    Period,
    EntityType,
    TaskFilter,
)

__all__ = ["Task", "TaskDependency", "Period", "EntityType", "TaskFilter", "__version__"]
