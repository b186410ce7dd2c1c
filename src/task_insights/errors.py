"""Error types raised by the analytics engine."""

from dataclasses import dataclass
from typing import Any, Optional


class AnalyticsError(Exception):
    """Base class for every error surfaced to analytics callers."""


class AccessDenied(AnalyticsError):
    """The caller may not request analytics for the entity."""

    def __init__(self, entity_type: str, entity_id: Optional[int] = None):
        self.entity_type = entity_type
        self.entity_id = entity_id
        super().__init__("Forbidden")


class NotFound(AnalyticsError):
    """The requested entity does not exist."""

    def __init__(self, entity_type: str, entity_id: Optional[int] = None):
        self.entity_type = entity_type
        self.entity_id = entity_id
        super().__init__(f"{entity_type.capitalize()} not found")


class DataUnavailable(AnalyticsError):
    """The task data collaborator failed; the cause is chained."""

    def __init__(self, message: str = "Task data unavailable"):
        super().__init__(message)


@dataclass
class ComputationDegraded:
    """Note that an input field was malformed and replaced by its neutral default.

    This is not an exception: metric primitives keep computing with the
    fallback value.
    """
    task_id: Any
    field_name: str
    raw_value: Any
    fallback: Any

    def __str__(self) -> str:
        return (f"task {self.task_id}: {self.field_name}={self.raw_value!r} "
                f"replaced by {self.fallback!r}")
