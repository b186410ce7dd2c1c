"""Who may request analytics for which entity.

The analytics engine never decides access itself; it asks an
``AccessPolicy`` and refuses to compute anything unless the answer is yes.
"""

import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Any, Collection, Optional

from .domain import EntityType

logger = logging.getLogger(__name__)

ADMIN_ROLES = frozenset({"admin", "system_admin"})


@dataclass(frozen=True)
class Caller:
    """The authenticated user asking for a report."""
    user_id: Any
    role: str = "member"

    @property
    def is_admin(self) -> bool:
        return self.role in ADMIN_ROLES


class EntityDirectory(ABC):
    """Read-only lookup of entities and their membership."""

    @abstractmethod
    def exists(self, entity_type: EntityType, entity_id: Any) -> bool:
        ...

    @abstractmethod
    def project_manager(self, project_id: Any) -> Optional[Any]:
        ...

    @abstractmethod
    def project_members(self, project_id: Any) -> Collection[Any]:
        ...

    @abstractmethod
    def team_members(self, team_id: Any) -> Collection[Any]:
        ...


class AccessPolicy(ABC):
    @abstractmethod
    def can_access(self, caller: Caller, entity_type: EntityType,
                   entity_id: Optional[Any]) -> bool:
        ...


class AllowAllPolicy(AccessPolicy):
    """Grants everything; for single-user local use."""

    def can_access(self, caller, entity_type, entity_id):
        return True


class MembershipPolicy(AccessPolicy):
    """Admins see everything; otherwise access follows project and team membership.

    A project is visible to its manager and members, a team to its members,
    a user's analytics to that user, and global analytics to admins only.
    """

    def __init__(self, directory: EntityDirectory):
        self.directory = directory

    def can_access(self, caller, entity_type, entity_id):
        if caller.is_admin:
            return True

        if entity_type == EntityType.PROJECT:
            if self.directory.project_manager(entity_id) == caller.user_id:
                return True
            return caller.user_id in self.directory.project_members(entity_id)
        if entity_type == EntityType.TEAM:
            return caller.user_id in self.directory.team_members(entity_id)
        if entity_type == EntityType.USER:
            return entity_id == caller.user_id

        logger.debug("Global analytics refused for non-admin %s", caller.user_id)
        return False
