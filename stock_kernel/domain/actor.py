"""
ActorContext -- who is performing an operation.

Every write operation receives the acting user explicitly instead of
reading a logged-in profile from ambient state.  The context is
immutable and carries just enough to authorize and to stamp audit columns.
"""

from dataclasses import dataclass
from enum import Enum
from uuid import UUID

from stock_kernel.exceptions import PermissionDeniedError


class UserRole(str, Enum):
    """Role of a user account."""

    ADMIN = "admin"
    GUEST = "guest"
    SUPER_ADMIN = "super_admin"


ADMIN_ROLES = frozenset({UserRole.ADMIN, UserRole.SUPER_ADMIN})


@dataclass(frozen=True)
class ActorContext:
    """The user on whose behalf an operation runs."""

    user_id: UUID
    role: UserRole
    name: str = ""

    @property
    def is_admin(self) -> bool:
        return UserRole(self.role) in ADMIN_ROLES

    def require_admin(self, action: str) -> None:
        """Raise PermissionDeniedError unless the actor has an admin role."""
        if not self.is_admin:
            raise PermissionDeniedError(str(self.user_id), action)
