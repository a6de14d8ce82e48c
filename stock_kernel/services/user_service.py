"""
Service layer for user accounts.

Returns UserInfo DTOs instead of ORM entities.
"""

from __future__ import annotations

from dataclasses import dataclass
from uuid import UUID

from sqlalchemy import select

from stock_kernel.domain.actor import ActorContext, UserRole
from stock_kernel.exceptions import DuplicateEmailError, InvalidFieldError, UserNotFoundError
from stock_kernel.logging_config import get_logger
from stock_kernel.models.user import User
from stock_kernel.services.base import BaseService

logger = get_logger("services.users")


@dataclass(frozen=True)
class UserInfo:
    """Immutable DTO for a user account."""

    id: UUID
    name: str
    email: str
    role: UserRole
    department: str | None

    def as_actor(self) -> ActorContext:
        """ActorContext for operations performed by this user."""
        return ActorContext(user_id=self.id, role=self.role, name=self.name)


def to_user_info(user: User) -> UserInfo:
    return UserInfo(
        id=user.id,
        name=user.name,
        email=user.email,
        role=UserRole(user.role),
        department=user.department,
    )


class UserService(BaseService[User]):
    """Creates and administers user accounts."""

    def _get_by_id(self, user_id: UUID) -> User:
        user = self.session.get(User, user_id)
        if user is None:
            raise UserNotFoundError(str(user_id))
        return user

    def get(self, user_id: UUID) -> UserInfo:
        """
        Raises:
            UserNotFoundError: If the user doesn't exist.
        """
        return to_user_info(self._get_by_id(user_id))

    def find_by_email(self, email: str) -> UserInfo | None:
        user = self.session.execute(
            select(User).where(User.email == email.strip().lower())
        ).scalar_one_or_none()
        return to_user_info(user) if user else None

    def create(
        self,
        name: str,
        email: str,
        role: UserRole | str = UserRole.GUEST,
        department: str | None = None,
    ) -> UserInfo:
        """
        Create a user account.  Emails are stored lower-cased.

        Raises:
            InvalidFieldError: Empty name or malformed email or unknown role.
            DuplicateEmailError: Email already in use.
        """
        if not name or not name.strip():
            raise InvalidFieldError("name", "must be a non-empty string")
        normalized = (email or "").strip().lower()
        if "@" not in normalized:
            raise InvalidFieldError("email", "must be an email address")
        try:
            user_role = UserRole(role)
        except ValueError:
            raise InvalidFieldError("role", f"unknown role {role!r}") from None

        if self.find_by_email(normalized) is not None:
            raise DuplicateEmailError(normalized)

        user = User(
            name=name.strip(),
            email=normalized,
            role=user_role.value,
            department=department,
        )
        self.session.add(user)
        self.session.flush()

        logger.info(
            "user_created",
            extra={"user_id": str(user.id), "role": user_role.value},
        )
        return to_user_info(user)

    def change_role(
        self, actor: ActorContext, user_id: UUID, role: UserRole | str
    ) -> UserInfo:
        """
        Raises:
            PermissionDeniedError: actor is not an admin.
            UserNotFoundError, InvalidFieldError.
        """
        actor.require_admin("change user roles")
        try:
            new_role = UserRole(role)
        except ValueError:
            raise InvalidFieldError("role", f"unknown role {role!r}") from None

        user = self._get_by_id(user_id)
        previous = user.role
        user.role = new_role.value
        self.session.flush()

        logger.info(
            "user_role_changed",
            extra={
                "user_id": str(user_id),
                "from_role": str(UserRole(previous).value),
                "to_role": new_role.value,
            },
        )
        return to_user_info(user)
