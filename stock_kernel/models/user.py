"""
Module: stock_kernel.models.user
Responsibility: User accounts that request, hold and transfer stock.

Credentials are not stored here; authentication is handled outside the
kernel.
"""

from sqlalchemy import CheckConstraint, Index, String, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from stock_kernel.db.base import TimestampedBase
from stock_kernel.domain.actor import UserRole


class User(TimestampedBase):
    """A person who can request, hold or administer stock."""

    __tablename__ = "users"

    __table_args__ = (
        UniqueConstraint("email", name="uq_users_email"),
        CheckConstraint(
            "role IN ('admin', 'guest', 'super_admin')",
            name="ck_users_role",
        ),
        Index("idx_users_department", "department"),
    )

    name: Mapped[str] = mapped_column(String(255), nullable=False)

    email: Mapped[str] = mapped_column(String(255), nullable=False)

    role: Mapped[UserRole] = mapped_column(
        String(20),
        nullable=False,
        default=UserRole.GUEST,
    )

    department: Mapped[str | None] = mapped_column(String(255), nullable=True)

    def __repr__(self) -> str:
        return f"<User {self.email} ({self.role})>"
