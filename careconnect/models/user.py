"""
User model.

Users are owned by the account subsystem. The RBAC core reads ``id``,
``role`` and ``is_active`` only.
"""

import enum

from sqlalchemy import String, Boolean, Enum
from sqlalchemy.orm import Mapped, mapped_column

from .base import Base, TimestampMixin, UUIDMixin


class LegacyRole(str, enum.Enum):
    """Single-valued role column that predates the RBAC tables."""

    MASTER_ADMIN = "master-admin"
    ADMIN = "admin"
    DOCTOR = "doctor"
    NURSE = "nurse"
    STAFF = "staff"
    RECEPTIONIST = "receptionist"
    ANALYTICS_ONLY = "analytics-only"


class User(Base, UUIDMixin, TimestampMixin):
    """User account model."""

    __tablename__ = "users"

    email: Mapped[str] = mapped_column(
        String(255),
        unique=True,
        nullable=False,
        index=True,
    )
    name: Mapped[str] = mapped_column(String(255), nullable=False)

    # Kept readable for the legacy role backfill
    role: Mapped[LegacyRole] = mapped_column(
        Enum(
            LegacyRole,
            name="role",
            values_callable=lambda e: [member.value for member in e],
        ),
        default=LegacyRole.STAFF,
        nullable=False,
    )

    # Gates login independently of permissions
    is_active: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)

    def __repr__(self) -> str:
        return f"<User {self.email}>"
