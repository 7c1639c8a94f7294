"""
RBAC Models - Permissions, Roles, and Assignments.

- Permission: a named capability in "category.action" form
- Role: a named bundle of permissions; system roles are built in
- RolePermission: grants a permission to a role
- UserRole: grants a role to a user

Usage:
    perm = Permission(name="patients.edit", category="patients")
    role = Role(name="Doctor", is_system_role=True)

    RolePermission(role_id=role.id, permission_id=perm.id)
    UserRole(user_id=user.id, role_id=role.id, assigned_by=admin.id)
"""

from uuid import UUID
from sqlalchemy import String, Text, Boolean, ForeignKey, UniqueConstraint, Uuid
from sqlalchemy.orm import Mapped, mapped_column, relationship

from .base import Base, CreatedAtMixin, TimestampMixin, UUIDMixin


class Permission(Base, UUIDMixin, CreatedAtMixin):
    """
    Permission definition.

    Permissions are append-only: created when the catalog is seeded and
    never updated or deleted through the API.
    """

    __tablename__ = "permissions"

    name: Mapped[str] = mapped_column(String(100), unique=True, nullable=False, index=True)
    description: Mapped[str | None] = mapped_column(Text, nullable=True)
    category: Mapped[str] = mapped_column(String(50), nullable=False, index=True)

    def __repr__(self) -> str:
        return f"<Permission {self.name}>"


class Role(Base, UUIDMixin, TimestampMixin):
    """
    Role definition.

    ``is_system_role`` marks the built-in roles. They can never be deleted
    and the flag itself is never changed after creation.
    """

    __tablename__ = "roles"

    name: Mapped[str] = mapped_column(String(100), unique=True, nullable=False)
    description: Mapped[str | None] = mapped_column(Text, nullable=True)
    is_system_role: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)

    # Read-only projection through role_permissions
    permissions: Mapped[list["Permission"]] = relationship(
        "Permission",
        secondary="role_permissions",
        order_by="Permission.name",
        viewonly=True,
        lazy="selectin",
    )

    def __repr__(self) -> str:
        return f"<Role {self.name}>"


class RolePermission(Base, UUIDMixin, CreatedAtMixin):
    """Grant of one permission to one role; at most one row per pair."""

    __tablename__ = "role_permissions"
    __table_args__ = (
        UniqueConstraint("role_id", "permission_id", name="uq_role_permission"),
    )

    role_id: Mapped[UUID] = mapped_column(
        Uuid(as_uuid=True),
        ForeignKey("roles.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    permission_id: Mapped[UUID] = mapped_column(
        Uuid(as_uuid=True),
        ForeignKey("permissions.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )

    def __repr__(self) -> str:
        return f"<RolePermission role={self.role_id} permission={self.permission_id}>"


class UserRole(Base, UUIDMixin, CreatedAtMixin):
    """
    User role assignment.

    A user may hold several roles; their permissions are unioned.
    """

    __tablename__ = "user_roles"
    __table_args__ = (
        UniqueConstraint("user_id", "role_id", name="uq_user_role"),
    )

    user_id: Mapped[UUID] = mapped_column(
        Uuid(as_uuid=True),
        ForeignKey("users.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    role_id: Mapped[UUID] = mapped_column(
        Uuid(as_uuid=True),
        ForeignKey("roles.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )

    # Administrator who granted this role
    assigned_by: Mapped[UUID | None] = mapped_column(
        Uuid(as_uuid=True),
        ForeignKey("users.id", ondelete="SET NULL"),
        nullable=True,
    )

    role: Mapped["Role"] = relationship("Role", lazy="selectin")

    def __repr__(self) -> str:
        return f"<UserRole user={self.user_id} role={self.role_id}>"
