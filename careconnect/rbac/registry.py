"""
Role registry.

Usage:
    registry = RoleRegistry(db)

    role = await registry.create_role(
        name="Analytics Only",
        description="Read-only reporting",
        permission_ids=[view_patients.id, view_reports.id],
    )
    await registry.delete_role(role.id)  # False for system roles
"""

from typing import Any, Iterable
from uuid import UUID

import structlog
from sqlalchemy import select, delete
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from careconnect.core.exceptions import DuplicateName, SystemRoleProtected
from careconnect.core.hooks import hooks, ROLE_CREATED, ROLE_UPDATED, ROLE_DELETED
from careconnect.models.rbac import Role, RolePermission, UserRole

from .assignments import AssignmentStore

logger = structlog.get_logger()

UPDATABLE_ROLE_FIELDS = {"name", "description"}


class RoleRegistry:
    """
    Manages roles.

    System roles (``is_system_role=True``) are created only by seeding.
    They cannot be deleted or renamed, and no operation changes the flag.
    """

    def __init__(self, db: AsyncSession):
        self.db = db

    async def list_roles(self) -> list[Role]:
        """List all roles alphabetically."""
        result = await self.db.execute(select(Role).order_by(Role.name))
        return list(result.scalars().all())

    async def get_role(self, role_id: UUID) -> Role | None:
        """Get role by ID with its current permissions loaded."""
        stmt = (
            select(Role)
            .where(Role.id == role_id)
            .execution_options(populate_existing=True)
        )
        result = await self.db.execute(stmt)
        return result.scalar_one_or_none()

    async def get_role_by_name(self, name: str) -> Role | None:
        """Get role by name."""
        stmt = (
            select(Role)
            .where(Role.name == name)
            .execution_options(populate_existing=True)
        )
        result = await self.db.execute(stmt)
        return result.scalar_one_or_none()

    async def create_role(
        self,
        name: str,
        description: str | None = None,
        permission_ids: Iterable[UUID] | None = None,
        *,
        is_system_role: bool = False,
    ) -> Role:
        """
        Create a role, optionally granting permissions.

        The role and its grants are written in the caller's transaction, so
        a failing grant leaves no partially configured role behind once the
        transaction is rolled back.

        Args:
            name: Unique role name
            description: Role description
            permission_ids: Permissions to grant immediately
            is_system_role: Only used by bootstrap seeding

        Raises:
            DuplicateName: If a role with this name exists
            NotFound: If any permission id is unknown
        """
        if await self.get_role_by_name(name):
            raise DuplicateName(f"Role '{name}' already exists")

        role = Role(name=name, description=description, is_system_role=is_system_role)
        try:
            async with self.db.begin_nested():
                self.db.add(role)
                await self.db.flush()
        except IntegrityError:
            raise DuplicateName(f"Role '{name}' already exists") from None

        if permission_ids:
            store = AssignmentStore(self.db)
            for permission_id in dict.fromkeys(permission_ids):
                await store.assign_permission_to_role(role.id, permission_id)

        role = await self.get_role(role.id)

        logger.info("Role created", role=name, system=is_system_role)
        await hooks.trigger(ROLE_CREATED, role=role, session=self.db)
        return role

    async def update_role(self, role_id: UUID, **fields: Any) -> Role | None:
        """
        Update role properties.

        Only ``name`` and ``description`` may change. Returns None if the
        role does not exist.

        Raises:
            SystemRoleProtected: On any attempt to set ``is_system_role`` or
                to rename a system role
            DuplicateName: If the new name belongs to another role
            ValueError: On unknown fields
        """
        if "is_system_role" in fields:
            raise SystemRoleProtected("is_system_role cannot be changed")

        unknown = set(fields) - UPDATABLE_ROLE_FIELDS
        if unknown:
            raise ValueError(f"Cannot update role fields: {', '.join(sorted(unknown))}")

        role = await self.get_role(role_id)
        if not role:
            return None

        name = fields.get("name")
        if name is not None and name != role.name:
            if role.is_system_role:
                raise SystemRoleProtected(f"System role '{role.name}' cannot be renamed")
            if await self.get_role_by_name(name):
                raise DuplicateName(f"Role '{name}' already exists")
            try:
                async with self.db.begin_nested():
                    role.name = name
                    await self.db.flush()
            except IntegrityError:
                raise DuplicateName(f"Role '{name}' already exists") from None

        if "description" in fields:
            role.description = fields["description"]

        await self.db.flush()
        role = await self.get_role(role_id)

        logger.info("Role updated", role_id=str(role_id), fields=sorted(fields))
        await hooks.trigger(ROLE_UPDATED, role=role, session=self.db)
        return role

    async def delete_role(self, role_id: UUID) -> bool:
        """
        Delete a custom role and its assignments.

        Returns False, deleting nothing, if the role does not exist or is a
        system role.
        """
        role = await self.get_role(role_id)
        if not role:
            return False

        if role.is_system_role:
            logger.warning("Refused to delete system role", role=role.name)
            return False

        # Explicit so the cascade holds even where FK enforcement is off
        await self.db.execute(delete(RolePermission).where(RolePermission.role_id == role_id))
        await self.db.execute(delete(UserRole).where(UserRole.role_id == role_id))
        await self.db.delete(role)
        await self.db.flush()

        logger.info("Role deleted", role=role.name)
        await hooks.trigger(ROLE_DELETED, role_id=role_id, session=self.db)
        return True
