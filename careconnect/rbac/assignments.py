"""
Assignment store - the role/permission and user/role join tables.

Assignments are idempotent per pair: granting something that is already
granted returns the existing row. Removing something that is not granted
returns False rather than raising.
"""

from uuid import UUID

import structlog
from sqlalchemy import select, delete
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from careconnect.core.exceptions import NotFound
from careconnect.core.hooks import hooks, ROLE_PERMISSIONS_CHANGED, USER_ROLES_CHANGED
from careconnect.models.rbac import Permission, Role, RolePermission, UserRole
from careconnect.models.user import User

logger = structlog.get_logger()


class AssignmentStore:
    """Owns the ``role_permissions`` and ``user_roles`` tables."""

    def __init__(self, db: AsyncSession):
        self.db = db

    # ============================================================
    # ROLE <-> PERMISSION
    # ============================================================

    async def get_role_permission(
        self,
        role_id: UUID,
        permission_id: UUID,
    ) -> RolePermission | None:
        """Get the grant of a permission to a role, if any."""
        result = await self.db.execute(
            select(RolePermission).where(
                RolePermission.role_id == role_id,
                RolePermission.permission_id == permission_id,
            )
        )
        return result.scalar_one_or_none()

    async def assign_permission_to_role(
        self,
        role_id: UUID,
        permission_id: UUID,
    ) -> RolePermission:
        """
        Grant a permission to a role.

        Raises:
            NotFound: If the role or the permission does not exist
        """
        await self._require(Role, role_id, "Role")
        await self._require(Permission, permission_id, "Permission")

        existing = await self.get_role_permission(role_id, permission_id)
        if existing:
            return existing

        grant = RolePermission(role_id=role_id, permission_id=permission_id)
        try:
            async with self.db.begin_nested():
                self.db.add(grant)
                await self.db.flush()
        except IntegrityError:
            # Granted concurrently
            existing = await self.get_role_permission(role_id, permission_id)
            if existing is None:
                raise
            return existing
        await self.db.refresh(grant)

        logger.info(
            "Permission assigned to role",
            role_id=str(role_id),
            permission_id=str(permission_id),
        )
        await hooks.trigger(ROLE_PERMISSIONS_CHANGED, role_id=role_id, session=self.db)
        return grant

    async def remove_permission_from_role(
        self,
        role_id: UUID,
        permission_id: UUID,
    ) -> bool:
        """Revoke a permission from a role. False if it was not granted."""
        result = await self.db.execute(
            delete(RolePermission).where(
                RolePermission.role_id == role_id,
                RolePermission.permission_id == permission_id,
            )
        )
        await self.db.flush()

        if result.rowcount == 0:
            return False

        logger.info(
            "Permission removed from role",
            role_id=str(role_id),
            permission_id=str(permission_id),
        )
        await hooks.trigger(ROLE_PERMISSIONS_CHANGED, role_id=role_id, session=self.db)
        return True

    # ============================================================
    # USER <-> ROLE
    # ============================================================

    async def get_user_role(self, user_id: UUID, role_id: UUID) -> UserRole | None:
        """Get a user's assignment to a role, if any."""
        result = await self.db.execute(
            select(UserRole).where(
                UserRole.user_id == user_id,
                UserRole.role_id == role_id,
            )
        )
        return result.scalar_one_or_none()

    async def assign_role_to_user(
        self,
        user_id: UUID,
        role_id: UUID,
        assigned_by: UUID | None = None,
    ) -> UserRole:
        """
        Grant a role to a user.

        Roles accumulate: existing assignments are never replaced.

        Raises:
            NotFound: If the user or the role does not exist
        """
        await self._require(User, user_id, "User")
        await self._require(Role, role_id, "Role")

        existing = await self.get_user_role(user_id, role_id)
        if existing:
            return existing

        assignment = UserRole(user_id=user_id, role_id=role_id, assigned_by=assigned_by)
        try:
            async with self.db.begin_nested():
                self.db.add(assignment)
                await self.db.flush()
        except IntegrityError:
            existing = await self.get_user_role(user_id, role_id)
            if existing is None:
                raise
            return existing
        await self.db.refresh(assignment)

        logger.info(
            "Role assigned to user",
            user_id=str(user_id),
            role_id=str(role_id),
            assigned_by=str(assigned_by) if assigned_by else None,
        )
        await hooks.trigger(USER_ROLES_CHANGED, user_id=user_id, session=self.db)
        return assignment

    async def remove_role_from_user(self, user_id: UUID, role_id: UUID) -> bool:
        """Revoke a role from a user. False if it was not assigned."""
        result = await self.db.execute(
            delete(UserRole).where(
                UserRole.user_id == user_id,
                UserRole.role_id == role_id,
            )
        )
        await self.db.flush()

        if result.rowcount == 0:
            return False

        logger.info("Role removed from user", user_id=str(user_id), role_id=str(role_id))
        await hooks.trigger(USER_ROLES_CHANGED, user_id=user_id, session=self.db)
        return True

    async def list_user_roles(self, user_id: UUID) -> list[Role]:
        """List the roles a user holds, by name."""
        stmt = (
            select(Role)
            .join(UserRole, UserRole.role_id == Role.id)
            .where(UserRole.user_id == user_id)
            .order_by(Role.name)
        )
        result = await self.db.execute(stmt)
        return list(result.scalars().all())

    async def _require(self, model, entity_id: UUID, label: str) -> None:
        result = await self.db.execute(select(model.id).where(model.id == entity_id))
        if result.scalar_one_or_none() is None:
            raise NotFound(f"{label} {entity_id} not found")
