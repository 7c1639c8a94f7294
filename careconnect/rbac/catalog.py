"""
Permission catalog.

Usage:
    catalog = PermissionCatalog(db)

    perm = await catalog.create_permission(
        "patients.view", "View patient information", "patients"
    )
    grouped = await catalog.list_permissions_by_category()
"""

import re
from collections import defaultdict
from uuid import UUID

import structlog
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from careconnect.core.exceptions import DuplicateName
from careconnect.models.rbac import Permission

logger = structlog.get_logger()

# "category.action", where the action may itself be dotted (clinical.notes.view)
PERMISSION_NAME_PATTERN = re.compile(r"^[a-z][a-z0-9_]*(\.[a-z][a-z0-9_]*)+$")


def validate_permission_name(name: str) -> str:
    """Raise ValueError unless name is in dotted "category.action" form."""
    if not PERMISSION_NAME_PATTERN.match(name):
        raise ValueError(
            f"Invalid permission name '{name}': expected 'category.action'"
        )
    return name


class PermissionCatalog:
    """Append-only catalog of named permissions."""

    def __init__(self, db: AsyncSession):
        self.db = db

    async def list_permissions(self) -> list[Permission]:
        """List all permissions ordered by category, then name."""
        stmt = select(Permission).order_by(Permission.category, Permission.name)
        result = await self.db.execute(stmt)
        return list(result.scalars().all())

    async def list_permissions_by_category(self) -> dict[str, list[Permission]]:
        """Group the catalog by category, preserving catalog order."""
        grouped: dict[str, list[Permission]] = defaultdict(list)
        for permission in await self.list_permissions():
            grouped[permission.category].append(permission)
        return dict(grouped)

    async def get_permission(self, permission_id: UUID) -> Permission | None:
        """Get permission by ID."""
        result = await self.db.execute(
            select(Permission).where(Permission.id == permission_id)
        )
        return result.scalar_one_or_none()

    async def get_permission_by_name(self, name: str) -> Permission | None:
        """Get permission by name."""
        result = await self.db.execute(
            select(Permission).where(Permission.name == name)
        )
        return result.scalar_one_or_none()

    async def create_permission(
        self,
        name: str,
        description: str | None,
        category: str,
    ) -> Permission:
        """
        Create a permission.

        Raises:
            DuplicateName: If a permission with this name exists
            ValueError: If name is not in "category.action" form
        """
        validate_permission_name(name)

        if await self.get_permission_by_name(name):
            raise DuplicateName(f"Permission '{name}' already exists")

        permission = Permission(name=name, description=description, category=category)
        self.db.add(permission)
        await self.db.flush()
        await self.db.refresh(permission)

        logger.info("Permission created", permission=name, category=category)
        return permission

    async def ensure_permission(
        self,
        name: str,
        description: str | None,
        category: str,
    ) -> tuple[Permission, bool]:
        """
        Create a permission unless it already exists.

        Seeding treats a duplicate as success. Returns (permission, created).
        """
        try:
            return await self.create_permission(name, description, category), True
        except DuplicateName:
            existing = await self.get_permission_by_name(name)
            return existing, False
