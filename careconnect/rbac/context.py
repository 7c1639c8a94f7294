"""
Per-principal permission context.

Holds one user's resolved permission set for the span of a request or a
client session. Whoever mutates that user's roles, or the permissions of a
role the user holds, calls ``refresh()`` afterwards.

Usage:
    ctx = await PermissionContext.load(user.id, resolver)
    if ctx.can_manage_roles:
        ...
    await registry.delete_role(role_id)
    await ctx.refresh()
"""

from typing import Iterable
from uuid import UUID

from .resolver import PermissionResolver

VIEW_ADMIN_CONSOLE = "admin.view_console"
MANAGE_USERS = "admin.manage_users"
MANAGE_ROLES = "admin.manage_roles"


class PermissionContext:
    """Resolved permissions for a single principal."""

    def __init__(self, user_id: UUID, resolver: PermissionResolver):
        self.user_id = user_id
        self.resolver = resolver
        self._permissions: frozenset[str] | None = None

    @classmethod
    async def load(cls, user_id: UUID, resolver: PermissionResolver) -> "PermissionContext":
        ctx = cls(user_id, resolver)
        await ctx.refresh()
        return ctx

    async def refresh(self) -> frozenset[str]:
        """Re-resolve from the store."""
        self._permissions = await self.resolver.resolve_permissions(self.user_id)
        return self._permissions

    @property
    def loaded(self) -> bool:
        return self._permissions is not None

    @property
    def permissions(self) -> frozenset[str]:
        if self._permissions is None:
            raise RuntimeError("PermissionContext used before load()/refresh()")
        return self._permissions

    def has(self, permission: str) -> bool:
        return permission in self.permissions

    def has_any(self, permissions: Iterable[str]) -> bool:
        return any(p in self.permissions for p in permissions)

    def has_all(self, permissions: Iterable[str]) -> bool:
        return all(p in self.permissions for p in permissions)

    @property
    def can_access_admin_console(self) -> bool:
        return self.has(VIEW_ADMIN_CONSOLE)

    @property
    def can_manage_users(self) -> bool:
        return self.has(MANAGE_USERS)

    @property
    def can_manage_roles(self) -> bool:
        return self.has(MANAGE_ROLES)
