"""
Service dependencies.
"""

from functools import lru_cache

from fastapi import Depends
from sqlalchemy.ext.asyncio import AsyncSession

from careconnect.core.config import settings
from careconnect.rbac import (
    AssignmentStore,
    EnforcementGate,
    PermissionCache,
    PermissionCatalog,
    PermissionResolver,
    RoleRegistry,
)
from .database import get_db


@lru_cache
def get_permission_cache() -> PermissionCache:
    """Process-wide resolver cache (disabled unless RBAC_CACHE_TTL > 0)."""
    return PermissionCache(ttl=settings.rbac.cache_ttl)


async def get_permission_catalog(db: AsyncSession = Depends(get_db)) -> PermissionCatalog:
    return PermissionCatalog(db)


async def get_role_registry(db: AsyncSession = Depends(get_db)) -> RoleRegistry:
    return RoleRegistry(db)


async def get_assignment_store(db: AsyncSession = Depends(get_db)) -> AssignmentStore:
    return AssignmentStore(db)


async def get_permission_resolver(db: AsyncSession = Depends(get_db)) -> PermissionResolver:
    return PermissionResolver(db, cache=get_permission_cache())


async def get_enforcement_gate(
    resolver: PermissionResolver = Depends(get_permission_resolver),
) -> EnforcementGate:
    return EnforcementGate(resolver)
