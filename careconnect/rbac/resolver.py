"""
Permission resolver.

Walks user -> user_roles -> roles -> role_permissions -> permissions in a
single query and returns the distinct permission names. A user without roles
resolves to the empty set.
"""

import time
from typing import Any, Callable
from uuid import UUID

from sqlalchemy import event, select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import Session, SessionTransaction

from careconnect.core.hooks import (
    HookManager,
    ROLE_DELETED,
    ROLE_PERMISSIONS_CHANGED,
    USER_ROLES_CHANGED,
)
from careconnect.models.rbac import Permission, Role, RolePermission, UserRole

# Session.info key holding (cache, user_id) pairs to drop when the
# session's outermost transaction ends
PENDING_INVALIDATIONS = "rbac.pending_invalidations"


def _session_info(session: AsyncSession | Session) -> dict:
    return getattr(session, "sync_session", session).info


def has_pending_invalidations(session: AsyncSession | Session) -> bool:
    """True while the session holds uncommitted RBAC mutations."""
    return bool(_session_info(session).get(PENDING_INVALIDATIONS))


@event.listens_for(Session, "after_transaction_end")
def _invalidate_after_transaction(session: Session, transaction: SessionTransaction) -> None:
    # Savepoints end inside the outer transaction; only the root counts.
    # Commit and rollback both invalidate: sets read meanwhile are suspect.
    if transaction.parent is not None:
        return
    for cache, user_id in session.info.pop(PENDING_INVALIDATIONS, []):
        cache.invalidate(user_id)


class PermissionCache:
    """
    In-process TTL cache of resolved permission sets.

    Entries are dropped on any assignment change delivered through the hook
    manager: once when the change is flushed and again when the mutating
    transaction ends, so a set read by another session before the commit is
    not served afterwards. A ttl of 0 disables caching entirely.
    """

    def __init__(self, ttl: int = 0, clock: Callable[[], float] = time.monotonic):
        self.ttl = ttl
        self._clock = clock
        self._entries: dict[UUID, tuple[frozenset[str], float]] = {}
        self._generation = 0

    @property
    def enabled(self) -> bool:
        return self.ttl > 0

    @property
    def generation(self) -> int:
        """Bumped by every invalidation."""
        return self._generation

    def get(self, user_id: UUID) -> frozenset[str] | None:
        if not self.enabled:
            return None
        entry = self._entries.get(user_id)
        if entry is None:
            return None
        permissions, cached_at = entry
        if self._clock() - cached_at >= self.ttl:
            self._entries.pop(user_id, None)
            return None
        return permissions

    def set(
        self,
        user_id: UUID,
        permissions: frozenset[str],
        generation: int | None = None,
    ) -> None:
        """
        Store a resolved set.

        With ``generation`` (read before the query), the set is dropped if an
        invalidation happened while it was being resolved.
        """
        if not self.enabled:
            return
        if generation is not None and generation != self._generation:
            return
        self._entries[user_id] = (permissions, self._clock())

    def invalidate(self, user_id: UUID | None = None) -> None:
        """Drop one user's entry, or everything."""
        self._generation += 1
        if user_id is None:
            self._entries.clear()
        else:
            self._entries.pop(user_id, None)

    def invalidate_on_commit(
        self,
        session: AsyncSession | Session | None,
        user_id: UUID | None = None,
    ) -> None:
        """Invalidate now and again when the session's transaction ends."""
        self.invalidate(user_id)
        if session is not None:
            _session_info(session).setdefault(PENDING_INVALIDATIONS, []).append(
                (self, user_id)
            )

    def install(self, hook_manager: HookManager) -> None:
        """Subscribe to the RBAC mutation events that stale cached sets."""

        async def on_user_roles_changed(
            user_id: UUID,
            session: AsyncSession | None = None,
            **_: Any,
        ) -> None:
            self.invalidate_on_commit(session, user_id)

        async def on_role_changed(session: AsyncSession | None = None, **_: Any) -> None:
            # A role change can affect any holder of that role
            self.invalidate_on_commit(session)

        hook_manager.register(USER_ROLES_CHANGED, on_user_roles_changed)
        hook_manager.register(ROLE_PERMISSIONS_CHANGED, on_role_changed)
        hook_manager.register(ROLE_DELETED, on_role_changed)


class PermissionResolver:
    """Read-only resolution of a user's effective permissions."""

    def __init__(self, db: AsyncSession, cache: PermissionCache | None = None):
        self.db = db
        self.cache = cache

    async def resolve_permissions(self, user_id: UUID) -> frozenset[str]:
        """Get the deduplicated permission names granted through all roles."""
        # A session with uncommitted RBAC changes sees its own view; keep it
        # out of the shared cache in both directions
        cache = self.cache
        if cache is not None and has_pending_invalidations(self.db):
            cache = None

        generation = None
        if cache is not None:
            cached = cache.get(user_id)
            if cached is not None:
                return cached
            generation = cache.generation

        stmt = (
            select(Permission.name)
            .join(RolePermission, RolePermission.permission_id == Permission.id)
            .join(Role, Role.id == RolePermission.role_id)
            .join(UserRole, UserRole.role_id == Role.id)
            .where(UserRole.user_id == user_id)
            .distinct()
        )
        result = await self.db.execute(stmt)
        permissions = frozenset(result.scalars().all())

        if cache is not None:
            cache.set(user_id, permissions, generation=generation)
        return permissions

    async def has_permission(self, user_id: UUID, permission: str) -> bool:
        """Check if user holds a specific permission."""
        return permission in await self.resolve_permissions(user_id)
