"""
Hook manager for RBAC lifecycle events.
"""
from __future__ import annotations

from typing import Callable, Any, Awaitable
from dataclasses import dataclass, field
from collections import defaultdict
import logging

logger = logging.getLogger(__name__)


# Event names
ROLE_CREATED = "rbac.role.created"
ROLE_UPDATED = "rbac.role.updated"
ROLE_DELETED = "rbac.role.deleted"
ROLE_PERMISSIONS_CHANGED = "rbac.role_permissions.changed"
USER_ROLES_CHANGED = "rbac.user_roles.changed"


@dataclass
class HookResult:
    """Result from running hooks."""
    hook_name: str
    results: list[Any] = field(default_factory=list)
    errors: list[tuple[str, Exception]] = field(default_factory=list)


class HookManager:
    """
    Dispatches RBAC mutation events to registered async handlers.

    Events:
    - rbac.role.created: role=Role
    - rbac.role.updated: role=Role
    - rbac.role.deleted: role_id=UUID
    - rbac.role_permissions.changed: role_id=UUID
    - rbac.user_roles.changed: user_id=UUID

    Every event also carries session=AsyncSession, the session holding the
    uncommitted change.

    Example usage:
    ```python
    @hooks.on(USER_ROLES_CHANGED)
    async def drop_cached_permissions(user_id, **_):
        cache.invalidate(user_id)

    await hooks.trigger(USER_ROLES_CHANGED, user_id=user.id)
    ```
    """

    def __init__(self):
        self._hooks: dict[str, list[Callable[..., Awaitable[Any]]]] = defaultdict(list)

    def register(self, name: str, handler: Callable[..., Awaitable[Any]]) -> None:
        """Register a hook handler."""
        self._hooks[name].append(handler)
        logger.debug(f"Registered hook: {name}")

    def unregister(self, name: str, handler: Callable) -> bool:
        """Unregister a hook handler."""
        handlers = self._hooks.get(name, [])
        if handler in handlers:
            handlers.remove(handler)
            return True
        return False

    def on(self, name: str) -> Callable:
        """Decorator to register a hook handler."""
        def decorator(func: Callable[..., Awaitable[Any]]) -> Callable[..., Awaitable[Any]]:
            self.register(name, func)
            return func
        return decorator

    async def trigger(self, name: str, *args, **kwargs) -> HookResult:
        """
        Trigger all handlers for a hook.

        Handler failures are logged and collected; they never abort the
        mutation that fired the event.
        """
        result = HookResult(hook_name=name)

        for handler in list(self._hooks.get(name, [])):
            try:
                result.results.append(await handler(*args, **kwargs))
            except Exception as e:
                result.errors.append((getattr(handler, "__qualname__", str(handler)), e))
                logger.error(f"Hook {name} handler error: {e}")

        return result

    def has_hooks(self, name: str) -> bool:
        """Check if any hooks are registered for name."""
        return bool(self._hooks.get(name))

    def clear(self, name: str | None = None) -> None:
        """Clear hooks. If name given, clear only that hook."""
        if name:
            self._hooks.pop(name, None)
        else:
            self._hooks.clear()


# Global hook manager instance
hooks = HookManager()
