"""
Enforcement gate.

Route handlers ask the gate whether a principal holds a permission. The gate
keeps no state and performs no writes, so it is safe to call repeatedly and
concurrently.

Usage:
    gate = EnforcementGate(PermissionResolver(db))

    decision = await gate.check(user.id, "patients.edit")
    if not decision.allowed:
        ...

    await gate.require(user.id, "admin.manage_roles")  # raises on deny
"""

from dataclasses import dataclass, field
from typing import Any, Iterable
from uuid import UUID

from careconnect.core.exceptions import InsufficientPermissions

from .resolver import PermissionResolver


@dataclass
class PolicyDecision:
    """
    Result of a permission check.

    Attributes:
        allowed: Whether the action is permitted
        reason: Human-readable explanation (for errors/logging)
        metadata: Additional data about the decision
    """
    allowed: bool
    reason: str | None = None
    metadata: dict[str, Any] = field(default_factory=dict)

    @classmethod
    def allow(cls, reason: str | None = None) -> "PolicyDecision":
        return cls(allowed=True, reason=reason)

    @classmethod
    def deny(cls, reason: str = "Permission denied") -> "PolicyDecision":
        return cls(allowed=False, reason=reason)


class EnforcementGate:
    """Checks resolved permission sets against required permissions."""

    def __init__(self, resolver: PermissionResolver):
        self.resolver = resolver

    async def check(self, user_id: UUID, permission: str) -> PolicyDecision:
        """Evaluate a single permission. Never raises on deny."""
        permissions = await self.resolver.resolve_permissions(user_id)
        if permission in permissions:
            return PolicyDecision.allow(f"Has permission: {permission}")
        return PolicyDecision.deny(f"Missing permission: {permission}")

    async def check_any(self, user_id: UUID, required: Iterable[str]) -> PolicyDecision:
        """Allow if the user holds at least one of the permissions."""
        required = list(required)
        permissions = await self.resolver.resolve_permissions(user_id)
        granted = [p for p in required if p in permissions]
        if granted:
            return PolicyDecision.allow(f"Has permission: {granted[0]}")
        return PolicyDecision.deny(f"Missing any of: {', '.join(required)}")

    async def check_all(self, user_id: UUID, required: Iterable[str]) -> PolicyDecision:
        """Allow only if the user holds every permission."""
        required = list(required)
        permissions = await self.resolver.resolve_permissions(user_id)
        missing = [p for p in required if p not in permissions]
        if missing:
            decision = PolicyDecision.deny(f"Missing permissions: {', '.join(missing)}")
            decision.metadata["missing"] = missing
            return decision
        return PolicyDecision.allow("Has all permissions")

    async def require(self, user_id: UUID, permission: str) -> None:
        """
        Require a permission.

        Raises:
            InsufficientPermissions: If the user lacks it
        """
        decision = await self.check(user_id, permission)
        if not decision.allowed:
            raise InsufficientPermissions(permission)

    async def require_any(self, user_id: UUID, required: Iterable[str]) -> None:
        required = list(required)
        decision = await self.check_any(user_id, required)
        if not decision.allowed:
            raise InsufficientPermissions(" | ".join(required), decision.reason)

    async def require_all(self, user_id: UUID, required: Iterable[str]) -> None:
        decision = await self.check_all(user_id, required)
        if not decision.allowed:
            missing = decision.metadata["missing"]
            raise InsufficientPermissions(missing[0], decision.reason)
