"""
Permission checking dependencies.
"""

from typing import Callable
from fastapi import Depends, HTTPException, status

from careconnect.models.user import User
from careconnect.rbac import EnforcementGate, PermissionContext, PermissionResolver
from .auth import get_current_user
from .services import get_enforcement_gate, get_permission_resolver


def require_permission(permission: str) -> Callable:
    """
    Dependency factory checking the caller's own resolved permissions.

    Usage:
    ```python
    @router.delete("/{role_id}")
    async def delete_role(
        role_id: UUID,
        _: User = Depends(require_permission("admin.manage_roles")),
    ):
        ...
    ```
    """

    async def check_permission(
        current_user: User = Depends(get_current_user),
        gate: EnforcementGate = Depends(get_enforcement_gate),
    ) -> User:
        decision = await gate.check(current_user.id, permission)

        if not decision.allowed:
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN,
                detail=f"Permission denied: {permission}",
            )

        return current_user

    return check_permission


async def get_permission_context(
    current_user: User = Depends(get_current_user),
    resolver: PermissionResolver = Depends(get_permission_resolver),
) -> PermissionContext:
    """Resolved permissions of the caller, loaded once per request."""
    return await PermissionContext.load(current_user.id, resolver)
