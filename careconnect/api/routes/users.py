"""
User role and permission routes.
"""

from uuid import UUID
from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from careconnect.api.dependencies.auth import CurrentUser
from careconnect.api.dependencies.database import get_db
from careconnect.api.dependencies.permissions import get_permission_context, require_permission
from careconnect.api.dependencies.services import get_assignment_store, get_permission_resolver
from careconnect.models.user import User
from careconnect.rbac import AssignmentStore, PermissionContext, PermissionResolver
from careconnect.rbac.context import MANAGE_USERS
from careconnect.schemas.rbac import (
    AssignRoleRequest,
    RoleResponse,
    UserPermissionsResponse,
    UserRoleResponse,
)

router = APIRouter()


async def _get_user_or_404(db: AsyncSession, user_id: UUID) -> User:
    result = await db.execute(select(User).where(User.id == user_id))
    user = result.scalar_one_or_none()
    if not user:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="User not found")
    return user


def _require_self_or_manager(ctx: PermissionContext, user_id: UUID) -> None:
    if ctx.user_id != user_id and not ctx.can_manage_users:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail=f"Permission denied: {MANAGE_USERS}",
        )


@router.get("/me/permissions", response_model=UserPermissionsResponse)
async def get_my_permissions(
    ctx: PermissionContext = Depends(get_permission_context),
):
    """Get the caller's own resolved permissions."""
    return UserPermissionsResponse(user_id=ctx.user_id, permissions=sorted(ctx.permissions))


@router.get("/{user_id}/permissions", response_model=UserPermissionsResponse)
async def get_user_permissions(
    user_id: UUID,
    db: AsyncSession = Depends(get_db),
    ctx: PermissionContext = Depends(get_permission_context),
    resolver: PermissionResolver = Depends(get_permission_resolver),
):
    """
    Get a user's resolved permissions.

    Callers may read their own set; reading anyone else's needs
    admin.manage_users.
    """
    _require_self_or_manager(ctx, user_id)
    await _get_user_or_404(db, user_id)

    permissions = await resolver.resolve_permissions(user_id)
    return UserPermissionsResponse(user_id=user_id, permissions=sorted(permissions))


@router.get("/{user_id}/roles", response_model=list[RoleResponse])
async def list_user_roles(
    user_id: UUID,
    db: AsyncSession = Depends(get_db),
    ctx: PermissionContext = Depends(get_permission_context),
    store: AssignmentStore = Depends(get_assignment_store),
):
    """List the roles a user holds."""
    _require_self_or_manager(ctx, user_id)
    await _get_user_or_404(db, user_id)

    roles = await store.list_user_roles(user_id)
    return [RoleResponse.model_validate(r) for r in roles]


@router.post(
    "/{user_id}/roles",
    response_model=UserRoleResponse,
    status_code=status.HTTP_201_CREATED,
)
async def assign_role(
    user_id: UUID,
    data: AssignRoleRequest,
    store: AssignmentStore = Depends(get_assignment_store),
    current_user: User = Depends(require_permission(MANAGE_USERS)),
):
    """Grant a role to a user. Existing roles are kept."""
    assignment = await store.assign_role_to_user(
        user_id,
        data.role_id,
        assigned_by=current_user.id,
    )
    return UserRoleResponse.model_validate(assignment)


@router.delete("/{user_id}/roles/{role_id}", status_code=status.HTTP_204_NO_CONTENT)
async def remove_role(
    user_id: UUID,
    role_id: UUID,
    store: AssignmentStore = Depends(get_assignment_store),
    _: User = Depends(require_permission(MANAGE_USERS)),
):
    """Revoke a role from a user."""
    removed = await store.remove_role_from_user(user_id, role_id)
    if not removed:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Assignment not found")
