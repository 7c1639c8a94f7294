"""
Role management routes.
"""

from uuid import UUID
from fastapi import APIRouter, Depends, HTTPException, status

from careconnect.api.dependencies.auth import CurrentUser
from careconnect.api.dependencies.permissions import require_permission
from careconnect.api.dependencies.services import get_assignment_store, get_role_registry
from careconnect.core.exceptions import SystemRoleProtected
from careconnect.models.user import User
from careconnect.rbac import AssignmentStore, RoleRegistry
from careconnect.schemas.rbac import (
    AssignPermissionRequest,
    RoleCreate,
    RolePermissionResponse,
    RoleResponse,
    RoleUpdate,
    RoleWithPermissionsResponse,
)

router = APIRouter()

MANAGE_ROLES = "admin.manage_roles"


@router.get("", response_model=list[RoleResponse])
async def list_roles(
    _: CurrentUser,
    registry: RoleRegistry = Depends(get_role_registry),
):
    """List roles alphabetically."""
    roles = await registry.list_roles()
    return [RoleResponse.model_validate(r) for r in roles]


@router.get("/{role_id}", response_model=RoleWithPermissionsResponse)
async def get_role(
    role_id: UUID,
    _: CurrentUser,
    registry: RoleRegistry = Depends(get_role_registry),
):
    """Get a role with its permissions."""
    role = await registry.get_role(role_id)
    if not role:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Role not found")
    return RoleWithPermissionsResponse.model_validate(role)


@router.post("", response_model=RoleWithPermissionsResponse, status_code=status.HTTP_201_CREATED)
async def create_role(
    data: RoleCreate,
    registry: RoleRegistry = Depends(get_role_registry),
    _: User = Depends(require_permission(MANAGE_ROLES)),
):
    """Create a custom role, optionally with permissions."""
    role = await registry.create_role(
        name=data.name,
        description=data.description,
        permission_ids=data.permission_ids,
    )
    return RoleWithPermissionsResponse.model_validate(role)


@router.put("/{role_id}", response_model=RoleWithPermissionsResponse)
async def update_role(
    role_id: UUID,
    data: RoleUpdate,
    registry: RoleRegistry = Depends(get_role_registry),
    _: User = Depends(require_permission(MANAGE_ROLES)),
):
    """Update a role's name or description."""
    role = await registry.update_role(role_id, **data.model_dump(exclude_unset=True))
    if not role:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Role not found")
    return RoleWithPermissionsResponse.model_validate(role)


@router.delete("/{role_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_role(
    role_id: UUID,
    registry: RoleRegistry = Depends(get_role_registry),
    _: User = Depends(require_permission(MANAGE_ROLES)),
):
    """Delete a custom role. System roles are refused."""
    role = await registry.get_role(role_id)
    if not role:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Role not found")
    if role.is_system_role:
        raise SystemRoleProtected(f"System role '{role.name}' cannot be deleted")

    await registry.delete_role(role_id)


# Role permissions
@router.post(
    "/{role_id}/permissions",
    response_model=RolePermissionResponse,
    status_code=status.HTTP_201_CREATED,
)
async def assign_permission(
    role_id: UUID,
    data: AssignPermissionRequest,
    store: AssignmentStore = Depends(get_assignment_store),
    _: User = Depends(require_permission(MANAGE_ROLES)),
):
    """Grant a permission to a role. Granting twice is a no-op."""
    grant = await store.assign_permission_to_role(role_id, data.permission_id)
    return RolePermissionResponse.model_validate(grant)


@router.delete("/{role_id}/permissions/{permission_id}", status_code=status.HTTP_204_NO_CONTENT)
async def remove_permission(
    role_id: UUID,
    permission_id: UUID,
    store: AssignmentStore = Depends(get_assignment_store),
    _: User = Depends(require_permission(MANAGE_ROLES)),
):
    """Revoke a permission from a role."""
    removed = await store.remove_permission_from_role(role_id, permission_id)
    if not removed:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Assignment not found")
