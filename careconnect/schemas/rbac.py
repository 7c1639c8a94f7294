"""
RBAC schemas.
"""

from datetime import datetime
from uuid import UUID
from pydantic import BaseModel, Field, ConfigDict


class PermissionResponse(BaseModel):
    """Permission response schema."""
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    name: str
    description: str | None = None
    category: str


class RoleCreate(BaseModel):
    """Role creation schema."""
    model_config = ConfigDict(extra="forbid")

    name: str = Field(min_length=1, max_length=100)
    description: str | None = Field(None, max_length=1000)
    permission_ids: list[UUID] = Field(default_factory=list)


class RoleUpdate(BaseModel):
    """Role update schema. ``is_system_role`` is deliberately absent."""
    model_config = ConfigDict(extra="forbid")

    name: str | None = Field(None, min_length=1, max_length=100)
    description: str | None = Field(None, max_length=1000)


class RoleResponse(BaseModel):
    """Role response schema."""
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    name: str
    description: str | None = None
    is_system_role: bool
    created_at: datetime
    updated_at: datetime


class RoleWithPermissionsResponse(RoleResponse):
    """Role with its granted permissions."""
    permissions: list[PermissionResponse] = Field(default_factory=list)


class AssignPermissionRequest(BaseModel):
    """Grant a permission to a role."""
    permission_id: UUID


class RolePermissionResponse(BaseModel):
    """Role/permission grant."""
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    role_id: UUID
    permission_id: UUID
    created_at: datetime


class AssignRoleRequest(BaseModel):
    """Grant a role to a user."""
    role_id: UUID


class UserRoleResponse(BaseModel):
    """User/role assignment."""
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    user_id: UUID
    role_id: UUID
    assigned_by: UUID | None = None
    created_at: datetime


class UserPermissionsResponse(BaseModel):
    """Resolved permission names for a user."""
    user_id: UUID
    permissions: list[str]
