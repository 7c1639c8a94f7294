"""
Permission catalog routes.
"""

from fastapi import APIRouter, Depends

from careconnect.api.dependencies.auth import CurrentUser
from careconnect.api.dependencies.services import get_permission_catalog
from careconnect.rbac import PermissionCatalog
from careconnect.schemas.rbac import PermissionResponse

router = APIRouter()


@router.get("", response_model=list[PermissionResponse])
async def list_permissions(
    _: CurrentUser,
    catalog: PermissionCatalog = Depends(get_permission_catalog),
):
    """List the permission catalog, grouped by category then name."""
    permissions = await catalog.list_permissions()
    return [PermissionResponse.model_validate(p) for p in permissions]
