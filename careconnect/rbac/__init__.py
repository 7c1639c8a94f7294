"""
Role-based access control core.

Components:
- PermissionCatalog: named permissions grouped by category
- RoleRegistry: roles, with delete protection for system roles
- AssignmentStore: role/permission and user/role grants
- PermissionResolver: a user's deduplicated permission set
- LegacyRoleMapper: users.role enum -> RBAC role assignment
- EnforcementGate: allow/deny checks for route handlers
- PermissionContext: one principal's resolved set, with refresh()
"""

from .catalog import PermissionCatalog
from .registry import RoleRegistry
from .assignments import AssignmentStore
from .resolver import PermissionResolver, PermissionCache
from .legacy import LegacyRoleMapper, RbacRoleRef, BackfillReport, map_legacy_role, to_rbac_role
from .gate import EnforcementGate, PolicyDecision
from .context import PermissionContext
from .seed import seed_rbac, DEFAULT_PERMISSIONS, DEFAULT_ROLES

__all__ = [
    "PermissionCatalog",
    "RoleRegistry",
    "AssignmentStore",
    "PermissionResolver",
    "PermissionCache",
    "LegacyRoleMapper",
    "RbacRoleRef",
    "BackfillReport",
    "map_legacy_role",
    "to_rbac_role",
    "EnforcementGate",
    "PolicyDecision",
    "PermissionContext",
    "seed_rbac",
    "DEFAULT_PERMISSIONS",
    "DEFAULT_ROLES",
]
