"""
Database models.
"""

from .base import (
    Base,
    CreatedAtMixin,
    TimestampMixin,
    UUIDMixin,
)
from .user import User, LegacyRole
from .rbac import Permission, Role, RolePermission, UserRole

__all__ = [
    # Base
    "Base",
    "CreatedAtMixin",
    "TimestampMixin",
    "UUIDMixin",
    # Models
    "User",
    "LegacyRole",
    "Permission",
    "Role",
    "RolePermission",
    "UserRole",
]
