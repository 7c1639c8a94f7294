"""
API routes.
"""

from fastapi import APIRouter

from .permissions import router as permissions_router
from .roles import router as roles_router
from .users import router as users_router

api_router = APIRouter()

api_router.include_router(permissions_router, prefix="/permissions", tags=["Permissions"])
api_router.include_router(roles_router, prefix="/roles", tags=["Roles"])
api_router.include_router(users_router, prefix="/users", tags=["Users"])
