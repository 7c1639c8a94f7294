"""
FastAPI application entry point.
"""

from contextlib import asynccontextmanager
from typing import AsyncGenerator

import structlog
from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from careconnect.core.config import settings
from careconnect.core.exceptions import (
    DuplicateName,
    InsufficientPermissions,
    NotFound,
    RBACError,
    SystemRoleProtected,
)
from careconnect.core.hooks import hooks
from careconnect.core.logging import configure_logging
from careconnect.api.routes import api_router
from careconnect.api.middleware.logging import LoggingMiddleware
from careconnect.api.middleware.request_id import RequestIdMiddleware
from careconnect.api.dependencies.services import get_permission_cache

logger = structlog.get_logger()

# Domain error -> (status code, error code)
ERROR_STATUS = {
    NotFound: (404, "not_found"),
    DuplicateName: (409, "duplicate_name"),
    SystemRoleProtected: (403, "system_role_protected"),
    InsufficientPermissions: (403, "permission_denied"),
}


async def bootstrap_rbac() -> None:
    """Seed and backfill on startup when configured to."""
    from careconnect.models.database import async_session_factory
    from careconnect.rbac import LegacyRoleMapper, seed_rbac

    async with async_session_factory() as session:
        async with session.begin():
            if settings.rbac.seed_on_startup:
                await seed_rbac(session)
            if settings.rbac.backfill_legacy_on_startup:
                await LegacyRoleMapper(session).backfill_all()


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Application lifespan events."""
    from careconnect.models.database import init_db, close_db

    # Startup
    configure_logging(settings.log_level, settings.log_format)
    await init_db()

    if settings.rbac.seed_on_startup or settings.rbac.backfill_legacy_on_startup:
        await bootstrap_rbac()

    cache = get_permission_cache()
    if cache.enabled:
        cache.install(hooks)
        logger.info("Permission cache enabled", ttl=cache.ttl)

    yield

    # Shutdown
    hooks.clear()
    await close_db()


def create_app() -> FastAPI:
    """Create and configure FastAPI application."""
    app = FastAPI(
        title=settings.app_name,
        version=settings.app_version,
        debug=settings.debug,
        lifespan=lifespan,
        docs_url="/docs" if settings.is_development else None,
        redoc_url="/redoc" if settings.is_development else None,
    )

    # Middleware (order matters - first added is outermost)
    app.add_middleware(RequestIdMiddleware)
    app.add_middleware(LoggingMiddleware)

    # Routes
    app.include_router(api_router, prefix="/api")

    # Exception handlers
    @app.exception_handler(RBACError)
    async def rbac_exception_handler(request: Request, exc: RBACError):
        """Map domain errors onto HTTP status codes."""
        status_code, error = 400, "rbac_error"
        for exc_type, mapped in ERROR_STATUS.items():
            if isinstance(exc, exc_type):
                status_code, error = mapped
                break
        return JSONResponse(
            status_code=status_code,
            content={"error": error, "message": exc.message},
        )

    @app.exception_handler(Exception)
    async def global_exception_handler(request: Request, exc: Exception):
        """Global exception handler."""
        logger.exception("Unhandled error", path=request.url.path)
        return JSONResponse(
            status_code=500,
            content={
                "error": "internal_server_error",
                "message": str(exc) if settings.debug else "An error occurred",
            },
        )

    # Health check
    @app.get("/health")
    async def health_check():
        """Quick health check endpoint (for load balancers)."""
        return {
            "status": "healthy",
            "version": settings.app_version,
            "environment": settings.environment,
        }

    return app


app = create_app()


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(
        "careconnect.main:app",
        host=settings.host,
        port=settings.port,
        reload=settings.reload,
    )
