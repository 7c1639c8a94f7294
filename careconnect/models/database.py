"""
Database connection and session management.
"""

from sqlalchemy import event
from sqlalchemy.engine import Engine
from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    create_async_engine,
    async_sessionmaker,
)

from careconnect.core.config import settings


def create_engine(url: str | None = None, **kwargs) -> AsyncEngine:
    """Create an async engine; SQLite connections are set up by configure_sqlite."""
    url = url or settings.database.url

    if url.startswith("sqlite"):
        engine = create_async_engine(url, echo=settings.database.echo, **kwargs)
        configure_sqlite(engine.sync_engine)
        return engine

    return create_async_engine(
        url,
        echo=settings.database.echo,
        pool_size=settings.database.pool_size,
        max_overflow=settings.database.pool_overflow,
        pool_timeout=settings.database.pool_timeout,
        **kwargs,
    )


def configure_sqlite(engine: Engine) -> None:
    """
    Turn on foreign keys and hand transaction control to SQLAlchemy.

    The driver otherwise defers BEGIN until the first write, so SAVEPOINT
    and RELEASE would run outside a transaction and commit on their own.
    """

    @event.listens_for(engine, "connect")
    def _on_connect(dbapi_connection, connection_record):
        dbapi_connection.isolation_level = None
        cursor = dbapi_connection.cursor()
        cursor.execute("PRAGMA foreign_keys=ON")
        cursor.close()

    @event.listens_for(engine, "begin")
    def _on_begin(conn):
        conn.exec_driver_sql("BEGIN")


engine = create_engine()

# Session factory
async_session_factory = async_sessionmaker(
    engine,
    class_=AsyncSession,
    expire_on_commit=False,
)


async def init_db() -> None:
    """Initialize database (create tables)."""
    from .base import Base
    from . import rbac, user  # noqa: F401

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)


async def close_db() -> None:
    """Close database connections."""
    await engine.dispose()
