"""
Pytest fixtures for testing.

Provides:
- Async database session on an in-memory SQLite engine
- Test client with auth helpers
- Factory fixtures for users and role assignments
- Seeded permission catalog and system roles
"""

import os

# Settings are read at import time
os.environ.setdefault("DB_URL", "sqlite+aiosqlite:///:memory:")
os.environ.setdefault("ENVIRONMENT", "testing")

from typing import AsyncGenerator
from uuid import uuid4

import pytest
import pytest_asyncio
from httpx import AsyncClient, ASGITransport
from sqlalchemy.ext.asyncio import create_async_engine, AsyncSession, async_sessionmaker
from sqlalchemy.pool import StaticPool

from careconnect.main import app
from careconnect.core.hooks import hooks
from careconnect.core.security import create_access_token
from careconnect.models.base import Base
from careconnect.models.database import configure_sqlite
from careconnect.models.user import LegacyRole, User
from careconnect.api.dependencies.database import get_db
from careconnect.rbac import AssignmentStore, RoleRegistry, seed_rbac


# Test database URL (SQLite in-memory for speed)
TEST_DATABASE_URL = "sqlite+aiosqlite:///:memory:"


@pytest_asyncio.fixture(scope="function")
async def db_engine():
    """Create test database engine."""
    engine = create_async_engine(
        TEST_DATABASE_URL,
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    configure_sqlite(engine.sync_engine)

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield engine

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)

    await engine.dispose()


@pytest_asyncio.fixture(scope="function")
async def db(db_engine) -> AsyncGenerator[AsyncSession, None]:
    """Database session; whatever the test leaves uncommitted is rolled back."""
    session_factory = async_sessionmaker(
        db_engine,
        class_=AsyncSession,
        expire_on_commit=False,
    )

    async with session_factory() as session:
        yield session
        await session.rollback()


@pytest_asyncio.fixture(scope="function")
async def client(db: AsyncSession) -> AsyncGenerator[AsyncClient, None]:
    """
    Test client with database session override.
    """

    async def override_get_db():
        yield db

    app.dependency_overrides[get_db] = override_get_db

    async with AsyncClient(
        transport=ASGITransport(app=app),
        base_url="http://test",
    ) as client:
        yield client

    app.dependency_overrides.clear()


@pytest.fixture(autouse=True)
def reset_hooks():
    """Handlers registered by a test never leak into the next one."""
    yield
    hooks.clear()


# ============ Factory Fixtures ============


class UserFactory:
    """Factory for creating test users."""

    def __init__(self, db: AsyncSession):
        self.db = db

    async def create(
        self,
        email: str | None = None,
        name: str = "Test User",
        role: LegacyRole = LegacyRole.STAFF,
        is_active: bool = True,
    ) -> User:
        """Create a user in the database."""
        email = email or f"test-{uuid4().hex[:8]}@example.com"

        user = User(email=email, name=name, role=role, is_active=is_active)
        self.db.add(user)
        await self.db.commit()
        await self.db.refresh(user)
        return user

    async def create_with_roles(self, *role_names: str, **kwargs) -> User:
        """Create a user holding the named RBAC roles."""
        user = await self.create(**kwargs)
        registry = RoleRegistry(self.db)
        store = AssignmentStore(self.db)
        for role_name in role_names:
            role = await registry.get_role_by_name(role_name)
            await store.assign_role_to_user(user.id, role.id)
        await self.db.commit()
        return user


@pytest_asyncio.fixture
async def user_factory(db: AsyncSession) -> UserFactory:
    """Fixture that provides UserFactory."""
    return UserFactory(db)


@pytest_asyncio.fixture
async def seeded(db: AsyncSession):
    """Seed the default permission catalog and system roles."""
    report = await seed_rbac(db)
    await db.commit()
    return report


@pytest_asyncio.fixture
async def test_user(seeded, user_factory: UserFactory) -> User:
    """Create a user holding the Staff role."""
    return await user_factory.create_with_roles("Staff")


@pytest_asyncio.fixture
async def admin_user(seeded, user_factory: UserFactory) -> User:
    """Create a user holding the Master Admin role."""
    return await user_factory.create_with_roles(
        "Master Admin",
        email="admin@example.com",
        role=LegacyRole.MASTER_ADMIN,
    )


# ============ Auth Helpers ============


def get_auth_headers(user: User) -> dict[str, str]:
    """Helper to get auth headers for any user."""
    token = create_access_token(user.id)
    return {"Authorization": f"Bearer {token}"}


@pytest.fixture
def auth_headers(test_user: User) -> dict[str, str]:
    """Get auth headers for the Staff test user."""
    return get_auth_headers(test_user)


@pytest.fixture
def admin_auth_headers(admin_user: User) -> dict[str, str]:
    """Get auth headers for the Master Admin test user."""
    return get_auth_headers(admin_user)


# ============ Concurrency Helpers ============


@pytest.fixture
def stale_lookup(monkeypatch):
    """
    Make an object's next lookup miss once, as if a concurrent request had
    inserted the row just after the check.

    Usage:
        stale_lookup(store, "get_user_role")
    """

    def patch(obj, method: str) -> None:
        real = getattr(obj, method)
        missed = []

        async def lookup(*args, **kwargs):
            if not missed:
                missed.append(args)
                return None
            return await real(*args, **kwargs)

        monkeypatch.setattr(obj, method, lookup)

    return patch
