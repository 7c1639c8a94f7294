"""
Tests for permission resolution and the resolver cache.
"""

from uuid import uuid4

import pytest
import pytest_asyncio
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine

from careconnect.core.hooks import HookManager, hooks
from careconnect.models.base import Base
from careconnect.models.database import configure_sqlite
from careconnect.models.user import User
from careconnect.rbac import (
    AssignmentStore,
    PermissionCache,
    PermissionCatalog,
    PermissionResolver,
    RoleRegistry,
    DEFAULT_ROLES,
    seed_rbac,
)


class FakeClock:
    def __init__(self):
        self.now = 0.0

    def __call__(self) -> float:
        return self.now


async def _permissions(db: AsyncSession, *names: str) -> list:
    catalog = PermissionCatalog(db)
    return [
        await catalog.create_permission(name, None, name.split(".")[0])
        for name in names
    ]


@pytest.mark.asyncio
async def test_user_without_roles_resolves_to_empty_set(db: AsyncSession, user_factory):
    user = await user_factory.create()

    assert await PermissionResolver(db).resolve_permissions(user.id) == frozenset()


@pytest.mark.asyncio
async def test_unknown_user_resolves_to_empty_set(db: AsyncSession):
    assert await PermissionResolver(db).resolve_permissions(uuid4()) == frozenset()


@pytest.mark.asyncio
async def test_union_across_roles_without_duplicates(db: AsyncSession, user_factory):
    view, edit, report = await _permissions(db, "patients.view", "patients.edit", "reports.view")
    registry = RoleRegistry(db)
    await registry.create_role("Front Desk", permission_ids=[view.id, edit.id])
    await registry.create_role("Reporting", permission_ids=[view.id, report.id])
    await db.commit()

    user = await user_factory.create_with_roles("Front Desk", "Reporting")
    permissions = await PermissionResolver(db).resolve_permissions(user.id)

    assert permissions == {"patients.view", "patients.edit", "reports.view"}


@pytest.mark.asyncio
@pytest.mark.parametrize("role", DEFAULT_ROLES, ids=lambda r: r["name"])
async def test_seeded_roles_resolve_to_their_grants(seeded, user_factory, db: AsyncSession, role):
    user = await user_factory.create_with_roles(role["name"])

    permissions = await PermissionResolver(db).resolve_permissions(user.id)

    assert permissions == set(role["permissions"])


@pytest.mark.asyncio
async def test_has_permission(seeded, user_factory, db: AsyncSession):
    user = await user_factory.create_with_roles("Receptionist")
    resolver = PermissionResolver(db)

    assert await resolver.has_permission(user.id, "appointments.create") is True
    assert await resolver.has_permission(user.id, "clinical.notes.view") is False


@pytest.mark.asyncio
async def test_revoking_role_removes_its_permissions(seeded, user_factory, db: AsyncSession):
    user = await user_factory.create_with_roles("Doctor", "Staff")
    doctor = await RoleRegistry(db).get_role_by_name("Doctor")

    await AssignmentStore(db).remove_role_from_user(user.id, doctor.id)
    permissions = await PermissionResolver(db).resolve_permissions(user.id)

    assert permissions == {"patients.view", "appointments.view", "schedule.view_own"}


@pytest.mark.asyncio
async def test_deleted_role_stops_granting(db: AsyncSession, user_factory):
    view, report = await _permissions(db, "patients.view", "reports.view")
    registry = RoleRegistry(db)
    role = await registry.create_role("Analytics Only", permission_ids=[view.id, report.id])
    await db.commit()

    user = await user_factory.create_with_roles("Analytics Only")
    resolver = PermissionResolver(db)
    assert await resolver.resolve_permissions(user.id) == {"patients.view", "reports.view"}

    assert await registry.delete_role(role.id) is True
    assert await resolver.resolve_permissions(user.id) == frozenset()


@pytest.mark.asyncio
async def test_permission_revoked_from_role_disappears(db: AsyncSession, user_factory):
    view, report = await _permissions(db, "patients.view", "reports.view")
    role = await RoleRegistry(db).create_role("Reporting", permission_ids=[view.id, report.id])
    await db.commit()
    user = await user_factory.create_with_roles("Reporting")

    await AssignmentStore(db).remove_permission_from_role(role.id, report.id)

    assert await PermissionResolver(db).resolve_permissions(user.id) == {"patients.view"}


# ============ Cache ============


def test_cache_disabled_with_zero_ttl():
    cache = PermissionCache(ttl=0)
    user_id = uuid4()

    cache.set(user_id, frozenset({"patients.view"}))

    assert cache.enabled is False
    assert cache.get(user_id) is None


def test_cache_entries_expire():
    clock = FakeClock()
    cache = PermissionCache(ttl=30, clock=clock)
    user_id = uuid4()

    cache.set(user_id, frozenset({"patients.view"}))
    clock.now = 29
    assert cache.get(user_id) == {"patients.view"}

    clock.now = 30
    assert cache.get(user_id) is None


@pytest.mark.asyncio
async def test_cache_invalidated_by_hooks():
    manager = HookManager()
    cache = PermissionCache(ttl=60)
    cache.install(manager)
    alice, bob = uuid4(), uuid4()
    cache.set(alice, frozenset({"a.b"}))
    cache.set(bob, frozenset({"c.d"}))

    await manager.trigger("rbac.user_roles.changed", user_id=alice)
    assert cache.get(alice) is None
    assert cache.get(bob) == {"c.d"}

    await manager.trigger("rbac.role_permissions.changed", role_id=uuid4())
    assert cache.get(bob) is None


@pytest.mark.asyncio
async def test_cached_resolver_sees_role_changes(seeded, user_factory, db: AsyncSession):
    cache = PermissionCache(ttl=300)
    cache.install(hooks)
    user = await user_factory.create_with_roles("Staff")
    resolver = PermissionResolver(db, cache=cache)

    assert "clinical.notes.view" not in await resolver.resolve_permissions(user.id)

    nurse = await RoleRegistry(db).get_role_by_name("Nurse")
    await AssignmentStore(db).assign_role_to_user(user.id, nurse.id)

    assert "clinical.notes.view" in await resolver.resolve_permissions(user.id)


@pytest.mark.asyncio
async def test_union_independent_of_assignment_order(seeded, user_factory, db: AsyncSession):
    first = await user_factory.create_with_roles("Nurse", "Receptionist", "Staff")
    second = await user_factory.create_with_roles("Staff", "Receptionist", "Nurse")
    resolver = PermissionResolver(db)

    assert await resolver.resolve_permissions(first.id) == await resolver.resolve_permissions(
        second.id
    )


def test_cache_ignores_set_resolved_before_invalidation():
    cache = PermissionCache(ttl=60)
    user_id = uuid4()

    generation = cache.generation
    cache.invalidate(user_id)
    cache.set(user_id, frozenset({"patients.view"}), generation=generation)

    assert cache.get(user_id) is None


# ============ Cache across sessions ============


@pytest_asyncio.fixture
async def session_factory(tmp_path):
    """Sessions over a file database, so each one gets its own connection."""
    engine = create_async_engine(f"sqlite+aiosqlite:///{tmp_path / 'rbac.db'}")
    configure_sqlite(engine.sync_engine)

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)

    await engine.dispose()


async def _staff_user(session_factory) -> User:
    async with session_factory() as session:
        await seed_rbac(session)
        user = User(email="staff@example.com", name="Staff User")
        session.add(user)
        await session.flush()
        staff = await RoleRegistry(session).get_role_by_name("Staff")
        await AssignmentStore(session).assign_role_to_user(user.id, staff.id)
        await session.commit()
        return user


async def _resolve(session_factory, user_id, cache: PermissionCache) -> frozenset[str]:
    async with session_factory() as session:
        return await PermissionResolver(session, cache=cache).resolve_permissions(user_id)


@pytest.mark.asyncio
async def test_set_read_before_commit_is_not_served_after(session_factory):
    user = await _staff_user(session_factory)
    cache = PermissionCache(ttl=300)
    cache.install(hooks)

    writer = session_factory()
    try:
        nurse = await RoleRegistry(writer).get_role_by_name("Nurse")
        await AssignmentStore(writer).assign_role_to_user(user.id, nurse.id)

        # Another session still sees the committed Staff-only set
        assert "clinical.notes.view" not in await _resolve(session_factory, user.id, cache)

        await writer.commit()
    finally:
        await writer.close()

    assert "clinical.notes.view" in await _resolve(session_factory, user.id, cache)


@pytest.mark.asyncio
async def test_uncommitted_grants_never_reach_the_cache(session_factory):
    user = await _staff_user(session_factory)
    cache = PermissionCache(ttl=300)
    cache.install(hooks)

    writer = session_factory()
    try:
        nurse = await RoleRegistry(writer).get_role_by_name("Nurse")
        await AssignmentStore(writer).assign_role_to_user(user.id, nurse.id)

        own_view = await PermissionResolver(writer, cache=cache).resolve_permissions(user.id)
        assert "clinical.notes.view" in own_view
        assert cache.get(user.id) is None

        await writer.rollback()
    finally:
        await writer.close()

    assert "clinical.notes.view" not in await _resolve(session_factory, user.id, cache)
