"""
Tests for bootstrap seeding.
"""

import pytest
from sqlalchemy import select, func
from sqlalchemy.ext.asyncio import AsyncSession

from careconnect.models.rbac import Permission, Role, RolePermission
from careconnect.rbac import (
    AssignmentStore,
    PermissionCatalog,
    RoleRegistry,
    seed_rbac,
    DEFAULT_PERMISSIONS,
    DEFAULT_ROLES,
)


async def _count(db: AsyncSession, model) -> int:
    return await db.scalar(select(func.count()).select_from(model))


@pytest.mark.asyncio
async def test_seed_creates_catalog_and_system_roles(db: AsyncSession):
    report = await seed_rbac(db)

    assert len(report.permissions_created) == len(DEFAULT_PERMISSIONS)
    assert len(report.roles_created) == len(DEFAULT_ROLES)
    assert report.unknown_permissions == []

    roles = await RoleRegistry(db).list_roles()
    assert {r.name for r in roles} == {r["name"] for r in DEFAULT_ROLES}
    assert all(r.is_system_role for r in roles)


@pytest.mark.asyncio
async def test_master_admin_holds_every_permission(db: AsyncSession, seeded):
    master = await RoleRegistry(db).get_role_by_name("Master Admin")

    assert {p.name for p in master.permissions} == {p["name"] for p in DEFAULT_PERMISSIONS}


@pytest.mark.asyncio
async def test_seed_is_idempotent(db: AsyncSession, seeded):
    counts = (
        await _count(db, Permission),
        await _count(db, Role),
        await _count(db, RolePermission),
    )

    report = await seed_rbac(db)

    assert report.permissions_created == []
    assert report.roles_created == []
    assert report.grants_added == 0
    assert (
        await _count(db, Permission),
        await _count(db, Role),
        await _count(db, RolePermission),
    ) == counts


@pytest.mark.asyncio
async def test_seed_restores_missing_grants(db: AsyncSession, seeded):
    nurse = await RoleRegistry(db).get_role_by_name("Nurse")
    view = await PermissionCatalog(db).get_permission_by_name("patients.view")
    await AssignmentStore(db).remove_permission_from_role(nurse.id, view.id)

    report = await seed_rbac(db)

    assert report.grants_added == 1
    nurse = await RoleRegistry(db).get_role_by_name("Nurse")
    assert "patients.view" in {p.name for p in nurse.permissions}


@pytest.mark.asyncio
async def test_seed_skips_unknown_permissions(db: AsyncSession):
    roles = [{"name": "Auditor", "description": None, "permissions": ["audit.read", "patients.view"]}]

    report = await seed_rbac(db, permissions=DEFAULT_PERMISSIONS, roles=roles)

    assert report.unknown_permissions == ["audit.read"]
    auditor = await RoleRegistry(db).get_role_by_name("Auditor")
    assert [p.name for p in auditor.permissions] == ["patients.view"]
