"""
Bootstrap seeding of the permission catalog and the system roles.

Seeding is idempotent: existing permissions and roles are reused and only
missing grants are added, so it can run on every deploy.

Run standalone:
    python -m careconnect.rbac.seed [--backfill]
"""

import argparse
import asyncio
from dataclasses import dataclass, field

import structlog
from sqlalchemy.ext.asyncio import AsyncSession

from .assignments import AssignmentStore
from .catalog import PermissionCatalog
from .legacy import LegacyRoleMapper
from .registry import RoleRegistry

logger = structlog.get_logger()


DEFAULT_PERMISSIONS: list[dict[str, str]] = [
    # Patients
    {"name": "patients.view", "description": "View patient information", "category": "patients"},
    {"name": "patients.create", "description": "Create new patients", "category": "patients"},
    {"name": "patients.edit", "description": "Edit patient information", "category": "patients"},
    {"name": "patients.deactivate", "description": "Deactivate patients", "category": "patients"},
    # Appointments
    {"name": "appointments.view", "description": "View appointments", "category": "appointments"},
    {"name": "appointments.create", "description": "Create appointments", "category": "appointments"},
    {"name": "appointments.edit", "description": "Edit appointments", "category": "appointments"},
    {"name": "appointments.cancel", "description": "Cancel appointments", "category": "appointments"},
    {"name": "appointments.reschedule", "description": "Reschedule appointments", "category": "appointments"},
    # Schedule
    {"name": "schedule.view_own", "description": "View own schedule", "category": "schedule"},
    {"name": "schedule.view_all", "description": "View all schedules", "category": "schedule"},
    {"name": "schedule.manage", "description": "Manage schedules", "category": "schedule"},
    # Reports
    {"name": "reports.view", "description": "View reports", "category": "reports"},
    {"name": "reports.export", "description": "Export reports", "category": "reports"},
    {"name": "reports.advanced", "description": "Access advanced analytics", "category": "reports"},
    # Clinical
    {"name": "clinical.notes.view", "description": "View clinical notes", "category": "clinical"},
    {"name": "clinical.notes.edit", "description": "Edit clinical notes", "category": "clinical"},
    {"name": "clinical.prescriptions.create", "description": "Create prescriptions", "category": "clinical"},
    # Admin
    {"name": "admin.view_console", "description": "Access admin console", "category": "admin"},
    {"name": "admin.manage_users", "description": "Manage users", "category": "admin"},
    {"name": "admin.manage_roles", "description": "Manage roles and permissions", "category": "admin"},
    {"name": "admin.manage_clinics", "description": "Manage clinics", "category": "admin"},
    {"name": "admin.view_audit_logs", "description": "View audit logs", "category": "admin"},
    {"name": "admin.system_settings", "description": "Modify system settings", "category": "admin"},
]


DEFAULT_ROLES: list[dict] = [
    {
        "name": "Master Admin",
        "description": "Full system access with all permissions",
        "permissions": [p["name"] for p in DEFAULT_PERMISSIONS],
    },
    {
        "name": "Clinic Admin",
        "description": "Administrative access within clinic scope",
        "permissions": [
            "patients.view", "patients.create", "patients.edit", "patients.deactivate",
            "appointments.view", "appointments.create", "appointments.edit",
            "appointments.cancel", "appointments.reschedule",
            "schedule.view_all", "schedule.manage",
            "reports.view", "reports.export", "reports.advanced",
            "admin.view_console", "admin.manage_users",
        ],
    },
    {
        "name": "Doctor",
        "description": "Medical professional with clinical access",
        "permissions": [
            "patients.view", "patients.create", "patients.edit",
            "appointments.view", "appointments.create", "appointments.edit",
            "appointments.cancel", "appointments.reschedule",
            "schedule.view_all",
            "reports.view", "reports.export",
            "clinical.notes.view", "clinical.notes.edit", "clinical.prescriptions.create",
        ],
    },
    {
        "name": "Nurse",
        "description": "Nursing staff with patient care access",
        "permissions": [
            "patients.view", "patients.edit",
            "appointments.view", "appointments.create", "appointments.reschedule",
            "schedule.view_all",
            "clinical.notes.view",
        ],
    },
    {
        "name": "Receptionist",
        "description": "Front desk staff for scheduling and patient management",
        "permissions": [
            "patients.view", "patients.create", "patients.edit",
            "appointments.view", "appointments.create", "appointments.reschedule",
            "schedule.view_all",
        ],
    },
    {
        "name": "Analytics Only",
        "description": "Read-only access for reports and analytics",
        "permissions": [
            "patients.view",
            "appointments.view",
            "schedule.view_all",
            "reports.view", "reports.export", "reports.advanced",
        ],
    },
    {
        "name": "Staff",
        "description": "Basic staff access",
        "permissions": [
            "patients.view",
            "appointments.view",
            "schedule.view_own",
        ],
    },
]


@dataclass
class SeedReport:
    """What a seeding pass created."""
    permissions_created: list[str] = field(default_factory=list)
    roles_created: list[str] = field(default_factory=list)
    grants_added: int = 0
    unknown_permissions: list[str] = field(default_factory=list)


async def seed_rbac(
    db: AsyncSession,
    permissions: list[dict[str, str]] | None = None,
    roles: list[dict] | None = None,
) -> SeedReport:
    """Seed the permission catalog and system roles."""
    permissions = DEFAULT_PERMISSIONS if permissions is None else permissions
    roles = DEFAULT_ROLES if roles is None else roles

    catalog = PermissionCatalog(db)
    registry = RoleRegistry(db)
    store = AssignmentStore(db)
    report = SeedReport()

    permission_ids = {}
    for data in permissions:
        permission, created = await catalog.ensure_permission(
            data["name"], data.get("description"), data["category"]
        )
        permission_ids[permission.name] = permission.id
        if created:
            report.permissions_created.append(permission.name)

    # Permissions seeded by an earlier run with a different catalog
    for permission in await catalog.list_permissions():
        permission_ids.setdefault(permission.name, permission.id)

    for data in roles:
        role = await registry.get_role_by_name(data["name"])
        if role is None:
            role = await registry.create_role(
                data["name"], data.get("description"), is_system_role=True
            )
            report.roles_created.append(role.name)

        granted = {p.name for p in role.permissions}
        for name in data["permissions"]:
            if name in granted:
                continue
            permission_id = permission_ids.get(name)
            if permission_id is None:
                logger.warning("Seed permission not found", permission=name, role=role.name)
                report.unknown_permissions.append(name)
                continue
            await store.assign_permission_to_role(role.id, permission_id)
            report.grants_added += 1

    await db.flush()

    logger.info(
        "RBAC seeding completed",
        permissions_created=len(report.permissions_created),
        roles_created=len(report.roles_created),
        grants_added=report.grants_added,
    )
    return report


async def run(backfill: bool = False) -> None:
    """Seed (and optionally backfill) against the configured database."""
    from careconnect.core.config import settings
    from careconnect.core.logging import configure_logging
    from careconnect.models.database import async_session_factory, init_db, close_db

    configure_logging(settings.log_level, settings.log_format)
    await init_db()

    try:
        async with async_session_factory() as session:
            async with session.begin():
                await seed_rbac(session)
                if backfill:
                    await LegacyRoleMapper(session).backfill_all()
    finally:
        await close_db()


def main() -> None:
    parser = argparse.ArgumentParser(description="Seed RBAC permissions and system roles")
    parser.add_argument(
        "--backfill",
        action="store_true",
        help="Also assign RBAC roles from the legacy users.role column",
    )
    args = parser.parse_args()
    asyncio.run(run(backfill=args.backfill))


if __name__ == "__main__":
    main()
