"""
Legacy role mapper.

Before the RBAC tables existed every user carried a single ``users.role``
enum value. The mapper translates that value into exactly one RBAC role and
backfills the matching user_roles row.

A role reference is either a ``LegacyRole`` (enum value from the users
table) or an ``RbacRoleRef`` (name of a row in the roles table); call sites
convert with ``to_rbac_role`` instead of manipulating strings.
"""

from dataclasses import dataclass, field
from typing import Iterable, Union
from uuid import UUID

import structlog
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from careconnect.models.user import LegacyRole, User

from .assignments import AssignmentStore
from .registry import RoleRegistry

logger = structlog.get_logger()


@dataclass(frozen=True)
class RbacRoleRef:
    """Reference to an RBAC role by its unique name."""
    name: str


RoleRef = Union[LegacyRole, RbacRoleRef]

MASTER_ADMIN = RbacRoleRef("Master Admin")
CLINIC_ADMIN = RbacRoleRef("Clinic Admin")
DOCTOR = RbacRoleRef("Doctor")
NURSE = RbacRoleRef("Nurse")
RECEPTIONIST = RbacRoleRef("Receptionist")
ANALYTICS_ONLY = RbacRoleRef("Analytics Only")
STAFF = RbacRoleRef("Staff")

# Fallback for staff and for values the enum does not know
DEFAULT_ROLE = STAFF

LEGACY_ROLE_MAP: dict[LegacyRole, RbacRoleRef] = {
    LegacyRole.MASTER_ADMIN: MASTER_ADMIN,
    LegacyRole.ADMIN: CLINIC_ADMIN,
    LegacyRole.DOCTOR: DOCTOR,
    LegacyRole.NURSE: NURSE,
    LegacyRole.RECEPTIONIST: RECEPTIONIST,
    LegacyRole.ANALYTICS_ONLY: ANALYTICS_ONLY,
    LegacyRole.STAFF: STAFF,
}


def map_legacy_role(role: LegacyRole | str | None) -> RbacRoleRef:
    """Map a legacy role value to its RBAC role. Unknown values map to Staff."""
    if not isinstance(role, LegacyRole):
        try:
            role = LegacyRole(role)
        except ValueError:
            return DEFAULT_ROLE
    return LEGACY_ROLE_MAP.get(role, DEFAULT_ROLE)


def to_rbac_role(ref: RoleRef) -> RbacRoleRef:
    """Normalize either side of the union to an RBAC role reference."""
    if isinstance(ref, RbacRoleRef):
        return ref
    return map_legacy_role(ref)


@dataclass
class BackfillReport:
    """Outcome of a backfill pass."""
    assigned: list[UUID] = field(default_factory=list)
    skipped: list[UUID] = field(default_factory=list)
    missing: dict[UUID, str] = field(default_factory=dict)

    @property
    def processed(self) -> int:
        return len(self.assigned) + len(self.skipped) + len(self.missing)


class LegacyRoleMapper:
    """Assigns each user the RBAC role matching their legacy role value."""

    def __init__(self, db: AsyncSession):
        self.db = db
        self.registry = RoleRegistry(db)
        self.assignments = AssignmentStore(db)

    async def backfill(self, users: Iterable[User]) -> BackfillReport:
        """
        Backfill role assignments for the given users.

        Users that already hold their target role are skipped. A target role
        missing from the registry is logged and the user is skipped; the
        pass continues with the next user.
        """
        report = BackfillReport()
        role_ids: dict[str, UUID | None] = {}

        for user in users:
            target = map_legacy_role(user.role)

            if target.name not in role_ids:
                role = await self.registry.get_role_by_name(target.name)
                role_ids[target.name] = role.id if role else None

            role_id = role_ids[target.name]
            if role_id is None:
                logger.warning(
                    "Legacy role target missing",
                    user_id=str(user.id),
                    legacy_role=str(getattr(user.role, "value", user.role)),
                    target_role=target.name,
                )
                report.missing[user.id] = target.name
                continue

            if await self.assignments.get_user_role(user.id, role_id):
                report.skipped.append(user.id)
                continue

            await self.assignments.assign_role_to_user(user.id, role_id)
            report.assigned.append(user.id)

        logger.info(
            "Legacy role backfill finished",
            assigned=len(report.assigned),
            skipped=len(report.skipped),
            missing=len(report.missing),
        )
        return report

    async def backfill_all(self) -> BackfillReport:
        """Backfill every user in the users table."""
        result = await self.db.execute(select(User).order_by(User.created_at))
        return await self.backfill(result.scalars().all())
