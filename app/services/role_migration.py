"""
Adapter between the coarse membership role and organization RBAC roles

Memberships created before organization RBAC carry only ``user``, ``admin``
or ``super_admin``. Business logic never reads that column directly: it goes
through ``translate_legacy_role`` / ``legacy_role_level``, and
``migrate_legacy_memberships`` backfills real role assignments so the
fallback can eventually be retired.
"""
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select, and_
from typing import Dict, Optional
from app.models import OrganizationMembership, Role, UserRoleAssignment
from app.services.role_catalog import ORG_ROLES
import logging

logger = logging.getLogger(__name__)

LEGACY_ROLE_MAP = {
    "super_admin": "super_admin",
    "admin": "admin",
    "user": "member",
}


def translate_legacy_role(legacy_role: Optional[str]) -> Optional[str]:
    """Organization role name equivalent to a legacy membership role"""
    if not legacy_role:
        return None
    return LEGACY_ROLE_MAP.get(legacy_role)


def legacy_role_level(legacy_role: Optional[str]) -> int:
    role_name = translate_legacy_role(legacy_role)
    if role_name is None:
        return 0
    return ORG_ROLES[role_name][1]


async def migrate_legacy_memberships(
    db: AsyncSession,
    organization_id: Optional[str] = None,
    dry_run: bool = False
) -> Dict[str, int]:
    """Give every membership without an org role the role its legacy value maps to"""
    stmt = select(OrganizationMembership)
    if organization_id:
        stmt = stmt.where(OrganizationMembership.organization_id == organization_id)
    memberships = (await db.execute(stmt)).scalars().all()

    stats = {"memberships": len(memberships), "migrated": 0, "skipped": 0, "unmapped": 0}

    for membership in memberships:
        role_name = translate_legacy_role(membership.role)
        if role_name is None:
            stats["unmapped"] += 1
            logger.warning(
                f"Membership {membership.id} has unknown legacy role '{membership.role}'"
            )
            continue

        existing = await db.execute(
            select(UserRoleAssignment.id).where(
                and_(
                    UserRoleAssignment.user_id == membership.user_id,
                    UserRoleAssignment.organization_id == membership.organization_id
                )
            ).limit(1)
        )
        if existing.scalar_one_or_none():
            stats["skipped"] += 1
            continue

        role = (await db.execute(
            select(Role).where(
                and_(
                    Role.organization_id == membership.organization_id,
                    Role.name == role_name,
                    Role.is_active.is_(True)
                )
            )
        )).scalar_one_or_none()
        if role is None:
            stats["unmapped"] += 1
            logger.warning(
                f"Organization {membership.organization_id} has no '{role_name}' role to migrate into"
            )
            continue

        if not dry_run:
            db.add(UserRoleAssignment(
                user_id=membership.user_id,
                role_id=role.id,
                organization_id=membership.organization_id,
                assigned_by="legacy-migration",
            ))
        stats["migrated"] += 1

    if not dry_run:
        await db.commit()

    logger.info(
        f"Legacy role migration: {stats['migrated']} migrated, {stats['skipped']} skipped, "
        f"{stats['unmapped']} unmapped"
    )
    return stats
