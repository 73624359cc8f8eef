"""
Authorization resolver

Answers whether a user may perform an action at platform or organization
scope. Every check reads role assignments at call time and ignores expired
ones, so no cleanup job is needed for expiry to take effect. Denials are
returned as False; only unexpected failures raise.

Platform roles never grant organization authority: organization checks only
consider roles assigned inside that organization, plus the legacy membership
role through the adapter in ``role_migration``.
"""
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select, and_, or_, func
from typing import Optional, List
from app.models import (
    Role, Permission, RolePermission, UserRoleAssignment,
    Organization, OrganizationMembership, utcnow
)
from app.services.role_catalog import PLATFORM_SUPER_ADMIN, ORG_SUPER_ADMIN_LEVEL, ORG_ADMIN_LEVEL
from app.services.role_migration import translate_legacy_role, legacy_role_level
import logging

logger = logging.getLogger(__name__)

ROLE_MANAGEMENT_PERMISSIONS = ("org:members:write", "org:roles:write")


class AuthorizationService:

    def __init__(self, db: AsyncSession):
        self.db = db

    def _current_assignment(self, user_id: str, organization_id: Optional[str]):
        """Filter for assignments that are active and unexpired right now"""
        criteria = [
            UserRoleAssignment.user_id == user_id,
            UserRoleAssignment.is_active.is_(True),
            Role.is_active.is_(True),
            or_(UserRoleAssignment.expires_at.is_(None), UserRoleAssignment.expires_at > utcnow()),
        ]
        if organization_id is None:
            criteria += [UserRoleAssignment.organization_id.is_(None), Role.organization_id.is_(None)]
        else:
            criteria += [
                UserRoleAssignment.organization_id == organization_id,
                Role.organization_id == organization_id,
            ]
        return and_(*criteria)

    async def get_user_roles(self, user_id: str, organization_id: Optional[str] = None) -> List[Role]:
        """Roles currently held at the scope, highest level first"""
        stmt = (
            select(Role)
            .join(UserRoleAssignment, UserRoleAssignment.role_id == Role.id)
            .where(self._current_assignment(user_id, organization_id))
            .order_by(Role.level.desc())
        )
        result = await self.db.execute(stmt)
        return list(result.scalars().unique().all())

    async def get_user_permissions(self, user_id: str, organization_id: Optional[str] = None) -> List[str]:
        """Union of permissions granted by every role currently held at the scope"""
        stmt = (
            select(Permission.name)
            .join(RolePermission, RolePermission.permission_id == Permission.id)
            .join(Role, Role.id == RolePermission.role_id)
            .join(UserRoleAssignment, UserRoleAssignment.role_id == Role.id)
            .where(self._current_assignment(user_id, organization_id))
            .distinct()
        )
        result = await self.db.execute(stmt)
        return sorted(result.scalars().all())

    async def get_highest_level(self, user_id: str, organization_id: Optional[str] = None) -> int:
        stmt = (
            select(func.max(Role.level))
            .join(UserRoleAssignment, UserRoleAssignment.role_id == Role.id)
            .where(self._current_assignment(user_id, organization_id))
        )
        result = await self.db.execute(stmt)
        return result.scalar() or 0

    async def user_has_role(self, user_id: str, role_name: str, organization_id: Optional[str] = None) -> bool:
        stmt = (
            select(Role.id)
            .join(UserRoleAssignment, UserRoleAssignment.role_id == Role.id)
            .where(and_(self._current_assignment(user_id, organization_id), Role.name == role_name))
            .limit(1)
        )
        result = await self.db.execute(stmt)
        return result.scalar_one_or_none() is not None

    # Platform scope

    async def is_platform_super_admin(self, user_id: str) -> bool:
        return await self.user_has_role(user_id, PLATFORM_SUPER_ADMIN)

    async def user_has_permission(self, user_id: str, permission_name: str) -> bool:
        """Platform-scoped permission check, default deny"""
        if await self.is_platform_super_admin(user_id):
            return True
        return permission_name in await self.get_user_permissions(user_id)

    async def can_assign_role(self, acting_user_id: str, role: Role) -> bool:
        """Platform escalation guard: the actor must outrank the role"""
        return await self.get_highest_level(acting_user_id) > role.level

    # Organization scope

    async def get_membership(self, user_id: str, organization_id: str) -> Optional[OrganizationMembership]:
        stmt = select(OrganizationMembership).where(
            and_(
                OrganizationMembership.user_id == user_id,
                OrganizationMembership.organization_id == organization_id
            )
        )
        result = await self.db.execute(stmt)
        return result.scalar_one_or_none()

    async def is_member(self, user_id: str, organization_id: str) -> bool:
        return await self.get_membership(user_id, organization_id) is not None

    async def user_has_org_permission(self, user_id: str, organization_id: str, permission_name: str) -> bool:
        """Organization-scoped permission check

        Falls back to the legacy membership role when no granted permission
        matches; only the legacy super_admin tier passes that fallback.
        """
        if permission_name in await self.get_user_permissions(user_id, organization_id):
            return True

        membership = await self.get_membership(user_id, organization_id)
        if membership and translate_legacy_role(membership.role) == "super_admin":
            logger.debug(f"Legacy super_admin fallback granted {permission_name} to {user_id} in {organization_id}")
            return True
        return False

    async def get_effective_org_level(self, user_id: str, organization_id: str) -> int:
        """Highest organization role level, counting the legacy membership role"""
        level = await self.get_highest_level(user_id, organization_id)
        membership = await self.get_membership(user_id, organization_id)
        if membership:
            level = max(level, legacy_role_level(membership.role))
        return level

    async def can_manage_org_roles(self, user_id: str, organization_id: str) -> bool:
        return await self.user_has_org_permission(user_id, organization_id, "org:roles:write")

    async def can_assign_org_role(self, acting_user_id: str, organization_id: str, target_role_id: str) -> bool:
        """True only if the actor outranks the target role and may manage roles

        Equal levels never grant authority.
        """
        stmt = select(Role).where(
            and_(
                Role.id == target_role_id,
                Role.organization_id == organization_id,
                Role.is_active.is_(True)
            )
        )
        target_role = (await self.db.execute(stmt)).scalar_one_or_none()
        if target_role is None:
            return False

        acting_level = await self.get_effective_org_level(acting_user_id, organization_id)
        if acting_level <= target_role.level:
            return False

        for permission_name in ROLE_MANAGEMENT_PERMISSIONS:
            if await self.user_has_org_permission(acting_user_id, organization_id, permission_name):
                return True
        return False

    async def is_org_super_admin(self, user_id: str, organization_id: str) -> bool:
        return await self.get_effective_org_level(user_id, organization_id) >= ORG_SUPER_ADMIN_LEVEL

    async def is_org_admin(self, user_id: str, organization_id: str) -> bool:
        return await self.get_effective_org_level(user_id, organization_id) >= ORG_ADMIN_LEVEL

    async def can_view_organization(self, user_id: str, organization_id: str) -> bool:
        """Members can view; platform super admins can view any organization"""
        if await self.is_member(user_id, organization_id):
            return True
        if await self.get_highest_level(user_id, organization_id) > 0:
            return True
        return await self.is_platform_super_admin(user_id)

    async def get_manageable_organizations(self, user_id: str) -> List[Organization]:
        """Organizations where the user holds at least admin-tier authority"""
        member_orgs = select(OrganizationMembership.organization_id).where(
            OrganizationMembership.user_id == user_id
        )
        assigned_orgs = select(UserRoleAssignment.organization_id).where(
            and_(
                UserRoleAssignment.user_id == user_id,
                UserRoleAssignment.organization_id.is_not(None)
            )
        )
        stmt = select(Organization).where(
            and_(
                Organization.is_active.is_(True),
                or_(Organization.id.in_(member_orgs), Organization.id.in_(assigned_orgs))
            )
        ).order_by(Organization.name)
        organizations = (await self.db.execute(stmt)).scalars().all()

        manageable = []
        for organization in organizations:
            if await self.is_org_admin(user_id, organization.id):
                manageable.append(organization)
        return manageable
