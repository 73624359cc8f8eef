"""
Organization service layer: tenants, members, teams and AI configuration
"""
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select, delete, and_, func, or_
from typing import Optional, List, Tuple, Dict, Any
from app.models import (
    Organization, OrganizationMembership, Team, TeamMembership, OrganizationAIConfig,
    User, Role, Permission, RolePermission, UserRoleAssignment, ExternalConnection, KnowledgeDocument, utcnow
)
from app.schemas import (
    OrganizationCreate, OrganizationUpdate, MemberAdd, MemberUpdate,
    TeamCreate, TeamMemberAdd, AIConfigUpdate
)
from app.services.audit_service import AuditService
from app.services.authorization_service import AuthorizationService
from app.services.org_rbac_service import OrganizationRBACService
from app.services.role_catalog import seed_organization_rbac
from app.services.role_migration import translate_legacy_role
from fastapi import HTTPException, status
import logging
import re

logger = logging.getLogger(__name__)

SLUG_PATTERN = re.compile(r'^[a-z0-9-]+$')

DEFAULT_WELCOME_TITLE = "Welcome to Zing"
DEFAULT_WELCOME_DESCRIPTION = "Your AI-powered browser assistant"


def _not_found(detail: str) -> HTTPException:
    return HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=detail)


class OrganizationService:

    def __init__(self, db: AsyncSession):
        self.db = db
        self.audit = AuditService(db)
        self.authz = AuthorizationService(db)
        self.rbac = OrganizationRBACService(db)

    async def create_organization(self, org_data: OrganizationCreate, created_by: str) -> Organization:
        """Create an organization, seed its RBAC catalogue and make the owner its super admin"""

        if not SLUG_PATTERN.match(org_data.slug):
            raise HTTPException(
                status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
                detail="Invalid slug: must contain only lowercase letters, numbers, and hyphens"
            )

        existing = await self.db.execute(select(Organization).where(Organization.slug == org_data.slug))
        if existing.scalar_one_or_none():
            raise HTTPException(
                status_code=status.HTTP_409_CONFLICT,
                detail="Organization with this slug already exists"
            )

        owner_id = org_data.owner_user_id or created_by
        if not await self.db.get(User, owner_id):
            raise _not_found("Owner user not found")

        organization = Organization(
            name=org_data.name,
            slug=org_data.slug,
            description=org_data.description,
            size=org_data.size.value if org_data.size else None,
            is_active=True,
            created_by=created_by
        )
        self.db.add(organization)
        await self.db.flush()

        roles = await seed_organization_rbac(self.db, organization.id, created_by)

        self.db.add(OrganizationMembership(user_id=owner_id, organization_id=organization.id, role="super_admin"))
        self.db.add(UserRoleAssignment(
            user_id=owner_id,
            role_id=roles["super_admin"].id,
            organization_id=organization.id,
            assigned_by=created_by
        ))

        self.audit.record(
            action="organization_created",
            resource="organization",
            resource_id=organization.id,
            user_id=created_by,
            organization_id=organization.id,
            details={"name": organization.name, "slug": organization.slug, "owner": owner_id}
        )
        await self.db.commit()
        await self.db.refresh(organization)

        logger.info(f"Organization created: {organization.name} ({organization.slug})")
        return organization

    async def get_organization(self, org_id: str) -> Organization:
        organization = await self.db.get(Organization, org_id)
        if not organization:
            raise _not_found("Organization not found")
        return organization

    async def list_organizations(
        self,
        user_id: str,
        include_all: bool = False,
        page: int = 1,
        size: int = 20,
        search: Optional[str] = None
    ) -> Tuple[List[Organization], int]:
        """Organizations the user belongs to, or every organization for platform views"""
        stmt = select(Organization)
        if not include_all:
            member_orgs = select(OrganizationMembership.organization_id).where(
                OrganizationMembership.user_id == user_id
            )
            stmt = stmt.where(Organization.id.in_(member_orgs))

        if search:
            search_pattern = f"%{search}%"
            stmt = stmt.where(
                Organization.name.ilike(search_pattern) |
                Organization.slug.ilike(search_pattern)
            )

        count_stmt = select(func.count()).select_from(stmt.subquery())
        total = (await self.db.execute(count_stmt)).scalar()

        offset = (page - 1) * size
        stmt = stmt.order_by(Organization.name).offset(offset).limit(size)
        result = await self.db.execute(stmt)
        return list(result.scalars().all()), total

    async def update_organization(
        self,
        acting_user_id: str,
        org_id: str,
        org_data: OrganizationUpdate
    ) -> Organization:
        """Requires org:settings:write; platform super admins may override"""
        organization = await self.get_organization(org_id)

        allowed = await self.authz.user_has_org_permission(acting_user_id, org_id, "org:settings:write")
        if not allowed and await self.authz.is_platform_super_admin(acting_user_id):
            logger.info(f"Platform super admin {acting_user_id} overriding settings of {org_id}")
            allowed = True
        if not allowed:
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN,
                detail="Missing required permission: org:settings:write"
            )

        changes = org_data.model_dump(exclude_unset=True)
        if "size" in changes and changes["size"] is not None:
            changes["size"] = changes["size"].value
        for field, value in changes.items():
            setattr(organization, field, value)

        self.audit.record(
            action="organization_updated",
            resource="organization",
            resource_id=org_id,
            user_id=acting_user_id,
            organization_id=org_id,
            details=changes
        )
        await self.db.commit()
        await self.db.refresh(organization)
        return organization

    async def delete_organization(self, acting_user_id: str, org_id: str) -> None:
        organization = await self.get_organization(org_id)

        team_ids = select(Team.id).where(Team.organization_id == org_id)
        role_ids = select(Role.id).where(Role.organization_id == org_id)
        permission_ids = select(Permission.id).where(Permission.organization_id == org_id)

        await self.db.execute(delete(TeamMembership).where(TeamMembership.team_id.in_(team_ids)))
        await self.db.execute(delete(Team).where(Team.organization_id == org_id))
        await self.db.execute(delete(UserRoleAssignment).where(UserRoleAssignment.organization_id == org_id))
        await self.db.execute(delete(RolePermission).where(
            or_(RolePermission.role_id.in_(role_ids), RolePermission.permission_id.in_(permission_ids))
        ))
        await self.db.execute(delete(Role).where(Role.organization_id == org_id))
        await self.db.execute(delete(Permission).where(Permission.organization_id == org_id))
        await self.db.execute(delete(OrganizationMembership).where(OrganizationMembership.organization_id == org_id))
        await self.db.execute(delete(OrganizationAIConfig).where(OrganizationAIConfig.organization_id == org_id))
        await self.db.execute(delete(KnowledgeDocument).where(KnowledgeDocument.organization_id == org_id))
        await self.db.execute(delete(ExternalConnection).where(ExternalConnection.organization_id == org_id))
        await self.db.delete(organization)

        self.audit.record(
            action="organization_deleted",
            resource="organization",
            resource_id=org_id,
            user_id=acting_user_id,
            details={"name": organization.name, "slug": organization.slug}
        )
        await self.db.commit()
        logger.info(f"Organization deleted: {organization.slug}")

    async def get_organization_stats(self, org_id: str) -> Dict[str, Any]:
        await self.get_organization(org_id)

        async def count(model, column) -> int:
            result = await self.db.execute(select(func.count()).select_from(model).where(column == org_id))
            return result.scalar()

        return {
            "organization_id": org_id,
            "member_count": await count(OrganizationMembership, OrganizationMembership.organization_id),
            "team_count": await count(Team, Team.organization_id),
            "role_count": await count(Role, Role.organization_id),
        }

    async def require_view(self, user_id: str, org_id: str) -> Organization:
        organization = await self.get_organization(org_id)
        if not await self.authz.can_view_organization(user_id, org_id):
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN,
                detail="You are not a member of this organization"
            )
        return organization

    # Members

    async def list_members(self, acting_user_id: str, org_id: str) -> List[Dict[str, Any]]:
        await self.require_view(acting_user_id, org_id)
        stmt = (
            select(OrganizationMembership, User)
            .join(User, User.id == OrganizationMembership.user_id)
            .where(OrganizationMembership.organization_id == org_id)
            .order_by(OrganizationMembership.joined_at)
        )
        result = await self.db.execute(stmt)
        members = []
        for membership, user in result.all():
            members.append({
                "id": membership.id,
                "user_id": membership.user_id,
                "organization_id": membership.organization_id,
                "role": membership.role,
                "title": membership.title,
                "department": membership.department,
                "joined_at": membership.joined_at,
                "last_accessed_at": membership.last_accessed_at,
                "email": user.email,
                "name": user.name,
            })
        return members

    async def _org_role_for_legacy(self, org_id: str, legacy_role: str) -> Role:
        role_name = translate_legacy_role(legacy_role)
        stmt = select(Role).where(
            and_(Role.organization_id == org_id, Role.name == role_name, Role.is_active.is_(True))
        )
        role = (await self.db.execute(stmt)).scalar_one_or_none()
        if not role:
            raise _not_found(f"Organization has no '{role_name}' role")
        return role

    async def _require_grant(self, acting_user_id: str, org_id: str, role: Role) -> None:
        if not await self.authz.can_assign_org_role(acting_user_id, org_id, role.id):
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN,
                detail=f"Insufficient role level: granting '{role.name}' requires org:members:write "
                       f"and a level above {role.level}"
            )

    async def _grant_org_role(self, acting_user_id: str, org_id: str, user_id: str, role: Role) -> None:
        """Reuse an existing assignment row for the role, or stage a new one"""
        assignment = (await self.db.execute(
            select(UserRoleAssignment).where(
                and_(UserRoleAssignment.user_id == user_id, UserRoleAssignment.role_id == role.id)
            )
        )).scalar_one_or_none()
        if assignment:
            assignment.is_active = True
            assignment.expires_at = None
            assignment.assigned_by = acting_user_id
            return
        self.db.add(UserRoleAssignment(
            user_id=user_id,
            role_id=role.id,
            organization_id=org_id,
            assigned_by=acting_user_id
        ))

    async def add_member(self, acting_user_id: str, org_id: str, member_data: MemberAdd) -> OrganizationMembership:
        """Add a member; the legacy role is translated into the matching org role"""
        await self.get_organization(org_id)
        await self.rbac.require_permission(acting_user_id, org_id, "org:members:write")

        if not await self.db.get(User, member_data.user_id):
            raise _not_found("User not found")
        if await self.authz.get_membership(member_data.user_id, org_id):
            raise HTTPException(
                status_code=status.HTTP_409_CONFLICT,
                detail="User is already a member of this organization"
            )

        role = await self._org_role_for_legacy(org_id, member_data.role.value)
        await self._require_grant(acting_user_id, org_id, role)

        membership = OrganizationMembership(
            user_id=member_data.user_id,
            organization_id=org_id,
            role=member_data.role.value,
            title=member_data.title,
            department=member_data.department
        )
        self.db.add(membership)
        await self._grant_org_role(acting_user_id, org_id, member_data.user_id, role)

        self.audit.record(
            action="member_added",
            resource="organization_membership",
            resource_id=member_data.user_id,
            user_id=acting_user_id,
            organization_id=org_id,
            details={"role": member_data.role.value}
        )
        await self.db.commit()
        await self.db.refresh(membership)

        logger.info(f"User {member_data.user_id} added to organization {org_id} as {member_data.role.value}")
        return membership

    async def update_member(
        self,
        acting_user_id: str,
        org_id: str,
        user_id: str,
        member_data: MemberUpdate
    ) -> OrganizationMembership:
        await self.rbac.require_permission(acting_user_id, org_id, "org:members:write")
        membership = await self.authz.get_membership(user_id, org_id)
        if not membership:
            raise _not_found("Member not found")

        changes = member_data.model_dump(exclude_unset=True)
        new_role = changes.pop("role", None)

        if new_role is not None and new_role.value != membership.role:
            old_role = await self._org_role_for_legacy(org_id, membership.role)
            role = await self._org_role_for_legacy(org_id, new_role.value)
            await self._require_grant(acting_user_id, org_id, old_role)
            await self._require_grant(acting_user_id, org_id, role)

            await self.db.execute(delete(UserRoleAssignment).where(
                and_(
                    UserRoleAssignment.user_id == user_id,
                    UserRoleAssignment.role_id == old_role.id,
                    UserRoleAssignment.organization_id == org_id
                )
            ))
            await self._grant_org_role(acting_user_id, org_id, user_id, role)
            membership.role = new_role.value
            changes["role"] = new_role.value

        for field, value in changes.items():
            setattr(membership, field, value)

        self.audit.record(
            action="member_updated",
            resource="organization_membership",
            resource_id=user_id,
            user_id=acting_user_id,
            organization_id=org_id,
            details=changes
        )
        await self.db.commit()
        await self.db.refresh(membership)
        return membership

    async def remove_member(self, acting_user_id: str, org_id: str, user_id: str) -> None:
        """Members may leave; removing someone else needs org:members:write and a higher level"""
        membership = await self.authz.get_membership(user_id, org_id)
        if not membership:
            raise _not_found("Member not found")

        if acting_user_id != user_id:
            await self.rbac.require_permission(acting_user_id, org_id, "org:members:write")
            acting_level = await self.authz.get_effective_org_level(acting_user_id, org_id)
            target_level = await self.authz.get_effective_org_level(user_id, org_id)
            if acting_level <= target_level:
                raise HTTPException(
                    status_code=status.HTTP_403_FORBIDDEN,
                    detail=f"Insufficient role level: removing this member requires a level above {target_level}"
                )

        team_ids = select(Team.id).where(Team.organization_id == org_id)
        await self.db.execute(delete(TeamMembership).where(
            and_(TeamMembership.user_id == user_id, TeamMembership.team_id.in_(team_ids))
        ))
        await self.db.execute(delete(UserRoleAssignment).where(
            and_(UserRoleAssignment.user_id == user_id, UserRoleAssignment.organization_id == org_id)
        ))
        await self.db.delete(membership)

        user = await self.db.get(User, user_id)
        if user and user.active_organization_id == org_id:
            user.active_organization_id = None

        self.audit.record(
            action="member_removed",
            resource="organization_membership",
            resource_id=user_id,
            user_id=acting_user_id,
            organization_id=org_id
        )
        await self.db.commit()
        logger.info(f"User {user_id} removed from organization {org_id}")

    # Teams

    async def list_teams(self, acting_user_id: str, org_id: str) -> List[Team]:
        await self.require_view(acting_user_id, org_id)
        stmt = select(Team).where(Team.organization_id == org_id).order_by(Team.name)
        return list((await self.db.execute(stmt)).scalars().all())

    async def create_team(self, acting_user_id: str, org_id: str, team_data: TeamCreate) -> Team:
        await self.get_organization(org_id)
        await self.rbac.require_permission(acting_user_id, org_id, "org:teams:write")

        existing = await self.db.execute(
            select(Team).where(and_(Team.organization_id == org_id, Team.name == team_data.name))
        )
        if existing.scalar_one_or_none():
            raise HTTPException(
                status_code=status.HTTP_409_CONFLICT,
                detail="A team with this name already exists in the organization"
            )

        team = Team(
            organization_id=org_id,
            name=team_data.name,
            description=team_data.description,
            created_by=acting_user_id
        )
        self.db.add(team)
        await self.db.flush()
        self.audit.record(
            action="team_created",
            resource="team",
            resource_id=team.id,
            user_id=acting_user_id,
            organization_id=org_id,
            details={"name": team.name}
        )
        await self.db.commit()
        await self.db.refresh(team)
        return team

    async def add_team_member(
        self,
        acting_user_id: str,
        org_id: str,
        team_id: str,
        member_data: TeamMemberAdd
    ) -> TeamMembership:
        await self.rbac.require_permission(acting_user_id, org_id, "org:teams:write")

        team = (await self.db.execute(
            select(Team).where(and_(Team.id == team_id, Team.organization_id == org_id))
        )).scalar_one_or_none()
        if not team:
            raise _not_found("Team not found")

        if not await self.authz.is_member(member_data.user_id, org_id):
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail="User is not a member of this organization"
            )

        existing = await self.db.execute(
            select(TeamMembership).where(
                and_(TeamMembership.team_id == team_id, TeamMembership.user_id == member_data.user_id)
            )
        )
        if existing.scalar_one_or_none():
            raise HTTPException(
                status_code=status.HTTP_409_CONFLICT,
                detail="User is already a member of this team"
            )

        membership = TeamMembership(team_id=team_id, user_id=member_data.user_id, role=member_data.role.value)
        self.db.add(membership)
        await self.db.commit()
        await self.db.refresh(membership)
        return membership

    # AI configuration

    async def get_ai_config(self, acting_user_id: str, org_id: str) -> Dict[str, Any]:
        await self.require_view(acting_user_id, org_id)
        config = (await self.db.execute(
            select(OrganizationAIConfig).where(OrganizationAIConfig.organization_id == org_id)
        )).scalar_one_or_none()
        if not config:
            return {
                "organization_id": org_id,
                "welcome_title": DEFAULT_WELCOME_TITLE,
                "welcome_description": DEFAULT_WELCOME_DESCRIPTION,
                "welcome_messages": [],
                "enabled": True,
                "updated_at": None,
            }
        return {
            "organization_id": org_id,
            "welcome_title": config.welcome_title,
            "welcome_description": config.welcome_description,
            "welcome_messages": config.welcome_messages or [],
            "enabled": config.enabled,
            "updated_at": config.updated_at,
        }

    async def update_ai_config(self, acting_user_id: str, org_id: str, config_data: AIConfigUpdate) -> Dict[str, Any]:
        await self.get_organization(org_id)
        await self.rbac.require_permission(acting_user_id, org_id, "org:ai_config:write")

        config = (await self.db.execute(
            select(OrganizationAIConfig).where(OrganizationAIConfig.organization_id == org_id)
        )).scalar_one_or_none()
        if not config:
            config = OrganizationAIConfig(
                organization_id=org_id,
                welcome_title=DEFAULT_WELCOME_TITLE,
                welcome_description=DEFAULT_WELCOME_DESCRIPTION,
                welcome_messages=[],
                enabled=True
            )
            self.db.add(config)

        changes = config_data.model_dump(exclude_unset=True)
        for field, value in changes.items():
            setattr(config, field, value)
        config.updated_by = acting_user_id

        self.audit.record(
            action="ai_config_updated",
            resource="organization_ai_config",
            resource_id=org_id,
            user_id=acting_user_id,
            organization_id=org_id,
            details=changes
        )
        await self.db.commit()
        return await self.get_ai_config(acting_user_id, org_id)

    async def switch_active_organization(self, user: User, org_id: str) -> Organization:
        organization = await self.get_organization(org_id)
        membership = await self.authz.get_membership(user.id, org_id)
        if not membership:
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN,
                detail="You are not a member of this organization"
            )

        user.active_organization_id = org_id
        membership.last_accessed_at = utcnow()
        await self.db.commit()
        logger.info(f"User {user.id} switched to organization {org_id}")
        return organization
