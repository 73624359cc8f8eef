"""
Organization-scoped role and permission management

Mutations that grant or revoke roles run the escalation guard themselves,
so callers cannot bypass it.
"""
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select, delete, and_, func
from sqlalchemy.orm import selectinload
from typing import Optional, List, Tuple
from datetime import datetime
from app.models import Role, Permission, RolePermission, UserRoleAssignment
from app.schemas import RoleCreate, RoleUpdate, PermissionCreate
from app.services.audit_service import AuditService
from app.services.authorization_service import AuthorizationService
from app.services.rbac_service import validate_permission_fields
from app.services.role_catalog import ORG_SUPER_ADMIN_LEVEL, permission_name
from fastapi import HTTPException, status
import logging

logger = logging.getLogger(__name__)


def _forbidden(detail: str) -> HTTPException:
    return HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail=detail)


class OrganizationRBACService:

    def __init__(self, db: AsyncSession):
        self.db = db
        self.audit = AuditService(db)
        self.authz = AuthorizationService(db)

    async def require_permission(self, user_id: str, organization_id: str, permission: str) -> None:
        if not await self.authz.user_has_org_permission(user_id, organization_id, permission):
            logger.warning(f"User {user_id} lacks {permission} in organization {organization_id}")
            raise _forbidden(f"Missing required permission: {permission}")

    # Roles

    async def list_roles(self, organization_id: str) -> List[Role]:
        stmt = (
            select(Role)
            .where(and_(Role.organization_id == organization_id, Role.is_active.is_(True)))
            .order_by(Role.level.desc())
        )
        return list((await self.db.execute(stmt)).scalars().all())

    async def get_role(self, organization_id: str, role_id: str) -> Role:
        stmt = select(Role).where(
            and_(
                Role.id == role_id,
                Role.organization_id == organization_id,
                Role.is_active.is_(True)
            )
        )
        role = (await self.db.execute(stmt)).scalar_one_or_none()
        if not role:
            raise HTTPException(
                status_code=status.HTTP_404_NOT_FOUND,
                detail="Role not found in this organization"
            )
        return role

    async def get_role_permissions(self, role_id: str) -> List[Permission]:
        stmt = (
            select(Permission)
            .join(RolePermission, RolePermission.permission_id == Permission.id)
            .where(RolePermission.role_id == role_id)
            .order_by(Permission.category, Permission.resource, Permission.action)
        )
        return list((await self.db.execute(stmt)).scalars().all())

    async def get_role_with_permissions(self, organization_id: str, role_id: str) -> Tuple[Role, List[Permission]]:
        role = await self.get_role(organization_id, role_id)
        return role, await self.get_role_permissions(role.id)

    async def create_role(self, acting_user_id: str, organization_id: str, role_data: RoleCreate) -> Role:
        await self.require_permission(acting_user_id, organization_id, "org:roles:write")

        if role_data.level >= ORG_SUPER_ADMIN_LEVEL:
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail=f"Invalid level: {ORG_SUPER_ADMIN_LEVEL} and above is reserved for super admin"
            )

        acting_level = await self.authz.get_effective_org_level(acting_user_id, organization_id)
        if role_data.level >= acting_level:
            raise _forbidden(f"Insufficient role level: cannot create a role at level {role_data.level}")

        existing = await self.db.execute(
            select(Role).where(
                and_(
                    Role.organization_id == organization_id,
                    Role.is_active.is_(True),
                    (Role.name == role_data.name) | (Role.level == role_data.level)
                )
            )
        )
        for role in existing.scalars().all():
            field = "name" if role.name == role_data.name else "level"
            raise HTTPException(
                status_code=status.HTTP_409_CONFLICT,
                detail=f"A role with this {field} already exists in the organization"
            )

        role = Role(
            name=role_data.name,
            display_name=role_data.display_name,
            description=role_data.description,
            level=role_data.level,
            is_system=False,
            is_active=True,
            organization_id=organization_id,
            created_by=acting_user_id
        )
        self.db.add(role)
        await self.db.flush()

        self.audit.record(
            action="org_role_created",
            resource="role",
            resource_id=role.id,
            user_id=acting_user_id,
            organization_id=organization_id,
            details={"name": role.name, "level": role.level}
        )
        await self.db.commit()
        await self.db.refresh(role)

        logger.info(f"Organization role created: {role.name} (level {role.level}) in {organization_id}")
        return role

    async def update_role(self, acting_user_id: str, organization_id: str, role_id: str, role_data: RoleUpdate) -> Role:
        """Update display name and description; allowed on system roles too"""
        await self.require_permission(acting_user_id, organization_id, "org:roles:write")
        role = await self.get_role(organization_id, role_id)

        changes = role_data.model_dump(exclude_unset=True)
        for field, value in changes.items():
            setattr(role, field, value)

        self.audit.record(
            action="org_role_updated",
            resource="role",
            resource_id=role.id,
            user_id=acting_user_id,
            organization_id=organization_id,
            details=changes
        )
        await self.db.commit()
        await self.db.refresh(role)
        return role

    async def delete_role(self, acting_user_id: str, organization_id: str, role_id: str) -> None:
        """Soft delete a custom role nobody holds"""
        await self.require_permission(acting_user_id, organization_id, "org:roles:delete")
        role = await self.get_role(organization_id, role_id)

        if role.is_system:
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail="System roles cannot be deleted"
            )

        in_use = await self.db.execute(
            select(func.count()).select_from(UserRoleAssignment).where(
                and_(UserRoleAssignment.role_id == role.id, UserRoleAssignment.is_active.is_(True))
            )
        )
        if in_use.scalar() > 0:
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail="Cannot delete role that is assigned to users"
            )

        role.is_active = False
        await self.db.execute(delete(RolePermission).where(RolePermission.role_id == role.id))

        self.audit.record(
            action="org_role_deleted",
            resource="role",
            resource_id=role.id,
            user_id=acting_user_id,
            organization_id=organization_id,
            details={"name": role.name}
        )
        await self.db.commit()
        logger.info(f"Organization role {role.name} deactivated in {organization_id}")

    # Permissions

    async def list_permissions(self, organization_id: str) -> List[Permission]:
        stmt = (
            select(Permission)
            .where(Permission.organization_id == organization_id)
            .order_by(Permission.category, Permission.resource, Permission.action)
        )
        return list((await self.db.execute(stmt)).scalars().all())

    async def create_permission(
        self,
        acting_user_id: str,
        organization_id: str,
        permission_data: PermissionCreate
    ) -> Permission:
        await self.require_permission(acting_user_id, organization_id, "org:permissions:write")
        validate_permission_fields(permission_data.category, permission_data.action, categories=None)

        name = permission_data.name or permission_name(
            permission_data.resource, permission_data.action, organization_scoped=True
        )
        if not name.startswith("org:"):
            raise HTTPException(
                status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
                detail="Invalid name: organization permissions must start with 'org:'"
            )

        existing = await self.db.execute(
            select(Permission).where(
                and_(
                    Permission.organization_id == organization_id,
                    (Permission.name == name) | and_(
                        Permission.resource == permission_data.resource,
                        Permission.action == permission_data.action
                    )
                )
            )
        )
        if existing.scalars().first():
            raise HTTPException(
                status_code=status.HTTP_409_CONFLICT,
                detail="A permission with this name or resource:action already exists in the organization"
            )

        permission = Permission(
            name=name,
            display_name=permission_data.display_name,
            description=permission_data.description,
            category=permission_data.category,
            resource=permission_data.resource,
            action=permission_data.action,
            is_system=False,
            organization_id=organization_id
        )
        self.db.add(permission)
        await self.db.flush()

        self.audit.record(
            action="org_permission_created",
            resource="permission",
            resource_id=permission.id,
            user_id=acting_user_id,
            organization_id=organization_id,
            details={"name": name}
        )
        await self.db.commit()
        await self.db.refresh(permission)
        return permission

    async def _require_role_authority(self, acting_user_id: str, organization_id: str, role: Role) -> None:
        """Editing what a role grants needs org:roles:write and a higher level than the role"""
        await self.require_permission(acting_user_id, organization_id, "org:roles:write")
        acting_level = await self.authz.get_effective_org_level(acting_user_id, organization_id)
        if acting_level <= role.level:
            raise _forbidden(
                f"Insufficient role level: changing '{role.name}' requires a level above {role.level}"
            )

    async def _get_permissions(self, organization_id: str, permission_ids: List[str]) -> List[Permission]:
        if not permission_ids:
            return []
        stmt = select(Permission).where(
            and_(Permission.id.in_(permission_ids), Permission.organization_id == organization_id)
        )
        permissions = list((await self.db.execute(stmt)).scalars().all())
        missing = set(permission_ids) - {p.id for p in permissions}
        if missing:
            raise HTTPException(
                status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
                detail=f"Invalid permission_ids (not in this organization): {', '.join(sorted(missing))}"
            )
        return permissions

    async def assign_permission_to_role(
        self,
        acting_user_id: str,
        organization_id: str,
        role_id: str,
        permission_id: str
    ) -> None:
        role = await self.get_role(organization_id, role_id)
        await self._require_role_authority(acting_user_id, organization_id, role)
        await self._get_permissions(organization_id, [permission_id])

        existing = await self.db.execute(
            select(RolePermission).where(
                and_(RolePermission.role_id == role.id, RolePermission.permission_id == permission_id)
            )
        )
        if existing.scalar_one_or_none():
            raise HTTPException(
                status_code=status.HTTP_409_CONFLICT,
                detail="Role already has this permission"
            )

        self.db.add(RolePermission(role_id=role.id, permission_id=permission_id, granted_by=acting_user_id))
        self.audit.record(
            action="org_permission_granted",
            resource="role",
            resource_id=role.id,
            user_id=acting_user_id,
            organization_id=organization_id,
            details={"permission_id": permission_id}
        )
        await self.db.commit()

    async def remove_permission_from_role(
        self,
        acting_user_id: str,
        organization_id: str,
        role_id: str,
        permission_id: str
    ) -> None:
        role = await self.get_role(organization_id, role_id)
        await self._require_role_authority(acting_user_id, organization_id, role)

        result = await self.db.execute(
            delete(RolePermission).where(
                and_(RolePermission.role_id == role.id, RolePermission.permission_id == permission_id)
            )
        )
        if result.rowcount == 0:
            raise HTTPException(
                status_code=status.HTTP_404_NOT_FOUND,
                detail="Role does not have this permission"
            )

        self.audit.record(
            action="org_permission_revoked",
            resource="role",
            resource_id=role.id,
            user_id=acting_user_id,
            organization_id=organization_id,
            details={"permission_id": permission_id}
        )
        await self.db.commit()

    async def update_role_permissions(
        self,
        acting_user_id: str,
        organization_id: str,
        role_id: str,
        permission_ids: List[str]
    ) -> List[Permission]:
        role = await self.get_role(organization_id, role_id)
        await self._require_role_authority(acting_user_id, organization_id, role)
        permissions = await self._get_permissions(organization_id, list(dict.fromkeys(permission_ids)))

        await self.db.execute(delete(RolePermission).where(RolePermission.role_id == role.id))
        for permission in permissions:
            self.db.add(RolePermission(role_id=role.id, permission_id=permission.id, granted_by=acting_user_id))

        self.audit.record(
            action="org_role_permissions_updated",
            resource="role",
            resource_id=role.id,
            user_id=acting_user_id,
            organization_id=organization_id,
            details={"permissions": [p.name for p in permissions]}
        )
        await self.db.commit()
        return await self.get_role_permissions(role.id)

    # User assignments

    async def get_user_assignments(self, organization_id: str, user_id: str) -> List[UserRoleAssignment]:
        stmt = (
            select(UserRoleAssignment)
            .options(selectinload(UserRoleAssignment.role))
            .join(Role, Role.id == UserRoleAssignment.role_id)
            .where(
                and_(
                    UserRoleAssignment.user_id == user_id,
                    UserRoleAssignment.organization_id == organization_id
                )
            )
            .order_by(Role.level.desc())
        )
        return list((await self.db.execute(stmt)).scalars().all())

    async def assign_role(
        self,
        acting_user_id: str,
        organization_id: str,
        user_id: str,
        role_id: str,
        expires_at: Optional[datetime] = None
    ) -> UserRoleAssignment:
        """Grant an organization role, enforcing the escalation guard"""
        role = await self.get_role(organization_id, role_id)

        if not await self.authz.can_assign_org_role(acting_user_id, organization_id, role.id):
            logger.warning(f"User {acting_user_id} denied assigning {role.name} in {organization_id}")
            raise _forbidden(
                f"Insufficient role level: assigning '{role.name}' requires org:members:write "
                f"and a level above {role.level}"
            )

        if not await self.authz.is_member(user_id, organization_id):
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail="User is not a member of this organization"
            )

        assignment = (await self.db.execute(
            select(UserRoleAssignment).where(
                and_(UserRoleAssignment.user_id == user_id, UserRoleAssignment.role_id == role.id)
            )
        )).scalar_one_or_none()
        if assignment and assignment.is_active and await self.authz.user_has_role(user_id, role.name, organization_id):
            raise HTTPException(
                status_code=status.HTTP_409_CONFLICT,
                detail="User already has this role"
            )

        if assignment:
            assignment.is_active = True
            assignment.expires_at = expires_at
            assignment.assigned_by = acting_user_id
        else:
            assignment = UserRoleAssignment(
                user_id=user_id,
                role_id=role.id,
                organization_id=organization_id,
                assigned_by=acting_user_id,
                expires_at=expires_at
            )
            self.db.add(assignment)

        self.audit.record(
            action="org_role_assigned",
            resource="user",
            resource_id=user_id,
            user_id=acting_user_id,
            organization_id=organization_id,
            details={"role": role.name, "expires_at": expires_at}
        )
        await self.db.commit()
        await self.db.refresh(assignment)

        logger.info(f"Organization role {role.name} assigned to {user_id} in {organization_id} by {acting_user_id}")
        return assignment

    async def remove_role(self, acting_user_id: str, organization_id: str, user_id: str, role_id: str) -> None:
        """Revoke an organization role, enforcing the escalation guard"""
        role = await self.get_role(organization_id, role_id)

        if not await self.authz.can_assign_org_role(acting_user_id, organization_id, role.id):
            logger.warning(f"User {acting_user_id} denied removing {role.name} in {organization_id}")
            raise _forbidden(
                f"Insufficient role level: removing '{role.name}' requires org:members:write "
                f"and a level above {role.level}"
            )

        result = await self.db.execute(
            delete(UserRoleAssignment).where(
                and_(
                    UserRoleAssignment.user_id == user_id,
                    UserRoleAssignment.role_id == role.id,
                    UserRoleAssignment.organization_id == organization_id
                )
            )
        )
        if result.rowcount == 0:
            raise HTTPException(
                status_code=status.HTTP_404_NOT_FOUND,
                detail="User does not have this role"
            )

        self.audit.record(
            action="org_role_removed",
            resource="user",
            resource_id=user_id,
            user_id=acting_user_id,
            organization_id=organization_id,
            details={"role": role.name}
        )
        await self.db.commit()
        logger.info(f"Organization role {role.name} removed from {user_id} in {organization_id} by {acting_user_id}")
