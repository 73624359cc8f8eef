"""
Platform role and permission management service layer
"""
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select, delete, and_, func
from sqlalchemy.orm import selectinload
from typing import Optional, List, Tuple, Dict, Iterable
from datetime import datetime
from app.models import Role, Permission, RolePermission, UserRoleAssignment, User
from app.schemas import RoleCreate, RoleUpdate, PermissionCreate
from app.services.audit_service import AuditService
from app.services.authorization_service import AuthorizationService
from app.services.role_catalog import PERMISSION_CATEGORIES, PERMISSION_ACTIONS, permission_name
from fastapi import HTTPException, status
import logging

logger = logging.getLogger(__name__)

ADMIN_ROLE_LEVEL = 90


def validate_permission_fields(
    category: Optional[str],
    action: str,
    categories: Optional[Iterable[str]] = PERMISSION_CATEGORIES
) -> None:
    """Reject values outside the allow-lists, naming the offending field"""
    if categories is not None and category not in categories:
        raise HTTPException(
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
            detail=f"Invalid category '{category}': must be one of {', '.join(categories)}"
        )
    if action not in PERMISSION_ACTIONS:
        raise HTTPException(
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
            detail=f"Invalid action '{action}': must be one of {', '.join(PERMISSION_ACTIONS)}"
        )


class RBACService:
    """CRUD over platform-scoped roles, permissions and user assignments"""

    def __init__(self, db: AsyncSession):
        self.db = db
        self.audit = AuditService(db)
        self.authz = AuthorizationService(db)

    # Roles

    async def list_roles(self, include_inactive: bool = False) -> List[Role]:
        stmt = select(Role).where(Role.organization_id.is_(None))
        if not include_inactive:
            stmt = stmt.where(Role.is_active.is_(True))
        result = await self.db.execute(stmt.order_by(Role.level.desc()))
        return list(result.scalars().all())

    async def get_role(self, role_id: str) -> Role:
        stmt = select(Role).where(and_(Role.id == role_id, Role.organization_id.is_(None)))
        role = (await self.db.execute(stmt)).scalar_one_or_none()
        if not role:
            raise HTTPException(
                status_code=status.HTTP_404_NOT_FOUND,
                detail="Role not found"
            )
        return role

    async def get_role_permissions(self, role_id: str) -> List[Permission]:
        stmt = (
            select(Permission)
            .join(RolePermission, RolePermission.permission_id == Permission.id)
            .where(RolePermission.role_id == role_id)
            .order_by(Permission.category, Permission.resource, Permission.action)
        )
        result = await self.db.execute(stmt)
        return list(result.scalars().all())

    async def get_role_with_permissions(self, role_id: str) -> Tuple[Role, List[Permission]]:
        role = await self.get_role(role_id)
        return role, await self.get_role_permissions(role.id)

    async def create_role(self, role_data: RoleCreate, created_by: Optional[str] = None) -> Role:
        """Create a custom platform role; name and level are unique on the platform"""
        existing = await self.db.execute(
            select(Role).where(
                and_(
                    Role.organization_id.is_(None),
                    (Role.name == role_data.name) | (Role.level == role_data.level)
                )
            )
        )
        for role in existing.scalars().all():
            field = "name" if role.name == role_data.name else "level"
            raise HTTPException(
                status_code=status.HTTP_409_CONFLICT,
                detail=f"A platform role with this {field} already exists"
            )

        role = Role(
            name=role_data.name,
            display_name=role_data.display_name,
            description=role_data.description,
            level=role_data.level,
            is_system=False,
            is_active=True,
            created_by=created_by
        )
        self.db.add(role)
        await self.db.flush()

        self.audit.record(
            action="role_created",
            resource="role",
            resource_id=role.id,
            user_id=created_by,
            details={"name": role.name, "level": role.level}
        )
        await self.db.commit()
        await self.db.refresh(role)

        logger.info(f"Platform role created: {role.name} (level {role.level})")
        return role

    async def update_role(self, role_id: str, role_data: RoleUpdate, updated_by: Optional[str] = None) -> Role:
        role = await self.get_role(role_id)

        changes = role_data.model_dump(exclude_unset=True)
        for field, value in changes.items():
            setattr(role, field, value)

        self.audit.record(
            action="role_updated",
            resource="role",
            resource_id=role.id,
            user_id=updated_by,
            details=changes
        )
        await self.db.commit()
        await self.db.refresh(role)
        return role

    async def delete_role(self, role_id: str, deleted_by: Optional[str] = None) -> None:
        """Delete a custom role that nobody holds; its grants go with it"""
        role = await self.get_role(role_id)

        if role.is_system:
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail="System roles cannot be deleted"
            )

        in_use = await self.db.execute(
            select(func.count()).select_from(UserRoleAssignment).where(UserRoleAssignment.role_id == role.id)
        )
        if in_use.scalar() > 0:
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail="Cannot delete role that is assigned to users"
            )

        await self.db.execute(delete(RolePermission).where(RolePermission.role_id == role.id))
        await self.db.delete(role)

        self.audit.record(
            action="role_deleted",
            resource="role",
            resource_id=role_id,
            user_id=deleted_by,
            details={"name": role.name}
        )
        await self.db.commit()
        logger.info(f"Platform role deleted: {role.name}")

    # Permissions

    async def list_permissions(self) -> List[Permission]:
        stmt = (
            select(Permission)
            .where(Permission.organization_id.is_(None))
            .order_by(Permission.category, Permission.resource, Permission.action)
        )
        result = await self.db.execute(stmt)
        return list(result.scalars().all())

    async def get_permissions_by_category(self) -> Dict[str, List[Permission]]:
        grouped: Dict[str, List[Permission]] = {}
        for permission in await self.list_permissions():
            grouped.setdefault(permission.category, []).append(permission)
        return grouped

    async def create_permission(self, permission_data: PermissionCreate, created_by: Optional[str] = None) -> Permission:
        validate_permission_fields(permission_data.category, permission_data.action)
        name = permission_data.name or permission_name(permission_data.resource, permission_data.action)

        existing = await self.db.execute(
            select(Permission).where(
                and_(
                    Permission.organization_id.is_(None),
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
                detail="A permission with this name or resource:action already exists"
            )

        permission = Permission(
            name=name,
            display_name=permission_data.display_name,
            description=permission_data.description,
            category=permission_data.category,
            resource=permission_data.resource,
            action=permission_data.action,
            is_system=False
        )
        self.db.add(permission)
        await self.db.flush()

        self.audit.record(
            action="permission_created",
            resource="permission",
            resource_id=permission.id,
            user_id=created_by,
            details={"name": name}
        )
        await self.db.commit()
        await self.db.refresh(permission)

        logger.info(f"Platform permission created: {name}")
        return permission

    async def _get_permissions(self, permission_ids: List[str]) -> List[Permission]:
        """Load platform permissions by id; unknown ids are a validation error"""
        if not permission_ids:
            return []
        stmt = select(Permission).where(
            and_(Permission.id.in_(permission_ids), Permission.organization_id.is_(None))
        )
        permissions = list((await self.db.execute(stmt)).scalars().all())
        missing = set(permission_ids) - {p.id for p in permissions}
        if missing:
            raise HTTPException(
                status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
                detail=f"Invalid permission_ids: {', '.join(sorted(missing))}"
            )
        return permissions

    async def assign_permission_to_role(self, role_id: str, permission_id: str, granted_by: Optional[str] = None) -> None:
        role = await self.get_role(role_id)
        await self._get_permissions([permission_id])

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

        self.db.add(RolePermission(role_id=role.id, permission_id=permission_id, granted_by=granted_by))
        self.audit.record(
            action="permission_granted",
            resource="role",
            resource_id=role.id,
            user_id=granted_by,
            details={"permission_id": permission_id}
        )
        await self.db.commit()

    async def remove_permission_from_role(self, role_id: str, permission_id: str, removed_by: Optional[str] = None) -> None:
        role = await self.get_role(role_id)
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
            action="permission_revoked",
            resource="role",
            resource_id=role.id,
            user_id=removed_by,
            details={"permission_id": permission_id}
        )
        await self.db.commit()

    async def update_role_permissions(
        self,
        role_id: str,
        permission_ids: List[str],
        granted_by: Optional[str] = None
    ) -> List[Permission]:
        """Replace the full set of permissions granted by a role"""
        role = await self.get_role(role_id)
        permissions = await self._get_permissions(list(dict.fromkeys(permission_ids)))

        await self.db.execute(delete(RolePermission).where(RolePermission.role_id == role.id))
        for permission in permissions:
            self.db.add(RolePermission(role_id=role.id, permission_id=permission.id, granted_by=granted_by))

        self.audit.record(
            action="role_permissions_updated",
            resource="role",
            resource_id=role.id,
            user_id=granted_by,
            details={"permissions": [p.name for p in permissions]}
        )
        await self.db.commit()

        logger.info(f"Permissions of platform role {role.name} replaced ({len(permissions)} granted)")
        return await self.get_role_permissions(role.id)

    # User assignments

    async def get_user_assignments(self, user_id: str) -> List[UserRoleAssignment]:
        stmt = (
            select(UserRoleAssignment)
            .options(selectinload(UserRoleAssignment.role))
            .join(Role, Role.id == UserRoleAssignment.role_id)
            .where(
                and_(
                    UserRoleAssignment.user_id == user_id,
                    UserRoleAssignment.organization_id.is_(None)
                )
            )
            .order_by(Role.level.desc())
        )
        result = await self.db.execute(stmt)
        return list(result.scalars().all())

    async def assign_role_to_user(
        self,
        acting_user_id: str,
        user_id: str,
        role_id: str,
        expires_at: Optional[datetime] = None
    ) -> UserRoleAssignment:
        """Grant a platform role; the actor must outrank the role being granted"""
        user = await self.db.get(User, user_id)
        if not user:
            raise HTTPException(
                status_code=status.HTTP_404_NOT_FOUND,
                detail="User not found"
            )
        role = await self.get_role(role_id)

        if user.is_zing_user and role.level >= ADMIN_ROLE_LEVEL:
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail="Users registered via Zing Browser cannot be assigned administrator roles"
            )

        if not await self.authz.can_assign_role(acting_user_id, role):
            logger.warning(f"User {acting_user_id} denied assigning platform role {role.name}")
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN,
                detail=f"Insufficient role level: assigning '{role.name}' requires a level above {role.level}"
            )

        assignment = await self._find_assignment(user_id, role.id)
        if assignment and assignment.is_active and await self.authz.user_has_role(user_id, role.name):
            raise HTTPException(
                status_code=status.HTTP_409_CONFLICT,
                detail="User already has this role"
            )

        if assignment:
            # Reactivate an expired or revoked grant in place
            assignment.is_active = True
            assignment.expires_at = expires_at
            assignment.assigned_by = acting_user_id
        else:
            assignment = UserRoleAssignment(
                user_id=user_id,
                role_id=role.id,
                assigned_by=acting_user_id,
                expires_at=expires_at
            )
            self.db.add(assignment)

        self.audit.record(
            action="role_assigned",
            resource="user",
            resource_id=user_id,
            user_id=acting_user_id,
            details={"role": role.name, "expires_at": expires_at}
        )
        await self.db.commit()
        await self.db.refresh(assignment)

        logger.info(f"Platform role {role.name} assigned to {user_id} by {acting_user_id}")
        return assignment

    async def remove_role_from_user(self, acting_user_id: str, user_id: str, role_id: str) -> None:
        role = await self.get_role(role_id)

        if not await self.authz.can_assign_role(acting_user_id, role):
            logger.warning(f"User {acting_user_id} denied removing platform role {role.name}")
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN,
                detail=f"Insufficient role level: removing '{role.name}' requires a level above {role.level}"
            )

        assignment = await self._find_assignment(user_id, role.id)
        if not assignment:
            raise HTTPException(
                status_code=status.HTTP_404_NOT_FOUND,
                detail="User does not have this role"
            )

        await self.db.delete(assignment)
        self.audit.record(
            action="role_removed",
            resource="user",
            resource_id=user_id,
            user_id=acting_user_id,
            details={"role": role.name}
        )
        await self.db.commit()
        logger.info(f"Platform role {role.name} removed from {user_id} by {acting_user_id}")

    async def _find_assignment(self, user_id: str, role_id: str) -> Optional[UserRoleAssignment]:
        stmt = select(UserRoleAssignment).where(
            and_(UserRoleAssignment.user_id == user_id, UserRoleAssignment.role_id == role_id)
        )
        return (await self.db.execute(stmt)).scalar_one_or_none()
