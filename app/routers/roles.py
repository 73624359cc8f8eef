"""
Platform roles and permissions API routes
"""
from fastapi import APIRouter, Depends, status
from sqlalchemy.ext.asyncio import AsyncSession
from typing import List
from app.database import get_async_session
from app.schemas import (
    RoleCreate, RoleUpdate, RoleResponse, RoleWithPermissions,
    PermissionCreate, PermissionResponse, PermissionsByCategoryResponse,
    RolePermissionAssign, MessageResponse
)
from app.services.rbac_service import RBACService
from app.dependencies import require_platform_permission
from app.models import User
import logging

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/admin", tags=["Platform Roles & Permissions"])


def _role_with_permissions(role, permissions) -> RoleWithPermissions:
    response = RoleWithPermissions.model_validate(role)
    response.permissions = [PermissionResponse.model_validate(p) for p in permissions]
    return response


@router.get("/roles", response_model=List[RoleResponse])
async def list_roles(
    current_user: User = Depends(require_platform_permission("roles:read")),
    db: AsyncSession = Depends(get_async_session)
):
    """List platform roles, highest level first"""
    return await RBACService(db).list_roles()


@router.post("/roles", response_model=RoleResponse, status_code=status.HTTP_201_CREATED)
async def create_role(
    role_data: RoleCreate,
    current_user: User = Depends(require_platform_permission("roles:write")),
    db: AsyncSession = Depends(get_async_session)
):
    return await RBACService(db).create_role(role_data, created_by=current_user.id)


@router.get("/roles/{role_id}", response_model=RoleWithPermissions)
async def get_role(
    role_id: str,
    current_user: User = Depends(require_platform_permission("roles:read")),
    db: AsyncSession = Depends(get_async_session)
):
    role, permissions = await RBACService(db).get_role_with_permissions(role_id)
    return _role_with_permissions(role, permissions)


@router.put("/roles/{role_id}", response_model=RoleResponse)
async def update_role(
    role_id: str,
    role_data: RoleUpdate,
    current_user: User = Depends(require_platform_permission("roles:write")),
    db: AsyncSession = Depends(get_async_session)
):
    """Update display name and description"""
    return await RBACService(db).update_role(role_id, role_data, updated_by=current_user.id)


@router.delete("/roles/{role_id}", response_model=MessageResponse)
async def delete_role(
    role_id: str,
    current_user: User = Depends(require_platform_permission("roles:delete")),
    db: AsyncSession = Depends(get_async_session)
):
    """Delete a custom role that nobody holds"""
    await RBACService(db).delete_role(role_id, deleted_by=current_user.id)
    return MessageResponse(message="Role deleted successfully")


@router.get("/roles/{role_id}/permissions", response_model=List[PermissionResponse])
async def get_role_permissions(
    role_id: str,
    current_user: User = Depends(require_platform_permission("roles:read")),
    db: AsyncSession = Depends(get_async_session)
):
    rbac = RBACService(db)
    role = await rbac.get_role(role_id)
    return await rbac.get_role_permissions(role.id)


@router.put("/roles/{role_id}/permissions", response_model=List[PermissionResponse])
async def update_role_permissions(
    role_id: str,
    assignment: RolePermissionAssign,
    current_user: User = Depends(require_platform_permission("roles:write")),
    db: AsyncSession = Depends(get_async_session)
):
    """Replace the permissions granted by a role"""
    return await RBACService(db).update_role_permissions(role_id, assignment.permission_ids, granted_by=current_user.id)


@router.post("/roles/{role_id}/permissions/{permission_id}", response_model=MessageResponse)
async def assign_permission_to_role(
    role_id: str,
    permission_id: str,
    current_user: User = Depends(require_platform_permission("roles:write")),
    db: AsyncSession = Depends(get_async_session)
):
    await RBACService(db).assign_permission_to_role(role_id, permission_id, granted_by=current_user.id)
    return MessageResponse(message="Permission assigned to role")


@router.delete("/roles/{role_id}/permissions/{permission_id}", response_model=MessageResponse)
async def remove_permission_from_role(
    role_id: str,
    permission_id: str,
    current_user: User = Depends(require_platform_permission("roles:write")),
    db: AsyncSession = Depends(get_async_session)
):
    await RBACService(db).remove_permission_from_role(role_id, permission_id, removed_by=current_user.id)
    return MessageResponse(message="Permission removed from role")


@router.get("/permissions", response_model=List[PermissionResponse])
async def list_permissions(
    current_user: User = Depends(require_platform_permission("permissions:read")),
    db: AsyncSession = Depends(get_async_session)
):
    return await RBACService(db).list_permissions()


@router.get("/permissions/by-category", response_model=List[PermissionsByCategoryResponse])
async def get_permissions_by_category(
    current_user: User = Depends(require_platform_permission("permissions:read")),
    db: AsyncSession = Depends(get_async_session)
):
    grouped = await RBACService(db).get_permissions_by_category()
    return [
        PermissionsByCategoryResponse(
            category=category,
            permissions=[PermissionResponse.model_validate(p) for p in permissions]
        )
        for category, permissions in grouped.items()
    ]


@router.post("/permissions", response_model=PermissionResponse, status_code=status.HTTP_201_CREATED)
async def create_permission(
    permission_data: PermissionCreate,
    current_user: User = Depends(require_platform_permission("permissions:manage")),
    db: AsyncSession = Depends(get_async_session)
):
    """Create a custom platform permission; category and action must be known values"""
    return await RBACService(db).create_permission(permission_data, created_by=current_user.id)
