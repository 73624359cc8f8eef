"""
Organization-scoped roles, permissions and member role assignment API routes
"""
from fastapi import APIRouter, Depends, status
from sqlalchemy.ext.asyncio import AsyncSession
from typing import List
from app.database import get_async_session
from app.schemas import (
    RoleCreate, RoleUpdate, RoleResponse, RoleWithPermissions,
    PermissionCreate, PermissionResponse, RolePermissionAssign,
    UserRoleAssign, AssignedRoleResponse, UserAccessResponse, MessageResponse
)
from app.services.authorization_service import AuthorizationService
from app.services.org_rbac_service import OrganizationRBACService
from app.services.organization_service import OrganizationService
from app.dependencies import get_current_user
from app.routers.users import assigned_role_response
from app.models import User
import logging

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/organizations/{organization_id}", tags=["Organization Roles & Permissions"])


async def _rbac_for(db: AsyncSession, organization_id: str) -> OrganizationRBACService:
    await OrganizationService(db).get_organization(organization_id)
    return OrganizationRBACService(db)


@router.get("/roles", response_model=List[RoleResponse])
async def list_org_roles(
    organization_id: str,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_async_session)
):
    rbac = await _rbac_for(db, organization_id)
    await rbac.require_permission(current_user.id, organization_id, "org:roles:read")
    return await rbac.list_roles(organization_id)


@router.post("/roles", response_model=RoleResponse, status_code=status.HTTP_201_CREATED)
async def create_org_role(
    organization_id: str,
    role_data: RoleCreate,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_async_session)
):
    """Create a custom role below the caller's own level; levels of 100 and above are reserved"""
    rbac = await _rbac_for(db, organization_id)
    return await rbac.create_role(current_user.id, organization_id, role_data)


@router.get("/roles/{role_id}", response_model=RoleWithPermissions)
async def get_org_role(
    organization_id: str,
    role_id: str,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_async_session)
):
    rbac = await _rbac_for(db, organization_id)
    await rbac.require_permission(current_user.id, organization_id, "org:roles:read")
    role, permissions = await rbac.get_role_with_permissions(organization_id, role_id)
    response = RoleWithPermissions.model_validate(role)
    response.permissions = [PermissionResponse.model_validate(p) for p in permissions]
    return response


@router.put("/roles/{role_id}", response_model=RoleResponse)
async def update_org_role(
    organization_id: str,
    role_id: str,
    role_data: RoleUpdate,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_async_session)
):
    rbac = await _rbac_for(db, organization_id)
    return await rbac.update_role(current_user.id, organization_id, role_id, role_data)


@router.delete("/roles/{role_id}", response_model=MessageResponse)
async def delete_org_role(
    organization_id: str,
    role_id: str,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_async_session)
):
    rbac = await _rbac_for(db, organization_id)
    await rbac.delete_role(current_user.id, organization_id, role_id)
    return MessageResponse(message="Role deleted successfully")


@router.put("/roles/{role_id}/permissions", response_model=List[PermissionResponse])
async def update_org_role_permissions(
    organization_id: str,
    role_id: str,
    assignment: RolePermissionAssign,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_async_session)
):
    rbac = await _rbac_for(db, organization_id)
    return await rbac.update_role_permissions(current_user.id, organization_id, role_id, assignment.permission_ids)


@router.post("/roles/{role_id}/permissions/{permission_id}", response_model=MessageResponse)
async def assign_permission_to_org_role(
    organization_id: str,
    role_id: str,
    permission_id: str,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_async_session)
):
    rbac = await _rbac_for(db, organization_id)
    await rbac.assign_permission_to_role(current_user.id, organization_id, role_id, permission_id)
    return MessageResponse(message="Permission assigned to role")


@router.delete("/roles/{role_id}/permissions/{permission_id}", response_model=MessageResponse)
async def remove_permission_from_org_role(
    organization_id: str,
    role_id: str,
    permission_id: str,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_async_session)
):
    rbac = await _rbac_for(db, organization_id)
    await rbac.remove_permission_from_role(current_user.id, organization_id, role_id, permission_id)
    return MessageResponse(message="Permission removed from role")


@router.get("/permissions", response_model=List[PermissionResponse])
async def list_org_permissions(
    organization_id: str,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_async_session)
):
    rbac = await _rbac_for(db, organization_id)
    await rbac.require_permission(current_user.id, organization_id, "org:permissions:read")
    return await rbac.list_permissions(organization_id)


@router.post("/permissions", response_model=PermissionResponse, status_code=status.HTTP_201_CREATED)
async def create_org_permission(
    organization_id: str,
    permission_data: PermissionCreate,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_async_session)
):
    rbac = await _rbac_for(db, organization_id)
    return await rbac.create_permission(current_user.id, organization_id, permission_data)


# Member role assignments

@router.get("/members/{user_id}/access", response_model=UserAccessResponse)
async def get_member_access(
    organization_id: str,
    user_id: str,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_async_session)
):
    """Effective organization roles and permissions of a member"""
    rbac = await _rbac_for(db, organization_id)
    if user_id != current_user.id:
        await rbac.require_permission(current_user.id, organization_id, "org:members:read")

    authz = AuthorizationService(db)
    return UserAccessResponse(
        user_id=user_id,
        organization_id=organization_id,
        roles=[RoleResponse.model_validate(r) for r in await authz.get_user_roles(user_id, organization_id)],
        permissions=await authz.get_user_permissions(user_id, organization_id),
        highest_level=await authz.get_effective_org_level(user_id, organization_id)
    )


@router.get("/members/{user_id}/roles", response_model=List[AssignedRoleResponse])
async def get_member_roles(
    organization_id: str,
    user_id: str,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_async_session)
):
    rbac = await _rbac_for(db, organization_id)
    if user_id != current_user.id:
        await rbac.require_permission(current_user.id, organization_id, "org:members:read")
    assignments = await rbac.get_user_assignments(organization_id, user_id)
    return [assigned_role_response(a, a.role) for a in assignments]


@router.post(
    "/members/{user_id}/roles",
    response_model=AssignedRoleResponse,
    status_code=status.HTTP_201_CREATED
)
async def assign_member_role(
    organization_id: str,
    user_id: str,
    role_data: UserRoleAssign,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_async_session)
):
    rbac = await _rbac_for(db, organization_id)
    assignment = await rbac.assign_role(
        current_user.id, organization_id, user_id, role_data.role_id, role_data.expires_at
    )
    return assigned_role_response(assignment, await rbac.get_role(organization_id, role_data.role_id))


@router.delete("/members/{user_id}/roles/{role_id}", response_model=MessageResponse)
async def remove_member_role(
    organization_id: str,
    user_id: str,
    role_id: str,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_async_session)
):
    rbac = await _rbac_for(db, organization_id)
    await rbac.remove_role(current_user.id, organization_id, user_id, role_id)
    return MessageResponse(message="Role removed from member")
