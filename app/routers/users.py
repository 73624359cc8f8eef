"""
Platform user administration API routes
"""
from fastapi import APIRouter, Depends, HTTPException, status, Query
from sqlalchemy.ext.asyncio import AsyncSession
from typing import Optional, List
from app.database import get_async_session
from app.schemas import (
    UserResponse, UserAccessResponse, UserRoleAssign, AssignedRoleResponse,
    RoleResponse, PaginatedResponse, MessageResponse
)
from app.services.authorization_service import AuthorizationService
from app.services.rbac_service import RBACService
from app.services.user_service import UserService
from app.dependencies import require_platform_permission
from app.models import User, UserRoleAssignment, Role
import logging

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/admin/users", tags=["Platform Users"])


def assigned_role_response(assignment: UserRoleAssignment, role: Role) -> AssignedRoleResponse:
    return AssignedRoleResponse(
        role=RoleResponse.model_validate(role),
        assigned_by=assignment.assigned_by,
        assigned_at=assignment.created_at,
        expires_at=assignment.expires_at
    )


@router.get("", response_model=PaginatedResponse[UserResponse])
async def list_users(
    page: int = Query(1, ge=1, description="Page number"),
    size: int = Query(20, ge=1, le=100, description="Page size"),
    search: Optional[str] = Query(None, description="Search by email or name"),
    current_user: User = Depends(require_platform_permission("users:read")),
    db: AsyncSession = Depends(get_async_session)
):
    users, total = await UserService(db).list_users(page=page, size=size, search=search)
    return PaginatedResponse(
        items=[UserResponse.model_validate(u) for u in users],
        total=total,
        page=page,
        size=size,
        pages=(total + size - 1) // size
    )


@router.get("/{user_id}/access", response_model=UserAccessResponse)
async def get_user_access(
    user_id: str,
    current_user: User = Depends(require_platform_permission("users:read")),
    db: AsyncSession = Depends(get_async_session)
):
    """Effective platform roles and permissions of a user"""
    if not await UserService(db).get_user(user_id):
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="User not found")

    authz = AuthorizationService(db)
    return UserAccessResponse(
        user_id=user_id,
        roles=[RoleResponse.model_validate(r) for r in await authz.get_user_roles(user_id)],
        permissions=await authz.get_user_permissions(user_id),
        highest_level=await authz.get_highest_level(user_id)
    )


@router.get("/{user_id}/roles", response_model=List[AssignedRoleResponse])
async def get_user_roles(
    user_id: str,
    current_user: User = Depends(require_platform_permission("users:read")),
    db: AsyncSession = Depends(get_async_session)
):
    """Every platform assignment of the user, including expired ones"""
    assignments = await RBACService(db).get_user_assignments(user_id)
    return [assigned_role_response(a, a.role) for a in assignments]


@router.post("/{user_id}/roles", response_model=AssignedRoleResponse, status_code=status.HTTP_201_CREATED)
async def assign_role(
    user_id: str,
    role_data: UserRoleAssign,
    current_user: User = Depends(require_platform_permission("roles:assign")),
    db: AsyncSession = Depends(get_async_session)
):
    rbac = RBACService(db)
    assignment = await rbac.assign_role_to_user(current_user.id, user_id, role_data.role_id, role_data.expires_at)
    return assigned_role_response(assignment, await rbac.get_role(role_data.role_id))


@router.delete("/{user_id}/roles/{role_id}", response_model=MessageResponse)
async def remove_role(
    user_id: str,
    role_id: str,
    current_user: User = Depends(require_platform_permission("roles:assign")),
    db: AsyncSession = Depends(get_async_session)
):
    await RBACService(db).remove_role_from_user(current_user.id, user_id, role_id)
    return MessageResponse(message="Role removed from user")


@router.post("/{user_id}/deactivate", response_model=UserResponse)
async def deactivate_user(
    user_id: str,
    current_user: User = Depends(require_platform_permission("users:write")),
    db: AsyncSession = Depends(get_async_session)
):
    if user_id == current_user.id:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="You cannot deactivate yourself")
    return await UserService(db).set_active(user_id, False)


@router.post("/{user_id}/activate", response_model=UserResponse)
async def activate_user(
    user_id: str,
    current_user: User = Depends(require_platform_permission("users:write")),
    db: AsyncSession = Depends(get_async_session)
):
    return await UserService(db).set_active(user_id, True)
