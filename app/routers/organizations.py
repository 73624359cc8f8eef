"""
Organization management API routes
"""
from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.ext.asyncio import AsyncSession
from typing import Optional, List, Dict, Any
from app.database import get_async_session
from app.schemas import (
    OrganizationCreate, OrganizationUpdate, OrganizationResponse,
    MemberAdd, MemberUpdate, MemberResponse,
    TeamCreate, TeamResponse, TeamMemberAdd, TeamMemberResponse,
    AIConfigUpdate, AIConfigResponse, PaginatedResponse, MessageResponse
)
from app.services.authorization_service import AuthorizationService
from app.services.organization_service import OrganizationService
from app.dependencies import get_current_super_admin, get_current_user
from app.models import User
import logging

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/organizations", tags=["Organizations"])


@router.post("", response_model=OrganizationResponse, status_code=status.HTTP_201_CREATED)
async def create_organization(
    org_data: OrganizationCreate,
    current_user: User = Depends(get_current_super_admin),
    db: AsyncSession = Depends(get_async_session)
):
    """Create a new organization (platform super admin only)"""
    return await OrganizationService(db).create_organization(org_data, current_user.id)


@router.get("", response_model=PaginatedResponse[OrganizationResponse])
async def list_organizations(
    page: int = Query(1, ge=1, description="Page number"),
    size: int = Query(20, ge=1, le=100, description="Page size"),
    search: Optional[str] = Query(None, description="Search by name or slug"),
    all_organizations: bool = Query(False, alias="all", description="Every organization (platform super admin only)"),
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_async_session)
):
    """
    Organizations the caller belongs to. Platform super admins may pass
    ``all=true`` to list every organization.
    """
    include_all = all_organizations and await AuthorizationService(db).is_platform_super_admin(current_user.id)
    organizations, total = await OrganizationService(db).list_organizations(
        current_user.id, include_all=include_all, page=page, size=size, search=search
    )
    return PaginatedResponse(
        items=[OrganizationResponse.model_validate(o) for o in organizations],
        total=total,
        page=page,
        size=size,
        pages=(total + size - 1) // size
    )


@router.get("/manageable", response_model=List[OrganizationResponse])
async def list_manageable_organizations(
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_async_session)
):
    """Organizations where the caller can manage roles"""
    return await AuthorizationService(db).get_manageable_organizations(current_user.id)


@router.post("/switch/{organization_id}", response_model=OrganizationResponse)
async def switch_organization(
    organization_id: str,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_async_session)
):
    """Make an organization the caller's active one"""
    return await OrganizationService(db).switch_active_organization(current_user, organization_id)


@router.get("/{organization_id}", response_model=OrganizationResponse)
async def get_organization(
    organization_id: str,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_async_session)
):
    return await OrganizationService(db).require_view(current_user.id, organization_id)


@router.put("/{organization_id}", response_model=OrganizationResponse)
async def update_organization(
    organization_id: str,
    org_data: OrganizationUpdate,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_async_session)
):
    return await OrganizationService(db).update_organization(current_user.id, organization_id, org_data)


@router.delete("/{organization_id}", response_model=MessageResponse)
async def delete_organization(
    organization_id: str,
    current_user: User = Depends(get_current_super_admin),
    db: AsyncSession = Depends(get_async_session)
):
    """Delete an organization and everything it owns (platform super admin only)"""
    await OrganizationService(db).delete_organization(current_user.id, organization_id)
    return MessageResponse(message="Organization deleted successfully")


@router.get("/{organization_id}/stats")
async def get_organization_stats(
    organization_id: str,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_async_session)
) -> Dict[str, Any]:
    org_service = OrganizationService(db)
    await org_service.require_view(current_user.id, organization_id)
    return await org_service.get_organization_stats(organization_id)


# Members

@router.get("/{organization_id}/members", response_model=List[MemberResponse])
async def list_members(
    organization_id: str,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_async_session)
):
    return await OrganizationService(db).list_members(current_user.id, organization_id)


@router.post("/{organization_id}/members", response_model=MemberResponse, status_code=status.HTTP_201_CREATED)
async def add_member(
    organization_id: str,
    member_data: MemberAdd,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_async_session)
):
    return await OrganizationService(db).add_member(current_user.id, organization_id, member_data)


@router.put("/{organization_id}/members/{user_id}", response_model=MemberResponse)
async def update_member(
    organization_id: str,
    user_id: str,
    member_data: MemberUpdate,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_async_session)
):
    return await OrganizationService(db).update_member(current_user.id, organization_id, user_id, member_data)


@router.delete("/{organization_id}/members/{user_id}", response_model=MessageResponse)
async def remove_member(
    organization_id: str,
    user_id: str,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_async_session)
):
    await OrganizationService(db).remove_member(current_user.id, organization_id, user_id)
    return MessageResponse(message="Member removed from organization")


# Teams

@router.get("/{organization_id}/teams", response_model=List[TeamResponse])
async def list_teams(
    organization_id: str,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_async_session)
):
    return await OrganizationService(db).list_teams(current_user.id, organization_id)


@router.post("/{organization_id}/teams", response_model=TeamResponse, status_code=status.HTTP_201_CREATED)
async def create_team(
    organization_id: str,
    team_data: TeamCreate,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_async_session)
):
    return await OrganizationService(db).create_team(current_user.id, organization_id, team_data)


@router.post(
    "/{organization_id}/teams/{team_id}/members",
    response_model=TeamMemberResponse,
    status_code=status.HTTP_201_CREATED
)
async def add_team_member(
    organization_id: str,
    team_id: str,
    member_data: TeamMemberAdd,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_async_session)
):
    return await OrganizationService(db).add_team_member(current_user.id, organization_id, team_id, member_data)


# AI configuration

@router.get("/{organization_id}/ai-config", response_model=AIConfigResponse)
async def get_ai_config(
    organization_id: str,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_async_session)
):
    return await OrganizationService(db).get_ai_config(current_user.id, organization_id)


@router.put("/{organization_id}/ai-config", response_model=AIConfigResponse)
async def update_ai_config(
    organization_id: str,
    config_data: AIConfigUpdate,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_async_session)
):
    return await OrganizationService(db).update_ai_config(current_user.id, organization_id, config_data)
