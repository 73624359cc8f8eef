"""
Audit log API routes
"""
from fastapi import APIRouter, Depends, HTTPException, status, Query
from sqlalchemy.ext.asyncio import AsyncSession
from typing import Optional
from datetime import datetime
from app.database import get_async_session
from app.dependencies import get_current_user, require_platform_permission
from app.models import User
from app.schemas import AuditLogResponse, PaginatedResponse, UserActivitySummary
from app.services.audit_service import AuditService
from app.services.authorization_service import AuthorizationService
from app.services.organization_service import OrganizationService
import logging

logger = logging.getLogger(__name__)

router = APIRouter(tags=["Audit Logs"])


def _page(logs, total: int, page: int, size: int) -> PaginatedResponse[AuditLogResponse]:
    return PaginatedResponse(
        items=[AuditLogResponse.model_validate(log) for log in logs],
        total=total,
        page=page,
        size=size,
        pages=(total + size - 1) // size
    )


@router.get("/admin/audit", response_model=PaginatedResponse[AuditLogResponse])
async def list_platform_audit_logs(
    page: int = Query(1, ge=1, description="Page number"),
    size: int = Query(50, ge=1, le=100, description="Page size"),
    user_id: Optional[str] = Query(None, description="Filter by acting user"),
    action: Optional[str] = Query(None, description="Filter by action"),
    resource: Optional[str] = Query(None, description="Filter by resource"),
    start_date: Optional[datetime] = Query(None, description="Filter from date"),
    end_date: Optional[datetime] = Query(None, description="Filter to date"),
    current_user: User = Depends(require_platform_permission("system:read")),
    db: AsyncSession = Depends(get_async_session)
):
    """Platform-scope audit trail, newest first"""
    logs, total = await AuditService(db).get_audit_logs(
        user_id=user_id,
        action=action,
        resource=resource,
        start_date=start_date,
        end_date=end_date,
        platform_only=True,
        page=page,
        size=size
    )
    return _page(logs, total, page, size)


@router.get("/admin/audit/users/{user_id}/summary", response_model=UserActivitySummary)
async def get_user_activity_summary(
    user_id: str,
    days: int = Query(30, ge=1, le=365, description="Number of days to summarize"),
    current_user: User = Depends(require_platform_permission("users:read")),
    db: AsyncSession = Depends(get_async_session)
):
    return await AuditService(db).get_user_activity_summary(user_id, days)


@router.get("/organizations/{organization_id}/audit", response_model=PaginatedResponse[AuditLogResponse])
async def list_organization_audit_logs(
    organization_id: str,
    page: int = Query(1, ge=1, description="Page number"),
    size: int = Query(50, ge=1, le=100, description="Page size"),
    user_id: Optional[str] = Query(None, description="Filter by acting user"),
    action: Optional[str] = Query(None, description="Filter by action"),
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_async_session)
):
    """Audit trail of one organization; organization admins and platform super admins only"""
    await OrganizationService(db).get_organization(organization_id)
    authz = AuthorizationService(db)
    if not (
        await authz.is_org_admin(current_user.id, organization_id)
        or await authz.is_platform_super_admin(current_user.id)
    ):
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Organization admin access required"
        )

    logs, total = await AuditService(db).get_audit_logs(
        organization_id=organization_id,
        user_id=user_id,
        action=action,
        page=page,
        size=size
    )
    return _page(logs, total, page, size)
