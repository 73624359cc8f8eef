"""
Privacy API routes: pseudonymised export, retention deletion and compliance metrics
"""
from fastapi import APIRouter, Depends
from fastapi.responses import JSONResponse, Response
from sqlalchemy.ext.asyncio import AsyncSession
from datetime import date
from typing import Dict, Any
from app.database import get_async_session
from app.dependencies import get_analytics_store, require_platform_permission
from app.models import User
from app.schemas import PrivacyExportRequest, DeleteOldDataRequest, DeleteOldDataResponse
from app.services.analytics_service import AnalyticsService
from app.services.analytics_store import AnalyticsStore
from app.services.audit_service import AuditService
import logging

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/privacy", tags=["Privacy"])


@router.post("/export")
async def export_data(
    request_data: PrivacyExportRequest,
    current_user: User = Depends(require_platform_permission("analytics:export")),
    store: AnalyticsStore = Depends(get_analytics_store),
    db: AsyncSession = Depends(get_async_session)
):
    """Download every buffered event with identifiers pseudonymised"""
    service = AnalyticsService(store)
    export = service.build_export(current_user.email, request_data.format)

    AuditService(db).record(
        action="analytics_exported",
        resource="analytics",
        user_id=current_user.id,
        details={"format": request_data.format, "records": export["export_info"]["record_count"]}
    )
    await db.commit()

    filename = f"privacy-export-{date.today().isoformat()}.{request_data.format}"
    headers = {"Content-Disposition": f"attachment; filename={filename}"}
    if request_data.format == "csv":
        return Response(content=service.export_to_csv(export), media_type="text/csv", headers=headers)
    return JSONResponse(content=export, headers=headers)


@router.post("/delete-old-data", response_model=DeleteOldDataResponse)
async def delete_old_data(
    request_data: DeleteOldDataRequest,
    current_user: User = Depends(require_platform_permission("analytics:delete")),
    store: AnalyticsStore = Depends(get_analytics_store),
    db: AsyncSession = Depends(get_async_session)
):
    deleted, cutoff = AnalyticsService(store).delete_old_data(request_data.age_in_days)

    AuditService(db).record(
        action="analytics_deleted",
        resource="analytics",
        user_id=current_user.id,
        details={"age_in_days": request_data.age_in_days, "deleted": deleted, "cutoff": cutoff}
    )
    await db.commit()

    logger.info(
        f"Data deletion by {current_user.email}: {deleted} records older than {request_data.age_in_days} days"
    )
    return DeleteOldDataResponse(
        deleted_count=deleted,
        cutoff=cutoff,
        message=f"Successfully deleted {deleted} records older than {request_data.age_in_days} days"
    )


@router.get("/metrics")
async def privacy_metrics(
    current_user: User = Depends(require_platform_permission("analytics:read")),
    store: AnalyticsStore = Depends(get_analytics_store)
) -> Dict[str, Any]:
    return AnalyticsService(store).get_privacy_metrics()
