"""
Audit log service layer
"""
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select, and_, func, desc
from typing import Optional, List, Tuple, Dict, Any
from datetime import datetime, timedelta
from app.models import AuditLog, utcnow
from app.schemas import ActionStatus
import logging
import json

logger = logging.getLogger(__name__)


class AuditService:

    def __init__(self, db: AsyncSession):
        self.db = db

    def record(
        self,
        action: str,
        resource: str,
        user_id: Optional[str] = None,
        organization_id: Optional[str] = None,
        resource_id: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None,
        status: ActionStatus = ActionStatus.SUCCESS,
        ip_address: Optional[str] = None,
        user_agent: Optional[str] = None
    ) -> AuditLog:
        """Stage an audit entry; it is persisted by the caller's commit"""
        audit_log = AuditLog(
            user_id=user_id,
            organization_id=organization_id,
            action=action,
            resource=resource,
            resource_id=resource_id,
            ip_address=ip_address,
            user_agent=user_agent,
            details=json.dumps(details, default=str) if details else None,
            status=status.value
        )
        self.db.add(audit_log)
        return audit_log

    async def get_audit_logs(
        self,
        organization_id: Optional[str] = None,
        user_id: Optional[str] = None,
        action: Optional[str] = None,
        resource: Optional[str] = None,
        start_date: Optional[datetime] = None,
        end_date: Optional[datetime] = None,
        platform_only: bool = False,
        page: int = 1,
        size: int = 50
    ) -> Tuple[List[AuditLog], int]:
        """Get audit logs with filtering, newest first"""

        stmt = select(AuditLog)

        if organization_id:
            stmt = stmt.where(AuditLog.organization_id == organization_id)
        elif platform_only:
            stmt = stmt.where(AuditLog.organization_id.is_(None))

        if user_id:
            stmt = stmt.where(AuditLog.user_id == user_id)

        if action:
            stmt = stmt.where(AuditLog.action == action)

        if resource:
            stmt = stmt.where(AuditLog.resource == resource)

        if start_date:
            stmt = stmt.where(AuditLog.created_at >= start_date)

        if end_date:
            stmt = stmt.where(AuditLog.created_at <= end_date)

        count_stmt = select(func.count()).select_from(stmt.subquery())
        total = (await self.db.execute(count_stmt)).scalar()

        offset = (page - 1) * size
        stmt = stmt.order_by(desc(AuditLog.created_at)).offset(offset).limit(size)

        result = await self.db.execute(stmt)
        return list(result.scalars().all()), total

    async def get_user_activity_summary(self, user_id: str, days: int = 30) -> Dict[str, Any]:
        """Get user activity summary for the last N days"""

        start_date = utcnow() - timedelta(days=days)

        total_stmt = select(func.count()).where(
            and_(
                AuditLog.user_id == user_id,
                AuditLog.created_at >= start_date
            )
        )
        total_activities = (await self.db.execute(total_stmt)).scalar()

        action_stmt = select(
            AuditLog.action,
            func.count().label('count')
        ).where(
            and_(
                AuditLog.user_id == user_id,
                AuditLog.created_at >= start_date
            )
        ).group_by(AuditLog.action).order_by(desc(func.count()))

        action_result = await self.db.execute(action_stmt)
        activities_by_action = {row.action: row.count for row in action_result.fetchall()}

        return {
            "user_id": user_id,
            "period_days": days,
            "total_activities": total_activities,
            "activities_by_action": activities_by_action,
        }
