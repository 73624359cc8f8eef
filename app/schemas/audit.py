"""
Audit trail schemas
"""
from pydantic import BaseModel, ConfigDict, computed_field
from typing import Dict, Optional
from app.schemas.base import UUIDSchema, TimestampSchema, ActionStatus


class AuditLogResponse(UUIDSchema, TimestampSchema):
    """One audit entry; ``details`` is the JSON text recorded with it"""
    user_id: Optional[str] = None
    organization_id: Optional[str] = None
    action: str
    resource: Optional[str] = None
    resource_id: Optional[str] = None
    ip_address: Optional[str] = None
    user_agent: Optional[str] = None
    details: Optional[str] = None
    status: ActionStatus

    model_config = ConfigDict(from_attributes=True)

    @computed_field
    @property
    def scope(self) -> str:
        return "organization" if self.organization_id else "platform"


class UserActivitySummary(BaseModel):
    user_id: str
    period_days: int
    total_activities: int
    activities_by_action: Dict[str, int]
