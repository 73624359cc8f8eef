"""
External connection schemas
"""
from pydantic import BaseModel, Field, ConfigDict
from typing import Optional
from datetime import datetime
from app.schemas.base import UUIDSchema, TimestampSchema


class ConnectionCreate(BaseModel):
    provider: str = Field(..., pattern=r"^(notion|slack|google|microsoft)$")
    access_token: str = Field(..., min_length=1)
    workspace_name: Optional[str] = None


class ConnectionResponse(UUIDSchema, TimestampSchema):
    organization_id: str
    provider: str
    workspace_name: Optional[str] = None
    sync_status: str
    items_synced: int
    items_total: int
    last_sync_at: Optional[datetime] = None
    last_error: Optional[str] = None

    model_config = ConfigDict(from_attributes=True)


class SyncStartedResponse(BaseModel):
    success: bool = True
    status: str = "syncing"
    connection_id: str
    message: str = "Sync started"
