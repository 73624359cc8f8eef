"""
Telemetry ingestion and dashboard schemas
"""
from pydantic import BaseModel, Field
from typing import Optional, List, Dict, Any, Literal


class EventIngest(BaseModel):
    event: str = Field(..., min_length=1)
    properties: Dict[str, Any]


class BatchIngest(BaseModel):
    events: List[Dict[str, Any]] = Field(..., min_length=1, max_length=1000)
    client_info: Dict[str, Any] = {}


class IngestResponse(BaseModel):
    success: bool = True
    message: str
    event_id: Optional[str] = None
    accepted: int = 1
    rejected: int = 0
    errors: List[Dict[str, Any]] = []
    location: Optional[Dict[str, str]] = None


class SampleDataAction(BaseModel):
    action: Literal["clear", "add_sample"]
    country_code: Optional[str] = Field(None, min_length=2, max_length=3)
    country_name: Optional[str] = None


class DeleteOldDataRequest(BaseModel):
    age_in_days: int = Field(..., ge=1, alias="ageInDays")

    model_config = {"populate_by_name": True}


class DeleteOldDataResponse(BaseModel):
    success: bool = True
    deleted_count: int
    cutoff: str
    message: str


class PrivacyExportRequest(BaseModel):
    format: Literal["json", "csv"] = "json"
