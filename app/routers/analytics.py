"""
Telemetry ingestion API routes

Desktop clients authenticate with the analytics API key rather than a
session token.
"""
from fastapi import APIRouter, Depends, HTTPException, Query, Request, status
from datetime import datetime, timezone
from typing import Dict, Any
from app.config import settings
from app.dependencies import get_analytics_store, get_client_ip, verify_analytics_key
from app.schemas import EventIngest, BatchIngest, IngestResponse, SampleDataAction
from app.services.analytics_service import AnalyticsService
from app.services.analytics_store import AnalyticsStore
from app.services.geolocation_service import lookup_ip
import logging

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/analytics", tags=["Analytics Ingestion"])


def _now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


@router.post("/ingest", response_model=IngestResponse, dependencies=[Depends(verify_analytics_key)])
async def ingest_event(
    payload: EventIngest,
    request: Request,
    store: AnalyticsStore = Depends(get_analytics_store)
):
    """Store one event, enriched with the caller's detected location"""
    location = lookup_ip(get_client_ip(request))
    event_id = AnalyticsService(store).ingest(payload.model_dump(), location)
    return IngestResponse(
        message="Event recorded",
        event_id=event_id,
        location={
            "country": location["country_name"],
            "country_code": location["country_code"],
            "source": location["source"],
        }
    )


@router.get("/ingest", dependencies=[Depends(verify_analytics_key)])
async def ingest_status(
    request: Request,
    store: AnalyticsStore = Depends(get_analytics_store)
) -> Dict[str, Any]:
    location = lookup_ip(get_client_ip(request))
    return {
        "success": True,
        "service": "Analytics Ingestion API",
        "status": "operational",
        "total_events": store.get_total_events(),
        "detected_location": {
            "country": location["country_name"],
            "country_code": location["country_code"],
            "source": location["source"],
        },
        "timestamp": _now_iso(),
    }


@router.post("/batch", response_model=IngestResponse, dependencies=[Depends(verify_analytics_key)])
async def ingest_batch(
    payload: BatchIngest,
    request: Request,
    store: AnalyticsStore = Depends(get_analytics_store)
):
    """Store a batch; ``client_info`` supplies defaults for every event's properties"""
    location = lookup_ip(get_client_ip(request))
    accepted, rejected = AnalyticsService(store).ingest_batch(payload.events, location, payload.client_info)
    return IngestResponse(
        success=not rejected,
        message=f"Stored {accepted} of {len(payload.events)} events",
        accepted=accepted,
        rejected=len(rejected),
        errors=rejected
    )


@router.get("/events", dependencies=[Depends(verify_analytics_key)])
async def recent_events(
    limit: int = Query(50, ge=1, le=1000, description="Number of most recent events"),
    store: AnalyticsStore = Depends(get_analytics_store)
) -> Dict[str, Any]:
    """Most recent events, for debugging client instrumentation"""
    return {
        "total_events": store.get_total_events(),
        "recent_events": [
            {
                "event": event["event"],
                "user_id": event["properties"].get("user_id"),
                "app_version": event["properties"].get("app_version"),
                "platform": event["properties"].get("platform"),
                "timestamp": event["properties"].get("timestamp"),
            }
            for event in store.get_recent_events(limit)
        ],
    }


@router.get("/health")
async def analytics_health(store: AnalyticsStore = Depends(get_analytics_store)) -> Dict[str, Any]:
    return {
        "status": "healthy",
        "version": settings.app_version,
        "buffered_events": store.get_total_events(),
        "buffer_capacity": store.capacity,
        "timestamp": _now_iso(),
    }


@router.post("/test-data", dependencies=[Depends(verify_analytics_key)])
async def manage_test_data(
    payload: SampleDataAction,
    store: AnalyticsStore = Depends(get_analytics_store)
) -> Dict[str, Any]:
    """Clear the buffer or load a small demo data set for one country"""
    service = AnalyticsService(store)

    if payload.action == "clear":
        removed = service.clear_all()
        return {
            "success": True,
            "message": "All analytics data cleared",
            "events_removed": removed,
            "timestamp": _now_iso(),
        }

    if not payload.country_code or not payload.country_name:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail='Invalid action. Use "clear" or "add_sample" with country_code and country_name'
        )

    added = service.add_sample_data(payload.country_code, payload.country_name)
    return {
        "success": True,
        "message": f"Added {added} sample events for {payload.country_name}",
        "events_added": added,
        "country": {"code": payload.country_code, "name": payload.country_name},
        "timestamp": _now_iso(),
    }
