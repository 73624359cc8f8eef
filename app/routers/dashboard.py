"""
Dashboard metrics API routes

Each endpoint recomputes its aggregate from the in-process event buffer.
"""
from fastapi import APIRouter, Depends, Query
from typing import Any, Dict, List, Optional
from app.dependencies import get_analytics_store, require_platform_permission
from app.models import User
from app.services.analytics_store import AnalyticsStore
import logging

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/dashboard/metrics", tags=["Dashboard Metrics"])

PERIOD_DAYS = {"7d": 7, "30d": 30, "90d": 90}


@router.get("/realtime")
async def realtime_metrics(
    current_user: User = Depends(require_platform_permission("analytics:read")),
    store: AnalyticsStore = Depends(get_analytics_store)
) -> Dict[str, Any]:
    return store.get_realtime_metrics()


@router.get("/historical")
async def historical_metrics(
    period: str = Query("30d", pattern="^(7d|30d|90d)$", description="Window length"),
    days: Optional[int] = Query(None, ge=1, le=365, description="Explicit number of days; overrides period"),
    current_user: User = Depends(require_platform_permission("analytics:read")),
    store: AnalyticsStore = Depends(get_analytics_store)
) -> Dict[str, Any]:
    """One row per local calendar day, oldest first"""
    return store.get_historical_metrics(days or PERIOD_DAYS[period])


@router.get("/geographic")
async def geographic_metrics(
    current_user: User = Depends(require_platform_permission("analytics:read")),
    store: AnalyticsStore = Depends(get_analytics_store)
) -> Dict[str, Any]:
    return {
        "regions": store.get_geographic_metrics(),
        "countries": store.get_country_breakdown(),
    }


@router.get("/countries")
async def country_breakdown(
    current_user: User = Depends(require_platform_permission("analytics:read")),
    store: AnalyticsStore = Depends(get_analytics_store)
) -> List[Dict[str, Any]]:
    return store.get_country_breakdown()


@router.get("/versions")
async def version_metrics(
    current_user: User = Depends(require_platform_permission("analytics:read")),
    store: AnalyticsStore = Depends(get_analytics_store)
) -> Dict[str, Any]:
    return store.get_version_metrics()


@router.get("/performance")
async def performance_metrics(
    current_user: User = Depends(require_platform_permission("analytics:read")),
    store: AnalyticsStore = Depends(get_analytics_store)
) -> Dict[str, Any]:
    return store.get_performance_metrics()


@router.get("/users")
async def user_metrics(
    current_user: User = Depends(require_platform_permission("analytics:read")),
    store: AnalyticsStore = Depends(get_analytics_store)
) -> Dict[str, Any]:
    return store.get_user_metrics()


@router.get("/system")
async def system_metrics(
    current_user: User = Depends(require_platform_permission("system:read")),
    store: AnalyticsStore = Depends(get_analytics_store)
) -> Dict[str, Any]:
    return store.get_system_metrics()
