"""
Zashboard - Multi-tenant analytics and administration dashboard
Main FastAPI application
"""
from fastapi import FastAPI, Request, status
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from contextlib import asynccontextmanager
from sqlalchemy import text
import logging
import time

from app.config import settings
from app.routers import (
    auth, organizations, org_roles, users, roles, audit,
    analytics, dashboard, privacy, integrations
)
from app.database import async_engine, AsyncSessionLocal
from app.services.analytics_store import AnalyticsStore, VersionPolicy
from app.services.sync_service import SyncTaskRunner


# Configure logging
logging.basicConfig(
    level=getattr(logging, settings.log_level.upper()),
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s"
)
logger = logging.getLogger(__name__)


def create_analytics_store() -> AnalyticsStore:
    return AnalyticsStore(
        capacity=settings.analytics_buffer_capacity,
        version_policy=VersionPolicy(
            current_line=settings.analytics_current_version_line,
            current_min_patch=settings.analytics_current_min_patch,
            outdated_min_patch=settings.analytics_outdated_min_patch
        ),
        environment="development" if settings.debug else "production"
    )


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan events"""
    # Startup
    logger.info("Starting Zashboard application...")
    app.state.analytics_store = create_analytics_store()
    app.state.sync_runner = SyncTaskRunner()
    app.state.session_factory = AsyncSessionLocal

    yield

    # Shutdown
    logger.info("Shutting down Zashboard application...")
    await app.state.sync_runner.shutdown()
    await async_engine.dispose()


# Create FastAPI application
app = FastAPI(
    title=settings.app_name,
    version=settings.app_version,
    description="Multi-tenant analytics and administration dashboard",
    lifespan=lifespan,
    docs_url="/docs" if settings.debug else None,
    redoc_url="/redoc" if settings.debug else None,
)

# Add CORS middleware
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"] if settings.debug else settings.cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


# Request timing middleware
@app.middleware("http")
async def add_process_time_header(request: Request, call_next):
    start_time = time.time()
    response = await call_next(request)
    process_time = time.time() - start_time
    response.headers["X-Process-Time"] = str(process_time)
    return response


# Global exception handler
@app.exception_handler(Exception)
async def global_exception_handler(request: Request, exc: Exception):
    logger.error(f"Global exception: {exc}", exc_info=True)
    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content={"detail": "Internal server error"}
    )


# Include routers
app.include_router(auth.router, prefix="/api/v1")
app.include_router(organizations.router, prefix="/api/v1")
app.include_router(org_roles.router, prefix="/api/v1")
app.include_router(integrations.router, prefix="/api/v1")
app.include_router(users.router, prefix="/api/v1")
app.include_router(roles.router, prefix="/api/v1")
app.include_router(audit.router, prefix="/api/v1")
app.include_router(analytics.router, prefix="/api/v1")
app.include_router(dashboard.router, prefix="/api/v1")
app.include_router(privacy.router, prefix="/api/v1")


# Health check endpoint
@app.get("/health")
async def health_check():
    database = "connected"
    try:
        async with AsyncSessionLocal() as session:
            await session.execute(text("SELECT 1"))
    except Exception as e:
        logger.error(f"Health check database query failed: {e}")
        database = "unavailable"

    return {
        "status": "healthy" if database == "connected" else "degraded",
        "database": database,
        "version": settings.app_version,
        "environment": "development" if settings.debug else "production"
    }


# Root endpoint
@app.get("/")
async def root():
    return {
        "message": f"Welcome to {settings.app_name}",
        "version": settings.app_version,
        "docs": "/docs" if settings.debug else "Documentation not available in production"
    }


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(
        "main:app",
        host="0.0.0.0",
        port=8000,
        reload=settings.debug,
        log_level=settings.log_level.lower()
    )
