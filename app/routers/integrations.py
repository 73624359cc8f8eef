"""
External workspace integration API routes
"""
from fastapi import APIRouter, Depends, status
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker
from typing import List, Dict, Any
from app.database import get_async_session
from app.dependencies import get_current_user, get_session_factory, get_sync_runner
from app.models import User
from app.schemas import ConnectionCreate, ConnectionResponse, SyncStartedResponse
from app.services.sync_service import SyncService, SyncTaskRunner
import logging

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/organizations/{organization_id}/integrations", tags=["Integrations"])


@router.get("", response_model=List[ConnectionResponse])
async def list_connections(
    organization_id: str,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_async_session)
):
    return await SyncService(db).list_connections(current_user.id, organization_id)


@router.post("", response_model=ConnectionResponse, status_code=status.HTTP_201_CREATED)
async def create_connection(
    organization_id: str,
    connection_data: ConnectionCreate,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_async_session)
):
    """Store the access token obtained from the provider's OAuth flow"""
    return await SyncService(db).connect(current_user.id, organization_id, connection_data)


@router.post(
    "/{connection_id}/sync",
    response_model=SyncStartedResponse,
    status_code=status.HTTP_202_ACCEPTED
)
async def start_sync(
    organization_id: str,
    connection_id: str,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_async_session),
    runner: SyncTaskRunner = Depends(get_sync_runner),
    session_factory: async_sessionmaker = Depends(get_session_factory)
):
    """Start a background sync and return immediately; poll the status route for progress"""
    connection = await SyncService(db).start_sync(
        current_user.id, organization_id, connection_id, runner, session_factory
    )
    return SyncStartedResponse(connection_id=connection.id, message="Notion sync started")


@router.get("/{connection_id}/sync")
async def get_sync_status(
    organization_id: str,
    connection_id: str,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_async_session)
) -> Dict[str, Any]:
    return await SyncService(db).get_sync_status(current_user.id, organization_id, connection_id)
