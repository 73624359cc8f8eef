"""
Authentication and shared-state dependencies for FastAPI
"""
from fastapi import Depends, HTTPException, status, Request, Header
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker
from typing import Optional
from app.database import get_async_session
from app.models import User
from app.security import verify_token, verify_api_key
from app.services.analytics_store import AnalyticsStore
from app.services.authorization_service import AuthorizationService
from app.services.geolocation_service import get_client_ip as resolve_client_ip
from app.services.sync_service import SyncTaskRunner
from app.services.user_service import UserService
import logging

logger = logging.getLogger(__name__)

# HTTP Bearer token scheme
security = HTTPBearer(auto_error=False)


async def get_current_user(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(security),
    db: AsyncSession = Depends(get_async_session)
) -> User:
    """Get current authenticated user, provisioning it on first sight"""

    if not credentials:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Authentication credentials required",
            headers={"WWW-Authenticate": "Bearer"},
        )

    token_payload = verify_token(credentials.credentials)
    if not token_payload:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid or expired token",
            headers={"WWW-Authenticate": "Bearer"},
        )

    user = await UserService(db).get_or_provision_user(token_payload)

    if not user.is_active:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="User account is inactive",
        )

    return user


def require_platform_permission(*required_permissions: str):
    """Dependency factory for platform-scoped permission checks"""

    async def permission_checker(
        current_user: User = Depends(get_current_user),
        db: AsyncSession = Depends(get_async_session)
    ) -> User:
        authz = AuthorizationService(db)
        missing = [
            permission for permission in required_permissions
            if not await authz.user_has_permission(current_user.id, permission)
        ]
        if missing:
            logger.warning(f"User {current_user.id} denied; missing {', '.join(missing)}")
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN,
                detail=f"Missing required permissions: {', '.join(missing)}"
            )
        return current_user

    return permission_checker


async def get_current_super_admin(
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_async_session)
) -> User:
    """Get current user if they hold the platform super admin role"""
    if not await AuthorizationService(db).is_platform_super_admin(current_user.id):
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Super admin access required"
        )
    return current_user


async def verify_analytics_key(authorization: Optional[str] = Header(None)) -> None:
    """Ingestion endpoints authenticate with the static analytics key"""
    if not verify_api_key(authorization):
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Unauthorized",
            headers={"WWW-Authenticate": "Bearer"},
        )


def get_analytics_store(request: Request) -> AnalyticsStore:
    return request.app.state.analytics_store


def get_sync_runner(request: Request) -> SyncTaskRunner:
    return request.app.state.sync_runner


def get_session_factory(request: Request) -> async_sessionmaker:
    return request.app.state.session_factory


def get_client_ip(request: Request) -> Optional[str]:
    """Extract client IP address from request"""
    return resolve_client_ip(request.headers, request.client.host if request.client else None)
