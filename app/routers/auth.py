"""
Authentication API routes

Sign-in happens at the identity provider; these routes expose the session
user as seen by this service.
"""
from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession
from typing import Dict, Any
from app.database import get_async_session
from app.schemas import UserProfileResponse
from app.services.user_service import UserService
from app.dependencies import get_current_user
from app.models import User
import logging

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/auth", tags=["Authentication"])


@router.get("/me", response_model=UserProfileResponse)
async def get_profile(
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_async_session)
):
    """Current user with platform roles and permissions"""
    return await UserService(db).get_profile(current_user)


@router.get("/validate")
async def validate_session(current_user: User = Depends(get_current_user)) -> Dict[str, Any]:
    return {"valid": True, "user_id": current_user.id, "email": current_user.email}
