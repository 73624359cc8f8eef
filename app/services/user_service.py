"""
User service layer

Users come from the identity provider; this layer provisions them on first
sight and answers profile and listing queries.
"""
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select, func, or_
from typing import Optional, List, Tuple, Dict, Any
from app.models import User, RegistrationSource
from app.schemas import TokenPayload
from app.services.authorization_service import AuthorizationService
from fastapi import HTTPException, status
import logging

logger = logging.getLogger(__name__)


class UserService:

    def __init__(self, db: AsyncSession):
        self.db = db

    async def get_user(self, user_id: str) -> Optional[User]:
        return await self.db.get(User, user_id)

    async def get_or_provision_user(self, token: TokenPayload) -> User:
        """Return the token's user, creating it from the token claims if unseen"""
        user = await self.get_user(token.sub)
        if user:
            return user

        source = token.registration_source
        if source not in (RegistrationSource.WEB, RegistrationSource.ZING):
            source = RegistrationSource.WEB

        user = User(
            id=token.sub,
            email=token.email,
            name=token.name,
            registration_source=source,
            is_active=True
        )
        self.db.add(user)
        await self.db.commit()
        await self.db.refresh(user)
        logger.info(f"Provisioned user {user.id} ({user.email}) from {source}")
        return user

    async def list_users(
        self,
        page: int = 1,
        size: int = 20,
        search: Optional[str] = None
    ) -> Tuple[List[User], int]:
        stmt = select(User)
        count_stmt = select(func.count(User.id))
        if search:
            pattern = f"%{search}%"
            condition = or_(User.email.ilike(pattern), User.name.ilike(pattern))
            stmt = stmt.where(condition)
            count_stmt = count_stmt.where(condition)

        total = (await self.db.execute(count_stmt)).scalar() or 0
        stmt = stmt.order_by(User.created_at.desc()).offset((page - 1) * size).limit(size)
        users = list((await self.db.execute(stmt)).scalars().all())
        return users, total

    async def get_profile(self, user: User) -> Dict[str, Any]:
        authz = AuthorizationService(self.db)
        return {
            "id": user.id,
            "email": user.email,
            "name": user.name,
            "registration_source": user.registration_source,
            "is_active": user.is_active,
            "active_organization_id": user.active_organization_id,
            "created_at": user.created_at,
            "updated_at": user.updated_at,
            "roles": await authz.get_user_roles(user.id),
            "permissions": await authz.get_user_permissions(user.id),
            "is_platform_super_admin": await authz.is_platform_super_admin(user.id),
        }

    async def set_active(self, user_id: str, is_active: bool) -> User:
        user = await self.get_user(user_id)
        if not user:
            raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="User not found")
        user.is_active = is_active
        await self.db.commit()
        await self.db.refresh(user)
        logger.info(f"User {user_id} {'activated' if is_active else 'deactivated'}")
        return user
