"""
Shared test data builders: fixed clock, events, tokens, users and grants.
"""
import random
from datetime import datetime, timedelta
from typing import Dict, Optional
from sqlalchemy import select, and_
from sqlalchemy.ext.asyncio import AsyncSession

from app.models import User, Role, OrganizationMembership, UserRoleAssignment
from app.security import create_access_token
from app.services.analytics_store import AnalyticsStore
from app.services.sync_service import SyncTaskRunner

# 2024-06-10T06:13:20Z
NOW_MS = 1718000000000

API_KEY_HEADERS = {"Authorization": "Bearer test-analytics-key"}


class RecordingRunner(SyncTaskRunner):
    """Records submitted jobs instead of running them"""

    def __init__(self):
        super().__init__()
        self.submitted = []

    def submit(self, coro, name=None):
        coro.close()
        self.submitted.append(name)
        return None


def fixed_resources() -> dict:
    return {
        "memory_usage": 120.0,
        "cpu_usage": 3.5,
        "disk_usage": 41.0,
        "network_io": {"inbound": 0, "outbound": 0},
    }


def make_store(**kwargs) -> AnalyticsStore:
    options = {
        "clock": lambda: NOW_MS,
        "rng": random.Random(7),
        "resource_reader": fixed_resources,
    }
    options.update(kwargs)
    return AnalyticsStore(**options)


def make_event(event: str, user_id: str = "user-1", offset_ms: int = 0, **properties) -> dict:
    """Event stamped ``offset_ms`` before the fixed clock"""
    props = {"user_id": user_id, "timestamp": NOW_MS - offset_ms}
    props.update(properties)
    return {"event": event, "properties": props}


def auth_headers(user_id: str, email: Optional[str] = None, **claims) -> Dict[str, str]:
    """Bearer headers carrying a session token for ``user_id``"""
    data = {"sub": user_id, "email": email or f"{user_id}@example.com"}
    data.update(claims)
    token = create_access_token(data, expires_delta=timedelta(minutes=30))
    return {"Authorization": f"Bearer {token}"}


async def create_user(
    db: AsyncSession,
    user_id: str,
    registration_source: str = "web",
    is_active: bool = True
) -> User:
    user = User(
        id=user_id,
        email=f"{user_id}@example.com",
        name=user_id.replace("-", " ").title(),
        registration_source=registration_source,
        is_active=is_active
    )
    db.add(user)
    await db.commit()
    return user


async def platform_role(db: AsyncSession, name: str) -> Role:
    result = await db.execute(select(Role).where(and_(Role.name == name, Role.organization_id.is_(None))))
    return result.scalar_one()


async def org_role(db: AsyncSession, organization_id: str, name: str) -> Role:
    result = await db.execute(
        select(Role).where(and_(Role.name == name, Role.organization_id == organization_id))
    )
    return result.scalar_one()


async def grant_platform_role(
    db: AsyncSession,
    user_id: str,
    role_name: str,
    expires_at: Optional[datetime] = None
) -> UserRoleAssignment:
    role = await platform_role(db, role_name)
    assignment = UserRoleAssignment(user_id=user_id, role_id=role.id, assigned_by="test", expires_at=expires_at)
    db.add(assignment)
    await db.commit()
    return assignment


async def add_membership(
    db: AsyncSession,
    organization_id: str,
    user_id: str,
    legacy_role: str = "user",
    org_role_name: Optional[str] = None
) -> OrganizationMembership:
    """Membership row, optionally with a matching organization role assignment"""
    membership = OrganizationMembership(user_id=user_id, organization_id=organization_id, role=legacy_role)
    db.add(membership)
    if org_role_name:
        role = await org_role(db, organization_id, org_role_name)
        db.add(UserRoleAssignment(
            user_id=user_id, role_id=role.id, organization_id=organization_id, assigned_by="test"
        ))
    await db.commit()
    return membership
