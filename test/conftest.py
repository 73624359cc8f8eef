"""
Test configuration and fixtures for Zashboard.
Provides an in-memory database, an isolated analytics store and sync runner,
and the platform/organization fixtures shared by the test modules.
"""
import os

os.environ["DATABASE_URL"] = "sqlite+aiosqlite:///:memory:"
os.environ["SECRET_KEY"] = "test-secret-key"
os.environ["ANALYTICS_API_KEY"] = "test-analytics-key"
os.environ["DEBUG"] = "false"

import pytest
from typing import AsyncGenerator
from httpx import AsyncClient, ASGITransport
from sqlalchemy.ext.asyncio import AsyncSession, create_async_engine, async_sessionmaker
from sqlalchemy.pool import StaticPool

from main import app
from app.database import Base, get_async_session
from app.dependencies import get_analytics_store, get_sync_runner, get_session_factory
from app.models import User, Organization
from app.schemas import OrganizationCreate
from app.services.analytics_store import AnalyticsStore
from app.services.organization_service import OrganizationService
from app.services.role_catalog import seed_platform_rbac
from helpers import RecordingRunner, make_store, create_user, grant_platform_role, add_membership


@pytest.fixture
async def engine():
    """Fresh in-memory database per test"""
    test_engine = create_async_engine(
        "sqlite+aiosqlite:///:memory:",
        echo=False,
        poolclass=StaticPool,
        connect_args={"check_same_thread": False}
    )
    async with test_engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield test_engine

    async with test_engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)
    await test_engine.dispose()


@pytest.fixture
def session_factory(engine) -> async_sessionmaker:
    return async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)


@pytest.fixture
async def db_session(session_factory) -> AsyncGenerator[AsyncSession, None]:
    async with session_factory() as session:
        yield session


@pytest.fixture
def store() -> AnalyticsStore:
    return make_store()


@pytest.fixture
def runner() -> RecordingRunner:
    return RecordingRunner()


@pytest.fixture
async def client(session_factory, store, runner) -> AsyncGenerator[AsyncClient, None]:
    """API client wired to the test database, store and sync runner"""

    async def get_test_session():
        async with session_factory() as session:
            yield session

    app.dependency_overrides[get_async_session] = get_test_session
    app.dependency_overrides[get_analytics_store] = lambda: store
    app.dependency_overrides[get_sync_runner] = lambda: runner
    app.dependency_overrides[get_session_factory] = lambda: session_factory

    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as ac:
        yield ac

    app.dependency_overrides.clear()


@pytest.fixture
async def platform_rbac(db_session: AsyncSession):
    await seed_platform_rbac(db_session)
    await db_session.commit()


@pytest.fixture
async def super_admin(db_session: AsyncSession, platform_rbac) -> User:
    user = await create_user(db_session, "user-super")
    await grant_platform_role(db_session, user.id, "super_admin")
    return user


@pytest.fixture
async def platform_admin(db_session: AsyncSession, platform_rbac) -> User:
    user = await create_user(db_session, "user-admin")
    await grant_platform_role(db_session, user.id, "admin")
    return user


@pytest.fixture
async def analyst(db_session: AsyncSession, platform_rbac) -> User:
    user = await create_user(db_session, "user-analyst")
    await grant_platform_role(db_session, user.id, "analyst")
    return user


@pytest.fixture
async def viewer(db_session: AsyncSession, platform_rbac) -> User:
    user = await create_user(db_session, "user-viewer")
    await grant_platform_role(db_session, user.id, "viewer")
    return user


@pytest.fixture
async def plain_user(db_session: AsyncSession, platform_rbac) -> User:
    return await create_user(db_session, "user-plain")


@pytest.fixture
async def owner(db_session: AsyncSession) -> User:
    return await create_user(db_session, "user-owner")


@pytest.fixture
async def organization(db_session: AsyncSession, super_admin: User, owner: User) -> Organization:
    """Organization created by the platform super admin and owned by ``owner``"""
    org_data = OrganizationCreate(name="Acme Corp", slug="acme", owner_user_id=owner.id)
    return await OrganizationService(db_session).create_organization(org_data, created_by=super_admin.id)


@pytest.fixture
async def org_admin(db_session: AsyncSession, organization: Organization) -> User:
    user = await create_user(db_session, "user-org-admin")
    await add_membership(db_session, organization.id, user.id, "admin", "admin")
    return user


@pytest.fixture
async def org_member(db_session: AsyncSession, organization: Organization) -> User:
    user = await create_user(db_session, "user-member")
    await add_membership(db_session, organization.id, user.id, "user", "member")
    return user
