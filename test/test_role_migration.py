"""
Test suite for the legacy membership role adapter and backfill.
"""
import pytest
from sqlalchemy import select, func
from sqlalchemy.ext.asyncio import AsyncSession

from app.models import Organization, UserRoleAssignment
from app.services.authorization_service import AuthorizationService
from app.services.role_migration import translate_legacy_role, legacy_role_level, migrate_legacy_memberships
from helpers import create_user, add_membership


async def _assignment_count(db: AsyncSession) -> int:
    return (await db.execute(select(func.count(UserRoleAssignment.id)))).scalar()


@pytest.fixture
async def legacy_members(db_session: AsyncSession, organization: Organization):
    """Memberships that predate organization roles"""
    for user_id, legacy_role in (("user-legacy-1", "user"), ("user-legacy-2", "admin"), ("user-legacy-3", "guest")):
        await create_user(db_session, user_id)
        await add_membership(db_session, organization.id, user_id, legacy_role)


class TestTranslation:
    """Test legacy role translation."""

    def test_known_roles(self):
        assert translate_legacy_role("super_admin") == "super_admin"
        assert translate_legacy_role("admin") == "admin"
        assert translate_legacy_role("user") == "member"

    def test_unknown_roles(self):
        assert translate_legacy_role(None) is None
        assert translate_legacy_role("") is None
        assert translate_legacy_role("owner") is None

    def test_levels(self):
        assert legacy_role_level("user") == 10
        assert legacy_role_level("admin") == 50
        assert legacy_role_level("super_admin") == 100
        assert legacy_role_level("guest") == 0


class TestMigration:
    """Test backfilling organization role assignments."""

    @pytest.mark.asyncio
    async def test_dry_run_writes_nothing(self, db_session: AsyncSession, legacy_members):
        before = await _assignment_count(db_session)

        stats = await migrate_legacy_memberships(db_session, dry_run=True)

        assert stats == {"memberships": 4, "migrated": 2, "skipped": 1, "unmapped": 1}
        await db_session.rollback()
        assert await _assignment_count(db_session) == before

    @pytest.mark.asyncio
    async def test_migration_assigns_roles(
        self, db_session: AsyncSession, organization: Organization, legacy_members
    ):
        stats = await migrate_legacy_memberships(db_session, organization.id)
        assert stats["migrated"] == 2

        authz = AuthorizationService(db_session)
        assert await authz.user_has_role("user-legacy-1", "member", organization.id) is True
        assert await authz.user_has_org_permission("user-legacy-2", organization.id, "org:members:write") is True
        assert await authz.get_user_roles("user-legacy-3", organization.id) == []

    @pytest.mark.asyncio
    async def test_migration_is_idempotent(self, db_session: AsyncSession, legacy_members):
        await migrate_legacy_memberships(db_session)

        stats = await migrate_legacy_memberships(db_session)

        assert stats == {"memberships": 4, "migrated": 0, "skipped": 3, "unmapped": 1}

    @pytest.mark.asyncio
    async def test_scoped_to_organization(self, db_session: AsyncSession, legacy_members):
        stats = await migrate_legacy_memberships(db_session, "another-org")
        assert stats == {"memberships": 0, "migrated": 0, "skipped": 0, "unmapped": 0}
