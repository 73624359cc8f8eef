"""
Test suite for audit logging.
Tests staged writes, platform and organization audit trails, and activity summaries.
"""
import json
import pytest
from httpx import AsyncClient
from sqlalchemy import select, func
from sqlalchemy.ext.asyncio import AsyncSession

from app.models import AuditLog, User, Organization
from app.schemas import ActionStatus
from app.services.audit_service import AuditService
from helpers import auth_headers

NEW_ROLE = {"name": "support", "display_name": "Support", "level": 30}


async def _count(db: AsyncSession) -> int:
    return (await db.execute(select(func.count(AuditLog.id)))).scalar()


class TestAuditService:
    """Test the audit service directly."""

    @pytest.mark.asyncio
    async def test_record_is_committed_by_caller(self, db_session: AsyncSession):
        audit = AuditService(db_session)

        audit.record(action="role_created", resource="role", user_id="user-1")
        await db_session.rollback()
        assert await _count(db_session) == 0

        audit.record(
            action="role_created",
            resource="role",
            user_id="user-1",
            details={"name": "support"},
            status=ActionStatus.WARNING
        )
        await db_session.commit()

        log = (await db_session.execute(select(AuditLog))).scalar_one()
        assert json.loads(log.details) == {"name": "support"}
        assert log.status == "warning"

    @pytest.mark.asyncio
    async def test_filters_and_pagination(self, db_session: AsyncSession):
        audit = AuditService(db_session)
        for index in range(5):
            audit.record(action="member_added", resource="organization_membership", user_id="user-1", organization_id="org-1")
        audit.record(action="role_created", resource="role", user_id="user-2")
        await db_session.commit()

        logs, total = await audit.get_audit_logs(organization_id="org-1", page=2, size=2)
        assert total == 5
        assert len(logs) == 2

        logs, total = await audit.get_audit_logs(platform_only=True)
        assert [log.action for log in logs] == ["role_created"]

        logs, total = await audit.get_audit_logs(user_id="user-2", action="member_added")
        assert total == 0

    @pytest.mark.asyncio
    async def test_activity_summary(self, db_session: AsyncSession):
        audit = AuditService(db_session)
        audit.record(action="role_assigned", resource="user", user_id="user-1")
        audit.record(action="role_assigned", resource="user", user_id="user-1")
        audit.record(action="role_removed", resource="user", user_id="user-1")
        audit.record(action="role_removed", resource="user", user_id="user-2")
        await db_session.commit()

        summary = await audit.get_user_activity_summary("user-1", days=7)

        assert summary["total_activities"] == 3
        assert summary["activities_by_action"] == {"role_assigned": 2, "role_removed": 1}


class TestPlatformAuditRoutes:
    """Test /admin/audit."""

    @pytest.mark.asyncio
    async def test_role_changes_are_audited(self, client: AsyncClient, platform_admin: User, analyst: User):
        await client.post("/api/v1/admin/roles", json=NEW_ROLE, headers=auth_headers(platform_admin.id))

        response = await client.get("/api/v1/admin/audit?action=role_created", headers=auth_headers(analyst.id))

        assert response.status_code == 200
        data = response.json()
        assert data["total"] == 1
        assert data["items"][0]["user_id"] == platform_admin.id
        assert data["items"][0]["scope"] == "platform"
        assert json.loads(data["items"][0]["details"]) == {"name": "support", "level": 30}

    @pytest.mark.asyncio
    async def test_platform_trail_excludes_organization_events(
        self, client: AsyncClient, organization: Organization, super_admin: User
    ):
        response = await client.get("/api/v1/admin/audit", headers=auth_headers(super_admin.id))

        assert response.status_code == 200
        assert "organization_created" not in [log["action"] for log in response.json()["items"]]

    @pytest.mark.asyncio
    async def test_requires_system_read(self, client: AsyncClient, viewer: User):
        response = await client.get("/api/v1/admin/audit", headers=auth_headers(viewer.id))
        assert response.status_code == 403

    @pytest.mark.asyncio
    async def test_user_summary(self, client: AsyncClient, platform_admin: User):
        await client.post("/api/v1/admin/roles", json=NEW_ROLE, headers=auth_headers(platform_admin.id))

        response = await client.get(
            f"/api/v1/admin/audit/users/{platform_admin.id}/summary",
            headers=auth_headers(platform_admin.id)
        )

        assert response.status_code == 200
        assert response.json()["activities_by_action"] == {"role_created": 1}


class TestOrganizationAuditRoutes:
    """Test /organizations/{id}/audit."""

    @pytest.mark.asyncio
    async def test_org_admin_reads_trail(self, client: AsyncClient, organization: Organization, org_admin: User):
        response = await client.get(f"/api/v1/organizations/{organization.id}/audit", headers=auth_headers(org_admin.id))

        assert response.status_code == 200
        actions = [log["action"] for log in response.json()["items"]]
        assert "organization_created" in actions
        assert all(log["organization_id"] == organization.id for log in response.json()["items"])
        assert all(log["scope"] == "organization" for log in response.json()["items"])

    @pytest.mark.asyncio
    async def test_member_denied(self, client: AsyncClient, organization: Organization, org_member: User):
        response = await client.get(f"/api/v1/organizations/{organization.id}/audit", headers=auth_headers(org_member.id))

        assert response.status_code == 403
        assert response.json()["detail"] == "Organization admin access required"

    @pytest.mark.asyncio
    async def test_platform_super_admin_allowed(
        self, client: AsyncClient, organization: Organization, super_admin: User
    ):
        response = await client.get(f"/api/v1/organizations/{organization.id}/audit", headers=auth_headers(super_admin.id))
        assert response.status_code == 200

    @pytest.mark.asyncio
    async def test_member_changes_are_audited(
        self, client: AsyncClient, organization: Organization, org_admin: User, plain_user: User
    ):
        headers = auth_headers(org_admin.id)
        await client.post(
            f"/api/v1/organizations/{organization.id}/members", json={"user_id": plain_user.id}, headers=headers
        )

        response = await client.get(
            f"/api/v1/organizations/{organization.id}/audit?action=member_added", headers=headers
        )

        items = response.json()["items"]
        assert len(items) == 1
        assert items[0]["resource_id"] == plain_user.id
        assert items[0]["user_id"] == org_admin.id
