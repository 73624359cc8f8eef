"""
Test suite for organization endpoints: tenants, members, teams, AI configuration
and active organization switching.
"""
import pytest
from datetime import timedelta
from httpx import AsyncClient
from sqlalchemy import select, func
from sqlalchemy.ext.asyncio import AsyncSession

from app.models import User, Organization, Role, UserRoleAssignment, utcnow
from helpers import auth_headers, create_user, add_membership, org_role


class TestOrganizationLifecycle:
    """Test create, read, update and delete."""

    @pytest.mark.asyncio
    async def test_create_seeds_rbac_and_owner(self, client: AsyncClient, super_admin: User, db_session: AsyncSession):
        response = await client.post(
            "/api/v1/organizations",
            json={"name": "Globex", "slug": "globex", "size": "medium"},
            headers=auth_headers(super_admin.id)
        )

        assert response.status_code == 201
        org = response.json()
        assert org["slug"] == "globex"
        assert org["created_by"] == super_admin.id

        roles = (await db_session.execute(
            select(Role.name).where(Role.organization_id == org["id"]).order_by(Role.level.desc())
        )).scalars().all()
        assert roles == ["super_admin", "admin", "member"]

        members = await client.get(f"/api/v1/organizations/{org['id']}/members", headers=auth_headers(super_admin.id))
        assert [(m["user_id"], m["role"]) for m in members.json()] == [(super_admin.id, "super_admin")]

    @pytest.mark.asyncio
    async def test_create_with_owner(self, client: AsyncClient, organization: Organization, owner: User):
        response = await client.get(f"/api/v1/organizations/{organization.id}/members", headers=auth_headers(owner.id))

        assert response.status_code == 200
        assert response.json()[0]["user_id"] == owner.id
        assert response.json()[0]["role"] == "super_admin"

    @pytest.mark.asyncio
    async def test_create_requires_super_admin(self, client: AsyncClient, platform_admin: User):
        response = await client.post(
            "/api/v1/organizations",
            json={"name": "Globex", "slug": "globex"},
            headers=auth_headers(platform_admin.id)
        )

        assert response.status_code == 403
        assert response.json()["detail"] == "Super admin access required"

    @pytest.mark.asyncio
    async def test_create_validation(self, client: AsyncClient, super_admin: User, organization: Organization):
        headers = auth_headers(super_admin.id)

        response = await client.post("/api/v1/organizations", json={"name": "Bad", "slug": "Bad Slug"}, headers=headers)
        assert response.status_code == 422

        response = await client.post("/api/v1/organizations", json={"name": "Acme 2", "slug": "acme"}, headers=headers)
        assert response.status_code == 409

        response = await client.post(
            "/api/v1/organizations",
            json={"name": "Orphan", "slug": "orphan", "owner_user_id": "missing"},
            headers=headers
        )
        assert response.status_code == 404

    @pytest.mark.asyncio
    async def test_list_organizations(
        self, client: AsyncClient, organization: Organization, org_member: User,
        plain_user: User, super_admin: User
    ):
        response = await client.get("/api/v1/organizations", headers=auth_headers(org_member.id))
        assert [o["slug"] for o in response.json()["items"]] == ["acme"]

        response = await client.get("/api/v1/organizations", headers=auth_headers(plain_user.id))
        assert response.json()["total"] == 0

        response = await client.get("/api/v1/organizations", headers=auth_headers(super_admin.id))
        assert response.json()["total"] == 0

        response = await client.get("/api/v1/organizations?all=true", headers=auth_headers(super_admin.id))
        assert response.json()["total"] == 1

        response = await client.get("/api/v1/organizations?all=true", headers=auth_headers(plain_user.id))
        assert response.json()["total"] == 0

    @pytest.mark.asyncio
    async def test_get_requires_visibility(
        self, client: AsyncClient, organization: Organization, org_member: User, plain_user: User
    ):
        path = f"/api/v1/organizations/{organization.id}"

        assert (await client.get(path, headers=auth_headers(org_member.id))).status_code == 200
        assert (await client.get(path, headers=auth_headers(plain_user.id))).status_code == 403
        assert (await client.get("/api/v1/organizations/missing", headers=auth_headers(plain_user.id))).status_code == 404

    @pytest.mark.asyncio
    async def test_update_requires_settings_permission(
        self, client: AsyncClient, organization: Organization, org_admin: User, owner: User, super_admin: User
    ):
        path = f"/api/v1/organizations/{organization.id}"

        response = await client.put(path, json={"name": "Acme Inc"}, headers=auth_headers(org_admin.id))
        assert response.status_code == 403

        response = await client.put(path, json={"name": "Acme Inc"}, headers=auth_headers(owner.id))
        assert response.status_code == 200
        assert response.json()["name"] == "Acme Inc"

        response = await client.put(path, json={"description": "Override"}, headers=auth_headers(super_admin.id))
        assert response.status_code == 200
        assert response.json()["description"] == "Override"

    @pytest.mark.asyncio
    async def test_delete(self, client: AsyncClient, organization: Organization, owner: User, super_admin: User):
        path = f"/api/v1/organizations/{organization.id}"

        assert (await client.delete(path, headers=auth_headers(owner.id))).status_code == 403
        assert (await client.delete(path, headers=auth_headers(super_admin.id))).status_code == 200
        assert (await client.get(path, headers=auth_headers(super_admin.id))).status_code == 404

    @pytest.mark.asyncio
    async def test_stats(self, client: AsyncClient, organization: Organization, org_member: User):
        response = await client.get(f"/api/v1/organizations/{organization.id}/stats", headers=auth_headers(org_member.id))

        assert response.json() == {
            "organization_id": organization.id,
            "member_count": 2,
            "team_count": 0,
            "role_count": 3,
        }


class TestMembers:
    """Test member management."""

    @pytest.mark.asyncio
    async def test_admin_adds_member(
        self, client: AsyncClient, organization: Organization, org_admin: User,
        plain_user: User, db_session: AsyncSession
    ):
        path = f"/api/v1/organizations/{organization.id}/members"

        response = await client.post(path, json={"user_id": plain_user.id, "title": "Engineer"}, headers=auth_headers(org_admin.id))
        assert response.status_code == 201
        assert response.json()["role"] == "user"
        assert response.json()["title"] == "Engineer"

        assignment = (await db_session.execute(
            select(Role.name)
            .join(UserRoleAssignment, UserRoleAssignment.role_id == Role.id)
            .where(UserRoleAssignment.user_id == plain_user.id)
        )).scalar_one()
        assert assignment == "member"

        response = await client.post(path, json={"user_id": plain_user.id}, headers=auth_headers(org_admin.id))
        assert response.status_code == 409

    @pytest.mark.asyncio
    async def test_admin_cannot_add_admin(
        self, client: AsyncClient, organization: Organization, org_admin: User, plain_user: User
    ):
        response = await client.post(
            f"/api/v1/organizations/{organization.id}/members",
            json={"user_id": plain_user.id, "role": "admin"},
            headers=auth_headers(org_admin.id)
        )
        assert response.status_code == 403

    @pytest.mark.asyncio
    async def test_owner_adds_admin(self, client: AsyncClient, organization: Organization, owner: User, plain_user: User):
        response = await client.post(
            f"/api/v1/organizations/{organization.id}/members",
            json={"user_id": plain_user.id, "role": "admin"},
            headers=auth_headers(owner.id)
        )
        assert response.status_code == 201

    @pytest.mark.asyncio
    async def test_member_cannot_add(
        self, client: AsyncClient, organization: Organization, org_member: User, plain_user: User
    ):
        response = await client.post(
            f"/api/v1/organizations/{organization.id}/members",
            json={"user_id": plain_user.id},
            headers=auth_headers(org_member.id)
        )

        assert response.status_code == 403
        assert response.json()["detail"] == "Missing required permission: org:members:write"

    @pytest.mark.asyncio
    async def test_add_unknown_user(self, client: AsyncClient, organization: Organization, owner: User):
        response = await client.post(
            f"/api/v1/organizations/{organization.id}/members",
            json={"user_id": "missing"},
            headers=auth_headers(owner.id)
        )
        assert response.status_code == 404

    @pytest.mark.asyncio
    async def test_promote_member(
        self, client: AsyncClient, organization: Organization, owner: User, org_member: User
    ):
        headers = auth_headers(owner.id)

        response = await client.put(
            f"/api/v1/organizations/{organization.id}/members/{org_member.id}",
            json={"role": "admin", "department": "Ops"},
            headers=headers
        )
        assert response.status_code == 200
        assert response.json()["role"] == "admin"

        access = await client.get(
            f"/api/v1/organizations/{organization.id}/members/{org_member.id}/access", headers=headers
        )
        assert [r["name"] for r in access.json()["roles"]] == ["admin"]

    @pytest.mark.asyncio
    async def test_promote_member_already_holding_role(
        self, client: AsyncClient, organization: Organization, owner: User, org_member: User, db_session: AsyncSession
    ):
        headers = auth_headers(owner.id)
        admin_role = await org_role(db_session, organization.id, "admin")
        response = await client.post(
            f"/api/v1/organizations/{organization.id}/members/{org_member.id}/roles",
            json={"role_id": admin_role.id},
            headers=headers
        )
        assert response.status_code == 201

        response = await client.put(
            f"/api/v1/organizations/{organization.id}/members/{org_member.id}",
            json={"role": "admin"},
            headers=headers
        )

        assert response.status_code == 200
        rows = (await db_session.execute(
            select(func.count(UserRoleAssignment.id)).where(UserRoleAssignment.user_id == org_member.id)
        )).scalar()
        assert rows == 1

    @pytest.mark.asyncio
    async def test_promote_member_reactivates_expired_role(
        self, client: AsyncClient, organization: Organization, owner: User, org_member: User, db_session: AsyncSession
    ):
        admin_role = await org_role(db_session, organization.id, "admin")
        db_session.add(UserRoleAssignment(
            user_id=org_member.id,
            role_id=admin_role.id,
            organization_id=organization.id,
            assigned_by="test",
            expires_at=utcnow() - timedelta(days=1)
        ))
        await db_session.commit()
        headers = auth_headers(owner.id)

        response = await client.put(
            f"/api/v1/organizations/{organization.id}/members/{org_member.id}",
            json={"role": "admin"},
            headers=headers
        )
        assert response.status_code == 200

        access = await client.get(
            f"/api/v1/organizations/{organization.id}/members/{org_member.id}/access", headers=headers
        )
        assert [r["name"] for r in access.json()["roles"]] == ["admin"]

    @pytest.mark.asyncio
    async def test_remove_member(
        self, client: AsyncClient, organization: Organization, org_admin: User, org_member: User
    ):
        path = f"/api/v1/organizations/{organization.id}/members"

        response = await client.delete(f"{path}/{org_admin.id}", headers=auth_headers(org_member.id))
        assert response.status_code == 403

        response = await client.delete(f"{path}/{org_member.id}", headers=auth_headers(org_admin.id))
        assert response.status_code == 200

        members = await client.get(path, headers=auth_headers(org_admin.id))
        assert org_member.id not in [m["user_id"] for m in members.json()]

    @pytest.mark.asyncio
    async def test_member_can_leave(self, client: AsyncClient, organization: Organization, org_member: User):
        response = await client.delete(
            f"/api/v1/organizations/{organization.id}/members/{org_member.id}",
            headers=auth_headers(org_member.id)
        )
        assert response.status_code == 200


class TestTeams:
    """Test teams inside an organization."""

    @pytest.mark.asyncio
    async def test_create_and_list(self, client: AsyncClient, organization: Organization, org_admin: User, org_member: User):
        path = f"/api/v1/organizations/{organization.id}/teams"

        response = await client.post(path, json={"name": "Platform"}, headers=auth_headers(org_admin.id))
        assert response.status_code == 201

        response = await client.post(path, json={"name": "Platform"}, headers=auth_headers(org_admin.id))
        assert response.status_code == 409

        response = await client.post(path, json={"name": "Data"}, headers=auth_headers(org_member.id))
        assert response.status_code == 403

        response = await client.get(path, headers=auth_headers(org_member.id))
        assert [t["name"] for t in response.json()] == ["Platform"]

    @pytest.mark.asyncio
    async def test_team_members(
        self, client: AsyncClient, organization: Organization, org_admin: User,
        org_member: User, plain_user: User
    ):
        headers = auth_headers(org_admin.id)
        team = (await client.post(
            f"/api/v1/organizations/{organization.id}/teams", json={"name": "Platform"}, headers=headers
        )).json()
        path = f"/api/v1/organizations/{organization.id}/teams/{team['id']}/members"

        response = await client.post(path, json={"user_id": org_member.id, "role": "lead"}, headers=headers)
        assert response.status_code == 201
        assert response.json()["role"] == "lead"

        response = await client.post(path, json={"user_id": org_member.id}, headers=headers)
        assert response.status_code == 409

        response = await client.post(path, json={"user_id": plain_user.id}, headers=headers)
        assert response.status_code == 400

    @pytest.mark.asyncio
    async def test_unknown_team(self, client: AsyncClient, organization: Organization, org_admin: User, org_member: User):
        response = await client.post(
            f"/api/v1/organizations/{organization.id}/teams/missing/members",
            json={"user_id": org_member.id},
            headers=auth_headers(org_admin.id)
        )
        assert response.status_code == 404


class TestAIConfig:
    """Test the organization AI configuration."""

    @pytest.mark.asyncio
    async def test_defaults(self, client: AsyncClient, organization: Organization, org_member: User):
        response = await client.get(f"/api/v1/organizations/{organization.id}/ai-config", headers=auth_headers(org_member.id))

        assert response.status_code == 200
        data = response.json()
        assert data["welcome_title"] == "Welcome to Zing"
        assert data["welcome_description"] == "Your AI-powered browser assistant"
        assert data["welcome_messages"] == []
        assert data["enabled"] is True

    @pytest.mark.asyncio
    async def test_update(self, client: AsyncClient, organization: Organization, org_admin: User, org_member: User):
        path = f"/api/v1/organizations/{organization.id}/ai-config"

        response = await client.put(path, json={"welcome_title": "Hi"}, headers=auth_headers(org_member.id))
        assert response.status_code == 403

        response = await client.put(
            path,
            json={"welcome_title": "Hi", "welcome_messages": ["Ask me anything"]},
            headers=auth_headers(org_admin.id)
        )
        assert response.status_code == 200

        data = (await client.get(path, headers=auth_headers(org_member.id))).json()
        assert data["welcome_title"] == "Hi"
        assert data["welcome_description"] == "Your AI-powered browser assistant"
        assert data["welcome_messages"] == ["Ask me anything"]

    @pytest.mark.asyncio
    async def test_outsider_cannot_read(self, client: AsyncClient, organization: Organization, plain_user: User):
        response = await client.get(f"/api/v1/organizations/{organization.id}/ai-config", headers=auth_headers(plain_user.id))
        assert response.status_code == 403


class TestActiveOrganization:
    """Test switching and manageable organizations."""

    @pytest.mark.asyncio
    async def test_switch(self, client: AsyncClient, organization: Organization, org_member: User, plain_user: User):
        response = await client.post(f"/api/v1/organizations/switch/{organization.id}", headers=auth_headers(org_member.id))
        assert response.status_code == 200

        me = await client.get("/api/v1/auth/me", headers=auth_headers(org_member.id))
        assert me.json()["active_organization_id"] == organization.id

        response = await client.post(f"/api/v1/organizations/switch/{organization.id}", headers=auth_headers(plain_user.id))
        assert response.status_code == 403

    @pytest.mark.asyncio
    async def test_manageable(self, client: AsyncClient, organization: Organization, org_admin: User, org_member: User):
        response = await client.get("/api/v1/organizations/manageable", headers=auth_headers(org_admin.id))
        assert [o["id"] for o in response.json()] == [organization.id]

        response = await client.get("/api/v1/organizations/manageable", headers=auth_headers(org_member.id))
        assert response.json() == []

    @pytest.mark.asyncio
    async def test_manageable_counts_legacy_admins(
        self, client: AsyncClient, organization: Organization, db_session: AsyncSession
    ):
        user = await create_user(db_session, "user-legacy-admin")
        await add_membership(db_session, organization.id, user.id, "admin")

        response = await client.get("/api/v1/organizations/manageable", headers=auth_headers(user.id))
        assert [o["slug"] for o in response.json()] == ["acme"]
