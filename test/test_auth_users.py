"""
Test suite for session authentication and platform user administration.
"""
import pytest
from datetime import timedelta
from httpx import AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession

from app.models import User
from app.security import create_access_token, verify_token
from helpers import auth_headers, create_user


class TestSessionTokens:
    """Test token verification."""

    def test_valid_token(self):
        token = create_access_token({"sub": "user-1", "email": "one@example.com", "name": "One"})
        payload = verify_token(token)

        assert payload.sub == "user-1"
        assert payload.email == "one@example.com"
        assert payload.name == "One"

    def test_expired_token(self):
        token = create_access_token({"sub": "user-1", "email": "one@example.com"}, timedelta(minutes=-5))
        assert verify_token(token) is None

    def test_missing_email_rejected(self):
        token = create_access_token({"sub": "user-1"})
        assert verify_token(token) is None

    def test_garbage_rejected(self):
        assert verify_token("not.a.token") is None


class TestCurrentUser:
    """Test /auth endpoints."""

    @pytest.mark.asyncio
    async def test_me_provisions_user(self, client: AsyncClient, db_session: AsyncSession):
        headers = auth_headers("user-new", email="new@example.com", name="New Person", registration_source="zing")

        response = await client.get("/api/v1/auth/me", headers=headers)

        assert response.status_code == 200
        data = response.json()
        assert data["id"] == "user-new"
        assert data["email"] == "new@example.com"
        assert data["registration_source"] == "zing"
        assert data["roles"] == []
        assert data["is_platform_super_admin"] is False
        assert await db_session.get(User, "user-new") is not None

    @pytest.mark.asyncio
    async def test_unknown_registration_source_defaults_to_web(self, client: AsyncClient):
        response = await client.get(
            "/api/v1/auth/me",
            headers=auth_headers("user-other", registration_source="mobile")
        )
        assert response.json()["registration_source"] == "web"

    @pytest.mark.asyncio
    async def test_me_lists_platform_roles(self, client: AsyncClient, analyst: User):
        response = await client.get("/api/v1/auth/me", headers=auth_headers(analyst.id))

        data = response.json()
        assert [r["name"] for r in data["roles"]] == ["analyst"]
        assert data["permissions"] == ["analytics:export", "analytics:read", "system:read"]

    @pytest.mark.asyncio
    async def test_missing_and_invalid_tokens(self, client: AsyncClient):
        response = await client.get("/api/v1/auth/validate")
        assert response.status_code == 401

        response = await client.get("/api/v1/auth/validate", headers={"Authorization": "Bearer broken"})
        assert response.status_code == 401
        assert response.json()["detail"] == "Invalid or expired token"

    @pytest.mark.asyncio
    async def test_inactive_user_rejected(self, client: AsyncClient, db_session: AsyncSession):
        user = await create_user(db_session, "user-disabled", is_active=False)

        response = await client.get("/api/v1/auth/validate", headers=auth_headers(user.id))

        assert response.status_code == 401
        assert response.json()["detail"] == "User account is inactive"

    @pytest.mark.asyncio
    async def test_validate(self, client: AsyncClient, plain_user: User):
        response = await client.get("/api/v1/auth/validate", headers=auth_headers(plain_user.id))

        assert response.json() == {"valid": True, "user_id": plain_user.id, "email": plain_user.email}


class TestUserAdministration:
    """Test /admin/users endpoints."""

    @pytest.mark.asyncio
    async def test_list_users(self, client: AsyncClient, platform_admin: User, viewer: User):
        response = await client.get("/api/v1/admin/users", headers=auth_headers(platform_admin.id))

        assert response.status_code == 200
        data = response.json()
        assert data["total"] == 2
        assert {u["id"] for u in data["items"]} == {platform_admin.id, viewer.id}

    @pytest.mark.asyncio
    async def test_search_users(self, client: AsyncClient, platform_admin: User, viewer: User):
        response = await client.get("/api/v1/admin/users?search=viewer", headers=auth_headers(platform_admin.id))

        data = response.json()
        assert data["total"] == 1
        assert data["items"][0]["id"] == viewer.id

    @pytest.mark.asyncio
    async def test_list_users_requires_permission(self, client: AsyncClient, analyst: User):
        response = await client.get("/api/v1/admin/users", headers=auth_headers(analyst.id))
        assert response.status_code == 403

    @pytest.mark.asyncio
    async def test_deactivate_and_activate(self, client: AsyncClient, platform_admin: User, viewer: User):
        headers = auth_headers(platform_admin.id)

        response = await client.post(f"/api/v1/admin/users/{viewer.id}/deactivate", headers=headers)
        assert response.status_code == 200
        assert response.json()["is_active"] is False

        response = await client.get("/api/v1/auth/me", headers=auth_headers(viewer.id))
        assert response.status_code == 401

        response = await client.post(f"/api/v1/admin/users/{viewer.id}/activate", headers=headers)
        assert response.json()["is_active"] is True

    @pytest.mark.asyncio
    async def test_cannot_deactivate_self(self, client: AsyncClient, platform_admin: User):
        response = await client.post(
            f"/api/v1/admin/users/{platform_admin.id}/deactivate",
            headers=auth_headers(platform_admin.id)
        )
        assert response.status_code == 400

    @pytest.mark.asyncio
    async def test_unknown_user_access(self, client: AsyncClient, platform_admin: User):
        response = await client.get("/api/v1/admin/users/missing/access", headers=auth_headers(platform_admin.id))
        assert response.status_code == 404
