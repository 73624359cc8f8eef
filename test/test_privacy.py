"""
Test suite for the privacy endpoints: export, retention deletion and metrics.
"""
import hashlib
import pytest
from httpx import AsyncClient
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from app.models import AuditLog, User
from app.services.analytics_service import AnalyticsService
from app.services.analytics_store import AnalyticsStore, DAY_MS
from helpers import auth_headers, make_event


@pytest.fixture
def populated_store(store: AnalyticsStore) -> AnalyticsStore:
    store.add_event(make_event("zing_app_launch", "u1", 100 * DAY_MS, hardware_id="hw-old", platform="linux"))
    store.add_event(make_event("zing_session_start", "u2", DAY_MS, hardware_id="hw-new",
                               app_version="1.3.5", session_id="s-1"))
    store.add_event(make_event("page_view", "u3", DAY_MS))
    return store


class TestPseudonymize:
    """Test identifier hashing used by the export."""

    def test_hash_prefix(self):
        expected = hashlib.sha256(b"hw-123").hexdigest()[:16] + "..."
        assert AnalyticsService.pseudonymize("hw-123") == expected
        assert "hw-123" not in AnalyticsService.pseudonymize("hw-123")

    def test_missing_identifier(self):
        assert AnalyticsService.pseudonymize(None) == "anonymous"
        assert AnalyticsService.pseudonymize("") == "anonymous"


class TestExport:
    """Test the export endpoint."""

    @pytest.mark.asyncio
    async def test_export_requires_permission(self, client: AsyncClient, viewer: User):
        response = await client.post("/api/v1/privacy/export", json={}, headers=auth_headers(viewer.id))

        assert response.status_code == 403
        assert "analytics:export" in response.json()["detail"]

    @pytest.mark.asyncio
    async def test_json_export(
        self, client: AsyncClient, analyst: User, populated_store: AnalyticsStore, db_session: AsyncSession
    ):
        response = await client.post("/api/v1/privacy/export", json={"format": "json"}, headers=auth_headers(analyst.id))

        assert response.status_code == 200
        assert response.headers["content-disposition"].startswith("attachment; filename=privacy-export-")
        data = response.json()
        assert data["export_info"]["record_count"] == 3
        assert data["export_info"]["exported_by"] == analyst.email

        hashes = [record["user_id_hash"] for record in data["analytics_data"]]
        assert hashes[1] == hashlib.sha256(b"hw-new").hexdigest()[:16] + "..."
        assert hashes[2] == "anonymous"
        assert "hw-new" not in response.text

        audit = (await db_session.execute(
            select(AuditLog).where(AuditLog.action == "analytics_exported")
        )).scalar_one()
        assert audit.user_id == analyst.id

    @pytest.mark.asyncio
    async def test_csv_export(self, client: AsyncClient, analyst: User, populated_store: AnalyticsStore):
        response = await client.post("/api/v1/privacy/export", json={"format": "csv"}, headers=auth_headers(analyst.id))

        assert response.status_code == 200
        assert response.headers["content-type"].startswith("text/csv")
        assert response.headers["content-disposition"].endswith(".csv")

        lines = response.text.splitlines()
        assert lines[0].startswith("# Privacy Data Export - ")
        assert lines[1] == "# Records: 3"
        assert '"Event ID","Timestamp","User ID Hash"' in response.text
        assert '"zing_session_start"' in response.text
        assert '"s-1"' in response.text

    @pytest.mark.asyncio
    async def test_unknown_format_rejected(self, client: AsyncClient, analyst: User):
        response = await client.post("/api/v1/privacy/export", json={"format": "xml"}, headers=auth_headers(analyst.id))
        assert response.status_code == 422


class TestDeleteOldData:
    """Test retention deletion."""

    @pytest.mark.asyncio
    async def test_requires_delete_permission(self, client: AsyncClient, platform_admin: User):
        response = await client.post(
            "/api/v1/privacy/delete-old-data",
            json={"ageInDays": 90},
            headers=auth_headers(platform_admin.id)
        )
        assert response.status_code == 403

    @pytest.mark.asyncio
    async def test_deletes_and_audits(
        self, client: AsyncClient, super_admin: User, populated_store: AnalyticsStore, db_session: AsyncSession
    ):
        response = await client.post(
            "/api/v1/privacy/delete-old-data",
            json={"ageInDays": 90},
            headers=auth_headers(super_admin.id)
        )

        assert response.status_code == 200
        data = response.json()
        assert data["deleted_count"] == 1
        assert data["cutoff"].startswith("2024-03-12")
        assert populated_store.get_total_events() == 2

        audit = (await db_session.execute(
            select(AuditLog).where(AuditLog.action == "analytics_deleted")
        )).scalar_one()
        assert '"deleted": 1' in audit.details

    @pytest.mark.asyncio
    async def test_rejects_non_positive_age(self, client: AsyncClient, super_admin: User):
        response = await client.post(
            "/api/v1/privacy/delete-old-data",
            json={"ageInDays": 0},
            headers=auth_headers(super_admin.id)
        )
        assert response.status_code == 422


class TestPrivacyMetrics:
    """Test the compliance summary."""

    @pytest.mark.asyncio
    async def test_metrics(self, client: AsyncClient, viewer: User, populated_store: AnalyticsStore):
        response = await client.get("/api/v1/privacy/metrics", headers=auth_headers(viewer.id))

        assert response.status_code == 200
        data = response.json()
        assert data["data_age_days"] == 100
        assert data["data_retention_days"] == 90
        assert data["compliance_score_percent"]["source"] == "estimated"

        categories = {c["category"]: c for c in data["privacy_metrics"]}
        assert categories["Data Retention"]["status"] == "warning"
        assert categories["Data Retention"]["score"]["source"] == "measured"
        assert categories["Access Controls"]["score"] == {"value": 95, "source": "estimated"}

    def test_opt_out_rate(self, store: AnalyticsStore):
        store.add_event(make_event("page_view", "u1", DAY_MS, hardware_id="hw-1"))
        store.add_event(make_event("page_view", "u2", DAY_MS, hardware_id="hw-2"))
        store.add_event(make_event("analytics_opt_out", "u2", 0, hardware_id="hw-2"))

        metrics = AnalyticsService(store).get_privacy_metrics()

        assert metrics["opt_out_rate_percent"] == 50.0
        assert metrics["last_updated"].startswith("2024-06-10T06:13:20")
