"""
Test suite for the telemetry ingestion endpoints.
Tests API key authentication, validation, enrichment and demo data handling.
"""
import pytest
from httpx import AsyncClient

from app.services.analytics_store import AnalyticsStore, HOUR_MS
from helpers import API_KEY_HEADERS, NOW_MS, make_event


def event_payload(**properties):
    props = {"user_id": "user-1", "timestamp": NOW_MS - 1000, "app_version": "1.3.5", "platform": "darwin"}
    props.update(properties)
    return {"event": "zing_app_launch", "properties": props}


class TestIngestAuthentication:
    """Test the analytics API key check."""

    @pytest.mark.asyncio
    async def test_missing_key_rejected(self, client: AsyncClient, store: AnalyticsStore):
        response = await client.post("/api/v1/analytics/ingest", json=event_payload())

        assert response.status_code == 401
        assert store.get_total_events() == 0

    @pytest.mark.asyncio
    async def test_wrong_key_rejected(self, client: AsyncClient):
        response = await client.post(
            "/api/v1/analytics/ingest",
            json=event_payload(),
            headers={"Authorization": "Bearer demo-key"}
        )
        assert response.status_code == 401

    @pytest.mark.asyncio
    async def test_health_needs_no_key(self, client: AsyncClient):
        response = await client.get("/api/v1/analytics/health")

        assert response.status_code == 200
        assert response.json()["buffered_events"] == 0


class TestIngest:
    """Test single event ingestion."""

    @pytest.mark.asyncio
    async def test_ingest_success(self, client: AsyncClient, store: AnalyticsStore):
        response = await client.post("/api/v1/analytics/ingest", json=event_payload(), headers=API_KEY_HEADERS)

        assert response.status_code == 200
        data = response.json()
        assert data["success"] is True
        assert data["event_id"].startswith("zing_app_launch_")
        assert data["location"] == {"country": "Development", "country_code": "DEV", "source": "development"}

        stored = store.get_events()[0]["properties"]
        assert stored["country_code"] == "DEV"
        assert stored["location_source"] == "development"

    @pytest.mark.asyncio
    async def test_forwarded_address_is_geolocated(self, client: AsyncClient, store: AnalyticsStore):
        headers = dict(API_KEY_HEADERS, **{"X-Forwarded-For": "41.58.1.2"})
        response = await client.post("/api/v1/analytics/ingest", json=event_payload(), headers=headers)

        assert response.status_code == 200
        assert response.json()["location"]["country_code"] == "NG"
        assert store.get_events()[0]["properties"]["country_name"] == "Nigeria"

    @pytest.mark.asyncio
    async def test_client_supplied_location_kept(self, client: AsyncClient, store: AnalyticsStore):
        payload = event_payload(country_code="KE", country_name="Kenya")
        await client.post("/api/v1/analytics/ingest", json=payload, headers=API_KEY_HEADERS)

        assert store.get_events()[0]["properties"]["country_code"] == "KE"

    @pytest.mark.asyncio
    async def test_missing_timestamp_stamped_with_now(self, client: AsyncClient, store: AnalyticsStore):
        payload = event_payload()
        del payload["properties"]["timestamp"]

        response = await client.post("/api/v1/analytics/ingest", json=payload, headers=API_KEY_HEADERS)

        assert response.status_code == 200
        assert store.get_events()[0]["properties"]["timestamp"] == NOW_MS

    @pytest.mark.asyncio
    async def test_missing_user_id_rejected(self, client: AsyncClient, store: AnalyticsStore):
        payload = event_payload()
        del payload["properties"]["user_id"]

        response = await client.post("/api/v1/analytics/ingest", json=payload, headers=API_KEY_HEADERS)

        assert response.status_code == 400
        assert "user_id" in response.json()["detail"]
        assert store.get_total_events() == 0

    @pytest.mark.asyncio
    async def test_missing_properties_is_validation_error(self, client: AsyncClient):
        response = await client.post(
            "/api/v1/analytics/ingest",
            json={"event": "zing_app_launch"},
            headers=API_KEY_HEADERS
        )
        assert response.status_code == 422

    @pytest.mark.asyncio
    async def test_ingest_status(self, client: AsyncClient):
        await client.post("/api/v1/analytics/ingest", json=event_payload(), headers=API_KEY_HEADERS)

        response = await client.get("/api/v1/analytics/ingest", headers=API_KEY_HEADERS)

        assert response.status_code == 200
        data = response.json()
        assert data["status"] == "operational"
        assert data["total_events"] == 1


class TestBatchIngest:
    """Test batch ingestion with client defaults."""

    @pytest.mark.asyncio
    async def test_batch_applies_client_info(self, client: AsyncClient, store: AnalyticsStore):
        payload = {
            "events": [
                {"event": "zing_session_start", "properties": {"timestamp": NOW_MS - 2000}},
                {"event": "zing_session_end", "properties": {"timestamp": NOW_MS - 1000, "duration_minutes": 5}},
            ],
            "client_info": {"user_id": "user-7", "platform": "win32"},
        }

        response = await client.post("/api/v1/analytics/batch", json=payload, headers=API_KEY_HEADERS)

        assert response.status_code == 200
        data = response.json()
        assert data["success"] is True
        assert data["accepted"] == 2
        assert data["rejected"] == 0
        assert {e["properties"]["user_id"] for e in store.get_events()} == {"user-7"}
        assert all(e["properties"]["platform"] == "win32" for e in store.get_events())

    @pytest.mark.asyncio
    async def test_batch_reports_invalid_events(self, client: AsyncClient, store: AnalyticsStore):
        payload = {
            "events": [
                {"event": "page_view", "properties": {"user_id": "user-1", "timestamp": NOW_MS}},
                {"properties": {"user_id": "user-1", "timestamp": NOW_MS}},
            ]
        }

        response = await client.post("/api/v1/analytics/batch", json=payload, headers=API_KEY_HEADERS)

        data = response.json()
        assert data["success"] is False
        assert data["accepted"] == 1
        assert data["rejected"] == 1
        assert data["errors"][0]["index"] == 1
        assert store.get_total_events() == 1

    @pytest.mark.asyncio
    async def test_empty_batch_rejected(self, client: AsyncClient):
        response = await client.post("/api/v1/analytics/batch", json={"events": []}, headers=API_KEY_HEADERS)
        assert response.status_code == 422


class TestEventsAndTestData:
    """Test the debugging and demo data endpoints."""

    @pytest.mark.asyncio
    async def test_recent_events(self, client: AsyncClient):
        for i in range(3):
            await client.post(
                "/api/v1/analytics/ingest",
                json=event_payload(user_id=f"user-{i}"),
                headers=API_KEY_HEADERS
            )

        response = await client.get("/api/v1/analytics/events?limit=2", headers=API_KEY_HEADERS)

        data = response.json()
        assert data["total_events"] == 3
        assert [e["user_id"] for e in data["recent_events"]] == ["user-1", "user-2"]

    @pytest.mark.asyncio
    async def test_add_sample_then_clear(self, client: AsyncClient, store: AnalyticsStore):
        response = await client.post(
            "/api/v1/analytics/test-data",
            json={"action": "add_sample", "country_code": "GH", "country_name": "Ghana"},
            headers=API_KEY_HEADERS
        )

        assert response.status_code == 200
        assert response.json()["events_added"] == 4
        assert store.get_country_breakdown()[0]["country_code"] == "GH"

        response = await client.post(
            "/api/v1/analytics/test-data",
            json={"action": "clear"},
            headers=API_KEY_HEADERS
        )

        assert response.status_code == 200
        assert response.json()["events_removed"] == 4
        assert store.get_total_events() == 0

    @pytest.mark.asyncio
    async def test_clear_removes_future_stamped_events(self, client: AsyncClient, store: AnalyticsStore):
        store.add_event(make_event("page_view", offset_ms=-HOUR_MS))
        store.add_event(make_event("page_view", offset_ms=HOUR_MS))

        response = await client.post(
            "/api/v1/analytics/test-data",
            json={"action": "clear"},
            headers=API_KEY_HEADERS
        )

        assert response.json()["events_removed"] == 2
        assert store.get_total_events() == 0

    @pytest.mark.asyncio
    async def test_add_sample_requires_country(self, client: AsyncClient):
        response = await client.post(
            "/api/v1/analytics/test-data",
            json={"action": "add_sample"},
            headers=API_KEY_HEADERS
        )
        assert response.status_code == 400

    @pytest.mark.asyncio
    async def test_unknown_action_rejected(self, client: AsyncClient):
        response = await client.post(
            "/api/v1/analytics/test-data",
            json={"action": "explode"},
            headers=API_KEY_HEADERS
        )
        assert response.status_code == 422
