"""
Integration tests for the public calendar API endpoints.

These go through the real clock, so slots are placed on tomorrow's date.
"""

import pytest
from fastapi.testclient import TestClient

from auth.dependencies import get_document_store
from main import app
from shared_types.calendar import tenant_reference
from utils.datetime_utils import format_instant, parse_instant


@pytest.fixture
def client(store):
    """Create test client with document store override."""
    app.dependency_overrides[get_document_store] = lambda: store
    client = TestClient(app)
    yield client
    app.dependency_overrides.pop(get_document_store, None)


@pytest.fixture
async def hour_rule(store, tenant_id):
    """Every day 22:00-24:00 is blocked."""
    return await store.create({
        "_id": "late-hours",
        "_type": "autoBlockedHours",
        "chapel": tenant_reference(tenant_id),
        "startHour": "22",
        "endHour": "24",
    })


class TestCalendarEndpoint:
    """Test GET /api/tenants/{tenant_id}/calendar."""

    def test_default_window_is_valid_range(self, client, tenant_id):
        response = client.get(f"/api/tenants/{tenant_id}/calendar")

        assert response.status_code == 200
        data = response.json()
        assert data["timezone"] == "Asia/Jerusalem"
        sources = [i["source"] for i in data["background"]]
        assert sources == ["past"]
        assert data["earliest_relevant_day"] is not None
        assert parse_instant(data["valid_range"]["start"]) < parse_instant(data["now"])

    @pytest.mark.asyncio
    async def test_rule_intervals_in_window(self, client, tenant_id, hour_rule, tomorrow_at):
        response = client.get(
            f"/api/tenants/{tenant_id}/calendar",
            params={"start": format_instant(tomorrow_at(0)), "end": format_instant(tomorrow_at(24))},
        )

        assert response.status_code == 200
        rule_intervals = [i for i in response.json()["background"] if i["source"] == "hour_rule"]
        assert len(rule_intervals) == 1
        assert parse_instant(rule_intervals[0]["start"]) == tomorrow_at(22)
        assert parse_instant(rule_intervals[0]["end"]) == tomorrow_at(24)
        assert rule_intervals[0]["source_id"] == "late-hours"

    def test_window_outside_valid_range(self, client, tenant_id, tomorrow_at):
        response = client.get(
            f"/api/tenants/{tenant_id}/calendar",
            params={"start": format_instant(tomorrow_at(0, days_ahead=60)),
                    "end": format_instant(tomorrow_at(0, days_ahead=61))},
        )
        assert response.status_code == 400

    def test_unknown_tenant(self, client):
        assert client.get("/api/tenants/missing/calendar").status_code == 404


class TestAvailabilityEndpoint:
    """Test GET /api/tenants/{tenant_id}/availability."""

    @pytest.mark.asyncio
    async def test_blocked_and_free_slots(self, client, tenant_id, hour_rule, tomorrow_at):
        blocked = client.get(
            f"/api/tenants/{tenant_id}/availability",
            params={"start": format_instant(tomorrow_at(22)), "end": format_instant(tomorrow_at(23))},
        ).json()
        free = client.get(
            f"/api/tenants/{tenant_id}/availability",
            params={"start": format_instant(tomorrow_at(10)), "end": format_instant(tomorrow_at(11))},
        ).json()

        assert blocked["can_reserve"] is False
        assert blocked["is_blocked"] is True
        assert blocked["is_range_fully_blocked"] is True
        assert free["can_reserve"] is True
        assert free["is_reserved"] is False

    def test_inverted_range(self, client, tenant_id, tomorrow_at):
        response = client.get(
            f"/api/tenants/{tenant_id}/availability",
            params={"start": format_instant(tomorrow_at(11)), "end": format_instant(tomorrow_at(10))},
        )
        assert response.status_code == 400


class TestReservationEndpoint:
    """Test POST /api/tenants/{tenant_id}/reservations."""

    def test_book_then_conflict(self, client, tenant_id, tomorrow_at):
        payload = {
            "name": "Miriam",
            "phone": "050-0000000",
            "start": format_instant(tomorrow_at(10)),
            "end": format_instant(tomorrow_at(11)),
        }

        response = client.post(f"/api/tenants/{tenant_id}/reservations", json=payload)
        assert response.status_code == 201
        assert response.json()["name"] == "Miriam"

        response = client.post(f"/api/tenants/{tenant_id}/reservations", json=payload)
        assert response.status_code == 409

        calendar = client.get(f"/api/tenants/{tenant_id}/calendar").json()
        assert len(calendar["reservations"]) == 1

    def test_missing_name(self, client, tenant_id, tomorrow_at):
        response = client.post(f"/api/tenants/{tenant_id}/reservations", json={
            "name": "",
            "phone": "1",
            "start": format_instant(tomorrow_at(10)),
            "end": format_instant(tomorrow_at(11)),
        })
        assert response.status_code == 400

    def test_malformed_body(self, client, tenant_id):
        response = client.post(f"/api/tenants/{tenant_id}/reservations", json={"name": "Miriam"})
        assert response.status_code == 422
