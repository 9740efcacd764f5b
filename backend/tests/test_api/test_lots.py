"""Tests for public booking and lot endpoints."""

import uuid
from datetime import datetime, timedelta

import pytest
from httpx import AsyncClient

from showings.calendar.errors import SyncError
from showings.calendar.provider import BusySlot
from showings.calendar.sync import SyncAction

pytestmark = pytest.mark.asyncio


def _window(base: datetime, start_minutes: int, end_minutes: int) -> dict[str, str]:
    return {
        "start_time": (base + timedelta(minutes=start_minutes)).isoformat(),
        "end_time": (base + timedelta(minutes=end_minutes)).isoformat(),
    }


def _booking(base: datetime, start_minutes: int, end_minutes: int, **overrides) -> dict:
    payload = {
        "client_name": "Alex Kim",
        "client_email": "alex.kim@example.com",
        "client_phone": "+1 480-555-0123",
        **_window(base, start_minutes, end_minutes),
    }
    payload.update(overrides)
    return payload


# ---------------------------------------------------------------------------
# POST /api/v1/lots/{lot_id}/book
# ---------------------------------------------------------------------------


class TestBookShowing:
    async def test_book_success(self, client: AsyncClient, test_lot, test_manager, base_time, calendar_sync):
        response = await client.post(f"/api/v1/lots/{test_lot.id}/book", json=_booking(base_time, 0, 30))
        assert response.status_code == 201
        data = response.json()
        assert data["lot_id"] == str(test_lot.id)
        assert data["manager_id"] == str(test_manager.id)
        assert data["status"] == "SCHEDULED"
        assert data["client_email"] == "alex.kim@example.com"
        assert data["calendar_event_id"] is None
        assert data["calendar_sync_error"] is False

        assert len(calendar_sync.jobs) == 1
        job = calendar_sync.jobs[0]
        assert job.action is SyncAction.CREATE
        assert str(job.showing_id) == data["id"]
        assert job.owner_id == test_manager.id

    async def test_back_to_back_accepted(self, client: AsyncClient, test_lot, base_time):
        first = await client.post(f"/api/v1/lots/{test_lot.id}/book", json=_booking(base_time, 0, 30))
        second = await client.post(f"/api/v1/lots/{test_lot.id}/book", json=_booking(base_time, 30, 60))
        assert first.status_code == 201
        assert second.status_code == 201

    async def test_overlap_rejected(self, client: AsyncClient, test_lot, base_time, calendar_sync):
        await client.post(f"/api/v1/lots/{test_lot.id}/book", json=_booking(base_time, 0, 60))
        response = await client.post(f"/api/v1/lots/{test_lot.id}/book", json=_booking(base_time, 30, 45))
        assert response.status_code == 409
        assert response.json()["detail"] == "Time slot is not available due to an existing booking"
        assert len(calendar_sync.jobs) == 1

    async def test_start_before_end_required(self, client: AsyncClient, test_lot, base_time):
        response = await client.post(f"/api/v1/lots/{test_lot.id}/book", json=_booking(base_time, 60, 0))
        assert response.status_code == 422

    async def test_equal_times_rejected(self, client: AsyncClient, test_lot, base_time):
        response = await client.post(f"/api/v1/lots/{test_lot.id}/book", json=_booking(base_time, 30, 30))
        assert response.status_code == 422

    async def test_invalid_email(self, client: AsyncClient, test_lot, base_time):
        response = await client.post(
            f"/api/v1/lots/{test_lot.id}/book",
            json=_booking(base_time, 0, 30, client_email="not-an-email"),
        )
        assert response.status_code == 422

    async def test_unknown_lot(self, client: AsyncClient, test_lot, base_time):
        response = await client.post(f"/api/v1/lots/{uuid.uuid4()}/book", json=_booking(base_time, 0, 30))
        assert response.status_code == 404
        assert response.json()["detail"] == "Lot not found"

    async def test_unmanaged_lot(self, client: AsyncClient, unmanaged_lot, base_time):
        response = await client.post(f"/api/v1/lots/{unmanaged_lot.id}/book", json=_booking(base_time, 0, 30))
        assert response.status_code == 400

    async def test_queue_full_flags_showing(self, client: AsyncClient, test_lot, base_time, calendar_sync):
        calendar_sync.accept = False
        response = await client.post(f"/api/v1/lots/{test_lot.id}/book", json=_booking(base_time, 0, 30))
        assert response.status_code == 201
        assert response.json()["calendar_sync_error"] is True
        assert response.json()["status"] == "SCHEDULED"


# ---------------------------------------------------------------------------
# GET /api/v1/lots/{lot_id}/showings
# ---------------------------------------------------------------------------


class TestLotShowings:
    async def test_lists_scheduled_without_client_details(self, client: AsyncClient, test_lot, base_time):
        await client.post(f"/api/v1/lots/{test_lot.id}/book", json=_booking(base_time, 60, 90))
        await client.post(f"/api/v1/lots/{test_lot.id}/book", json=_booking(base_time, 0, 30))

        response = await client.get(f"/api/v1/lots/{test_lot.id}/showings")
        assert response.status_code == 200
        data = response.json()
        assert len(data) == 2
        assert data[0]["start_time"] < data[1]["start_time"]
        assert set(data[0]) == {"id", "start_time", "end_time", "status"}

    async def test_unknown_lot(self, client: AsyncClient):
        response = await client.get(f"/api/v1/lots/{uuid.uuid4()}/showings")
        assert response.status_code == 404


# ---------------------------------------------------------------------------
# Manager availability
# ---------------------------------------------------------------------------


class TestManagerAvailability:
    async def test_not_connected(self, client: AsyncClient, test_lot):
        response = await client.get(f"/api/v1/lots/{test_lot.id}/manager-availability")
        assert response.status_code == 200
        assert response.json() == {"busy_slots": [], "manager_connected": False}

    async def test_busy_slots(self, client: AsyncClient, test_lot, base_time, calendar_sync):
        calendar_sync.busy = [BusySlot(base_time, base_time + timedelta(hours=1))]
        response = await client.get(f"/api/v1/lots/{test_lot.id}/manager-availability")
        data = response.json()
        assert data["manager_connected"] is True
        assert len(data["busy_slots"]) == 1

    async def test_provider_error(self, client: AsyncClient, test_lot, calendar_sync):
        calendar_sync.busy_error = SyncError("freebusy", "timeout")
        response = await client.get(f"/api/v1/lots/{test_lot.id}/manager-availability")
        assert response.status_code == 502


# ---------------------------------------------------------------------------
# Availability rules
# ---------------------------------------------------------------------------


class TestAvailabilityRules:
    async def test_create_list_delete(self, client: AsyncClient, test_lot, base_time, auth_headers):
        response = await client.post(
            f"/api/v1/lots/{test_lot.id}/availability",
            json={"rule_type": "BLOCKED", "note": "Grading work", **_window(base_time, 0, 240)},
            headers=auth_headers,
        )
        assert response.status_code == 201
        rule = response.json()
        assert rule["rule_type"] == "BLOCKED"
        assert rule["lot_id"] == str(test_lot.id)

        listed = await client.get(f"/api/v1/lots/{test_lot.id}/availability")
        assert [r["id"] for r in listed.json()] == [rule["id"]]

        deleted = await client.delete(f"/api/v1/availability/{rule['id']}", headers=auth_headers)
        assert deleted.status_code == 200
        listed = await client.get(f"/api/v1/lots/{test_lot.id}/availability")
        assert listed.json() == []

    async def test_create_requires_auth(self, client: AsyncClient, test_lot, base_time):
        response = await client.post(
            f"/api/v1/lots/{test_lot.id}/availability",
            json={"rule_type": "OPEN_SLOT", **_window(base_time, 0, 60)},
        )
        assert response.status_code in (401, 403)

    async def test_other_manager_forbidden(self, client: AsyncClient, test_lot, base_time, other_headers):
        response = await client.post(
            f"/api/v1/lots/{test_lot.id}/availability",
            json={"rule_type": "OPEN_SLOT", **_window(base_time, 0, 60)},
            headers=other_headers,
        )
        assert response.status_code == 403

    async def test_admin_allowed(self, client: AsyncClient, test_lot, base_time, admin_headers):
        response = await client.post(
            f"/api/v1/lots/{test_lot.id}/availability",
            json={"rule_type": "OPEN_SLOT", **_window(base_time, 0, 60)},
            headers=admin_headers,
        )
        assert response.status_code == 201

    async def test_invalid_rule_type(self, client: AsyncClient, test_lot, base_time, auth_headers):
        response = await client.post(
            f"/api/v1/lots/{test_lot.id}/availability",
            json={"rule_type": "MAYBE", **_window(base_time, 0, 60)},
            headers=auth_headers,
        )
        assert response.status_code == 422

    async def test_delete_missing_rule(self, client: AsyncClient, auth_headers):
        response = await client.delete(f"/api/v1/availability/{uuid.uuid4()}", headers=auth_headers)
        assert response.status_code == 404
