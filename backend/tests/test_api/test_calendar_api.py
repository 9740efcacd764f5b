"""Tests for the Google Calendar connection and resync endpoints."""

from datetime import datetime, timedelta, timezone

import pytest
from authlib.integrations.base_client import OAuthError
from httpx import AsyncClient

from showings.calendar.credentials import get_token_row
from showings.calendar.sync import SyncAction
from showings.config import settings
from showings.models.showing import Showing

pytestmark = pytest.mark.asyncio


@pytest.fixture
def google_configured(monkeypatch):
    monkeypatch.setattr(settings, "google_client_id", "client-id.apps.googleusercontent.com")
    monkeypatch.setattr(settings, "google_client_secret", "client-secret")


@pytest.fixture
def fake_oauth(monkeypatch):
    """Replace the authlib calls; ``token`` can be changed or set to an exception per test."""
    state = {"token": {"access_token": "ya29.new", "refresh_token": "1//refresh", "expires_in": 3599}}

    async def create_authorization(request, redirect_uri):
        return f"https://accounts.google.com/o/oauth2/v2/auth?redirect_uri={redirect_uri}"

    async def fetch_token(request):
        if isinstance(state["token"], Exception):
            raise state["token"]
        return state["token"]

    monkeypatch.setattr("showings.api.v1.calendar.create_calendar_authorization", create_authorization)
    monkeypatch.setattr("showings.api.v1.calendar.fetch_calendar_token", fetch_token)
    return state


# ---------------------------------------------------------------------------
# Connect flow
# ---------------------------------------------------------------------------


class TestConnect:
    async def test_not_configured(self, client: AsyncClient, auth_headers, monkeypatch):
        monkeypatch.setattr(settings, "google_client_id", "")
        response = await client.get("/api/v1/calendar/google/connect", headers=auth_headers)
        assert response.status_code == 503

    async def test_connect_and_callback(
        self, client: AsyncClient, db_session, test_manager, auth_headers, google_configured, fake_oauth
    ):
        response = await client.get("/api/v1/calendar/google/connect", headers=auth_headers)
        assert response.status_code == 200
        assert response.json()["auth_url"].startswith("https://accounts.google.com/")

        callback = await client.get("/api/v1/calendar/google/callback", params={"code": "abc", "state": "xyz"})
        assert callback.status_code in (302, 307)
        assert callback.headers["location"].endswith("calendar=connected")

        row = await get_token_row(db_session, test_manager.id)
        assert row is not None
        assert row.access_token == "ya29.new"
        assert row.refresh_token == "1//refresh"

    async def test_callback_without_connect(self, client: AsyncClient, fake_oauth):
        response = await client.get("/api/v1/calendar/google/callback", params={"code": "abc"})
        assert response.status_code == 400

    async def test_callback_oauth_error(
        self, client: AsyncClient, db_session, test_manager, auth_headers, google_configured, fake_oauth
    ):
        fake_oauth["token"] = OAuthError(error="access_denied")
        await client.get("/api/v1/calendar/google/connect", headers=auth_headers)
        callback = await client.get("/api/v1/calendar/google/callback", params={"error": "access_denied"})
        assert callback.headers["location"].endswith("calendar=error")
        assert await get_token_row(db_session, test_manager.id) is None

    async def test_callback_without_refresh_token(
        self, client: AsyncClient, db_session, test_manager, auth_headers, google_configured, fake_oauth
    ):
        fake_oauth["token"] = {"access_token": "ya29.new", "expires_in": 3599}
        await client.get("/api/v1/calendar/google/connect", headers=auth_headers)
        callback = await client.get("/api/v1/calendar/google/callback", params={"code": "abc"})
        assert callback.headers["location"].endswith("calendar=error")


# ---------------------------------------------------------------------------
# Status / disconnect
# ---------------------------------------------------------------------------


class TestStatus:
    async def test_not_connected(self, client: AsyncClient, auth_headers):
        response = await client.get("/api/v1/calendar/status", headers=auth_headers)
        assert response.json() == {"connected": False, "calendar_id": None, "expires_at": None}

    async def test_connected(self, client: AsyncClient, auth_headers, calendar_token):
        response = await client.get("/api/v1/calendar/status", headers=auth_headers)
        data = response.json()
        assert data["connected"] is True
        assert data["calendar_id"] == "primary"

    async def test_disconnect(self, client: AsyncClient, db_session, test_manager, auth_headers, calendar_token):
        response = await client.delete("/api/v1/calendar/disconnect", headers=auth_headers)
        assert response.status_code == 200
        assert await get_token_row(db_session, test_manager.id) is None

    async def test_disconnect_when_not_connected(self, client: AsyncClient, auth_headers):
        response = await client.delete("/api/v1/calendar/disconnect", headers=auth_headers)
        assert response.status_code == 404


# ---------------------------------------------------------------------------
# Resync
# ---------------------------------------------------------------------------


class TestResync:
    async def test_admin_resync(
        self, client: AsyncClient, db_session, test_lot, test_manager, admin_headers, calendar_sync
    ):
        start = datetime.now(timezone.utc).replace(microsecond=0) + timedelta(days=2)
        synced = Showing(
            lot_id=test_lot.id,
            manager_id=test_manager.id,
            start_time=start,
            end_time=start + timedelta(minutes=30),
            client_name="A",
            client_email="a@example.com",
            client_phone="1",
            calendar_event_id="evt-1",
        )
        failed = Showing(
            lot_id=test_lot.id,
            manager_id=test_manager.id,
            start_time=start + timedelta(hours=1),
            end_time=start + timedelta(hours=1, minutes=30),
            client_name="B",
            client_email="b@example.com",
            client_phone="2",
            calendar_sync_error=True,
        )
        db_session.add_all([synced, failed])
        await db_session.flush()

        response = await client.post("/api/v1/calendar/resync", headers=admin_headers)
        assert response.status_code == 200
        assert response.json() == {"updates_queued": 1, "creates_queued": 1, "dropped": 0}
        assert sorted(job.action.value for job in calendar_sync.jobs) == [SyncAction.CREATE.value, SyncAction.UPDATE.value]

    async def test_manager_forbidden(self, client: AsyncClient, auth_headers):
        response = await client.post("/api/v1/calendar/resync", headers=auth_headers)
        assert response.status_code == 403
