"""Tests for Google Calendar token storage and refresh."""

from datetime import datetime, timedelta, timezone

import pytest
from authlib.integrations.base_client import OAuthError

from showings.calendar.credentials import (
    CalendarCredentialStore,
    delete_google_token,
    get_token_row,
    save_google_token,
)
from showings.calendar.errors import CredentialMissingError

pytestmark = pytest.mark.asyncio

SCOPES = ["https://www.googleapis.com/auth/calendar"]


@pytest.fixture
def store(session_factory) -> CalendarCredentialStore:
    return CalendarCredentialStore(
        session_factory,
        client_id="client-id",
        client_secret="client-secret",
        token_url="https://oauth2.googleapis.com/token",
    )


def _fake_refresh(store: CalendarCredentialStore, response: dict | Exception) -> list[str]:
    """Replace the network call; returns the list of refresh tokens it was called with."""
    calls: list[str] = []

    async def request_refresh(refresh_token: str) -> dict:
        calls.append(refresh_token)
        if isinstance(response, Exception):
            raise response
        return response

    store.request_refresh = request_refresh  # type: ignore[method-assign]
    return calls


class TestGetCredential:
    async def test_not_connected(self, store, test_manager):
        assert await store.get_credential(test_manager.id) is None

    async def test_fresh_token_returned_without_refresh(self, store, test_manager, calendar_token):
        calls = _fake_refresh(store, {"access_token": "unused"})
        credential = await store.get_credential(test_manager.id)
        assert credential is not None
        assert credential.access_token == "access-fresh"
        assert credential.calendar_id == "primary"
        assert calls == []

    async def test_expired_token_refreshed(self, store, db_session, test_manager, calendar_token):
        calendar_token.expires_at = datetime.now(timezone.utc) - timedelta(minutes=5)
        await db_session.flush()
        calls = _fake_refresh(store, {"access_token": "access-new", "expires_in": 3600})

        credential = await store.get_credential(test_manager.id)

        assert credential is not None
        assert credential.access_token == "access-new"
        assert calls == ["refresh-1"]
        row = await get_token_row(db_session, test_manager.id)
        assert row.access_token == "access-new"
        assert row.refresh_token == "refresh-1"
        assert row.expires_at > datetime.now(timezone.utc) + timedelta(minutes=50)

    async def test_token_inside_margin_is_refreshed(self, store, db_session, test_manager, calendar_token):
        calendar_token.expires_at = datetime.now(timezone.utc) + timedelta(seconds=30)
        await db_session.flush()
        calls = _fake_refresh(store, {"access_token": "access-new", "refresh_token": "refresh-2"})

        credential = await store.get_credential(test_manager.id)

        assert credential.access_token == "access-new"
        assert calls == ["refresh-1"]
        row = await get_token_row(db_session, test_manager.id)
        assert row.refresh_token == "refresh-2"

    async def test_failed_refresh_disconnects_user(self, store, db_session, test_manager, calendar_token):
        calendar_token.expires_at = datetime.now(timezone.utc) - timedelta(minutes=5)
        await db_session.flush()
        _fake_refresh(store, OAuthError(error="invalid_grant", description="Token has been revoked"))

        assert await store.get_credential(test_manager.id) is None
        assert await get_token_row(db_session, test_manager.id) is None

    async def test_expired_without_refresh_token(self, store, db_session, test_manager, calendar_token):
        calendar_token.expires_at = datetime.now(timezone.utc) - timedelta(minutes=5)
        calendar_token.refresh_token = None
        await db_session.flush()
        calls = _fake_refresh(store, {"access_token": "unused"})

        assert await store.get_credential(test_manager.id) is None
        assert calls == []
        assert await get_token_row(db_session, test_manager.id) is None


class TestSaveGoogleToken:
    async def test_creates_row(self, db_session, test_manager):
        row = await save_google_token(
            db_session,
            test_manager.id,
            {"access_token": "a1", "refresh_token": "r1", "expires_in": 3599, "token_type": "Bearer"},
            SCOPES,
        )
        assert row.user_id == test_manager.id
        assert row.refresh_token == "r1"
        assert row.scope == SCOPES[0]
        assert row.calendar_id == "primary"

    async def test_keeps_previous_refresh_token(self, db_session, test_manager, calendar_token):
        row = await save_google_token(
            db_session,
            test_manager.id,
            {"access_token": "a2", "expires_at": int(datetime.now(timezone.utc).timestamp()) + 3600},
            SCOPES,
        )
        assert row.id == calendar_token.id
        assert row.access_token == "a2"
        assert row.refresh_token == "refresh-1"

    async def test_requires_refresh_token(self, db_session, test_manager):
        with pytest.raises(CredentialMissingError):
            await save_google_token(db_session, test_manager.id, {"access_token": "a1"}, SCOPES)
        assert await get_token_row(db_session, test_manager.id) is None


class TestDeleteGoogleToken:
    async def test_delete_existing(self, db_session, test_manager, calendar_token):
        assert await delete_google_token(db_session, test_manager.id) is True
        assert await get_token_row(db_session, test_manager.id) is None

    async def test_delete_missing(self, db_session, test_manager):
        assert await delete_google_token(db_session, test_manager.id) is False
