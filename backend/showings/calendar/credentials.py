"""Google Calendar credential store.

Tokens live in ``google_calendar_tokens``. Expired access tokens are
refreshed with the stored refresh token; concurrent lookups for the same
user share one refresh. A user whose token cannot be refreshed is treated as
disconnected: the row is deleted and ``None`` is returned, so calendar sync
for that user is skipped.
"""

import logging
import uuid
from collections.abc import Callable
from contextlib import AbstractAsyncContextManager
from datetime import datetime, timedelta, timezone

import httpx
from authlib.integrations.base_client import OAuthError
from authlib.integrations.httpx_client import AsyncOAuth2Client
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from showings.calendar.errors import CredentialMissingError
from showings.calendar.provider import CalendarCredential
from showings.calendar.singleflight import SingleFlight
from showings.models.calendar_token import GoogleCalendarToken

logger = logging.getLogger(__name__)

SessionFactory = Callable[[], AbstractAsyncContextManager[AsyncSession]]

# Refresh slightly before the provider-reported expiry.
REFRESH_MARGIN = timedelta(seconds=60)


def _expiry_from_token(token: dict) -> datetime:
    """Read ``expires_at`` (epoch seconds) or ``expires_in`` from an OAuth token response."""
    if token.get("expires_at"):
        return datetime.fromtimestamp(int(token["expires_at"]), tz=timezone.utc)
    expires_in = int(token.get("expires_in") or 3600)
    return datetime.now(timezone.utc) + timedelta(seconds=expires_in)


async def get_token_row(db: AsyncSession, user_id: uuid.UUID) -> GoogleCalendarToken | None:
    result = await db.execute(select(GoogleCalendarToken).where(GoogleCalendarToken.user_id == user_id))
    return result.scalar_one_or_none()


async def save_google_token(
    db: AsyncSession,
    user_id: uuid.UUID,
    token: dict,
    scopes: list[str],
) -> GoogleCalendarToken:
    """Create or update the user's token row from an OAuth token response.

    Google omits ``refresh_token`` on repeat consents, so the previously
    stored one is kept in that case.

    Raises:
        CredentialMissingError: neither the response nor the existing row
            carries a refresh token.
    """
    row = await get_token_row(db, user_id)
    refresh_token = token.get("refresh_token") or (row.refresh_token if row else None)
    if not refresh_token:
        raise CredentialMissingError(user_id)

    if row is None:
        row = GoogleCalendarToken(user_id=user_id)
        db.add(row)
    row.access_token = token["access_token"]
    row.refresh_token = refresh_token
    row.expires_at = _expiry_from_token(token)
    row.scope = token.get("scope") or " ".join(scopes)
    row.token_type = token.get("token_type") or "Bearer"
    await db.flush()
    logger.info("Stored Google Calendar token for user %s", user_id)
    return row


async def delete_google_token(db: AsyncSession, user_id: uuid.UUID) -> bool:
    row = await get_token_row(db, user_id)
    if row is None:
        return False
    await db.delete(row)
    await db.flush()
    return True


class CalendarCredentialStore:
    """Hands out valid calendar credentials, refreshing them when needed."""

    def __init__(
        self,
        session_factory: SessionFactory,
        *,
        client_id: str,
        client_secret: str,
        token_url: str,
        refresh_margin: timedelta = REFRESH_MARGIN,
    ) -> None:
        self._session_factory = session_factory
        self._client_id = client_id
        self._client_secret = client_secret
        self._token_url = token_url
        self._refresh_margin = refresh_margin
        self._flight: SingleFlight[CalendarCredential | None] = SingleFlight()

    def _is_fresh(self, row: GoogleCalendarToken) -> bool:
        return row.expires_at - self._refresh_margin > datetime.now(timezone.utc)

    @staticmethod
    def _credential(row: GoogleCalendarToken) -> CalendarCredential:
        return CalendarCredential(
            user_id=row.user_id,
            access_token=row.access_token,
            calendar_id=row.calendar_id,
            expires_at=row.expires_at,
        )

    async def get_credential(self, user_id: uuid.UUID) -> CalendarCredential | None:
        """Return a usable credential for ``user_id`` or ``None`` if they are not connected."""
        async with self._session_factory() as db:
            row = await get_token_row(db, user_id)
            if row is None:
                return None
            if self._is_fresh(row):
                return self._credential(row)

        return await self._flight.do(("refresh", user_id), lambda: self._refresh(user_id))

    async def _refresh(self, user_id: uuid.UUID) -> CalendarCredential | None:
        async with self._session_factory() as db:
            row = await get_token_row(db, user_id)
            if row is None:
                return None
            if self._is_fresh(row):
                return self._credential(row)

            if not row.refresh_token:
                logger.warning("Calendar token for user %s expired without a refresh token", user_id)
                await db.delete(row)
                await db.commit()
                return None

            try:
                token = await self.request_refresh(row.refresh_token)
            except (OAuthError, httpx.HTTPError) as exc:
                logger.warning("Failed to refresh Google Calendar token for user %s: %s", user_id, exc)
                await db.delete(row)
                await db.commit()
                return None

            row.access_token = token["access_token"]
            row.refresh_token = token.get("refresh_token") or row.refresh_token
            row.expires_at = _expiry_from_token(token)
            await db.commit()
            logger.info("Refreshed Google Calendar token for user %s", user_id)
            return self._credential(row)

    async def request_refresh(self, refresh_token: str) -> dict:
        """Exchange a refresh token for a new access token at the Google token endpoint."""
        async with AsyncOAuth2Client(
            client_id=self._client_id,
            client_secret=self._client_secret,
            token_endpoint=self._token_url,
        ) as client:
            return dict(await client.refresh_token(self._token_url, refresh_token=refresh_token))

    def close(self) -> None:
        self._flight.clear()
