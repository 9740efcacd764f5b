"""Google Calendar connection for managers, plus the admin resync trigger."""

import logging
import uuid

from authlib.integrations.base_client import OAuthError
from fastapi import APIRouter, Depends, HTTPException, Request, status
from fastapi.responses import RedirectResponse
from sqlalchemy.ext.asyncio import AsyncSession

from showings.api.deps import get_calendar_sync, get_current_active_user, get_db, require_admin
from showings.calendar.credentials import delete_google_token, get_token_row, save_google_token
from showings.calendar.errors import CredentialMissingError
from showings.calendar.oauth import create_calendar_authorization, fetch_calendar_token
from showings.calendar.sync import CalendarSyncWorker, reconcile_calendar
from showings.config import settings
from showings.models.user import User
from showings.schemas.auth import MessageResponse
from showings.schemas.calendar import CalendarConnectResponse, CalendarStatusResponse, ResyncResponse

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/v1/calendar", tags=["calendar"])

# Session key holding the user that started the consent flow.
CONNECT_SESSION_KEY = "calendar_connect_user"


def _frontend_redirect(result: str) -> RedirectResponse:
    return RedirectResponse(url=f"{settings.frontend_url}/settings/calendar?calendar={result}")


@router.get("/google/connect", response_model=CalendarConnectResponse)
async def connect_google_calendar(
    request: Request,
    current_user: User = Depends(get_current_active_user),
) -> CalendarConnectResponse:
    """Start the Google consent flow; the client navigates to ``auth_url``."""
    if not settings.google_calendar_configured:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Google Calendar is not configured",
        )
    auth_url = await create_calendar_authorization(request, settings.google_redirect_uri)
    request.session[CONNECT_SESSION_KEY] = str(current_user.id)
    return CalendarConnectResponse(auth_url=auth_url)


@router.get("/google/callback")
async def google_calendar_callback(request: Request, db: AsyncSession = Depends(get_db)) -> RedirectResponse:
    """Store the manager's tokens and send them back to the frontend."""
    user_id_str = request.session.pop(CONNECT_SESSION_KEY, None)
    if user_id_str is None:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="No calendar connection in progress",
        )

    try:
        token = await fetch_calendar_token(request)
    except OAuthError as exc:
        logger.warning("Google Calendar OAuth callback failed: %s", exc)
        return _frontend_redirect("error")

    try:
        await save_google_token(db, uuid.UUID(user_id_str), token, settings.google_calendar_scopes)
    except CredentialMissingError:
        logger.warning("Google returned no refresh token for user %s", user_id_str)
        return _frontend_redirect("error")

    return _frontend_redirect("connected")


@router.get("/status", response_model=CalendarStatusResponse)
async def calendar_status(
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_active_user),
) -> CalendarStatusResponse:
    row = await get_token_row(db, current_user.id)
    if row is None:
        return CalendarStatusResponse(connected=False)
    return CalendarStatusResponse(connected=True, calendar_id=row.calendar_id, expires_at=row.expires_at)


@router.delete("/disconnect", response_model=MessageResponse)
async def disconnect_calendar(
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_active_user),
) -> dict:
    """Forget the stored tokens. Existing calendar events are left in place."""
    if not await delete_google_token(db, current_user.id):
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="No calendar connected",
        )
    logger.info("User %s disconnected Google Calendar", current_user.id)
    return {"message": "Calendar disconnected"}


@router.post("/resync", response_model=ResyncResponse)
async def resync_calendar(
    db: AsyncSession = Depends(get_db),
    _admin: User = Depends(require_admin),
    calendar_sync: CalendarSyncWorker | None = Depends(get_calendar_sync),
) -> ResyncResponse:
    """Queue every scheduled showing for a calendar re-sync."""
    if calendar_sync is None:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Calendar sync is disabled",
        )
    result = await reconcile_calendar(db, calendar_sync)
    return ResyncResponse(
        updates_queued=result.updates_queued,
        creates_queued=result.creates_queued,
        dropped=result.dropped,
    )
