"""Lot-facing API: public booking, the lot's showing calendar and availability rules.

Booking is public. The response is returned as soon as the showing is
committed; mirroring it into the manager's calendar happens afterwards in the
background.
"""

import logging
import uuid
from datetime import datetime, timedelta, timezone

from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy.ext.asyncio import AsyncSession

from showings.api.deps import can_manage_park, get_calendar_sync, get_current_active_user, get_db
from showings.calendar import SyncError
from showings.calendar.sync import CalendarSyncWorker, SyncJob, submit_after_commit
from showings.config import settings
from showings.models.availability import AvailabilityRule
from showings.models.showing import Showing, ShowingStatus
from showings.models.user import User
from showings.schemas.auth import MessageResponse
from showings.schemas.availability import AvailabilityCreate, AvailabilityResponse
from showings.schemas.calendar import BusySlotResponse, ManagerAvailabilityResponse
from showings.schemas.showing import PublicShowingResponse, ShowingRequest, ShowingResponse
from showings.services.availability_service import (
    create_availability,
    delete_availability,
    get_availability_rule,
    list_availability,
)
from showings.services.overlap import find_showings_for_lot
from showings.services.showing_service import get_lot, request_showing, resolve_manager_id

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/v1/lots", tags=["lots"])
availability_router = APIRouter(prefix="/api/v1/availability", tags=["availability"])


# ---------------------------------------------------------------------------
# Booking
# ---------------------------------------------------------------------------


@router.post(
    "/{lot_id}/book",
    response_model=ShowingResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Book a showing on a lot",
)
async def book_showing(
    lot_id: uuid.UUID,
    body: ShowingRequest,
    db: AsyncSession = Depends(get_db),
    calendar_sync: CalendarSyncWorker | None = Depends(get_calendar_sync),
) -> Showing:
    """Reserve a window on a lot for a prospective client.

    Returns 409 when a SCHEDULED showing on the same lot overlaps the window.
    Windows that only touch an existing showing are accepted.
    """
    showing = await request_showing(
        db,
        lot_id,
        body.start_time,
        body.end_time,
        client_name=body.client_name,
        client_email=body.client_email,
        client_phone=body.client_phone,
    )
    await db.commit()
    await submit_after_commit(db, calendar_sync, SyncJob.create_for(showing), showing)
    return showing


@router.get(
    "/{lot_id}/showings",
    response_model=list[PublicShowingResponse],
    summary="Scheduled showings on a lot",
)
async def list_lot_showings(
    lot_id: uuid.UUID,
    db: AsyncSession = Depends(get_db),
) -> list[Showing]:
    """Booked windows on the lot, without any client details."""
    await get_lot(db, lot_id)
    return await find_showings_for_lot(db, lot_id, ShowingStatus.SCHEDULED)


@router.get(
    "/{lot_id}/manager-availability",
    response_model=ManagerAvailabilityResponse,
    summary="Busy times from the lot manager's calendar",
)
async def get_manager_availability(
    lot_id: uuid.UUID,
    db: AsyncSession = Depends(get_db),
    calendar_sync: CalendarSyncWorker | None = Depends(get_calendar_sync),
) -> dict:
    lot = await get_lot(db, lot_id)
    manager_id = await resolve_manager_id(db, lot.park_id)

    if calendar_sync is None:
        return {"busy_slots": [], "manager_connected": False}

    now = datetime.now(timezone.utc)
    try:
        busy = await calendar_sync.busy_slots(
            manager_id, now, now + timedelta(days=settings.calendar_busy_lookahead_days)
        )
    except SyncError as exc:
        logger.warning("Free/busy lookup failed for lot %s: %s", lot_id, exc)
        raise HTTPException(
            status_code=status.HTTP_502_BAD_GATEWAY,
            detail="Calendar provider unavailable",
        ) from exc

    if busy is None:
        return {"busy_slots": [], "manager_connected": False}
    return {
        "busy_slots": [BusySlotResponse(start=slot.start, end=slot.end) for slot in busy],
        "manager_connected": True,
    }


# ---------------------------------------------------------------------------
# Availability rules
# ---------------------------------------------------------------------------


@router.get(
    "/{lot_id}/availability",
    response_model=list[AvailabilityResponse],
    summary="List availability rules for a lot",
)
async def get_lot_availability(
    lot_id: uuid.UUID,
    db: AsyncSession = Depends(get_db),
) -> list[AvailabilityRule]:
    await get_lot(db, lot_id)
    return await list_availability(db, lot_id)


@router.post(
    "/{lot_id}/availability",
    response_model=AvailabilityResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Add an availability rule to a lot",
)
async def add_lot_availability(
    lot_id: uuid.UUID,
    body: AvailabilityCreate,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_active_user),
) -> AvailabilityRule:
    lot = await get_lot(db, lot_id)
    if not await can_manage_park(db, current_user, lot.park_id):
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Not allowed to manage this lot",
        )
    return await create_availability(db, lot_id, body)


@availability_router.delete(
    "/{rule_id}",
    response_model=MessageResponse,
    summary="Delete an availability rule",
)
async def remove_availability(
    rule_id: uuid.UUID,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_active_user),
) -> dict:
    rule = await get_availability_rule(db, rule_id)
    if rule is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Availability rule not found",
        )
    lot = await get_lot(db, rule.lot_id)
    if not await can_manage_park(db, current_user, lot.park_id):
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Not allowed to manage this lot",
        )
    await delete_availability(db, rule)
    return {"message": "Availability rule deleted"}
