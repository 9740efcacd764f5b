"""Showings management API for managers and admins.

Managers see and act on showings they own or that sit in parks they are
assigned to; admins see everything. Each state change commits first and
then queues the matching calendar job.
"""

import uuid
from datetime import datetime, timedelta, timezone

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from showings.api.deps import (
    ensure_can_manage_showing,
    get_calendar_sync,
    get_current_active_user,
    get_db,
)
from showings.calendar.sync import CalendarSyncWorker, SyncJob, submit_after_commit
from showings.models.showing import Showing, ShowingStatus
from showings.models.user import User
from showings.schemas.showing import ShowingListResponse, ShowingReschedule, ShowingResponse, ShowingStats
from showings.services.showing_service import (
    cancel_showing,
    complete_showing,
    count_showings,
    get_showing,
    list_showings,
    reschedule_showing,
    validate_range,
)

router = APIRouter(prefix="/api/v1/showings", tags=["showings"])


async def _get_managed_showing(db: AsyncSession, showing_id: uuid.UUID, user: User) -> Showing:
    showing = await get_showing(db, showing_id)
    await ensure_can_manage_showing(db, user, showing)
    return showing


def _scope(user: User) -> uuid.UUID | None:
    """Manager filter for listings: ``None`` lets admins see every showing."""
    return None if user.is_admin else user.id


def _today_window() -> tuple[datetime, datetime]:
    start = datetime.now(timezone.utc).replace(hour=0, minute=0, second=0, microsecond=0)
    return start, start + timedelta(days=1)


@router.get(
    "",
    response_model=ShowingListResponse,
    summary="List showings",
)
async def list_showings_endpoint(
    lot_id: uuid.UUID | None = Query(None, description="Filter by lot"),
    status_filter: ShowingStatus | None = Query(None, alias="status", description="Filter by showing status"),
    start_from: datetime | None = Query(None, description="Only showings starting at or after this time"),
    start_to: datetime | None = Query(None, description="Only showings starting before this time"),
    skip: int = Query(0, ge=0, description="Pagination offset"),
    limit: int = Query(50, ge=1, le=200, description="Pagination limit"),
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_active_user),
) -> dict:
    """Admins get every showing; managers get the showings assigned to them."""
    if start_from is not None and start_to is not None:
        validate_range(start_from, start_to)
    items, total = await list_showings(
        db,
        lot_id=lot_id,
        manager_id=_scope(current_user),
        status=status_filter,
        start_from=start_from,
        start_to=start_to,
        skip=skip,
        limit=limit,
    )
    return {"items": items, "total": total}


@router.get(
    "/today",
    response_model=list[ShowingResponse],
    summary="Showings starting today",
)
async def list_today_showings(
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_active_user),
) -> list[Showing]:
    """Showings starting between midnight and midnight UTC today, earliest first."""
    start, end = _today_window()
    items, _ = await list_showings(
        db,
        manager_id=_scope(current_user),
        start_from=start,
        start_to=end,
        oldest_first=True,
        limit=200,
    )
    return items


@router.get(
    "/stats",
    response_model=ShowingStats,
    summary="Dashboard counts",
)
async def showing_stats(
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_active_user),
) -> dict:
    start, end = _today_window()
    manager_id = _scope(current_user)
    return {
        "today_showings": await count_showings(db, manager_id=manager_id, start_from=start, start_to=end),
        "pending_requests": await count_showings(db, manager_id=manager_id, status=ShowingStatus.SCHEDULED),
    }


@router.get(
    "/{showing_id}",
    response_model=ShowingResponse,
    summary="Get a showing",
)
async def get_showing_endpoint(
    showing_id: uuid.UUID,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_active_user),
) -> Showing:
    return await _get_managed_showing(db, showing_id, current_user)


@router.post(
    "/{showing_id}/cancel",
    response_model=ShowingResponse,
    summary="Cancel a scheduled showing",
)
async def cancel_showing_endpoint(
    showing_id: uuid.UUID,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_active_user),
    calendar_sync: CalendarSyncWorker | None = Depends(get_calendar_sync),
) -> Showing:
    """Cancel the showing and remove its event from the manager's calendar.

    The lot window becomes bookable again as soon as this returns.
    """
    showing = await _get_managed_showing(db, showing_id, current_user)
    showing = await cancel_showing(db, showing)
    await db.commit()
    await submit_after_commit(db, calendar_sync, SyncJob.delete_for(showing), showing)
    return showing


@router.post(
    "/{showing_id}/complete",
    response_model=ShowingResponse,
    summary="Mark a showing as completed",
)
async def complete_showing_endpoint(
    showing_id: uuid.UUID,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_active_user),
) -> Showing:
    showing = await _get_managed_showing(db, showing_id, current_user)
    return await complete_showing(db, showing)


@router.patch(
    "/{showing_id}/reschedule",
    response_model=ShowingResponse,
    summary="Move a showing to a new time window",
)
async def reschedule_showing_endpoint(
    showing_id: uuid.UUID,
    body: ShowingReschedule,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_active_user),
    calendar_sync: CalendarSyncWorker | None = Depends(get_calendar_sync),
) -> Showing:
    showing = await _get_managed_showing(db, showing_id, current_user)
    showing = await reschedule_showing(db, showing, body.start_time, body.end_time)
    await db.commit()
    await submit_after_commit(db, calendar_sync, SyncJob.update_for(showing), showing)
    return showing
