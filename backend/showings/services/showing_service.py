"""Showing service: booking, rescheduling and status changes.

Every write that depends on the overlap check locks the lot row first, so
two requests for the same lot are serialised inside their transactions and
the check and the write cannot interleave. On PostgreSQL the
``ex_showings_no_overlap`` exclusion constraint backs this up at the storage
layer; a violation is reported as ``ConflictError``.
"""

import logging
import uuid
from datetime import datetime

from sqlalchemy import func, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from showings.models.park import Lot, ManagerAssignment
from showings.models.showing import Showing, ShowingStatus
from showings.services.errors import (
    ConflictError,
    InvalidRangeError,
    InvalidTransitionError,
    LotNotFoundError,
    NoManagerAssignedError,
    ShowingNotFoundError,
)
from showings.services.lifecycle import ensure_transition, is_terminal
from showings.services.overlap import has_overlap

logger = logging.getLogger(__name__)

EXCLUSION_CONSTRAINT = "ex_showings_no_overlap"


def validate_range(start: datetime, end: datetime) -> None:
    if start >= end:
        raise InvalidRangeError(start, end)


# ---------------------------------------------------------------------------
# Lookups
# ---------------------------------------------------------------------------


async def get_lot(db: AsyncSession, lot_id: uuid.UUID, *, for_update: bool = False) -> Lot:
    """Load an active lot, optionally locking its row for the rest of the transaction."""
    query = select(Lot).where(Lot.id == lot_id, Lot.is_active.is_(True))
    if for_update:
        query = query.with_for_update()
    result = await db.execute(query)
    lot = result.scalar_one_or_none()
    if lot is None:
        raise LotNotFoundError(lot_id)
    return lot


async def get_showing(db: AsyncSession, showing_id: uuid.UUID) -> Showing:
    result = await db.execute(select(Showing).where(Showing.id == showing_id))
    showing = result.scalar_one_or_none()
    if showing is None:
        raise ShowingNotFoundError(showing_id)
    return showing


async def resolve_manager_id(db: AsyncSession, park_id: uuid.UUID) -> uuid.UUID:
    """Return the manager responsible for showings in a park.

    The earliest assignment wins when a park has several managers.
    """
    result = await db.execute(
        select(ManagerAssignment.user_id)
        .where(ManagerAssignment.park_id == park_id)
        .order_by(ManagerAssignment.created_at, ManagerAssignment.id)
        .limit(1)
    )
    manager_id = result.scalar_one_or_none()
    if manager_id is None:
        raise NoManagerAssignedError(park_id)
    return manager_id


def _showing_filters(
    *,
    lot_id: uuid.UUID | None,
    manager_id: uuid.UUID | None,
    status: ShowingStatus | None,
    start_from: datetime | None,
    start_to: datetime | None,
) -> list:
    conditions = []
    if lot_id is not None:
        conditions.append(Showing.lot_id == lot_id)
    if manager_id is not None:
        conditions.append(Showing.manager_id == manager_id)
    if status is not None:
        conditions.append(Showing.status == status.value)
    # Half-open window on the start time: [start_from, start_to).
    if start_from is not None:
        conditions.append(Showing.start_time >= start_from)
    if start_to is not None:
        conditions.append(Showing.start_time < start_to)
    return conditions


async def list_showings(
    db: AsyncSession,
    *,
    lot_id: uuid.UUID | None = None,
    manager_id: uuid.UUID | None = None,
    status: ShowingStatus | None = None,
    start_from: datetime | None = None,
    start_to: datetime | None = None,
    oldest_first: bool = False,
    skip: int = 0,
    limit: int = 50,
) -> tuple[list[Showing], int]:
    """Return a page of showings (newest start first by default) and the total count."""
    conditions = _showing_filters(
        lot_id=lot_id, manager_id=manager_id, status=status, start_from=start_from, start_to=start_to
    )
    total = await count_showings(
        db, lot_id=lot_id, manager_id=manager_id, status=status, start_from=start_from, start_to=start_to
    )
    order = Showing.start_time.asc() if oldest_first else Showing.start_time.desc()
    result = await db.execute(select(Showing).where(*conditions).order_by(order).offset(skip).limit(limit))
    return list(result.scalars().all()), total


async def count_showings(
    db: AsyncSession,
    *,
    lot_id: uuid.UUID | None = None,
    manager_id: uuid.UUID | None = None,
    status: ShowingStatus | None = None,
    start_from: datetime | None = None,
    start_to: datetime | None = None,
) -> int:
    conditions = _showing_filters(
        lot_id=lot_id, manager_id=manager_id, status=status, start_from=start_from, start_to=start_to
    )
    result = await db.execute(select(func.count()).select_from(Showing).where(*conditions))
    return result.scalar_one()


async def list_scheduled_with_external_event(db: AsyncSession) -> list[Showing]:
    """SCHEDULED showings already mirrored to an external calendar."""
    result = await db.execute(
        select(Showing)
        .where(
            Showing.status == ShowingStatus.SCHEDULED.value,
            Showing.calendar_event_id.is_not(None),
        )
        .order_by(Showing.start_time)
    )
    return list(result.scalars().all())


async def list_scheduled_with_sync_error(db: AsyncSession) -> list[Showing]:
    """SCHEDULED showings whose first calendar sync never succeeded."""
    result = await db.execute(
        select(Showing)
        .where(
            Showing.status == ShowingStatus.SCHEDULED.value,
            Showing.calendar_event_id.is_(None),
            Showing.calendar_sync_error.is_(True),
        )
        .order_by(Showing.start_time)
    )
    return list(result.scalars().all())


# ---------------------------------------------------------------------------
# Persistence primitives
# ---------------------------------------------------------------------------


async def insert_showing(db: AsyncSession, showing: Showing) -> Showing:
    db.add(showing)
    try:
        await db.flush()
    except IntegrityError as exc:
        if EXCLUSION_CONSTRAINT in str(exc.orig):
            raise ConflictError(showing.lot_id, showing.start_time, showing.end_time) from exc
        raise
    await db.refresh(showing)
    return showing


async def update_showing_status(db: AsyncSession, showing: Showing, status: ShowingStatus) -> Showing:
    target = ensure_transition(showing.status, status)
    showing.status = target.value
    await db.flush()
    await db.refresh(showing)
    return showing


async def update_showing_times(db: AsyncSession, showing: Showing, start: datetime, end: datetime) -> Showing:
    showing.start_time = start
    showing.end_time = end
    try:
        await db.flush()
    except IntegrityError as exc:
        if EXCLUSION_CONSTRAINT in str(exc.orig):
            raise ConflictError(showing.lot_id, start, end) from exc
        raise
    await db.refresh(showing)
    return showing


# ---------------------------------------------------------------------------
# Booking operations
# ---------------------------------------------------------------------------


async def request_showing(
    db: AsyncSession,
    lot_id: uuid.UUID,
    start: datetime,
    end: datetime,
    *,
    client_name: str,
    client_email: str,
    client_phone: str,
) -> Showing:
    """Book a showing on a lot, or raise ``ConflictError`` if the slot is taken.

    Raises:
        InvalidRangeError: ``start >= end``.
        LotNotFoundError: the lot does not exist or is inactive.
        NoManagerAssignedError: nobody manages the lot's park.
        ConflictError: a SCHEDULED showing strictly overlaps the window.
    """
    validate_range(start, end)

    lot = await get_lot(db, lot_id, for_update=True)
    manager_id = await resolve_manager_id(db, lot.park_id)

    if await has_overlap(db, lot.id, start, end):
        logger.info("Rejected showing on lot %s for %s-%s: slot taken", lot.id, start, end)
        raise ConflictError(lot.id, start, end)

    showing = Showing(
        lot_id=lot.id,
        manager_id=manager_id,
        start_time=start,
        end_time=end,
        status=ShowingStatus.SCHEDULED.value,
        client_name=client_name,
        client_email=client_email,
        client_phone=client_phone,
        calendar_sync_error=False,
    )
    showing = await insert_showing(db, showing)
    logger.info("Booked showing %s on lot %s for %s-%s", showing.id, lot.id, start, end)
    return showing


async def reschedule_showing(
    db: AsyncSession,
    showing: Showing,
    new_start: datetime,
    new_end: datetime,
) -> Showing:
    """Move a SCHEDULED showing to a new window on the same lot.

    The showing's own current slot is ignored by the overlap check, so
    shifting within (or onto) the slot it already holds always succeeds.
    """
    if is_terminal(showing.status):
        raise InvalidTransitionError(showing.status, ShowingStatus.SCHEDULED.value)
    validate_range(new_start, new_end)

    await get_lot(db, showing.lot_id, for_update=True)
    if await has_overlap(db, showing.lot_id, new_start, new_end, exclude_id=showing.id):
        raise ConflictError(showing.lot_id, new_start, new_end)

    showing = await update_showing_times(db, showing, new_start, new_end)
    logger.info("Rescheduled showing %s to %s-%s", showing.id, new_start, new_end)
    return showing


async def cancel_showing(db: AsyncSession, showing: Showing) -> Showing:
    """SCHEDULED -> CANCELED. The caller queues removal of the external event."""
    showing = await update_showing_status(db, showing, ShowingStatus.CANCELED)
    logger.info("Canceled showing %s", showing.id)
    return showing


async def complete_showing(db: AsyncSession, showing: Showing) -> Showing:
    """SCHEDULED -> COMPLETED. The external event is kept as history."""
    showing = await update_showing_status(db, showing, ShowingStatus.COMPLETED)
    logger.info("Completed showing %s", showing.id)
    return showing


# ---------------------------------------------------------------------------
# Calendar annotations (written by the sync worker only)
# ---------------------------------------------------------------------------


async def record_calendar_event(
    db: AsyncSession,
    showing: Showing,
    event_id: str,
    html_link: str | None,
) -> Showing:
    showing.calendar_event_id = event_id
    showing.calendar_html_link = html_link
    showing.calendar_sync_error = False
    await db.flush()
    return showing


async def mark_sync_error(db: AsyncSession, showing: Showing) -> Showing:
    showing.calendar_sync_error = True
    await db.flush()
    return showing
