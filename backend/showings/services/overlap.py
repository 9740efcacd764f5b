"""Strict overlap detection for showings on a lot.

Two windows conflict only when they share a stretch of positive length.
An existing showing ``[s, e)`` conflicts with a proposed ``[S, E)`` when

1. ``S < s < E`` (it starts inside the proposal), or
2. ``S < e < E`` (it ends inside the proposal), or
3. ``s <= S and e >= E`` (it contains the proposal).

A showing that ends exactly when another starts is not a conflict, so
back-to-back showings are allowed.
"""

from __future__ import annotations

import uuid
from datetime import datetime

from sqlalchemy import ColumnElement, and_, exists, or_, select
from sqlalchemy.ext.asyncio import AsyncSession

from showings.models.showing import Showing, ShowingStatus


def intervals_conflict(
    existing_start: datetime,
    existing_end: datetime,
    start: datetime,
    end: datetime,
) -> bool:
    """Return True if ``[existing_start, existing_end)`` strictly overlaps ``[start, end)``."""
    return (
        start < existing_start < end
        or start < existing_end < end
        or (existing_start <= start and existing_end >= end)
    )


def overlap_clause(start: datetime, end: datetime) -> ColumnElement[bool]:
    """SQL form of :func:`intervals_conflict` against ``Showing`` columns."""
    return or_(
        and_(Showing.start_time > start, Showing.start_time < end),
        and_(Showing.end_time > start, Showing.end_time < end),
        and_(Showing.start_time <= start, Showing.end_time >= end),
    )


async def has_overlap(
    db: AsyncSession,
    lot_id: uuid.UUID,
    start: datetime,
    end: datetime,
    exclude_id: uuid.UUID | None = None,
) -> bool:
    """Return True if a SCHEDULED showing on ``lot_id`` conflicts with ``[start, end)``.

    ``exclude_id`` drops one showing from consideration, which lets a
    showing being rescheduled ignore its own current slot.
    """
    conditions = [
        Showing.lot_id == lot_id,
        Showing.status == ShowingStatus.SCHEDULED.value,
        overlap_clause(start, end),
    ]
    if exclude_id is not None:
        conditions.append(Showing.id != exclude_id)

    result = await db.execute(select(exists().where(*conditions)))
    return bool(result.scalar())


async def find_showings_for_lot(
    db: AsyncSession,
    lot_id: uuid.UUID,
    status: ShowingStatus | None = None,
) -> list[Showing]:
    """List a lot's showings ordered by start time, optionally filtered by status."""
    query = select(Showing).where(Showing.lot_id == lot_id)
    if status is not None:
        query = query.where(Showing.status == status.value)
    result = await db.execute(query.order_by(Showing.start_time))
    return list(result.scalars().all())

