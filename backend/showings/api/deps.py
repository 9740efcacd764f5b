"""Shared API dependencies: single import point for all routers.

Re-exports database session, authentication and calendar sync dependencies
so that router modules can import everything they need from one place::

    from showings.api.deps import get_db, get_current_active_user
"""

from fastapi import Request

from showings.auth.dependencies import (
    can_manage_park,
    ensure_can_manage_showing,
    get_current_active_user,
    get_current_user,
    require_admin,
)
from showings.calendar.sync import CalendarSyncWorker
from showings.database import get_db


def get_calendar_sync(request: Request) -> CalendarSyncWorker | None:
    """The process-wide sync worker, or ``None`` when calendar sync is disabled."""
    return getattr(request.app.state, "calendar_sync", None)


__all__ = [
    "get_db",
    "get_current_user",
    "get_current_active_user",
    "require_admin",
    "can_manage_park",
    "ensure_can_manage_showing",
    "get_calendar_sync",
]
