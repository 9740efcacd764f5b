"""Pydantic v2 schemas for the Google Calendar integration endpoints."""

from datetime import datetime

from pydantic import BaseModel


class CalendarConnectResponse(BaseModel):
    auth_url: str


class CalendarStatusResponse(BaseModel):
    connected: bool
    calendar_id: str | None = None
    expires_at: datetime | None = None


class BusySlotResponse(BaseModel):
    start: datetime
    end: datetime


class ManagerAvailabilityResponse(BaseModel):
    """Manager free/busy view for a lot; empty when no calendar is connected."""

    busy_slots: list[BusySlotResponse]
    manager_connected: bool


class ResyncResponse(BaseModel):
    """Counts of jobs queued by a reconciliation pass."""

    updates_queued: int
    creates_queued: int
    dropped: int
