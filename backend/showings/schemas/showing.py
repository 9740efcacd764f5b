"""Pydantic v2 request/response schemas for showing endpoints."""

import uuid
from datetime import datetime, timezone
from typing import Annotated

from pydantic import AfterValidator, BaseModel, ConfigDict, EmailStr, Field, model_validator


def _to_utc(value: datetime) -> datetime:
    """Treat naive timestamps as UTC and convert aware ones to UTC."""
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


UTCDatetime = Annotated[datetime, AfterValidator(_to_utc)]

# ---------------------------------------------------------------------------
# Request schemas
# ---------------------------------------------------------------------------


class ShowingRequest(BaseModel):
    """Public booking request for a lot."""

    client_name: str = Field(..., min_length=1, max_length=255)
    client_email: EmailStr
    client_phone: str = Field(..., min_length=1, max_length=50)
    start_time: UTCDatetime
    end_time: UTCDatetime

    @model_validator(mode="after")
    def check_times(self) -> "ShowingRequest":
        """Validate that end_time is strictly after start_time."""
        if self.end_time <= self.start_time:
            raise ValueError("end_time must be after start_time")
        return self


class ShowingReschedule(BaseModel):
    """New window for an existing showing."""

    start_time: UTCDatetime
    end_time: UTCDatetime

    @model_validator(mode="after")
    def check_times(self) -> "ShowingReschedule":
        if self.end_time <= self.start_time:
            raise ValueError("end_time must be after start_time")
        return self


# ---------------------------------------------------------------------------
# Response schemas
# ---------------------------------------------------------------------------


class ShowingResponse(BaseModel):
    """Full showing record, including calendar sync annotations."""

    id: uuid.UUID
    lot_id: uuid.UUID
    manager_id: uuid.UUID
    start_time: datetime
    end_time: datetime
    status: str
    client_name: str
    client_email: str
    client_phone: str
    calendar_event_id: str | None = None
    calendar_html_link: str | None = None
    calendar_sync_error: bool = False
    created_at: datetime

    model_config = ConfigDict(from_attributes=True)


class PublicShowingResponse(BaseModel):
    """Time and status only; used by the public lot calendar."""

    id: uuid.UUID
    start_time: datetime
    end_time: datetime
    status: str

    model_config = ConfigDict(from_attributes=True)


class ShowingListResponse(BaseModel):
    """Paginated list of showings."""

    items: list[ShowingResponse]
    total: int


class ShowingStats(BaseModel):
    """Counts for the manager dashboard."""

    today_showings: int
    pending_requests: int
