"""Pydantic v2 schemas for lot availability rules."""

import uuid
from datetime import datetime

from pydantic import BaseModel, ConfigDict, Field, model_validator

from showings.schemas.showing import UTCDatetime


class AvailabilityCreate(BaseModel):
    rule_type: str = Field(..., pattern="^(OPEN_SLOT|BLOCKED)$")
    start_time: UTCDatetime
    end_time: UTCDatetime
    note: str | None = None

    @model_validator(mode="after")
    def check_times(self) -> "AvailabilityCreate":
        if self.end_time <= self.start_time:
            raise ValueError("end_time must be after start_time")
        return self


class AvailabilityResponse(BaseModel):
    id: uuid.UUID
    lot_id: uuid.UUID
    rule_type: str
    start_time: datetime
    end_time: datetime
    note: str | None = None

    model_config = ConfigDict(from_attributes=True)
