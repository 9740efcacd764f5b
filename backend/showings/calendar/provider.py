"""Abstract base class for external calendar providers.

A provider mirrors showings into a manager's own calendar using that
manager's credential. Implementations raise ``SyncError`` on any failure.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from datetime import datetime


@dataclass(frozen=True)
class CalendarCredential:
    """A currently valid access token for one user's calendar."""

    user_id: object
    access_token: str
    calendar_id: str = "primary"
    expires_at: datetime | None = None


@dataclass
class CalendarEvent:
    """Represents a calendar event to be created or updated."""

    summary: str
    start: datetime
    end: datetime
    description: str = ""
    attendees: list[tuple[str, str]] = field(default_factory=list)  # (email, display name)
    location: str = ""
    status: str = "confirmed"  # confirmed, cancelled


@dataclass(frozen=True)
class CreatedEvent:
    event_id: str
    html_link: str | None = None


@dataclass(frozen=True)
class BusySlot:
    start: datetime
    end: datetime


class CalendarProvider(ABC):
    """Abstract calendar backend."""

    @abstractmethod
    async def create_event(self, credential: CalendarCredential, event: CalendarEvent) -> CreatedEvent:
        """Insert an event and return its id and user-facing link."""

    @abstractmethod
    async def update_event(
        self, credential: CalendarCredential, event_id: str, event: CalendarEvent
    ) -> CreatedEvent:
        """Replace an existing event's details."""

    @abstractmethod
    async def delete_event(self, credential: CalendarCredential, event_id: str) -> None:
        """Delete an event."""

    @abstractmethod
    async def get_busy_slots(
        self, credential: CalendarCredential, start: datetime, end: datetime
    ) -> list[BusySlot]:
        """Return busy intervals within ``[start, end)``, sorted by start."""
