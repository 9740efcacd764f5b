"""External calendar integration: providers, credentials and the sync worker."""

from showings.calendar.errors import CredentialMissingError, SyncError
from showings.calendar.provider import (
    BusySlot,
    CalendarCredential,
    CalendarEvent,
    CalendarProvider,
    CreatedEvent,
)

__all__ = [
    "BusySlot",
    "CalendarCredential",
    "CalendarEvent",
    "CalendarProvider",
    "CreatedEvent",
    "CredentialMissingError",
    "SyncError",
]
