"""Google Calendar provider implementation.

Talks to the Calendar API v3 on behalf of a manager using the OAuth access
token stored for them. The client library is synchronous, so every call runs
in the default thread pool.
"""

from __future__ import annotations

import asyncio
import logging
from datetime import datetime, timezone
from functools import partial
from typing import Any

from google.oauth2.credentials import Credentials
from googleapiclient.discovery import build

from showings.calendar.errors import SyncError
from showings.calendar.provider import (
    BusySlot,
    CalendarCredential,
    CalendarEvent,
    CalendarProvider,
    CreatedEvent,
)

logger = logging.getLogger(__name__)

# Reminder overrides applied to every showing event.
REMINDERS = {
    "useDefault": False,
    "overrides": [
        {"method": "email", "minutes": 24 * 60},
        {"method": "popup", "minutes": 10},
    ],
}


class GoogleCalendarProvider(CalendarProvider):
    """CalendarProvider backed by Google Calendar API v3."""

    def __init__(self, send_updates: str = "all", time_zone: str = "UTC") -> None:
        self._send_updates = send_updates
        self._time_zone = time_zone

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------

    def _service(self, credential: CalendarCredential) -> Any:
        return build(
            "calendar",
            "v3",
            credentials=Credentials(token=credential.access_token),
            cache_discovery=False,
        )

    async def _run_in_executor(self, func, *args, **kwargs) -> Any:
        """Run a synchronous Google API call in the default thread pool."""
        loop = asyncio.get_running_loop()
        return await loop.run_in_executor(None, partial(func, *args, **kwargs))

    async def _execute(self, operation: str, credential: CalendarCredential, request_fn) -> Any:
        """Build a service, create the request with ``request_fn`` and execute it."""
        try:
            service = await self._run_in_executor(self._service, credential)
            return await self._run_in_executor(request_fn(service).execute)
        except Exception as exc:
            logger.warning("Google Calendar %s failed for user %s: %s", operation, credential.user_id, exc)
            raise SyncError(operation, str(exc)) from exc

    @staticmethod
    def _to_rfc3339(dt: datetime) -> str:
        """Convert a datetime to an RFC 3339 string with timezone."""
        if dt.tzinfo is None:
            dt = dt.replace(tzinfo=timezone.utc)
        return dt.isoformat()

    def _event_body(self, event: CalendarEvent) -> dict[str, Any]:
        body: dict[str, Any] = {
            "summary": event.summary,
            "start": {"dateTime": self._to_rfc3339(event.start), "timeZone": self._time_zone},
            "end": {"dateTime": self._to_rfc3339(event.end), "timeZone": self._time_zone},
            "status": event.status,
            "reminders": REMINDERS,
        }
        if event.description:
            body["description"] = event.description
        if event.location:
            body["location"] = event.location
        if event.attendees:
            body["attendees"] = [{"email": email, "displayName": name} for email, name in event.attendees]
        return body

    @staticmethod
    def _created(result: dict) -> CreatedEvent:
        return CreatedEvent(event_id=result["id"], html_link=result.get("htmlLink"))

    # ------------------------------------------------------------------
    # CalendarProvider interface
    # ------------------------------------------------------------------

    async def create_event(self, credential: CalendarCredential, event: CalendarEvent) -> CreatedEvent:
        """Insert an event; attendees receive email invitations."""
        body = self._event_body(event)
        result = await self._execute(
            "create",
            credential,
            lambda service: service.events().insert(
                calendarId=credential.calendar_id,
                body=body,
                sendUpdates=self._send_updates,
            ),
        )
        logger.info("Created event %s on calendar %s", result["id"], credential.calendar_id)
        return self._created(result)

    async def update_event(
        self, credential: CalendarCredential, event_id: str, event: CalendarEvent
    ) -> CreatedEvent:
        body = self._event_body(event)
        result = await self._execute(
            "update",
            credential,
            lambda service: service.events().update(
                calendarId=credential.calendar_id,
                eventId=event_id,
                body=body,
                sendUpdates=self._send_updates,
            ),
        )
        logger.info("Updated event %s on calendar %s", event_id, credential.calendar_id)
        return self._created(result)

    async def delete_event(self, credential: CalendarCredential, event_id: str) -> None:
        await self._execute(
            "delete",
            credential,
            lambda service: service.events().delete(
                calendarId=credential.calendar_id,
                eventId=event_id,
                sendUpdates=self._send_updates,
            ),
        )
        logger.info("Deleted event %s on calendar %s", event_id, credential.calendar_id)

    async def get_busy_slots(
        self, credential: CalendarCredential, start: datetime, end: datetime
    ) -> list[BusySlot]:
        """Query the freebusy API for the credential's calendar."""
        body = {
            "timeMin": self._to_rfc3339(start),
            "timeMax": self._to_rfc3339(end),
            "items": [{"id": credential.calendar_id}],
        }
        response = await self._execute(
            "freebusy",
            credential,
            lambda service: service.freebusy().query(body=body),
        )

        intervals: list[dict] = response.get("calendars", {}).get(credential.calendar_id, {}).get("busy", [])
        busy = [
            BusySlot(
                start=datetime.fromisoformat(interval["start"].replace("Z", "+00:00")),
                end=datetime.fromisoformat(interval["end"].replace("Z", "+00:00")),
            )
            for interval in intervals
        ]
        busy.sort(key=lambda slot: slot.start)
        return busy
