"""Best-effort mirroring of showings into managers' calendars.

Booking handlers submit a ``SyncJob`` after their transaction commits and
return immediately. A small pool of worker tasks drains a bounded queue and
talks to the calendar provider. Failures stay inside the worker: a failed
create or update sets ``calendar_sync_error`` on the showing, a failed
delete is only logged, and a missing credential skips the job. The worker
writes the calendar annotations only; it never touches ``status``.
"""

import asyncio
import enum
import logging
import uuid
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from dataclasses import dataclass
from datetime import datetime

from sqlalchemy.ext.asyncio import AsyncSession

from showings.calendar.credentials import CalendarCredentialStore, SessionFactory
from showings.calendar.errors import SyncError
from showings.calendar.provider import BusySlot, CalendarEvent, CalendarProvider
from showings.models.showing import Showing
from showings.services.showing_service import (
    list_scheduled_with_external_event,
    list_scheduled_with_sync_error,
    mark_sync_error,
    record_calendar_event,
)

logger = logging.getLogger(__name__)


class SyncAction(str, enum.Enum):
    CREATE = "create"
    UPDATE = "update"
    DELETE = "delete"


@dataclass(frozen=True)
class SyncJob:
    action: SyncAction
    showing_id: uuid.UUID
    owner_id: uuid.UUID
    event_id: str | None = None

    @classmethod
    def create_for(cls, showing: Showing) -> "SyncJob":
        return cls(SyncAction.CREATE, showing.id, showing.manager_id)

    @classmethod
    def update_for(cls, showing: Showing) -> "SyncJob":
        return cls(SyncAction.UPDATE, showing.id, showing.manager_id, showing.calendar_event_id)

    @classmethod
    def delete_for(cls, showing: Showing) -> "SyncJob":
        return cls(SyncAction.DELETE, showing.id, showing.manager_id, showing.calendar_event_id)


def build_showing_event(showing: Showing) -> CalendarEvent:
    """Calendar event mirroring a showing."""
    return CalendarEvent(
        summary=f"Property Showing - {showing.client_name}",
        start=showing.start_time,
        end=showing.end_time,
        description=(
            f"Property showing for lot {showing.lot_id}\n\n"
            f"Client: {showing.client_name}\n"
            f"Email: {showing.client_email}\n"
            f"Phone: {showing.client_phone or 'N/A'}"
        ),
        attendees=[(showing.client_email, showing.client_name)],
        status="confirmed" if showing.is_scheduled else "cancelled",
    )


class CalendarSyncWorker:
    """Bounded background queue that applies ``SyncJob``s to the provider.

    Constructed once per process by the application lifespan: ``start()``
    on startup, ``stop()`` on shutdown.
    """

    def __init__(
        self,
        provider: CalendarProvider,
        credentials: CalendarCredentialStore,
        session_factory: SessionFactory,
        *,
        queue_size: int = 500,
        workers: int = 2,
    ) -> None:
        self.provider = provider
        self.credentials = credentials
        self._session_factory = session_factory
        self._queue: asyncio.Queue[SyncJob] = asyncio.Queue(maxsize=queue_size)
        self._worker_count = workers
        self._tasks: list[asyncio.Task[None]] = []
        self._running = False
        self._showing_locks: dict[uuid.UUID, asyncio.Lock] = {}
        self._lock_users: dict[uuid.UUID, int] = {}

    @property
    def running(self) -> bool:
        return self._running

    @property
    def pending(self) -> int:
        return self._queue.qsize()

    @property
    def active_workers(self) -> int:
        return sum(1 for task in self._tasks if not task.done())

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    async def start(self) -> None:
        if self._running:
            return
        self._running = True
        self._tasks = [
            asyncio.create_task(self._run(), name=f"calendar-sync-{i}") for i in range(self._worker_count)
        ]
        logger.info("Calendar sync started with %d workers", self._worker_count)

    async def join(self) -> None:
        """Wait until every queued job has been processed."""
        await self._queue.join()

    async def stop(self) -> None:
        """Cancel the workers; jobs still queued are dropped."""
        self._running = False
        for task in self._tasks:
            task.cancel()
        await asyncio.gather(*self._tasks, return_exceptions=True)
        self._tasks = []
        dropped = 0
        while not self._queue.empty():
            self._queue.get_nowait()
            self._queue.task_done()
            dropped += 1
        self.credentials.close()
        if dropped:
            logger.warning("Calendar sync stopped with %d unprocessed jobs", dropped)
        logger.info("Calendar sync stopped")

    def submit(self, job: SyncJob) -> bool:
        """Queue a job without blocking. Returns False if it could not be queued."""
        if not self._running:
            logger.warning("Calendar sync not running; dropping %s job for showing %s", job.action.value, job.showing_id)
            return False
        try:
            self._queue.put_nowait(job)
        except asyncio.QueueFull:
            logger.warning("Calendar sync queue full; dropping %s job for showing %s", job.action.value, job.showing_id)
            return False
        return True

    async def _run(self) -> None:
        while True:
            job = await self._queue.get()
            try:
                await self.process(job)
            except asyncio.CancelledError:
                # Cancellation aimed at another task ends only this job.
                if asyncio.current_task().cancelling():
                    raise
                logger.warning("Calendar sync %s job for showing %s was cancelled", job.action.value, job.showing_id)
            except Exception:
                logger.exception("Calendar sync %s job for showing %s crashed", job.action.value, job.showing_id)
            finally:
                self._queue.task_done()

    # ------------------------------------------------------------------
    # Job handlers
    # ------------------------------------------------------------------

    async def process(self, job: SyncJob) -> None:
        """Apply one job. Safe to call directly, e.g. from a script."""
        if job.action is SyncAction.DELETE:
            await self._delete(job)
            return

        # One create or update per showing at a time; the showing is read after
        # the lock is taken so a second job sees the event id the first recorded.
        async with self._showing_lock(job.showing_id):
            async with self._session_factory() as db:
                showing = await db.get(Showing, job.showing_id)
                if showing is None or not showing.is_scheduled:
                    logger.debug("Skipping %s for showing %s: not scheduled", job.action.value, job.showing_id)
                    return
                await self._upsert(db, showing)

    @asynccontextmanager
    async def _showing_lock(self, showing_id: uuid.UUID) -> AsyncIterator[None]:
        lock = self._showing_locks.get(showing_id)
        if lock is None:
            lock = self._showing_locks[showing_id] = asyncio.Lock()
        self._lock_users[showing_id] = self._lock_users.get(showing_id, 0) + 1
        try:
            async with lock:
                yield
        finally:
            self._lock_users[showing_id] -= 1
            if not self._lock_users[showing_id]:
                del self._lock_users[showing_id]
                del self._showing_locks[showing_id]

    async def _upsert(self, db: AsyncSession, showing: Showing) -> None:
        credential = await self.credentials.get_credential(showing.manager_id)
        if credential is None:
            logger.info("No calendar connected for manager %s; skipping showing %s", showing.manager_id, showing.id)
            return

        event = build_showing_event(showing)
        try:
            if showing.calendar_event_id:
                created = await self.provider.update_event(credential, showing.calendar_event_id, event)
            else:
                created = await self.provider.create_event(credential, event)
        except SyncError as exc:
            logger.warning("Calendar sync error for showing %s: %s", showing.id, exc)
            await mark_sync_error(db, showing)
            await db.commit()
            return

        await db.refresh(showing, attribute_names=["status"])
        await record_calendar_event(db, showing, created.event_id, created.html_link)
        await db.commit()
        logger.info("Showing %s synced to calendar event %s", showing.id, created.event_id)

        if not showing.is_scheduled:
            # Canceled while the event was being written.
            await self._delete(SyncJob(SyncAction.DELETE, showing.id, showing.manager_id, created.event_id))

    async def _delete(self, job: SyncJob) -> None:
        if not job.event_id:
            return
        credential = await self.credentials.get_credential(job.owner_id)
        if credential is None:
            logger.info("No calendar connected for manager %s; leaving event %s", job.owner_id, job.event_id)
            return
        try:
            await self.provider.delete_event(credential, job.event_id)
        except SyncError as exc:
            logger.warning("Failed to delete calendar event %s for showing %s: %s", job.event_id, job.showing_id, exc)

    # ------------------------------------------------------------------
    # Read-through helpers
    # ------------------------------------------------------------------

    async def busy_slots(self, owner_id: uuid.UUID, start: datetime, end: datetime) -> list[BusySlot] | None:
        """Busy intervals from the owner's calendar, or ``None`` if not connected."""
        credential = await self.credentials.get_credential(owner_id)
        if credential is None:
            return None
        return await self.provider.get_busy_slots(credential, start, end)


@dataclass(frozen=True)
class ReconcileResult:
    updates_queued: int
    creates_queued: int
    dropped: int


async def reconcile_calendar(db: AsyncSession, worker: CalendarSyncWorker) -> ReconcileResult:
    """Queue a re-sync of every SCHEDULED showing after an outage.

    Showings that already carry an event id get an UPDATE; showings whose
    first sync failed get a fresh CREATE.
    """
    updates = creates = dropped = 0

    for showing in await list_scheduled_with_external_event(db):
        if worker.submit(SyncJob.update_for(showing)):
            updates += 1
        else:
            dropped += 1

    for showing in await list_scheduled_with_sync_error(db):
        if worker.submit(SyncJob.create_for(showing)):
            creates += 1
        else:
            dropped += 1

    logger.info("Calendar reconcile queued %d updates and %d creates (%d dropped)", updates, creates, dropped)
    return ReconcileResult(updates_queued=updates, creates_queued=creates, dropped=dropped)


async def submit_after_commit(
    db: AsyncSession,
    worker: CalendarSyncWorker | None,
    job: SyncJob,
    showing: Showing,
) -> bool:
    """Hand a job to the worker once the showing's transaction has committed.

    A create or update that cannot be queued flags the showing so the next
    reconcile pass picks it up. Returns whether the job was queued.
    """
    if worker is None:
        return False
    if worker.submit(job):
        return True
    if job.action is not SyncAction.DELETE:
        await mark_sync_error(db, showing)
        await db.commit()
    return False
