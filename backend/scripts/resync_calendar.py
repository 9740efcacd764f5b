"""Re-sync every scheduled showing to its manager's Google Calendar.

Run after a calendar outage. Showings that already have an event are
updated; showings whose first sync failed get a new event.

Run inside Docker:
    docker compose exec backend python -m scripts.resync_calendar
"""

import asyncio
import sys
from pathlib import Path

# Add backend to path so imports work when run as a script
sys.path.insert(0, str(Path(__file__).resolve().parent.parent))

from showings.calendar.sync import reconcile_calendar
from showings.database import async_session_factory, engine
from showings.main import build_calendar_sync


async def resync() -> int:
    worker = build_calendar_sync()
    if worker is None:
        print("❌ Calendar sync is disabled or Google OAuth is not configured.")
        return 1

    await worker.start()
    try:
        async with async_session_factory() as session:
            result = await reconcile_calendar(session, worker)
        print(f"⏳ Queued {result.updates_queued} updates and {result.creates_queued} creates...")
        await worker.join()
    finally:
        await worker.stop()
        await engine.dispose()

    print("=" * 60)
    print("📅 Calendar Resync Summary")
    print("=" * 60)
    print(f"   Updates:  {result.updates_queued}")
    print(f"   Creates:  {result.creates_queued}")
    print(f"   Dropped:  {result.dropped}")
    print("=" * 60)
    return 0


if __name__ == "__main__":
    sys.exit(asyncio.run(resync()))
