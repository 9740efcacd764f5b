"""Seed the database with a demo park, its lots and two users.

Creates one admin and one manager assigned to the park, plus a few
scheduled showings, then prints access tokens for both users so the API
can be exercised straight away.

Run inside Docker:
    docker compose exec backend python -m scripts.seed_data
"""

import asyncio
import sys
from datetime import datetime, timedelta, timezone
from pathlib import Path

# Add backend to path so imports work when run as a script
sys.path.insert(0, str(Path(__file__).resolve().parent.parent))

from sqlalchemy import delete, select

from showings.auth.jwt import create_token_pair
from showings.database import async_session_factory, engine
from showings.models.park import Lot, ManagerAssignment, Park
from showings.models.showing import Showing, ShowingStatus
from showings.models.user import User

# ---------------------------------------------------------------------------
# Seed data definitions
# ---------------------------------------------------------------------------

ADMIN_USER = {"email": "admin@parkshowings.dev", "full_name": "Demo Admin", "role": "ADMIN"}
MANAGER_USER = {"email": "manager@parkshowings.dev", "full_name": "Demo Manager", "role": "MANAGER"}

PARK = {
    "name": "Sunset Palms Community",
    "address": "1200 Desert Willow Rd",
    "city": "Mesa",
    "state": "AZ",
    "zip": "85205",
}

LOTS = [
    {"name_or_number": "A-12", "description": "Corner lot with carport, 2BR/2BA home"},
    {"name_or_number": "A-14", "description": "Shaded lot near the clubhouse"},
    {"name_or_number": "B-03", "description": "Double-wide pad, recently renovated"},
    {"name_or_number": "C-21", "description": "Quiet lot backing onto the greenbelt"},
]

CLIENTS = [
    ("Maria Lopez", "maria.lopez@example.com", "+1 480-555-0134"),
    ("James Carter", "jcarter@example.com", "+1 602-555-0199"),
    ("Priya Nair", "priya.nair@example.com", "+1 480-555-0172"),
]


async def seed() -> None:
    async with async_session_factory() as session:
        emails = [ADMIN_USER["email"], MANAGER_USER["email"]]
        existing = (await session.execute(select(User).where(User.email.in_(emails)))).scalars().all()
        if existing:
            print("⚠️  Demo users already exist. Deleting and re-seeding...")
            await session.execute(delete(Park).where(Park.name == PARK["name"]))
            await session.execute(delete(User).where(User.email.in_(emails)))
            await session.flush()

        admin = User(**ADMIN_USER)
        manager = User(**MANAGER_USER)
        session.add_all([admin, manager])
        await session.flush()
        print(f"✅ Created admin: {admin.email} (id={admin.id})")
        print(f"✅ Created manager: {manager.email} (id={manager.id})")

        park = Park(**PARK)
        session.add(park)
        await session.flush()
        session.add(ManagerAssignment(user_id=manager.id, park_id=park.id))

        lots = [Lot(park_id=park.id, **data) for data in LOTS]
        session.add_all(lots)
        await session.flush()
        for lot in lots:
            print(f"   🏡 Lot {lot.name_or_number}: {lot.description}")

        # Back-to-back showings tomorrow on the first lots, starting at 10:00 UTC
        base = (datetime.now(timezone.utc) + timedelta(days=1)).replace(hour=10, minute=0, second=0, microsecond=0)
        showing_count = 0
        for i, (name, email, phone) in enumerate(CLIENTS):
            start = base + timedelta(hours=i)
            session.add(
                Showing(
                    lot_id=lots[i % 2].id,
                    manager_id=manager.id,
                    start_time=start,
                    end_time=start + timedelta(hours=1),
                    status=ShowingStatus.SCHEDULED.value,
                    client_name=name,
                    client_email=email,
                    client_phone=phone,
                )
            )
            showing_count += 1

        await session.commit()

        admin_tokens = create_token_pair(str(admin.id))
        manager_tokens = create_token_pair(str(manager.id))

    await engine.dispose()

    print()
    print("=" * 60)
    print("📊 Seed Summary")
    print("=" * 60)
    print(f"   Park:      {PARK['name']}")
    print(f"   Lots:      {len(LOTS)}")
    print(f"   Showings:  {showing_count}")
    print("=" * 60)
    print(f"🔑 Admin access token:   {admin_tokens['access_token']}")
    print(f"🔑 Manager access token: {manager_tokens['access_token']}")


if __name__ == "__main__":
    asyncio.run(seed())
