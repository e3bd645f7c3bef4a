"""
Scheduling core entry point.

Creates the tables at DATABASE_URL, or runs a small offline walkthrough of
the availability -> booking -> cancellation flow.

Usage:
    Create tables:  python main.py init-db
    Demo:           python main.py demo
"""

import asyncio
import json
import logging
import sys
from datetime import date, timedelta

from scheduling.config import settings

logger = logging.getLogger(__name__)

DEMO_TYPE = "video_consultancy"


def _run_init_db() -> None:
    """Create every table at the configured DATABASE_URL."""
    from scheduling.storage.database import create_db_engine, init_db

    init_db(create_db_engine())
    logger.info("Tables ready at %s", settings.database.url)


def _next_monday() -> str:
    today = date.today()
    return (today + timedelta(days=(7 - today.weekday()) % 7 or 7)).isoformat()


async def _demo() -> None:
    from sqlalchemy.pool import StaticPool

    from scheduling.api import SchedulingAPI
    from scheduling.notifications import InMemoryNotifier
    from scheduling.storage.database import create_db_engine, init_db

    engine = create_db_engine("sqlite://", poolclass=StaticPool)
    init_db(engine)
    notifier = InMemoryNotifier()
    api = SchedulingAPI.from_engine(engine, notifier)

    await api.upsert_schedule(DEMO_TYPE, [
        {
            "day": "monday",
            "slots": [
                {"startTime": "09:00", "endTime": "10:00"},
                {"startTime": "10:00", "endTime": "11:00"},
            ],
        },
    ])
    monday = _next_monday()
    print(f"Open slots on {monday}:", await api.get_slots_for_date(DEMO_TYPE, monday))

    booking = await api.create_booking(
        DEMO_TYPE, monday, [{"startTime": "09:00", "endTime": "10:00"}], user="demo-user"
    )
    print("Booked:", json.dumps(booking, indent=2))
    print("Open slots after booking:", await api.get_slots_for_date(DEMO_TYPE, monday))

    await api.cancel_booking(booking["id"], reason="demo finished")
    print("Open slots after cancelling:", await api.get_slots_for_date(DEMO_TYPE, monday))
    print("Events:", [event.event_type.value for event in notifier.events])
    engine.dispose()


def _run_demo() -> None:
    """Run the walkthrough against a throwaway in-memory database."""
    asyncio.run(_demo())


if __name__ == "__main__":
    command = sys.argv[1] if len(sys.argv) > 1 else ""
    if command == "init-db":
        _run_init_db()
    elif command == "demo":
        _run_demo()
    else:
        print(__doc__)
        sys.exit(1)
