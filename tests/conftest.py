"""Shared test fixtures and helpers."""

from datetime import date, datetime, timedelta, timezone
from typing import Optional

import pytest
from sqlalchemy.pool import StaticPool

from scheduling.lifecycle.state_machine import BookingStateMachine
from scheduling.notifications import InMemoryNotifier
from scheduling.services.booking_ledger import BookingLedger
from scheduling.services.reschedule_workflow import RescheduleWorkflow
from scheduling.services.schedule_store import ScheduleStore
from scheduling.services.slot_resolver import SlotResolver
from scheduling.storage.database import create_db_engine, create_session_factory, init_db

# 2024-03-18 and 2024-03-25 are Mondays, 2024-03-19 a Tuesday.
MONDAY = "2024-03-18"
NEXT_MONDAY = "2024-03-25"
TUESDAY = "2024-03-19"

# Workflow clock: one week before MONDAY, so the reschedule notice window is open.
CLOCK_NOW = datetime(2024, 3, 11, 9, 0, tzinfo=timezone.utc)

VIDEO = "video_consultancy"
ONSITE = "onsite_appointment"


@pytest.fixture
def state_machine():
    return BookingStateMachine()


@pytest.fixture
def engine():
    engine = create_db_engine("sqlite://", poolclass=StaticPool)
    init_db(engine)
    yield engine
    engine.dispose()


@pytest.fixture
def session_factory(engine):
    return create_session_factory(engine)


@pytest.fixture
def notifier():
    return InMemoryNotifier()


@pytest.fixture
def store(session_factory):
    return ScheduleStore(session_factory)


@pytest.fixture
def resolver(session_factory):
    return SlotResolver(session_factory)


@pytest.fixture
def ledger(session_factory, resolver, notifier):
    return BookingLedger(session_factory, resolver, notifier)


@pytest.fixture
def workflow(session_factory, resolver, notifier):
    return RescheduleWorkflow(session_factory, resolver, notifier, clock=lambda: CLOCK_NOW)


def make_slot(start: str, end: str, is_enabled: Optional[bool] = None) -> dict:
    """Helper to create a slot dict in boundary (camelCase) form."""
    slot = {"startTime": start, "endTime": end}
    if is_enabled is not None:
        slot["isEnabled"] = is_enabled
    return slot


def make_week(
    monday_slots: Optional[list[dict]] = None,
    monday_enabled: bool = True,
    extra_days: Optional[list[dict]] = None,
) -> list[dict]:
    """Weekly schedule with Monday 09:00-10:00 and 10:00-11:00 by default."""
    if monday_slots is None:
        monday_slots = [make_slot("09:00", "10:00"), make_slot("10:00", "11:00")]
    week = [{"day": "monday", "isEnabled": monday_enabled, "slots": monday_slots}]
    return week + (extra_days or [])


def make_booking(
    slot_type: str = VIDEO,
    on_date: str = MONDAY,
    slots: Optional[list[dict]] = None,
    user: str = "user-1",
    **extra,
) -> dict:
    """Helper to create a booking request dict with sensible defaults."""
    return {
        "type": slot_type,
        "date": on_date,
        "slots": slots or [make_slot("09:00", "10:00")],
        "user": user,
        **extra,
    }


@pytest.fixture
def monday_schedule(store):
    """Video consultancy schedule: Monday 09:00-10:00 and 10:00-11:00."""
    return store.upsert(VIDEO, make_week())


def slot_keys(slots) -> list[tuple[str, str]]:
    return [(slot.start_time, slot.end_time) for slot in slots]


def upcoming_monday(weeks_ahead: int = 2) -> str:
    """A Monday at least ``weeks_ahead`` weeks after today, for wall-clock tests."""
    today = date.today()
    days = (7 - today.weekday()) % 7 or 7
    return (today + timedelta(days=days + 7 * weeks_ahead)).isoformat()
