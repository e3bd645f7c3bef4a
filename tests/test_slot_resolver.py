"""Tests for open-slot resolution."""

from datetime import date, timedelta

import pytest

from scheduling.config import settings
from scheduling.errors import NotFoundError, ValidationError
from scheduling.schemas.availability_schema import DayOfWeek
from scheduling.services.slot_resolver import open_slots_for_day
from tests.conftest import (
    MONDAY,
    NEXT_MONDAY,
    ONSITE,
    TUESDAY,
    VIDEO,
    make_booking,
    make_slot,
    make_week,
    slot_keys,
)


class TestSlotsForDate:
    def test_monday_scenario(self, resolver, ledger, monday_schedule):
        slots = resolver.get_available_slots_for_date(VIDEO, MONDAY)
        assert slot_keys(slots) == [("09:00", "10:00"), ("10:00", "11:00")]

        booking = ledger.create(make_booking())
        assert slot_keys(resolver.get_available_slots_for_date(VIDEO, MONDAY)) == [("10:00", "11:00")]

        ledger.cancel(booking.id)
        assert slot_keys(resolver.get_available_slots_for_date(VIDEO, MONDAY)) == [
            ("09:00", "10:00"), ("10:00", "11:00"),
        ]

    def test_malformed_date(self, resolver, monday_schedule):
        with pytest.raises(ValidationError):
            resolver.get_available_slots_for_date(VIDEO, "2024-13-40")

    def test_day_without_entry(self, resolver, monday_schedule):
        assert resolver.get_available_slots_for_date(VIDEO, TUESDAY) == []

    def test_no_schedule(self, resolver):
        assert resolver.get_available_slots_for_date(VIDEO, MONDAY) == []

    def test_inactive_schedule(self, store, resolver):
        store.upsert(VIDEO, make_week(), is_active=False)
        assert resolver.get_available_slots_for_date(VIDEO, MONDAY) == []

    def test_disabled_day(self, store, resolver):
        store.upsert(VIDEO, make_week(monday_enabled=False))
        assert resolver.get_available_slots_for_date(VIDEO, MONDAY) == []

    def test_day_with_zero_slots(self, store, resolver):
        store.upsert(VIDEO, make_week(monday_slots=[]))
        assert resolver.get_available_slots_for_date(VIDEO, MONDAY) == []

    def test_all_slots_disabled(self, store, resolver):
        store.upsert(VIDEO, make_week(monday_slots=[
            make_slot("09:00", "10:00", is_enabled=False),
            make_slot("10:00", "11:00", is_enabled=False),
        ]))
        assert resolver.get_available_slots_for_date(VIDEO, MONDAY) == []

    def test_disabled_slot_skipped_in_order(self, store, resolver):
        store.upsert(VIDEO, make_week(monday_slots=[
            make_slot("13:00", "14:00"),
            make_slot("09:00", "10:00", is_enabled=False),
            make_slot("10:00", "11:00"),
        ]))
        assert slot_keys(resolver.get_available_slots_for_date(VIDEO, MONDAY)) == [
            ("13:00", "14:00"), ("10:00", "11:00"),
        ]

    def test_bookings_of_other_type_do_not_count(self, store, resolver, ledger, monday_schedule):
        store.upsert(ONSITE, make_week())
        ledger.create(make_booking(slot_type=ONSITE))
        assert len(resolver.get_available_slots_for_date(VIDEO, MONDAY)) == 2

    def test_bookings_on_other_dates_do_not_count(self, resolver, ledger, monday_schedule):
        ledger.create(make_booking(on_date=NEXT_MONDAY))
        assert len(resolver.get_available_slots_for_date(VIDEO, MONDAY)) == 2
        assert len(resolver.get_available_slots_for_date(VIDEO, NEXT_MONDAY)) == 1

    def test_rejected_booking_frees_slot(self, resolver, ledger, monday_schedule):
        booking = ledger.create(make_booking())
        ledger.update_status(booking.id, "rejected", reason="double booked")
        assert len(resolver.get_available_slots_for_date(VIDEO, MONDAY)) == 2

    def test_completed_booking_keeps_slot(self, resolver, ledger, monday_schedule):
        booking = ledger.create(make_booking(status="upcoming"))
        ledger.update_status(booking.id, "completed")
        assert slot_keys(resolver.get_available_slots_for_date(VIDEO, MONDAY)) == [("10:00", "11:00")]

    def test_schedule_edit_is_seen_immediately(self, store, resolver, monday_schedule):
        store.add_time_slot(VIDEO, "monday", make_slot("11:00", "12:00"))
        assert len(resolver.get_available_slots_for_date(VIDEO, MONDAY)) == 3
        store.toggle_day(VIDEO, "monday", False)
        assert resolver.get_available_slots_for_date(VIDEO, MONDAY) == []


class TestOpenSlotsForDay:
    def test_no_schedule(self):
        assert open_slots_for_day(None, date(2024, 3, 18), set()) == []

    def test_filters_booked_keys(self, monday_schedule):
        slots = open_slots_for_day(monday_schedule, date(2024, 3, 18), {("09:00", "10:00")})
        assert slot_keys(slots) == [("10:00", "11:00")]


class TestSlotsForRange:
    def test_inclusive_range(self, resolver, ledger, monday_schedule):
        ledger.create(make_booking())
        view = resolver.get_available_slots(VIDEO, MONDAY, NEXT_MONDAY)
        assert len(view.days) == 8
        assert view.days[0].day == DayOfWeek.MONDAY
        assert slot_keys(view.days[0].slots) == [("10:00", "11:00")]
        assert view.days[1].slots == []
        assert len(view.days[-1].slots) == 2
        assert view.id == monday_schedule.id

    def test_single_day_range(self, resolver, monday_schedule):
        view = resolver.get_available_slots(VIDEO, MONDAY, MONDAY)
        assert [d.date for d in view.days] == [date(2024, 3, 18)]

    def test_defaults_from_today(self, resolver, monday_schedule):
        view = resolver.get_available_slots(VIDEO)
        assert view.start_date == date.today()
        assert len(view.days) == settings.scheduling.default_range_days

    def test_start_only_uses_default_span(self, resolver, monday_schedule):
        view = resolver.get_available_slots(VIDEO, start_date=MONDAY)
        span = settings.scheduling.default_range_days - 1
        assert view.end_date == date(2024, 3, 18) + timedelta(days=span)

    def test_end_only_uses_default_span(self, resolver, monday_schedule):
        view = resolver.get_available_slots(VIDEO, end_date=NEXT_MONDAY)
        span = settings.scheduling.default_range_days - 1
        assert view.start_date == date(2024, 3, 25) - timedelta(days=span)

    def test_end_before_start(self, resolver, monday_schedule):
        with pytest.raises(ValidationError):
            resolver.get_available_slots(VIDEO, NEXT_MONDAY, MONDAY)

    def test_range_too_long(self, resolver, monday_schedule):
        end = date(2024, 3, 18) + timedelta(days=settings.scheduling.max_range_days)
        with pytest.raises(ValidationError, match="exceeds"):
            resolver.get_available_slots(VIDEO, MONDAY, end.isoformat())

    def test_no_active_schedule(self, store, resolver):
        store.upsert(VIDEO, make_week(), is_active=False)
        with pytest.raises(NotFoundError):
            resolver.get_available_slots(VIDEO, MONDAY, NEXT_MONDAY)

    def test_payload_uses_iso_dates(self, resolver, monday_schedule):
        payload = resolver.get_available_slots(VIDEO, MONDAY, MONDAY).to_payload()
        assert payload["startDate"] == "2024-03-18"
        assert payload["days"][0]["date"] == "2024-03-18"
        assert payload["days"][0]["slots"][0] == {
            "startTime": "09:00", "endTime": "10:00", "isEnabled": True,
        }
