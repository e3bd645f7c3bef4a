"""Tests for shared calendar and time helpers."""

from datetime import date, datetime, timezone

import pytest

from scheduling.errors import ValidationError
from scheduling.schemas.availability_schema import DayOfWeek, SlotType
from scheduling.utils import (
    coerce_enum,
    day_of_week,
    ensure_utc,
    format_slot,
    parse_calendar_date,
)


class TestParseCalendarDate:
    def test_parses_literal_date(self):
        assert parse_calendar_date("2024-03-18") == date(2024, 3, 18)

    def test_strips_whitespace(self):
        assert parse_calendar_date(" 2024-03-18 ") == date(2024, 3, 18)

    def test_leap_day(self):
        assert parse_calendar_date("2024-02-29") == date(2024, 2, 29)

    @pytest.mark.parametrize("value", [
        "2024-13-40", "2023-02-29", "2024-00-10", "2024-04-31",
    ])
    def test_impossible_dates(self, value):
        with pytest.raises(ValidationError):
            parse_calendar_date(value)

    @pytest.mark.parametrize("value", [
        "18/03/2024", "2024-3-18", "2024-03-18T00:00:00Z", "tomorrow", "",
    ])
    def test_malformed_strings(self, value):
        with pytest.raises(ValidationError):
            parse_calendar_date(value)

    def test_non_string_rejected(self):
        with pytest.raises(ValidationError):
            parse_calendar_date(None)

    def test_error_details_carry_input(self):
        with pytest.raises(ValidationError) as exc_info:
            parse_calendar_date("2024-13-40")
        assert exc_info.value.details == {"date": "2024-13-40"}
        assert exc_info.value.error_code == "VALIDATION_ERROR"


class TestDayOfWeek:
    @pytest.mark.parametrize("value,expected", [
        ("2024-03-17", DayOfWeek.SUNDAY),
        ("2024-03-18", DayOfWeek.MONDAY),
        ("2024-03-19", DayOfWeek.TUESDAY),
        ("2024-03-20", DayOfWeek.WEDNESDAY),
        ("2024-03-21", DayOfWeek.THURSDAY),
        ("2024-03-22", DayOfWeek.FRIDAY),
        ("2024-03-23", DayOfWeek.SATURDAY),
    ])
    def test_week_of_2024_03_17(self, value, expected):
        assert day_of_week(parse_calendar_date(value)) == expected

    def test_year_boundary(self):
        # 2025-01-01 was a Wednesday
        assert day_of_week(date(2025, 1, 1)) == DayOfWeek.WEDNESDAY


class TestHelpers:
    def test_format_slot(self):
        assert format_slot("09:00", "10:00") == "09:00-10:00"

    def test_ensure_utc_attaches_timezone(self):
        naive = datetime(2024, 3, 18, 9, 0)
        assert ensure_utc(naive).tzinfo == timezone.utc

    def test_ensure_utc_keeps_aware_and_none(self):
        aware = datetime(2024, 3, 18, 9, 0, tzinfo=timezone.utc)
        assert ensure_utc(aware) is aware
        assert ensure_utc(None) is None

    def test_coerce_enum_accepts_value_and_member(self):
        assert coerce_enum(SlotType, "video_consultancy", "type") == SlotType.VIDEO_CONSULTANCY
        assert coerce_enum(SlotType, SlotType.ONSITE_APPOINTMENT, "type") == SlotType.ONSITE_APPOINTMENT

    def test_coerce_enum_lists_valid_values(self):
        with pytest.raises(ValidationError, match="video_consultancy"):
            coerce_enum(SlotType, "phone_call", "type")
