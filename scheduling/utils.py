"""Shared calendar and time helpers used across the scheduling core."""

import re
from datetime import date, datetime, timezone
from enum import Enum
from typing import Optional, TypeVar

from scheduling.errors import ValidationError
from scheduling.schemas.availability_schema import DayOfWeek

EnumT = TypeVar("EnumT", bound=Enum)

_DATE_PATTERN = re.compile(r"^(\d{4})-(\d{2})-(\d{2})$")

# Sunday=0 ... Saturday=6
DAY_OF_WEEK_TABLE: tuple[DayOfWeek, ...] = (
    DayOfWeek.SUNDAY,
    DayOfWeek.MONDAY,
    DayOfWeek.TUESDAY,
    DayOfWeek.WEDNESDAY,
    DayOfWeek.THURSDAY,
    DayOfWeek.FRIDAY,
    DayOfWeek.SATURDAY,
)


def parse_calendar_date(value: str) -> date:
    """Parse a literal ``YYYY-MM-DD`` string into a calendar date.

    No timezone is involved: the result is exactly the date written.

    Examples:
        >>> parse_calendar_date("2024-03-18")
        datetime.date(2024, 3, 18)
    """
    if not isinstance(value, str) or not value.strip():
        raise ValidationError("Date is required", {"date": value})
    match = _DATE_PATTERN.match(value.strip())
    if not match:
        raise ValidationError(
            f"Invalid date format {value!r}. Expected YYYY-MM-DD", {"date": value}
        )
    year, month, day = (int(part) for part in match.groups())
    try:
        return date(year, month, day)
    except ValueError:
        raise ValidationError(f"Invalid date {value!r}", {"date": value}) from None


def day_of_week(value: date) -> DayOfWeek:
    """Map a calendar date to its DayOfWeek via the Sunday-first table."""
    return DAY_OF_WEEK_TABLE[value.isoweekday() % 7]


def format_slot(start_time: str, end_time: str) -> str:
    """Render a slot key for messages, e.g. ``09:00-10:00``."""
    return f"{start_time}-{end_time}"


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def ensure_utc(value: Optional[datetime]) -> Optional[datetime]:
    """Attach UTC to naive timestamps read back from the database."""
    if value is not None and value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


def coerce_enum(enum_cls: type[EnumT], value, field_name: str) -> EnumT:
    """Accept an enum member or its raw value; reject anything else."""
    try:
        return enum_cls(value)
    except ValueError:
        valid = [member.value for member in enum_cls]
        raise ValidationError(
            f"Invalid {field_name} {value!r}. Valid: {valid}", {field_name: value}
        ) from None
