"""Availability template records: weekly schedule, days and time slots."""

from datetime import date, datetime
from enum import Enum
from typing import Optional

from pydantic import Field, model_validator

from scheduling.schemas.base_schema import HHMM_PATTERN, CalendarDate, RecordModel


class SlotType(str, Enum):
    """Service type discriminating availability template and booking pool."""

    VIDEO_CONSULTANCY = "video_consultancy"
    ONSITE_APPOINTMENT = "onsite_appointment"


class DayOfWeek(str, Enum):
    SUNDAY = "sunday"
    MONDAY = "monday"
    TUESDAY = "tuesday"
    WEDNESDAY = "wednesday"
    THURSDAY = "thursday"
    FRIDAY = "friday"
    SATURDAY = "saturday"


class SlotWindow(RecordModel):
    """A ``{startTime, endTime}`` pair reserved by a booking or request."""

    start_time: str = Field(pattern=HHMM_PATTERN)
    end_time: str = Field(pattern=HHMM_PATTERN)

    @model_validator(mode="after")
    def check_order(self) -> "SlotWindow":
        # Zero-padded HH:mm compares correctly as strings.
        if self.start_time >= self.end_time:
            raise ValueError("Start time must be before end time")
        return self

    @property
    def key(self) -> tuple[str, str]:
        return (self.start_time, self.end_time)


class TimeSlot(SlotWindow):
    """A slot inside a day's template; disabled slots are never offered."""

    is_enabled: bool = True


class DayAvailability(RecordModel):
    day: DayOfWeek
    is_enabled: bool = True
    slots: list[TimeSlot] = Field(default_factory=list)


class AvailabilitySchedule(RecordModel):
    """Weekly availability template, one per service type."""

    id: str
    type: SlotType
    weekly_schedule: list[DayAvailability] = Field(default_factory=list)
    is_active: bool = True
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    def get_day(self, day: DayOfWeek) -> Optional[DayAvailability]:
        for entry in self.weekly_schedule:
            if entry.day == day:
                return entry
        return None


class ScheduleUpsert(RecordModel):
    """Input for a full-replace upsert of a type's weekly schedule."""

    type: SlotType
    weekly_schedule: list[DayAvailability] = Field(max_length=7)
    is_active: bool = True


class DateSlots(RecordModel):
    """Open slots on one concrete calendar date."""

    date: CalendarDate
    day: DayOfWeek
    slots: list[TimeSlot] = Field(default_factory=list)


class AvailabilityRangeView(RecordModel):
    """Schedule view with open slots resolved for every date in a range."""

    id: str
    type: SlotType
    is_active: bool
    start_date: date
    end_date: date
    weekly_schedule: list[DayAvailability]
    days: list[DateSlots] = Field(default_factory=list)
