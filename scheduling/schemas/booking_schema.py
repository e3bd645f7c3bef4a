"""Booking records and status enums."""

from datetime import date, datetime
from enum import Enum
from typing import Optional, Union

from pydantic import Field, field_validator, model_validator

from scheduling.schemas.availability_schema import SlotType, SlotWindow
from scheduling.schemas.base_schema import CalendarDate, RecordModel
from scheduling.utils import parse_calendar_date


class BookingStatus(str, Enum):
    """Lifecycle status of a booking."""

    PENDING = "pending"
    CONFIRMED = "confirmed"
    UPCOMING = "upcoming"
    COMPLETED = "completed"
    CANCELLED = "cancelled"
    REJECTED = "rejected"


TERMINAL_STATUSES: frozenset[BookingStatus] = frozenset(
    {BookingStatus.COMPLETED, BookingStatus.CANCELLED, BookingStatus.REJECTED}
)

# Statuses that no longer hold their slot keys.
RELEASED_STATUSES: frozenset[BookingStatus] = frozenset(
    {BookingStatus.CANCELLED, BookingStatus.REJECTED}
)


class PaymentStatus(str, Enum):
    """Set by the payment collaborator; never inspected by scheduling logic."""

    PENDING = "pending"
    PAID = "paid"
    FAILED = "failed"
    REFUNDED = "refunded"


class BookingDetails(RecordModel):
    subject: Optional[str] = None
    description: Optional[str] = None


def parse_boundary_date(value: Union[str, date]) -> date:
    if isinstance(value, str):
        return parse_calendar_date(value)
    return value


def check_unique_slot_keys(slots: list[SlotWindow]) -> list[SlotWindow]:
    seen: set[tuple[str, str]] = set()
    for slot in slots:
        if slot.key in seen:
            raise ValueError(f"Duplicate slot {slot.start_time}-{slot.end_time}")
        seen.add(slot.key)
    return slots


class BookingCreate(RecordModel):
    """Validated booking request."""

    type: SlotType
    date: CalendarDate
    slots: list[SlotWindow] = Field(min_length=1)
    user: str = Field(min_length=1)
    status: BookingStatus = BookingStatus.PENDING
    payment_status: PaymentStatus = PaymentStatus.PENDING
    amount: float = Field(default=0, ge=0)
    details: Optional[BookingDetails] = None
    address: Optional[str] = None

    @field_validator("date", mode="before")
    @classmethod
    def parse_date(cls, value):
        return parse_boundary_date(value)

    @field_validator("slots")
    @classmethod
    def unique_slots(cls, value: list[SlotWindow]) -> list[SlotWindow]:
        return check_unique_slot_keys(value)

    @model_validator(mode="after")
    def non_terminal_start(self) -> "BookingCreate":
        if self.status in TERMINAL_STATUSES:
            raise ValueError(f"A booking cannot be created as '{self.status.value}'")
        return self


class Booking(RecordModel):
    """Persisted booking."""

    id: str
    type: SlotType
    date: CalendarDate
    slots: list[SlotWindow]
    status: BookingStatus
    payment_status: PaymentStatus = PaymentStatus.PENDING
    user: str
    amount: float = 0
    details: Optional[BookingDetails] = None
    address: Optional[str] = None
    cancellation_reason: Optional[str] = None
    rejection_reason: Optional[str] = None
    is_rescheduled: bool = False
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    @property
    def slot_keys(self) -> list[tuple[str, str]]:
        return [slot.key for slot in self.slots]

    @property
    def holds_slots(self) -> bool:
        return self.status not in RELEASED_STATUSES
