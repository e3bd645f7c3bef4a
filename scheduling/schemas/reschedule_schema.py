"""Reschedule request records."""

from datetime import date, datetime
from enum import Enum
from typing import Optional

from pydantic import Field, field_validator

from scheduling.schemas.availability_schema import SlotWindow
from scheduling.schemas.base_schema import RecordModel
from scheduling.schemas.booking_schema import check_unique_slot_keys, parse_boundary_date


class RescheduleStatus(str, Enum):
    PENDING = "pending"
    APPROVED = "approved"
    REJECTED = "rejected"


class ReviewDecision(str, Enum):
    """Outcome a reviewer may choose for a pending request."""

    APPROVED = "approved"
    REJECTED = "rejected"


class RequesterRole(str, Enum):
    USER = "user"
    ADMIN = "admin"


class RescheduleRequestCreate(RecordModel):
    booking_id: str = Field(min_length=1)
    requested_date: date
    requested_slots: list[SlotWindow] = Field(min_length=1)
    requested_by: str = Field(min_length=1)
    requester_role: RequesterRole = RequesterRole.USER

    @field_validator("requested_date", mode="before")
    @classmethod
    def parse_requested_date(cls, value):
        return parse_boundary_date(value)

    @field_validator("requested_slots")
    @classmethod
    def unique_slots(cls, value: list[SlotWindow]) -> list[SlotWindow]:
        return check_unique_slot_keys(value)


class RescheduleReview(RecordModel):
    decision: ReviewDecision
    reviewed_by: str = Field(min_length=1)
    admin_notes: Optional[str] = None


class RescheduleRequest(RecordModel):
    """Persisted reschedule request; immutable once resolved."""

    id: str
    booking: str
    requested_date: date
    requested_slots: list[SlotWindow]
    status: RescheduleStatus = RescheduleStatus.PENDING
    requested_by: str
    requester_role: RequesterRole = RequesterRole.USER
    reviewed_by: Optional[str] = None
    reviewed_at: Optional[datetime] = None
    admin_notes: Optional[str] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None
