import uuid

from sqlalchemy import (
    JSON,
    Boolean,
    Column,
    Date,
    DateTime,
    Float,
    ForeignKey,
    Index,
    Integer,
    String,
    Text,
    UniqueConstraint,
)
from sqlalchemy.orm import relationship

from scheduling.storage.database import Base
from scheduling.utils import utc_now


def generate_id() -> str:
    return uuid.uuid4().hex


class AvailabilityScheduleRow(Base):
    __tablename__ = "availability_schedules"

    id = Column(String(32), primary_key=True, default=generate_id)
    type = Column(String(50), unique=True, nullable=False)
    # Whole weekly template as one document; replaced atomically on upsert.
    weekly_schedule = Column(JSON, nullable=False, default=list)
    is_active = Column(Boolean, nullable=False, default=True, index=True)
    created_at = Column(DateTime(timezone=True), nullable=False, default=utc_now)
    updated_at = Column(DateTime(timezone=True), nullable=False, default=utc_now, onupdate=utc_now)
    # Optimistic lock: every UPDATE/DELETE matches on the version it read.
    version = Column(Integer, nullable=False)

    __mapper_args__ = {"version_id_col": version}


class BookingRow(Base):
    __tablename__ = "bookings"

    id = Column(String(32), primary_key=True, default=generate_id)
    type = Column(String(50), nullable=False)
    date = Column(Date, nullable=False)
    slots = Column(JSON, nullable=False)  # [{"startTime": "09:00", "endTime": "10:00"}, ...]
    status = Column(String(20), nullable=False, default="pending", index=True)
    payment_status = Column(String(20), nullable=False, default="pending")
    user_ref = Column(String(255), nullable=False, index=True)
    amount = Column(Float, nullable=False, default=0)
    details = Column(JSON, nullable=True)
    address = Column(Text, nullable=True)
    cancellation_reason = Column(Text, nullable=True)
    rejection_reason = Column(Text, nullable=True)
    is_rescheduled = Column(Boolean, nullable=False, default=False)
    created_at = Column(DateTime(timezone=True), nullable=False, default=utc_now)
    updated_at = Column(DateTime(timezone=True), nullable=False, default=utc_now, onupdate=utc_now)

    reservations = relationship(
        "SlotReservationRow",
        back_populates="booking",
        cascade="all, delete-orphan",
    )

    __table_args__ = (Index("ix_bookings_type_date", "type", "date"),)


class SlotReservationRow(Base):
    """One row per slot key held by a non-cancelled, non-rejected booking.

    The unique constraint is what serializes concurrent reservations of the
    same (type, date, slot key): the second writer fails at flush/commit.
    """

    __tablename__ = "slot_reservations"

    id = Column(Integer, primary_key=True, autoincrement=True)
    booking_id = Column(
        String(32), ForeignKey("bookings.id", ondelete="CASCADE"), nullable=False, index=True
    )
    type = Column(String(50), nullable=False)
    date = Column(Date, nullable=False)
    start_time = Column(String(5), nullable=False)
    end_time = Column(String(5), nullable=False)

    booking = relationship("BookingRow", back_populates="reservations")

    __table_args__ = (
        UniqueConstraint("type", "date", "start_time", "end_time", name="uq_slot_reservation"),
    )


class RescheduleRequestRow(Base):
    __tablename__ = "reschedule_requests"

    id = Column(String(32), primary_key=True, default=generate_id)
    booking_id = Column(
        String(32), ForeignKey("bookings.id", ondelete="CASCADE"), nullable=False, index=True
    )
    requested_date = Column(Date, nullable=False)
    requested_slots = Column(JSON, nullable=False)
    status = Column(String(20), nullable=False, default="pending", index=True)
    requested_by = Column(String(255), nullable=False)
    requester_role = Column(String(20), nullable=False, default="user")
    reviewed_by = Column(String(255), nullable=True)
    reviewed_at = Column(DateTime(timezone=True), nullable=True)
    admin_notes = Column(Text, nullable=True)
    # Equals booking_id while pending, NULL once resolved: at most one open request per booking.
    open_booking_id = Column(String(32), unique=True, nullable=True)
    created_at = Column(DateTime(timezone=True), nullable=False, default=utc_now, index=True)
    updated_at = Column(DateTime(timezone=True), nullable=False, default=utc_now, onupdate=utc_now)
