"""Booking repository - database operations for bookings and slot reservations"""

from datetime import date
from typing import Optional

from sqlalchemy import select
from sqlalchemy.orm import Session

from scheduling.schemas.availability_schema import SlotType, SlotWindow
from scheduling.schemas.booking_schema import (
    RELEASED_STATUSES,
    Booking,
    BookingCreate,
    BookingStatus,
)
from scheduling.storage.models import BookingRow, SlotReservationRow
from scheduling.utils import ensure_utc

_RELEASED_VALUES = [status.value for status in RELEASED_STATUSES]


class BookingRepository:
    """Repository for booking database operations"""

    @staticmethod
    def create(db: Session, data: BookingCreate) -> BookingRow:
        """Insert a booking and reserve its slot keys in the same flush."""
        row = BookingRow(
            type=data.type.value,
            date=data.date,
            slots=[slot.to_payload() for slot in data.slots],
            status=data.status.value,
            payment_status=data.payment_status.value,
            user_ref=data.user,
            amount=data.amount,
            details=data.details.to_payload() if data.details else None,
            address=data.address,
        )
        db.add(row)
        BookingRepository.reserve_slots(db, row)
        return row

    @staticmethod
    def find_by_id(db: Session, booking_id: str, for_update: bool = False) -> Optional[BookingRow]:
        stmt = select(BookingRow).where(BookingRow.id == booking_id)
        if for_update:
            stmt = stmt.with_for_update()
        return db.scalars(stmt).first()

    @staticmethod
    def find_by_user(db: Session, user: str) -> list[BookingRow]:
        stmt = (
            select(BookingRow)
            .where(BookingRow.user_ref == user)
            .order_by(BookingRow.created_at.desc())
        )
        return list(db.scalars(stmt))

    @staticmethod
    def find_bookings_by_date_range(
        db: Session,
        slot_type: SlotType,
        start: date,
        end: date,
        exclude_booking_id: Optional[str] = None,
    ) -> list[BookingRow]:
        """Bookings of ``slot_type`` dated within [start, end] that still hold slots."""
        stmt = select(BookingRow).where(
            BookingRow.type == slot_type.value,
            BookingRow.date >= start,
            BookingRow.date <= end,
            BookingRow.status.not_in(_RELEASED_VALUES),
        )
        if exclude_booking_id is not None:
            stmt = stmt.where(BookingRow.id != exclude_booking_id)
        return list(db.scalars(stmt.order_by(BookingRow.date, BookingRow.created_at)))

    @staticmethod
    def find_elapsed_candidates(db: Session, on_or_before: date) -> list[BookingRow]:
        stmt = select(BookingRow).where(
            BookingRow.date <= on_or_before,
            BookingRow.status.in_([BookingStatus.CONFIRMED.value, BookingStatus.UPCOMING.value]),
        )
        return list(db.scalars(stmt))

    @staticmethod
    def reserve_slots(db: Session, row: BookingRow) -> None:
        """Claim one reservation row per slot key.

        Raises ``sqlalchemy.exc.IntegrityError`` if any key is already held.
        """
        for slot in row.slots:
            row.reservations.append(
                SlotReservationRow(
                    type=row.type,
                    date=row.date,
                    start_time=slot["startTime"],
                    end_time=slot["endTime"],
                )
            )
        db.flush()

    @staticmethod
    def release_slots(db: Session, row: BookingRow) -> None:
        # Flushed on its own: the unit of work would otherwise emit inserts
        # for new reservations before these deletes.
        row.reservations.clear()
        db.flush()

    @staticmethod
    def replace_slots(
        db: Session, row: BookingRow, new_date: date, new_slots: list[SlotWindow]
    ) -> None:
        BookingRepository.release_slots(db, row)
        row.date = new_date
        row.slots = [slot.to_payload() for slot in new_slots]
        BookingRepository.reserve_slots(db, row)

    @staticmethod
    def update_fields(db: Session, row: BookingRow, **updates) -> BookingRow:
        for key, value in updates.items():
            setattr(row, key, value)
        db.flush()
        return row

    @staticmethod
    def to_record(row: BookingRow) -> Booking:
        return Booking.model_validate(
            {
                "id": row.id,
                "type": row.type,
                "date": row.date,
                "slots": row.slots,
                "status": row.status,
                "paymentStatus": row.payment_status,
                "user": row.user_ref,
                "amount": row.amount,
                "details": row.details,
                "address": row.address,
                "cancellationReason": row.cancellation_reason,
                "rejectionReason": row.rejection_reason,
                "isRescheduled": row.is_rescheduled,
                "createdAt": ensure_utc(row.created_at),
                "updatedAt": ensure_utc(row.updated_at),
            }
        )
