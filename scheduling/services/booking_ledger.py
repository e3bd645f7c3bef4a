"""
Booking ledger.

Owns Booking records and the booking status machine. Every write that
claims slot keys re-checks availability inside its own transaction, and
the slot_reservations unique constraint settles any race that slips
between that check and the commit.
"""

from datetime import date, datetime, time, timezone
from typing import Any, Optional

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session, sessionmaker

from scheduling.errors import ConflictError, NotFoundError
from scheduling.lifecycle.state_machine import BookingStateMachine
from scheduling.logging_context import get_request_logger
from scheduling.notifications import BookingEvent, EventType, Notifier, dispatch
from scheduling.schemas.availability_schema import SlotType, SlotWindow
from scheduling.schemas.base_schema import parse_record
from scheduling.schemas.booking_schema import (
    RELEASED_STATUSES,
    Booking,
    BookingCreate,
    BookingStatus,
    PaymentStatus,
    parse_boundary_date,
)
from scheduling.services.slot_resolver import SlotResolver
from scheduling.storage.booking_repository import BookingRepository
from scheduling.storage.models import BookingRow
from scheduling.utils import coerce_enum, format_slot

logger = get_request_logger(__name__)


def ensure_slots_available(
    resolver: SlotResolver,
    db: Session,
    slot_type: SlotType,
    on_date: date,
    slots: list[SlotWindow],
    exclude_booking_id: Optional[str] = None,
) -> None:
    """Raise ConflictError naming the first requested slot that is not open."""
    open_keys = {
        slot.key for slot in resolver.open_slots(db, slot_type, on_date, exclude_booking_id)
    }
    for slot in slots:
        if slot.key not in open_keys:
            raise ConflictError(
                f"Time slot {format_slot(*slot.key)} is no longer available",
                {
                    "type": slot_type.value,
                    "date": on_date.isoformat(),
                    "slot": {"startTime": slot.start_time, "endTime": slot.end_time},
                },
            )


class BookingLedger:
    """Service layer for bookings"""

    def __init__(
        self,
        session_factory: sessionmaker,
        resolver: Optional[SlotResolver] = None,
        notifier: Optional[Notifier] = None,
    ) -> None:
        self._session_factory = session_factory
        self.resolver = resolver or SlotResolver(session_factory)
        self.notifier = notifier
        self.repo = BookingRepository()

    def create(self, booking: Any) -> Booking:
        """Reserve the requested slots and persist the booking."""
        data = parse_record(BookingCreate, booking)
        try:
            with self._session_factory.begin() as db:
                ensure_slots_available(self.resolver, db, data.type, data.date, data.slots)
                row = self.repo.create(db, data)
                record = self.repo.to_record(row)
        except IntegrityError:
            # Lost the race at the data layer; report the slot now taken.
            raise self._conflict_after_race(data.type, data.date, data.slots) from None

        logger.info(
            "Booking created: %s %s on %s [%s]",
            record.id, record.type.value, record.date.isoformat(),
            ", ".join(format_slot(*key) for key in record.slot_keys),
        )
        dispatch(self.notifier, BookingEvent(
            event_type=EventType.BOOKING_CREATED,
            booking_id=record.id,
            recipient=record.user,
            payload={"type": record.type.value, "date": record.date.isoformat()},
        ))
        return record

    def find_by_id(self, booking_id: str) -> Booking:
        with self._session_factory() as db:
            return self.repo.to_record(self._get_row(db, booking_id))

    def find_by_user(self, user: str) -> list[Booking]:
        with self._session_factory() as db:
            return [self.repo.to_record(row) for row in self.repo.find_by_user(db, user)]

    def find_bookings_by_date_range(self, slot_type: Any, start: Any, end: Any) -> list[Booking]:
        """Bookings still holding slots (not cancelled, not rejected) in [start, end]."""
        slot_type = coerce_enum(SlotType, slot_type, "type")
        start = parse_boundary_date(start)
        end = parse_boundary_date(end)
        with self._session_factory() as db:
            rows = self.repo.find_bookings_by_date_range(db, slot_type, start, end)
            return [self.repo.to_record(row) for row in rows]

    def update_status(
        self, booking_id: str, new_status: Any, reason: Optional[str] = None
    ) -> Booking:
        """Apply a status transition; cancelled/rejected release the slots."""
        new_status = coerce_enum(BookingStatus, new_status, "status")
        with self._session_factory.begin() as db:
            row = self._get_row(db, booking_id, for_update=True)
            machine = BookingStateMachine(BookingStatus(row.status))
            machine.transition(new_status)

            updates: dict[str, Any] = {"status": new_status.value}
            if new_status == BookingStatus.CANCELLED:
                updates["cancellation_reason"] = reason
            elif new_status == BookingStatus.REJECTED:
                updates["rejection_reason"] = reason
            if new_status in RELEASED_STATUSES:
                self.repo.release_slots(db, row)
            self.repo.update_fields(db, row, **updates)
            record = self.repo.to_record(row)

        logger.info("Booking %s -> %s", record.id, record.status.value)
        event_type = (
            EventType.BOOKING_CANCELLED
            if new_status == BookingStatus.CANCELLED
            else EventType.BOOKING_STATUS_CHANGED
        )
        dispatch(self.notifier, BookingEvent(
            event_type=event_type,
            booking_id=record.id,
            recipient=record.user,
            payload={"status": record.status.value, "reason": reason},
        ))
        return record

    def cancel(self, booking_id: str, reason: Optional[str] = None) -> Booking:
        """Cancel from any non-terminal status; the slots free immediately."""
        return self.update_status(booking_id, BookingStatus.CANCELLED, reason)

    def record_payment_status(self, booking_id: str, payment_status: Any) -> Booking:
        """Write path for the payment collaborator."""
        payment_status = coerce_enum(PaymentStatus, payment_status, "paymentStatus")
        with self._session_factory.begin() as db:
            row = self._get_row(db, booking_id, for_update=True)
            self.repo.update_fields(db, row, payment_status=payment_status.value)
            record = self.repo.to_record(row)
        logger.info("Booking %s payment status: %s", booking_id, payment_status.value)
        return record

    def complete_elapsed(self, now: Optional[datetime] = None) -> list[Booking]:
        """Mark confirmed/upcoming bookings whose last slot has ended as completed."""
        now = now or datetime.now(timezone.utc)
        completed: list[Booking] = []
        with self._session_factory.begin() as db:
            for row in self.repo.find_elapsed_candidates(db, now.date()):
                if not row.slots:
                    continue
                ends_at = datetime.combine(
                    row.date, time.fromisoformat(row.slots[-1]["endTime"]), tzinfo=now.tzinfo
                )
                if ends_at >= now:
                    continue
                machine = BookingStateMachine(BookingStatus(row.status))
                if machine.current_status == BookingStatus.CONFIRMED:
                    machine.transition(BookingStatus.UPCOMING)
                machine.transition(BookingStatus.COMPLETED)
                self.repo.update_fields(db, row, status=machine.current_status.value)
                completed.append(self.repo.to_record(row))

        for record in completed:
            logger.info("Booking %s marked completed", record.id)
            dispatch(self.notifier, BookingEvent(
                event_type=EventType.BOOKING_STATUS_CHANGED,
                booking_id=record.id,
                recipient=record.user,
                payload={"status": record.status.value},
            ))
        return completed

    # ------------------------------------------------------------------ #
    # Helpers
    # ------------------------------------------------------------------ #

    def _get_row(self, db: Session, booking_id: str, for_update: bool = False) -> BookingRow:
        row = self.repo.find_by_id(db, booking_id, for_update=for_update)
        if row is None:
            raise NotFoundError("Booking not found", {"id": booking_id})
        return row

    def _conflict_after_race(
        self, slot_type: SlotType, on_date: date, slots: list[SlotWindow]
    ) -> ConflictError:
        with self._session_factory() as db:
            try:
                ensure_slots_available(self.resolver, db, slot_type, on_date, slots)
            except ConflictError as exc:
                logger.warning("Slot reservation conflict: %s", exc.message)
                return exc
        first = slots[0]
        logger.warning("Slot reservation conflict on %s %s", slot_type.value, on_date.isoformat())
        return ConflictError(
            f"Time slot {format_slot(*first.key)} is no longer available",
            {
                "type": slot_type.value,
                "date": on_date.isoformat(),
                "slot": {"startTime": first.start_time, "endTime": first.end_time},
            },
        )
