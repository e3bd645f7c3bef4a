"""
Reschedule request workflow.

A request is created pending and resolved exactly once. Only confirmed or
upcoming bookings can be moved, and only while their earliest slot is at
least ``reschedule_notice_hours`` away. Users' requests are reviewed by an
admin; requests an admin opens are answered by the booking's user.
Approval moves the booking to the requested date/slots under the same
availability rules as booking creation, with the booking's own current
slots counted as vacated.
"""

from datetime import datetime, time, timezone
from typing import Any, Callable, Optional

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session, sessionmaker

from scheduling.config import settings
from scheduling.errors import ConflictError, InvalidTransitionError, NotFoundError, ValidationError
from scheduling.logging_context import get_request_logger
from scheduling.notifications import BookingEvent, EventType, Notifier, dispatch
from scheduling.schemas.availability_schema import SlotType
from scheduling.schemas.base_schema import parse_record
from scheduling.schemas.booking_schema import TERMINAL_STATUSES, BookingStatus
from scheduling.schemas.reschedule_schema import (
    RequesterRole,
    RescheduleRequest,
    RescheduleRequestCreate,
    RescheduleReview,
    RescheduleStatus,
    ReviewDecision,
)
from scheduling.services.booking_ledger import ensure_slots_available
from scheduling.services.slot_resolver import SlotResolver
from scheduling.storage.booking_repository import BookingRepository
from scheduling.storage.models import BookingRow, RescheduleRequestRow
from scheduling.storage.reschedule_repository import RescheduleRequestRepository
from scheduling.utils import coerce_enum, format_slot, utc_now

logger = get_request_logger(__name__)

RESCHEDULABLE_STATUSES: frozenset[BookingStatus] = frozenset(
    {BookingStatus.CONFIRMED, BookingStatus.UPCOMING}
)

# Who may resolve a request, keyed by who opened it.
_ANSWERED_BY = {
    RequesterRole.USER: "an admin",
    RequesterRole.ADMIN: "the booking's user",
}


class RescheduleWorkflow:
    """Service layer for reschedule requests"""

    def __init__(
        self,
        session_factory: sessionmaker,
        resolver: Optional[SlotResolver] = None,
        notifier: Optional[Notifier] = None,
        clock: Callable[[], datetime] = utc_now,
    ) -> None:
        self._session_factory = session_factory
        self.resolver = resolver or SlotResolver(session_factory)
        self.notifier = notifier
        self.clock = clock
        self.repo = RescheduleRequestRepository()
        self.booking_repo = BookingRepository()

    def create(
        self,
        booking_id: str,
        requested_date: Any,
        requested_slots: list[Any],
        requested_by: str,
        requester_role: Any = "user",
    ) -> RescheduleRequest:
        """Open a pending request for ``booking_id``.

        Raises:
            NotFoundError: booking absent.
            InvalidTransitionError: booking is not confirmed or upcoming.
            ValidationError: the booking starts within the notice window or has passed.
            ConflictError: a pending request exists, or a requested slot is taken.
        """
        data = parse_record(
            RescheduleRequestCreate,
            {
                "bookingId": booking_id,
                "requestedDate": requested_date,
                "requestedSlots": requested_slots,
                "requestedBy": requested_by,
                "requesterRole": requester_role,
            },
        )
        try:
            with self._session_factory.begin() as db:
                booking = self._get_booking(db, data.booking_id)
                status = BookingStatus(booking.status)
                if status not in RESCHEDULABLE_STATUSES:
                    raise InvalidTransitionError(
                        f"Cannot reschedule booking with status: {status.value}. "
                        "Only confirmed or upcoming bookings can be rescheduled.",
                        {"bookingId": booking.id, "current": status.value},
                    )
                self._check_notice(booking)
                if self.repo.find_pending_by_booking(db, booking.id) is not None:
                    raise self._open_request_conflict(booking.id)
                ensure_slots_available(
                    self.resolver, db, SlotType(booking.type),
                    data.requested_date, data.requested_slots,
                    exclude_booking_id=booking.id,
                )
                row = self.repo.create(db, data)
                record = self.repo.to_record(row)
                recipient = booking.user_ref
        except IntegrityError:
            raise self._open_request_conflict(data.booking_id) from None

        logger.info(
            "Reschedule request %s opened by %s for booking %s -> %s [%s]",
            record.id, record.requester_role.value, record.booking,
            record.requested_date.isoformat(),
            ", ".join(format_slot(s.start_time, s.end_time) for s in record.requested_slots),
        )
        dispatch(self.notifier, BookingEvent(
            event_type=EventType.RESCHEDULE_REQUESTED,
            booking_id=record.booking,
            recipient=recipient,
            payload={"requestId": record.id, "requestedDate": record.requested_date.isoformat()},
        ))
        return record

    def review(
        self,
        request_id: str,
        decision: Any,
        reviewed_by: str,
        admin_notes: Optional[str] = None,
    ) -> RescheduleRequest:
        """Admin approves or rejects a pending user-initiated request."""
        review = self._parse_review(decision, reviewed_by, admin_notes)
        return self._resolve(request_id, review, RequesterRole.USER)

    def respond(self, request_id: str, decision: Any, user: str) -> RescheduleRequest:
        """The booking's user accepts or declines a pending admin-initiated request."""
        review = self._parse_review(decision, user, None)
        return self._resolve(request_id, review, RequesterRole.ADMIN)

    def find_by_id(self, request_id: str) -> RescheduleRequest:
        with self._session_factory() as db:
            return self.repo.to_record(self._get_request(db, request_id))

    def list_requests(
        self, status: Any = None, booking_id: Optional[str] = None
    ) -> list[RescheduleRequest]:
        status = coerce_enum(RescheduleStatus, status, "status") if status is not None else None
        with self._session_factory() as db:
            return [
                self.repo.to_record(row)
                for row in self.repo.list_requests(db, status=status, booking_id=booking_id)
            ]

    # ------------------------------------------------------------------ #
    # Helpers
    # ------------------------------------------------------------------ #

    @staticmethod
    def _parse_review(decision: Any, reviewed_by: str, notes: Optional[str]) -> RescheduleReview:
        return parse_record(
            RescheduleReview,
            {
                "decision": coerce_enum(ReviewDecision, decision, "decision"),
                "reviewedBy": reviewed_by,
                "adminNotes": notes,
            },
        )

    def _resolve(
        self, request_id: str, review: RescheduleReview, initiator: RequesterRole
    ) -> RescheduleRequest:
        try:
            with self._session_factory.begin() as db:
                row = self._get_request(db, request_id, for_update=True)
                if row.status != RescheduleStatus.PENDING.value:
                    raise InvalidTransitionError(
                        f"Reschedule request is already {row.status}",
                        {"requestId": row.id, "current": row.status, "requested": review.decision.value},
                    )
                opened_by = RequesterRole(row.requester_role)
                if opened_by != initiator:
                    raise InvalidTransitionError(
                        f"Reschedule requests opened by {opened_by.value} "
                        f"must be answered by {_ANSWERED_BY[opened_by]}",
                        {"requestId": row.id, "requesterRole": opened_by.value},
                    )
                booking = self._get_booking(db, row.booking_id, for_update=True)
                if initiator == RequesterRole.ADMIN and review.reviewed_by != booking.user_ref:
                    raise ValidationError(
                        "Only the booking's user can respond to this reschedule request",
                        {"requestId": row.id, "user": review.reviewed_by},
                    )
                if review.decision == ReviewDecision.APPROVED:
                    self._apply(db, row, booking)
                    status = RescheduleStatus.APPROVED
                else:
                    status = RescheduleStatus.REJECTED
                row = self.repo.resolve(
                    db, row, status, review.reviewed_by, self.clock(), review.admin_notes
                )
                record = self.repo.to_record(row)
                recipient = booking.user_ref
        except IntegrityError:
            raise self._slot_conflict_after_race(request_id) from None

        logger.info("Reschedule request %s %s by %s", record.id, record.status.value, record.reviewed_by)
        if record.status == RescheduleStatus.APPROVED:
            event_type = EventType.BOOKING_RESCHEDULED
        else:
            event_type = EventType.RESCHEDULE_REJECTED
        dispatch(self.notifier, BookingEvent(
            event_type=event_type,
            booking_id=record.booking,
            recipient=recipient,
            payload={"requestId": record.id, "adminNotes": record.admin_notes},
        ))
        return record

    def _check_notice(self, booking: BookingRow) -> None:
        earliest = min(slot["startTime"] for slot in booking.slots)
        starts_at = datetime.combine(booking.date, time.fromisoformat(earliest), tzinfo=timezone.utc)
        hours_left = (starts_at - self.clock()).total_seconds() / 3600
        details = {"bookingId": booking.id, "startsAt": starts_at.isoformat()}
        if hours_left < 0:
            raise ValidationError(
                "Cannot create reschedule request. The booking time has already passed.", details
            )
        notice = settings.scheduling.reschedule_notice_hours
        if hours_left < notice:
            raise ValidationError(
                f"Reschedule requests must be made at least {notice} hours before the "
                f"booking time. Booking time is in {hours_left:.1f} hours.",
                details,
            )

    def _apply(self, db: Session, row: RescheduleRequestRow, booking: BookingRow) -> None:
        status = BookingStatus(booking.status)
        if status in TERMINAL_STATUSES:
            raise InvalidTransitionError(
                f"Cannot reschedule booking with status: {status.value}",
                {"bookingId": booking.id, "current": status.value},
            )
        record = self.repo.to_record(row)
        ensure_slots_available(
            self.resolver, db, SlotType(booking.type),
            record.requested_date, record.requested_slots,
            exclude_booking_id=booking.id,
        )
        self.booking_repo.replace_slots(db, booking, record.requested_date, record.requested_slots)
        self.booking_repo.update_fields(db, booking, is_rescheduled=True)

    def _get_booking(self, db: Session, booking_id: str, for_update: bool = False) -> BookingRow:
        booking = self.booking_repo.find_by_id(db, booking_id, for_update=for_update)
        if booking is None:
            raise NotFoundError("Booking not found", {"id": booking_id})
        return booking

    def _get_request(
        self, db: Session, request_id: str, for_update: bool = False
    ) -> RescheduleRequestRow:
        row = self.repo.find_by_id(db, request_id, for_update=for_update)
        if row is None:
            raise NotFoundError("Reschedule request not found", {"id": request_id})
        return row

    @staticmethod
    def _open_request_conflict(booking_id: str) -> ConflictError:
        return ConflictError(
            "A pending reschedule request already exists for this booking",
            {"bookingId": booking_id},
        )

    def _slot_conflict_after_race(self, request_id: str) -> ConflictError:
        request = self.find_by_id(request_id)
        first = request.requested_slots[0]
        logger.warning("Reschedule %s lost a slot race", request_id)
        return ConflictError(
            f"Time slot {format_slot(first.start_time, first.end_time)} is no longer available",
            {
                "date": request.requested_date.isoformat(),
                "slot": {"startTime": first.start_time, "endTime": first.end_time},
                "requestId": request_id,
            },
        )

