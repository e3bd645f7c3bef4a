"""
Open-slot resolution.

Availability is always computed fresh as
(weekly template) - (disabled days and slots) - (slots held by bookings),
so it can never drift from the booking ledger. Nothing here is cached.
"""

from datetime import date, timedelta
from typing import Any, Optional

from sqlalchemy.orm import Session, sessionmaker

from scheduling.config import settings
from scheduling.errors import NotFoundError, ValidationError
from scheduling.logging_context import get_request_logger
from scheduling.schemas.availability_schema import (
    AvailabilityRangeView,
    AvailabilitySchedule,
    DateSlots,
    SlotType,
    TimeSlot,
)
from scheduling.storage.availability_repository import AvailabilityRepository
from scheduling.storage.booking_repository import BookingRepository
from scheduling.utils import coerce_enum, day_of_week, parse_calendar_date

logger = get_request_logger(__name__)


def open_slots_for_day(
    schedule: Optional[AvailabilitySchedule],
    on_date: date,
    booked_keys: set[tuple[str, str]],
) -> list[TimeSlot]:
    """Pure filter: enabled template slots for ``on_date`` not in ``booked_keys``."""
    if schedule is None:
        return []
    day_schedule = schedule.get_day(day_of_week(on_date))
    if day_schedule is None or not day_schedule.is_enabled or not day_schedule.slots:
        return []
    return [
        slot for slot in day_schedule.slots
        if slot.is_enabled and slot.key not in booked_keys
    ]


class SlotResolver:
    """Computes bookable slots from the template and the active bookings."""

    def __init__(self, session_factory: sessionmaker) -> None:
        self._session_factory = session_factory
        self.availability_repo = AvailabilityRepository()
        self.booking_repo = BookingRepository()

    def get_available_slots_for_date(self, slot_type: Any, date_string: str) -> list[TimeSlot]:
        """Open slots for ``slot_type`` on the literal calendar date ``date_string``."""
        slot_type = coerce_enum(SlotType, slot_type, "type")
        on_date = parse_calendar_date(date_string)
        with self._session_factory() as db:
            return self.open_slots(db, slot_type, on_date)

    def open_slots(
        self,
        db: Session,
        slot_type: SlotType,
        on_date: date,
        exclude_booking_id: Optional[str] = None,
    ) -> list[TimeSlot]:
        """Open slots using the caller's session.

        ``exclude_booking_id`` treats that booking's current slots as vacated,
        which is how a reschedule can swap into slots it already holds.
        """
        schedule = self._load_active_schedule(db, slot_type)
        if schedule is None:
            logger.debug("No active availability for %s", slot_type.value)
            return []
        booked = self._booked_keys(db, slot_type, on_date, on_date, exclude_booking_id)
        return open_slots_for_day(schedule, on_date, booked.get(on_date, set()))

    def get_available_slots(
        self,
        slot_type: Any,
        start_date: Optional[str] = None,
        end_date: Optional[str] = None,
    ) -> AvailabilityRangeView:
        """Schedule view with the open slots of every date in [start, end]."""
        slot_type = coerce_enum(SlotType, slot_type, "type")
        start, end = self._resolve_range(start_date, end_date)

        with self._session_factory() as db:
            schedule = self._load_active_schedule(db, slot_type)
            if schedule is None:
                raise NotFoundError(
                    f"No availability found for {slot_type.value}", {"type": slot_type.value}
                )
            booked = self._booked_keys(db, slot_type, start, end)

        days = []
        current = start
        while current <= end:
            days.append(
                DateSlots(
                    date=current,
                    day=day_of_week(current),
                    slots=open_slots_for_day(schedule, current, booked.get(current, set())),
                )
            )
            current += timedelta(days=1)

        return AvailabilityRangeView(
            id=schedule.id,
            type=schedule.type,
            is_active=schedule.is_active,
            start_date=start,
            end_date=end,
            weekly_schedule=schedule.weekly_schedule,
            days=days,
        )

    # ------------------------------------------------------------------ #
    # Helpers
    # ------------------------------------------------------------------ #

    def _load_active_schedule(
        self, db: Session, slot_type: SlotType
    ) -> Optional[AvailabilitySchedule]:
        row = self.availability_repo.find_by_type(db, slot_type, active_only=True)
        return self.availability_repo.to_record(row) if row is not None else None

    def _booked_keys(
        self,
        db: Session,
        slot_type: SlotType,
        start: date,
        end: date,
        exclude_booking_id: Optional[str] = None,
    ) -> dict[date, set[tuple[str, str]]]:
        booked: dict[date, set[tuple[str, str]]] = {}
        rows = self.booking_repo.find_bookings_by_date_range(
            db, slot_type, start, end, exclude_booking_id
        )
        for row in rows:
            keys = booked.setdefault(row.date, set())
            for slot in row.slots:
                keys.add((slot["startTime"], slot["endTime"]))
        return booked

    def _resolve_range(
        self, start_date: Optional[str], end_date: Optional[str]
    ) -> tuple[date, date]:
        span = timedelta(days=settings.scheduling.default_range_days - 1)
        start = parse_calendar_date(start_date) if start_date else None
        end = parse_calendar_date(end_date) if end_date else None
        if start is None and end is None:
            start = date.today()
        if start is None:
            start = end - span
        if end is None:
            end = start + span
        if end < start:
            raise ValidationError(
                "End date must not precede start date",
                {"startDate": start.isoformat(), "endDate": end.isoformat()},
            )
        if (end - start).days + 1 > settings.scheduling.max_range_days:
            raise ValidationError(
                f"Date range exceeds {settings.scheduling.max_range_days} days",
                {"startDate": start.isoformat(), "endDate": end.isoformat()},
            )
        return start, end
