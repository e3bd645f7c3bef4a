"""
Availability template store.

Owns one AvailabilitySchedule per service type: full-replace upsert,
per-day toggling and slot add/remove. Intra-day slot keys are kept unique
on every write path.
"""

from typing import Any, Iterable, Optional

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.orm.exc import StaleDataError

from scheduling.errors import ConflictError, NotFoundError, ValidationError
from scheduling.logging_context import get_request_logger
from scheduling.schemas.availability_schema import (
    AvailabilitySchedule,
    DayAvailability,
    DayOfWeek,
    ScheduleUpsert,
    SlotType,
    TimeSlot,
)
from scheduling.schemas.base_schema import parse_record
from scheduling.storage.availability_repository import AvailabilityRepository
from scheduling.storage.models import AvailabilityScheduleRow
from scheduling.utils import coerce_enum

logger = get_request_logger(__name__)

# Read-modify-write attempts for per-day edits before giving up on a hot row.
EDIT_ATTEMPTS = 3


def _check_unique_days(weekly_schedule: Iterable[DayAvailability]) -> None:
    seen: set[DayOfWeek] = set()
    for day_schedule in weekly_schedule:
        if day_schedule.day in seen:
            raise ValidationError(
                f"Duplicate day found in weekly schedule: {day_schedule.day.value}",
                {"day": day_schedule.day.value},
            )
        seen.add(day_schedule.day)


def _check_unique_slots(weekly_schedule: Iterable[DayAvailability]) -> None:
    for day_schedule in weekly_schedule:
        slot_keys: set[tuple[str, str]] = set()
        for slot in day_schedule.slots:
            if slot.key in slot_keys:
                raise ValidationError(
                    f"Duplicate time slot found for {day_schedule.day.value}: "
                    f"{slot.start_time} to {slot.end_time}",
                    {
                        "day": day_schedule.day.value,
                        "slot": {"startTime": slot.start_time, "endTime": slot.end_time},
                    },
                )
            slot_keys.add(slot.key)


class ScheduleStore:
    """Service layer for availability schedules"""

    def __init__(self, session_factory: sessionmaker) -> None:
        self._session_factory = session_factory
        self.repo = AvailabilityRepository()

    def upsert(
        self,
        slot_type: Any,
        weekly_schedule: list[Any],
        is_active: Optional[bool] = None,
    ) -> AvailabilitySchedule:
        """Create the schedule for ``slot_type`` or replace it wholesale."""
        data = parse_record(
            ScheduleUpsert,
            {
                "type": coerce_enum(SlotType, slot_type, "type"),
                "weeklySchedule": weekly_schedule,
                "isActive": True if is_active is None else is_active,
            },
        )
        _check_unique_days(data.weekly_schedule)
        _check_unique_slots(data.weekly_schedule)

        try:
            with self._session_factory.begin() as db:
                existing = self.repo.find_by_type(db, data.type)
                if existing is not None:
                    row = self.repo.save_weekly_schedule(
                        db, existing, data.weekly_schedule, data.is_active
                    )
                    logger.info("Availability for %s replaced", data.type.value)
                else:
                    row = self.repo.create(db, data.type, data.weekly_schedule, data.is_active)
                    logger.info("Availability for %s created", data.type.value)
                return self.repo.to_record(row)
        except IntegrityError:
            raise ConflictError(
                f"Availability for {data.type.value} was created concurrently; retry the upsert",
                {"type": data.type.value},
            ) from None
        except StaleDataError:
            raise ConflictError(
                f"Availability for {data.type.value} was modified concurrently; retry the upsert",
                {"type": data.type.value},
            ) from None

    def find_all(self) -> list[AvailabilitySchedule]:
        with self._session_factory() as db:
            return [self.repo.to_record(row) for row in self.repo.find_all(db)]

    def find_by_id(self, schedule_id: str) -> AvailabilitySchedule:
        with self._session_factory() as db:
            row = self.repo.find_by_id(db, schedule_id)
            if row is None:
                raise NotFoundError(
                    f"Availability with ID {schedule_id} not found", {"id": schedule_id}
                )
            return self.repo.to_record(row)

    def find_by_type(self, slot_type: Any) -> AvailabilitySchedule:
        slot_type = coerce_enum(SlotType, slot_type, "type")
        with self._session_factory() as db:
            row = self.repo.find_by_type(db, slot_type)
            if row is None:
                raise NotFoundError(
                    f"Availability for {slot_type.value} not found", {"type": slot_type.value}
                )
            return self.repo.to_record(row)

    def find_by_type_and_day(self, slot_type: Any, day: Any) -> DayAvailability:
        slot_type = coerce_enum(SlotType, slot_type, "type")
        day = coerce_enum(DayOfWeek, day, "day")
        day_schedule = self.find_by_type(slot_type).get_day(day)
        if day_schedule is None:
            raise NotFoundError(
                f"Availability for {slot_type.value} and {day.value} not found",
                {"type": slot_type.value, "day": day.value},
            )
        return day_schedule

    def toggle_day(self, slot_type: Any, day: Any, is_enabled: bool) -> AvailabilitySchedule:
        def _toggle(day_schedule: DayAvailability) -> DayAvailability:
            return day_schedule.model_copy(update={"is_enabled": bool(is_enabled)})

        return self._update_day(slot_type, day, _toggle, "toggled")

    def add_time_slot(self, slot_type: Any, day: Any, slot: Any) -> AvailabilitySchedule:
        """Append ``slot`` to the day's list.

        Raises ValidationError when start >= end or when the day already
        offers the same (startTime, endTime) pair.
        """
        new_slot = parse_record(TimeSlot, slot)

        def _append(day_schedule: DayAvailability) -> DayAvailability:
            if any(existing.key == new_slot.key for existing in day_schedule.slots):
                raise ValidationError(
                    f"Duplicate time slot found for {day_schedule.day.value}: "
                    f"{new_slot.start_time} to {new_slot.end_time}",
                    {
                        "day": day_schedule.day.value,
                        "slot": {"startTime": new_slot.start_time, "endTime": new_slot.end_time},
                    },
                )
            return day_schedule.model_copy(update={"slots": [*day_schedule.slots, new_slot]})

        return self._update_day(slot_type, day, _append, "slot added")

    def remove_time_slot(self, slot_type: Any, day: Any, slot_index: int) -> AvailabilitySchedule:
        def _remove(day_schedule: DayAvailability) -> DayAvailability:
            if not isinstance(slot_index, int) or not 0 <= slot_index < len(day_schedule.slots):
                raise NotFoundError(
                    "Time slot not found",
                    {"day": day_schedule.day.value, "slotIndex": slot_index},
                )
            remaining = [s for i, s in enumerate(day_schedule.slots) if i != slot_index]
            return day_schedule.model_copy(update={"slots": remaining})

        return self._update_day(slot_type, day, _remove, "slot removed")

    def remove(self, schedule_id: str) -> None:
        try:
            with self._session_factory.begin() as db:
                row = self.repo.find_by_id(db, schedule_id)
                if row is None:
                    raise NotFoundError(
                        f"Availability with ID {schedule_id} not found", {"id": schedule_id}
                    )
                self.repo.delete(db, row)
        except StaleDataError:
            raise ConflictError(
                f"Availability {schedule_id} was modified concurrently; retry the delete",
                {"id": schedule_id},
            ) from None
        logger.info("Availability %s deleted", schedule_id)

    # ------------------------------------------------------------------ #
    # Helpers
    # ------------------------------------------------------------------ #

    def _load(self, db: Session, slot_type: SlotType) -> AvailabilityScheduleRow:
        row = self.repo.find_by_type(db, slot_type)
        if row is None:
            raise NotFoundError(
                f"Availability for {slot_type.value} not found", {"type": slot_type.value}
            )
        return row

    def _update_day(self, slot_type: Any, day: Any, change, action: str) -> AvailabilitySchedule:
        """Apply ``change`` to one day of the weekly document.

        The write is versioned: if another edit committed after our read,
        the flush raises StaleDataError and the edit is replayed on a fresh
        read, so concurrent edits to one schedule all land.
        """
        slot_type = coerce_enum(SlotType, slot_type, "type")
        day = coerce_enum(DayOfWeek, day, "day")
        for attempt in range(1, EDIT_ATTEMPTS + 1):
            try:
                return self._apply_day_change(slot_type, day, change, action)
            except StaleDataError:
                logger.warning(
                    "Availability for %s changed during edit (attempt %d/%d)",
                    slot_type.value, attempt, EDIT_ATTEMPTS,
                )
        raise ConflictError(
            f"Availability for {slot_type.value} is being modified concurrently; retry the edit",
            {"type": slot_type.value, "day": day.value},
        )

    def _apply_day_change(
        self, slot_type: SlotType, day: DayOfWeek, change, action: str
    ) -> AvailabilitySchedule:
        with self._session_factory.begin() as db:
            row = self._load(db, slot_type)
            schedule = self.repo.to_record(row)
            if schedule.get_day(day) is None:
                raise NotFoundError(
                    f"Availability for {slot_type.value} and {day.value} not found",
                    {"type": slot_type.value, "day": day.value},
                )
            weekly = [change(d) if d.day == day else d for d in schedule.weekly_schedule]
            row = self.repo.save_weekly_schedule(db, row, weekly)
            logger.info("Availability for %s/%s: %s", slot_type.value, day.value, action)
            return self.repo.to_record(row)
