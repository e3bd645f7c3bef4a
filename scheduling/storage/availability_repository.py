"""Availability repository - database operations for weekly schedules"""

from typing import Optional

from sqlalchemy import select
from sqlalchemy.orm import Session

from scheduling.schemas.availability_schema import (
    AvailabilitySchedule,
    DayAvailability,
    SlotType,
)
from scheduling.storage.models import AvailabilityScheduleRow
from scheduling.utils import ensure_utc


class AvailabilityRepository:
    """Repository for availability schedule database operations"""

    @staticmethod
    def find_by_type(
        db: Session, slot_type: SlotType, active_only: bool = False
    ) -> Optional[AvailabilityScheduleRow]:
        stmt = select(AvailabilityScheduleRow).where(AvailabilityScheduleRow.type == slot_type.value)
        if active_only:
            stmt = stmt.where(AvailabilityScheduleRow.is_active.is_(True))
        return db.scalars(stmt).first()

    @staticmethod
    def find_by_id(db: Session, schedule_id: str) -> Optional[AvailabilityScheduleRow]:
        return db.get(AvailabilityScheduleRow, schedule_id)

    @staticmethod
    def find_all(db: Session) -> list[AvailabilityScheduleRow]:
        return list(db.scalars(select(AvailabilityScheduleRow).order_by(AvailabilityScheduleRow.type)))

    @staticmethod
    def create(
        db: Session,
        slot_type: SlotType,
        weekly_schedule: list[DayAvailability],
        is_active: bool,
    ) -> AvailabilityScheduleRow:
        row = AvailabilityScheduleRow(
            type=slot_type.value,
            weekly_schedule=[day.to_payload() for day in weekly_schedule],
            is_active=is_active,
        )
        db.add(row)
        db.flush()
        return row

    @staticmethod
    def save_weekly_schedule(
        db: Session,
        row: AvailabilityScheduleRow,
        weekly_schedule: list[DayAvailability],
        is_active: Optional[bool] = None,
    ) -> AvailabilityScheduleRow:
        """Replace the whole weekly schedule document in one write."""
        # Assign a fresh list so the JSON column is detected as changed.
        row.weekly_schedule = [day.to_payload() for day in weekly_schedule]
        if is_active is not None:
            row.is_active = is_active
        db.flush()
        return row

    @staticmethod
    def delete(db: Session, row: AvailabilityScheduleRow) -> None:
        db.delete(row)
        db.flush()

    @staticmethod
    def to_record(row: AvailabilityScheduleRow) -> AvailabilitySchedule:
        return AvailabilitySchedule.model_validate(
            {
                "id": row.id,
                "type": row.type,
                "weeklySchedule": row.weekly_schedule or [],
                "isActive": row.is_active,
                "createdAt": ensure_utc(row.created_at),
                "updatedAt": ensure_utc(row.updated_at),
            }
        )
