"""Reschedule request repository - database operations for reschedule requests"""

from datetime import datetime
from typing import Optional

from sqlalchemy import select
from sqlalchemy.orm import Session

from scheduling.schemas.reschedule_schema import (
    RescheduleRequest,
    RescheduleRequestCreate,
    RescheduleStatus,
)
from scheduling.storage.models import RescheduleRequestRow
from scheduling.utils import ensure_utc


class RescheduleRequestRepository:
    """Repository for reschedule request database operations"""

    @staticmethod
    def create(db: Session, data: RescheduleRequestCreate) -> RescheduleRequestRow:
        """Insert a pending request.

        Raises ``sqlalchemy.exc.IntegrityError`` if the booking already has
        an open request.
        """
        row = RescheduleRequestRow(
            booking_id=data.booking_id,
            requested_date=data.requested_date,
            requested_slots=[slot.to_payload() for slot in data.requested_slots],
            status=RescheduleStatus.PENDING.value,
            requested_by=data.requested_by,
            requester_role=data.requester_role.value,
            open_booking_id=data.booking_id,
        )
        db.add(row)
        db.flush()
        return row

    @staticmethod
    def find_by_id(
        db: Session, request_id: str, for_update: bool = False
    ) -> Optional[RescheduleRequestRow]:
        stmt = select(RescheduleRequestRow).where(RescheduleRequestRow.id == request_id)
        if for_update:
            stmt = stmt.with_for_update()
        return db.scalars(stmt).first()

    @staticmethod
    def find_pending_by_booking(db: Session, booking_id: str) -> Optional[RescheduleRequestRow]:
        stmt = select(RescheduleRequestRow).where(
            RescheduleRequestRow.booking_id == booking_id,
            RescheduleRequestRow.status == RescheduleStatus.PENDING.value,
        )
        return db.scalars(stmt).first()

    @staticmethod
    def list_requests(
        db: Session,
        status: Optional[RescheduleStatus] = None,
        booking_id: Optional[str] = None,
    ) -> list[RescheduleRequestRow]:
        stmt = select(RescheduleRequestRow)
        if status is not None:
            stmt = stmt.where(RescheduleRequestRow.status == status.value)
        if booking_id is not None:
            stmt = stmt.where(RescheduleRequestRow.booking_id == booking_id)
        return list(db.scalars(stmt.order_by(RescheduleRequestRow.created_at.desc())))

    @staticmethod
    def resolve(
        db: Session,
        row: RescheduleRequestRow,
        status: RescheduleStatus,
        reviewed_by: str,
        reviewed_at: datetime,
        admin_notes: Optional[str] = None,
    ) -> RescheduleRequestRow:
        row.status = status.value
        row.reviewed_by = reviewed_by
        row.reviewed_at = reviewed_at
        row.admin_notes = admin_notes
        row.open_booking_id = None
        db.flush()
        return row

    @staticmethod
    def to_record(row: RescheduleRequestRow) -> RescheduleRequest:
        return RescheduleRequest.model_validate(
            {
                "id": row.id,
                "booking": row.booking_id,
                "requestedDate": row.requested_date,
                "requestedSlots": row.requested_slots,
                "status": row.status,
                "requestedBy": row.requested_by,
                "requesterRole": row.requester_role,
                "reviewedBy": row.reviewed_by,
                "reviewedAt": ensure_utc(row.reviewed_at),
                "adminNotes": row.admin_notes,
                "createdAt": ensure_utc(row.created_at),
                "updatedAt": ensure_utc(row.updated_at),
            }
        )
