"""
Async facade over the scheduling services.

Each call gets a fresh request id, runs the synchronous service on a worker
thread and returns boundary dicts (camelCase keys, ISO-8601 dates and
timestamps). SchedulingError subclasses propagate unchanged so the
transport in front of this facade can map ``error_code`` to its own
status codes.
"""

import asyncio
from typing import Any, Callable, Optional

from sqlalchemy import Engine
from sqlalchemy.orm import sessionmaker

from scheduling.errors import SchedulingError
from scheduling.logging_context import bind_request_id, get_request_logger
from scheduling.notifications import LoggingNotifier, Notifier
from scheduling.services.booking_ledger import BookingLedger
from scheduling.services.reschedule_workflow import RescheduleWorkflow
from scheduling.services.schedule_store import ScheduleStore
from scheduling.services.slot_resolver import SlotResolver
from scheduling.storage.database import create_session_factory

logger = get_request_logger(__name__)


class SchedulingAPI:
    """The operations exposed to transports and other collaborators."""

    def __init__(
        self,
        store: ScheduleStore,
        resolver: SlotResolver,
        ledger: BookingLedger,
        workflow: RescheduleWorkflow,
    ) -> None:
        self.store = store
        self.resolver = resolver
        self.ledger = ledger
        self.workflow = workflow

    @classmethod
    def from_session_factory(
        cls, session_factory: sessionmaker, notifier: Optional[Notifier] = None
    ) -> "SchedulingAPI":
        notifier = notifier if notifier is not None else LoggingNotifier()
        resolver = SlotResolver(session_factory)
        return cls(
            store=ScheduleStore(session_factory),
            resolver=resolver,
            ledger=BookingLedger(session_factory, resolver, notifier),
            workflow=RescheduleWorkflow(session_factory, resolver, notifier),
        )

    @classmethod
    def from_engine(cls, engine: Engine, notifier: Optional[Notifier] = None) -> "SchedulingAPI":
        return cls.from_session_factory(create_session_factory(engine), notifier)

    async def _call(self, operation: str, fn: Callable[..., Any], *args: Any) -> Any:
        bind_request_id()
        logger.debug("%s started", operation)
        try:
            # to_thread copies the current context, so request_id follows the call
            return await asyncio.to_thread(fn, *args)
        except SchedulingError as exc:
            logger.info("%s failed: %s %s", operation, exc.error_code, exc.message)
            raise

    # -- availability ---------------------------------------------------

    async def upsert_schedule(
        self, type: str, weekly_schedule: list[Any], is_active: Optional[bool] = None
    ) -> dict:
        schedule = await self._call(
            "upsert_schedule", self.store.upsert, type, weekly_schedule, is_active
        )
        return schedule.to_payload()

    async def get_schedule_by_type(self, type: str) -> dict:
        schedule = await self._call("get_schedule_by_type", self.store.find_by_type, type)
        return schedule.to_payload()

    async def list_schedules(self) -> list[dict]:
        schedules = await self._call("list_schedules", self.store.find_all)
        return [schedule.to_payload() for schedule in schedules]

    async def toggle_day(self, type: str, day: str, is_enabled: bool) -> dict:
        schedule = await self._call("toggle_day", self.store.toggle_day, type, day, is_enabled)
        return schedule.to_payload()

    async def add_slot(self, type: str, day: str, slot: dict) -> dict:
        schedule = await self._call("add_slot", self.store.add_time_slot, type, day, slot)
        return schedule.to_payload()

    async def remove_slot(self, type: str, day: str, slot_index: int) -> dict:
        schedule = await self._call(
            "remove_slot", self.store.remove_time_slot, type, day, slot_index
        )
        return schedule.to_payload()

    async def remove_schedule(self, schedule_id: str) -> dict:
        await self._call("remove_schedule", self.store.remove, schedule_id)
        return {"success": True, "id": schedule_id}

    async def get_slots_for_date(self, type: str, date: str) -> list[dict]:
        slots = await self._call(
            "get_slots_for_date", self.resolver.get_available_slots_for_date, type, date
        )
        return [slot.to_payload() for slot in slots]

    async def get_slots_for_range(
        self, type: str, start_date: Optional[str] = None, end_date: Optional[str] = None
    ) -> dict:
        view = await self._call(
            "get_slots_for_range", self.resolver.get_available_slots, type, start_date, end_date
        )
        return view.to_payload()

    # -- bookings -------------------------------------------------------

    async def create_booking(
        self, type: str, date: str, slots: list[dict], user: str, **extra: Any
    ) -> dict:
        """Create a booking.

        ``extra`` may carry status, payment_status, amount, details and
        address (snake_case or camelCase); anything else is rejected.
        """
        payload = {"type": type, "date": date, "slots": slots, "user": user, **extra}
        booking = await self._call("create_booking", self.ledger.create, payload)
        return booking.to_payload()

    async def get_booking(self, booking_id: str) -> dict:
        booking = await self._call("get_booking", self.ledger.find_by_id, booking_id)
        return booking.to_payload()

    async def list_user_bookings(self, user: str) -> list[dict]:
        bookings = await self._call("list_user_bookings", self.ledger.find_by_user, user)
        return [booking.to_payload() for booking in bookings]

    async def get_bookings_in_range(self, type: str, start: str, end: str) -> list[dict]:
        bookings = await self._call(
            "get_bookings_in_range", self.ledger.find_bookings_by_date_range, type, start, end
        )
        return [booking.to_payload() for booking in bookings]

    async def update_booking_status(
        self, booking_id: str, new_status: str, reason: Optional[str] = None
    ) -> dict:
        booking = await self._call(
            "update_booking_status", self.ledger.update_status, booking_id, new_status, reason
        )
        return booking.to_payload()

    async def cancel_booking(self, booking_id: str, reason: Optional[str] = None) -> dict:
        booking = await self._call("cancel_booking", self.ledger.cancel, booking_id, reason)
        return booking.to_payload()

    async def record_payment_status(self, booking_id: str, payment_status: str) -> dict:
        booking = await self._call(
            "record_payment_status", self.ledger.record_payment_status, booking_id, payment_status
        )
        return booking.to_payload()

    async def complete_elapsed_bookings(self) -> list[dict]:
        bookings = await self._call("complete_elapsed_bookings", self.ledger.complete_elapsed)
        return [booking.to_payload() for booking in bookings]

    # -- reschedule requests --------------------------------------------

    async def create_reschedule_request(
        self,
        booking_id: str,
        requested_date: str,
        requested_slots: list[dict],
        requested_by: str,
        requester_role: str = "user",
    ) -> dict:
        request = await self._call(
            "create_reschedule_request",
            self.workflow.create,
            booking_id, requested_date, requested_slots, requested_by, requester_role,
        )
        return request.to_payload()

    async def review_reschedule_request(
        self, request_id: str, decision: str, reviewed_by: str, notes: Optional[str] = None
    ) -> dict:
        request = await self._call(
            "review_reschedule_request",
            self.workflow.review,
            request_id, decision, reviewed_by, notes,
        )
        return request.to_payload()

    async def respond_to_reschedule_request(self, request_id: str, decision: str, user: str) -> dict:
        request = await self._call(
            "respond_to_reschedule_request", self.workflow.respond, request_id, decision, user
        )
        return request.to_payload()

    async def get_reschedule_request(self, request_id: str) -> dict:
        request = await self._call("get_reschedule_request", self.workflow.find_by_id, request_id)
        return request.to_payload()

    async def list_reschedule_requests(
        self, status: Optional[str] = None, booking_id: Optional[str] = None
    ) -> list[dict]:
        requests = await self._call(
            "list_reschedule_requests", self.workflow.list_requests, status, booking_id
        )
        return [request.to_payload() for request in requests]
