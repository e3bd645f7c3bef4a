"""
Outbound booking events and the notifier interface.

The core never delivers notifications itself. After a write commits, it
builds a ``BookingEvent`` and hands it to an injected ``Notifier``.
Delivery failures are logged and never fail the scheduling operation.
"""

import logging
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Optional, Protocol

logger = logging.getLogger(__name__)


class EventType(str, Enum):
    BOOKING_CREATED = "booking.created"
    BOOKING_STATUS_CHANGED = "booking.status_changed"
    BOOKING_CANCELLED = "booking.cancelled"
    BOOKING_RESCHEDULED = "booking.rescheduled"
    RESCHEDULE_REQUESTED = "reschedule.requested"
    RESCHEDULE_REJECTED = "reschedule.rejected"


@dataclass(frozen=True)
class BookingEvent:
    """A single outbound event."""

    event_type: EventType
    booking_id: str
    recipient: Optional[str] = None
    payload: dict[str, Any] = field(default_factory=dict)
    occurred_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))


class Notifier(Protocol):
    def publish(self, event: BookingEvent) -> None:
        ...


class LoggingNotifier:
    """Default notifier: records events in the log only."""

    def publish(self, event: BookingEvent) -> None:
        logger.info(
            "Event %s for booking %s (recipient=%s)",
            event.event_type.value, event.booking_id, event.recipient,
        )


class InMemoryNotifier:
    """Keeps published events in a list. Useful for tests and local runs."""

    def __init__(self) -> None:
        self.events: list[BookingEvent] = []

    def publish(self, event: BookingEvent) -> None:
        self.events.append(event)

    def of_type(self, event_type: EventType) -> list[BookingEvent]:
        return [e for e in self.events if e.event_type == event_type]

    def clear(self) -> None:
        self.events.clear()


def dispatch(notifier: Optional[Notifier], event: BookingEvent) -> bool:
    """Hand ``event`` to ``notifier``; return False if delivery failed."""
    if notifier is None:
        return False
    try:
        notifier.publish(event)
        return True
    except Exception:
        logger.exception(
            "Notifier failed for %s on booking %s", event.event_type.value, event.booking_id
        )
        return False
