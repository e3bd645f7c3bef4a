"""
Finite state machine for booking status transitions.

Every status change a booking can undergo is listed explicitly. A change
that is not in the table is rejected with the set of statuses reachable
from the current one, never silently coerced.

Usage:
    sm = BookingStateMachine(BookingStatus.PENDING)
    sm.transition(BookingStatus.CONFIRMED)
    assert sm.current_status == BookingStatus.CONFIRMED
"""

import logging
from dataclasses import dataclass

from scheduling.errors import InvalidTransitionError
from scheduling.schemas.booking_schema import BookingStatus

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Transition:
    """A single valid status transition."""
    from_status: BookingStatus
    to_status: BookingStatus


class BookingStateMachine:
    """
    Booking status machine.

    completed, cancelled and rejected are terminal. Cancellation is
    reachable from every non-terminal status.
    """

    TRANSITIONS: list[Transition] = [
        # --- Review of a new booking ---
        Transition(BookingStatus.PENDING, BookingStatus.CONFIRMED),
        Transition(BookingStatus.PENDING, BookingStatus.REJECTED),
        Transition(BookingStatus.PENDING, BookingStatus.CANCELLED),

        # --- Confirmed ---
        Transition(BookingStatus.CONFIRMED, BookingStatus.UPCOMING),
        Transition(BookingStatus.CONFIRMED, BookingStatus.CANCELLED),

        # --- Upcoming ---
        Transition(BookingStatus.UPCOMING, BookingStatus.COMPLETED),
        Transition(BookingStatus.UPCOMING, BookingStatus.CANCELLED),
    ]

    def __init__(self, status: BookingStatus = BookingStatus.PENDING) -> None:
        self._current_status = status

    @property
    def current_status(self) -> BookingStatus:
        return self._current_status

    @classmethod
    def can_transition(cls, from_status: BookingStatus, to_status: BookingStatus) -> bool:
        return any(
            t.from_status == from_status and t.to_status == to_status for t in cls.TRANSITIONS
        )

    @classmethod
    def valid_targets(cls, from_status: BookingStatus) -> list[BookingStatus]:
        return [t.to_status for t in cls.TRANSITIONS if t.from_status == from_status]

    def transition(self, to_status: BookingStatus) -> BookingStatus:
        """
        Move to ``to_status``.

        Raises:
            InvalidTransitionError: If ``to_status`` is not reachable.
        """
        if not self.can_transition(self._current_status, to_status):
            valid = [s.value for s in self.valid_targets(self._current_status)]
            raise InvalidTransitionError(
                f"Cannot move booking from '{self._current_status.value}' "
                f"to '{to_status.value}'. Valid targets: {valid}",
                {
                    "current": self._current_status.value,
                    "requested": to_status.value,
                    "valid": valid,
                },
            )

        logger.debug("Booking status transition: %s -> %s", self._current_status.value, to_status.value)
        self._current_status = to_status
        return self._current_status
