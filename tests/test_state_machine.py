"""Tests for the booking status machine."""

import pytest

from scheduling.errors import InvalidTransitionError
from scheduling.lifecycle.state_machine import BookingStateMachine
from scheduling.schemas.booking_schema import TERMINAL_STATUSES, BookingStatus


class TestInitialState:
    def test_starts_in_pending(self, state_machine):
        assert state_machine.current_status == BookingStatus.PENDING

    def test_can_start_from_given_status(self):
        sm = BookingStateMachine(BookingStatus.CONFIRMED)
        assert sm.current_status == BookingStatus.CONFIRMED


class TestPendingTransitions:
    def test_pending_to_confirmed(self, state_machine):
        assert state_machine.transition(BookingStatus.CONFIRMED) == BookingStatus.CONFIRMED

    def test_pending_to_rejected(self, state_machine):
        assert state_machine.transition(BookingStatus.REJECTED) == BookingStatus.REJECTED
        assert state_machine.current_status in TERMINAL_STATUSES

    def test_pending_to_cancelled(self, state_machine):
        assert state_machine.transition(BookingStatus.CANCELLED) == BookingStatus.CANCELLED

    def test_pending_cannot_skip_to_completed(self, state_machine):
        with pytest.raises(InvalidTransitionError):
            state_machine.transition(BookingStatus.COMPLETED)

    def test_pending_cannot_skip_to_upcoming(self, state_machine):
        with pytest.raises(InvalidTransitionError):
            state_machine.transition(BookingStatus.UPCOMING)


class TestHappyPath:
    def test_full_lifecycle_to_completed(self, state_machine):
        state_machine.transition(BookingStatus.CONFIRMED)
        state_machine.transition(BookingStatus.UPCOMING)
        new = state_machine.transition(BookingStatus.COMPLETED)
        assert new == BookingStatus.COMPLETED
        assert state_machine.current_status == BookingStatus.COMPLETED

    def test_confirmed_cannot_be_rejected(self, state_machine):
        state_machine.transition(BookingStatus.CONFIRMED)
        with pytest.raises(InvalidTransitionError):
            state_machine.transition(BookingStatus.REJECTED)

    @pytest.mark.parametrize("status", [
        BookingStatus.PENDING, BookingStatus.CONFIRMED, BookingStatus.UPCOMING,
    ])
    def test_cancel_from_every_non_terminal_status(self, status):
        sm = BookingStateMachine(status)
        assert sm.transition(BookingStatus.CANCELLED) == BookingStatus.CANCELLED


class TestTerminalStatuses:
    @pytest.mark.parametrize("status", sorted(TERMINAL_STATUSES, key=lambda s: s.value))
    def test_no_exit_from_terminal(self, status):
        sm = BookingStateMachine(status)
        assert BookingStateMachine.valid_targets(status) == []
        with pytest.raises(InvalidTransitionError):
            sm.transition(BookingStatus.CANCELLED)

    def test_error_details_name_current_and_requested(self):
        sm = BookingStateMachine(BookingStatus.CANCELLED)
        with pytest.raises(InvalidTransitionError) as exc_info:
            sm.transition(BookingStatus.CONFIRMED)
        details = exc_info.value.details
        assert details["current"] == "cancelled"
        assert details["requested"] == "confirmed"
        assert details["valid"] == []

    def test_failed_transition_leaves_status_unchanged(self, state_machine):
        with pytest.raises(InvalidTransitionError):
            state_machine.transition(BookingStatus.COMPLETED)
        assert state_machine.current_status == BookingStatus.PENDING


class TestTransitionTable:
    def test_valid_targets_from_pending(self):
        targets = BookingStateMachine.valid_targets(BookingStatus.PENDING)
        assert set(targets) == {
            BookingStatus.CONFIRMED, BookingStatus.REJECTED, BookingStatus.CANCELLED,
        }

    def test_can_transition_matches_table(self):
        assert BookingStateMachine.can_transition(BookingStatus.UPCOMING, BookingStatus.COMPLETED)
        assert not BookingStateMachine.can_transition(BookingStatus.CONFIRMED, BookingStatus.COMPLETED)

    def test_every_non_terminal_status_has_targets(self):
        for status in BookingStatus:
            has_targets = bool(BookingStateMachine.valid_targets(status))
            assert has_targets == (status not in TERMINAL_STATUSES)
