from scheduling.lifecycle.state_machine import BookingStateMachine, Transition

__all__ = [
    "BookingStateMachine",
    "Transition",
]
