"""Booking state machine states."""

from enum import Enum
from typing import Set


class BookingState(str, Enum):
    """States in the appointment booking conversation."""

    ASKING_SERVICE = "asking_service"
    ASKING_PERIOD = "asking_period"
    ASKING_DATE = "asking_date"
    ASKING_TIME = "asking_time"
    CONFIRMING = "confirming"

    # Terminal
    COMPLETED = "completed"


# Valid forward transitions. Cancellation is not a state: it deletes the session.
VALID_TRANSITIONS: dict[BookingState, Set[BookingState]] = {
    BookingState.ASKING_SERVICE: {BookingState.ASKING_PERIOD},
    BookingState.ASKING_PERIOD: {BookingState.ASKING_DATE},
    BookingState.ASKING_DATE: {BookingState.ASKING_TIME},
    BookingState.ASKING_TIME: {BookingState.CONFIRMING},
    BookingState.CONFIRMING: {BookingState.COMPLETED},
    BookingState.COMPLETED: set(),
}


def can_transition(from_state: BookingState, to_state: BookingState) -> bool:
    """Check if a state transition is valid."""
    return to_state in VALID_TRANSITIONS.get(from_state, set())


def is_terminal_state(state: BookingState) -> bool:
    """Check if state is terminal (no further transitions)."""
    return state == BookingState.COMPLETED
