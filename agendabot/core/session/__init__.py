"""
Booking session module.

One BookingSession per caller, stored by the SessionManager with an
explicit retention policy and per-caller locking.
"""

from .state import BookingState, can_transition, is_terminal_state
from .models import BookingSession, ConfirmedBooking, ServiceOffering
from .manager import SessionManager, get_session_manager

__all__ = [
    # State
    "BookingState",
    "can_transition",
    "is_terminal_state",
    # Models
    "BookingSession",
    "ConfirmedBooking",
    "ServiceOffering",
    # Manager
    "SessionManager",
    "get_session_manager",
]
