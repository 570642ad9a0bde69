"""Booking conversation bot for messaging channels."""

__version__ = "1.0.0"
