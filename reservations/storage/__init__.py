"""Booking persistence backends."""

from .base import BookingStore
from .http import HttpBookingStore
from .memory import InMemoryBookingStore

__all__ = ["BookingStore", "HttpBookingStore", "InMemoryBookingStore"]
