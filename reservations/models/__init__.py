"""Data models for the reservation layer."""

from .conversation import ConversationStep, ConversationTurn, Sender
from .reservation import Reservation, ReservationDraft, ReservationRequest
from .weather import SeatingPreference, WeatherCategory, WeatherInsight

__all__ = [
    "ConversationStep",
    "ConversationTurn",
    "Reservation",
    "ReservationDraft",
    "ReservationRequest",
    "SeatingPreference",
    "Sender",
    "WeatherCategory",
    "WeatherInsight",
]
