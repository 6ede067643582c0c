"""Abstract base class for booking stores.

Defines the CRUD interface the reservation flow persists through. The
conversation itself only uses ``create`` and ``list``; ``get`` and
``delete`` serve the admin/display surface.
"""

from abc import ABC, abstractmethod
from typing import Optional

from reservations.models.reservation import Reservation, ReservationRequest


class BookingStore(ABC):
    """Abstract bookings backend (in-memory, REST API, ...)."""

    @abstractmethod
    async def create(self, request: ReservationRequest) -> Reservation:
        """Persist a reservation.

        Returns:
            The stored Reservation with a generated ``booking_id``.

        Raises:
            ValidationError: the payload was rejected field by field.
            ExternalServiceError: the backend could not be reached.
        """

    @abstractmethod
    async def list(self) -> list[Reservation]:
        """Return all reservations, newest first."""

    @abstractmethod
    async def get(self, booking_id: str) -> Optional[Reservation]:
        """Return one reservation, or None if it does not exist."""

    @abstractmethod
    async def delete(self, booking_id: str) -> bool:
        """Delete a reservation. Returns False if it did not exist."""
