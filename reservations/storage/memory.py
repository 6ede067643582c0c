"""In-process booking store, used when no bookings API is configured."""

from __future__ import annotations

import logging
import uuid
from datetime import datetime, timezone
from typing import Optional

from reservations.models.reservation import Reservation, ReservationRequest
from reservations.storage.base import BookingStore
from reservations.validation import ensure_valid

logger = logging.getLogger(__name__)


class InMemoryBookingStore(BookingStore):
    """BookingStore keeping reservations in a dict for the process lifetime."""

    def __init__(self) -> None:
        self._bookings: dict[str, Reservation] = {}

    async def create(self, request: ReservationRequest) -> Reservation:
        ensure_valid(request)
        reservation = Reservation(
            **request.model_dump(),
            booking_id=str(uuid.uuid4()),
            created_at=datetime.now(tz=timezone.utc),
        )
        self._bookings[reservation.booking_id] = reservation
        logger.info("Stored booking %s", reservation.booking_id)
        return reservation

    async def list(self) -> list[Reservation]:
        return list(reversed(self._bookings.values()))

    async def get(self, booking_id: str) -> Optional[Reservation]:
        return self._bookings.get(booking_id)

    async def delete(self, booking_id: str) -> bool:
        return self._bookings.pop(booking_id, None) is not None
