"""Save-time validation for reservation payloads.

Collects every problem instead of stopping at the first, so the agent can
read the full list back to the caller and keep the draft for correction.
"""

from __future__ import annotations

from datetime import date
from typing import Optional

from reservations.errors import ValidationError
from reservations.models.reservation import ReservationRequest
from reservations.parsing import is_future_date


def validate_request(request: ReservationRequest, today: Optional[date] = None) -> list[str]:
    """Return field-level error messages; empty when the payload is valid."""
    errors: list[str] = []

    if not request.customer_name.strip():
        errors.append("Customer name is required.")

    if request.number_of_guests is None or request.number_of_guests <= 0:
        errors.append("numberOfGuests must be a number greater than zero.")

    if request.booking_date is None:
        errors.append("bookingDate must be a valid date.")
    elif not is_future_date(request.booking_date, today=today):
        errors.append("bookingDate must be in the future.")

    if not request.booking_time.strip():
        errors.append("bookingTime is required.")

    if not request.cuisine_preference.strip():
        errors.append("cuisinePreference is required.")

    return errors


def ensure_valid(request: ReservationRequest, today: Optional[date] = None) -> None:
    """Raise ValidationError carrying every message from validate_request."""
    errors = validate_request(request, today=today)
    if errors:
        raise ValidationError(errors)
