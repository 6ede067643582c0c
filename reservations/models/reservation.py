"""Pydantic models for the reservation draft and persisted bookings."""

from __future__ import annotations

from datetime import date, datetime
from typing import Annotated, Any, Optional

from pydantic import BaseModel, Field, PositiveInt, StringConstraints, field_validator
from pydantic.alias_generators import to_camel

from reservations.config import settings
from reservations.models.weather import SeatingPreference, WeatherInsight

BookingTime = Annotated[str, StringConstraints(pattern=r"^([01]\d|2[0-3]):[0-5]\d$")]

_CAMEL = {"alias_generator": to_camel, "populate_by_name": True}


class ReservationDraft(BaseModel):
    """Mutable in-progress reservation built one field per step.

    Assignments are validated, so a field that has been set is never
    invalid: guests stay positive and the time stays ``HH:MM``.
    """

    customer_name: str = ""
    number_of_guests: Optional[PositiveInt] = None
    booking_date: Optional[date] = None
    booking_time: Optional[BookingTime] = None
    cuisine_preference: Optional[str] = None
    special_requests: str = "None"
    seating_preference: Optional[SeatingPreference] = None
    weather_info: Optional[WeatherInsight] = None
    city: str = Field(default_factory=lambda: settings.default_city)

    model_config = {"validate_assignment": True, **_CAMEL}

    def to_request(self, status: str = "confirmed") -> "ReservationRequest":
        return ReservationRequest(
            customer_name=self.customer_name,
            number_of_guests=self.number_of_guests,
            booking_date=self.booking_date,
            booking_time=self.booking_time or "",
            cuisine_preference=self.cuisine_preference or "",
            special_requests=self.special_requests or "None",
            seating_preference=self.seating_preference,
            weather_info=self.weather_info,
            city=self.city,
            status=status,
        )


class ReservationRequest(BaseModel):
    """Payload submitted to the bookings API.

    Types are loose here; ``reservations.validation`` reports the
    field-level problems in words the agent can read back.
    """

    customer_name: str = ""
    number_of_guests: Optional[int] = None
    booking_date: Optional[date] = None
    booking_time: str = ""
    cuisine_preference: str = ""
    special_requests: str = "None"
    seating_preference: Optional[SeatingPreference] = None
    weather_info: Optional[WeatherInsight] = None
    city: str = ""
    status: str = "confirmed"

    model_config = _CAMEL

    @field_validator("booking_date", mode="before")
    @classmethod
    def _date_part(cls, value: Any) -> Any:
        # The API stores full timestamps ("2026-12-20T05:00:00.000Z")
        if isinstance(value, str) and len(value) > 10:
            return value[:10]
        if isinstance(value, datetime):
            return value.date()
        return value


class Reservation(ReservationRequest):
    """A booking as returned by the bookings API."""

    booking_id: str
    created_at: Optional[datetime] = None
