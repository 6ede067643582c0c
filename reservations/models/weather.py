"""Pydantic models for normalized weather data."""

from __future__ import annotations

from datetime import datetime
from enum import Enum
from typing import Optional

from pydantic import BaseModel
from pydantic.alias_generators import to_camel


class WeatherCategory(str, Enum):
    SUNNY = "sunny"
    CLOUDY = "cloudy"
    RAINY = "rainy"
    THUNDERSTORM = "thunderstorm"


class SeatingPreference(str, Enum):
    INDOOR = "indoor"
    OUTDOOR = "outdoor"
    EITHER = "either"


class WeatherInsight(BaseModel):
    """Weather snapshot for the booking date, attached to the reservation.

    Serialized with camelCase aliases (``temperatureC``, ``windKph``,
    ``rawCondition``) to match the bookings API.
    """

    category: WeatherCategory
    summary: str = ""
    raw_condition: str = ""
    temperature_c: Optional[float] = None
    humidity: Optional[float] = None
    wind_kph: Optional[float] = None
    city: str
    timestamp: datetime
    source: str = "openweathermap"

    model_config = {
        "frozen": True,
        "alias_generator": to_camel,
        "populate_by_name": True,
    }
