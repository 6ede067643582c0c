"""Weather lookup and normalization for seating suggestions."""

from .normalize import (
    map_condition_to_category,
    normalize_weather_payload,
    pick_closest_forecast,
    seating_for_category,
)
from .provider import OpenWeatherMapProvider, WeatherProvider
from .service import WeatherService

__all__ = [
    "OpenWeatherMapProvider",
    "WeatherProvider",
    "WeatherService",
    "map_condition_to_category",
    "normalize_weather_payload",
    "pick_closest_forecast",
    "seating_for_category",
]
