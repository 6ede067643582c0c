"""Application configuration via environment variables."""

from __future__ import annotations

import logging
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from pydantic_settings import BaseSettings

log = logging.getLogger("reservations.config")


class Settings(BaseSettings):
    # Weather (OpenWeatherMap)
    openweather_api_key: str = ""
    openweather_base_url: str = "https://api.openweathermap.org/data/2.5"

    # Restaurant
    default_city: str = "New York"
    restaurant_timezone: str = "America/New_York"

    # Bookings CRUD API; empty keeps reservations in memory
    bookings_api_url: str = ""

    # Outbound HTTP timeout in seconds (weather + bookings)
    http_timeout: float = 8.0

    # Server
    host: str = "127.0.0.1"
    port: int = 8080
    debug: bool = False

    model_config = {"env_file": ".env", "env_file_encoding": "utf-8"}

    @property
    def tz(self) -> ZoneInfo:
        return ZoneInfo(self.restaurant_timezone)

    def validate_startup(self) -> list[str]:
        """Validate configuration at startup. Returns warnings, raises on errors."""
        warnings: list[str] = []
        _placeholders = {"your-openweather-key", "changeme", "..."}

        try:
            ZoneInfo(self.restaurant_timezone)
        except (ZoneInfoNotFoundError, ValueError):
            raise ValueError(
                f"RESTAURANT_TIMEZONE {self.restaurant_timezone!r} is not a known time zone."
            )

        if not self.openweather_api_key or self.openweather_api_key in _placeholders:
            warnings.append(
                "OPENWEATHER_API_KEY not set — weather checks will be skipped "
                "and bookings cannot be saved."
            )

        if not self.bookings_api_url:
            warnings.append(
                "BOOKINGS_API_URL not set — reservations are kept in memory only."
            )

        if not self.default_city.strip():
            raise ValueError("DEFAULT_CITY must not be empty.")

        return warnings


settings = Settings()
