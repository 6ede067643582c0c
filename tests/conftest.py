"""Shared fakes for the reservation tests."""

from datetime import date, datetime, timezone

import pytest

from reservations.errors import ConfigurationError
from reservations.weather.provider import WeatherProvider
from reservations.weather.service import WeatherService

# Fixed "today" for every parser and session test
TODAY = date(2026, 10, 19)


def forecast_entry(when: datetime, main: str = "Clear", description: str = "clear sky",
                   temp: float = 22.4, humidity: int = 40, wind: float = 2.0) -> dict:
    return {
        "dt": int(when.timestamp()),
        "weather": [{"main": main, "description": description}],
        "main": {"temp": temp, "humidity": humidity},
        "wind": {"speed": wind},
    }


class FakeWeatherProvider(WeatherProvider):
    """Canned forecast/current payloads with call counters."""

    def __init__(self, forecast=None, current=None, configured=True,
                 forecast_error=None, current_error=None):
        self.forecast = forecast if forecast is not None else []
        self.current = current or forecast_entry(
            datetime(2030, 12, 20, 19, tzinfo=timezone.utc),
        )
        self.configured = configured
        self.forecast_error = forecast_error
        self.current_error = current_error
        self.forecast_calls = 0
        self.current_calls = 0

    def ensure_configured(self):
        if not self.configured:
            raise ConfigurationError("OPENWEATHER_API_KEY is missing")

    async def get_forecast(self, city):
        self.forecast_calls += 1
        if self.forecast_error:
            raise self.forecast_error
        return self.forecast

    async def get_current(self, city):
        self.current_calls += 1
        if self.current_error:
            raise self.current_error
        return self.current


@pytest.fixture
def sunny_provider():
    return FakeWeatherProvider(forecast=[
        forecast_entry(datetime(2030, 12, 20, 18, tzinfo=timezone.utc), temp=22.4),
        forecast_entry(datetime(2030, 12, 21, 0, tzinfo=timezone.utc),
                       main="Rain", description="light rain", temp=12.0),
    ])


@pytest.fixture
def weather_service(sunny_provider):
    return WeatherService(sunny_provider, default_city="New York", tz=timezone.utc)
