"""Weather lookup orchestration for a booking date."""

from __future__ import annotations

import logging
from datetime import date, datetime, time, tzinfo
from typing import Optional, Union

from reservations.config import settings
from reservations.errors import ExternalServiceError, InputError
from reservations.models.weather import WeatherInsight
from reservations.weather.normalize import normalize_weather_payload, pick_closest_forecast
from reservations.weather.provider import WeatherProvider

log = logging.getLogger("reservations.weather")

WeatherTarget = Union[date, datetime, str]


class WeatherService:
    """Forecast-first weather lookup with a current-conditions fallback.

    Usage::

        service = WeatherService(OpenWeatherMapProvider())
        insight = await service.get_weather_for_date(date(2026, 12, 20), at="19:00")
    """

    def __init__(
        self,
        provider: WeatherProvider,
        default_city: str = "",
        tz: Optional[tzinfo] = None,
    ) -> None:
        self._provider = provider
        self._default_city = default_city or settings.default_city
        self._tz = tz or settings.tz

    async def get_weather_for_date(
        self,
        target: WeatherTarget,
        city: Optional[str] = None,
        at: Optional[str] = None,
    ) -> WeatherInsight:
        """Return the normalized weather closest to ``target``.

        Raises:
            ConfigurationError: no API credential (before any request).
            InputError: ``target``/``at`` is not a valid date/time.
            ExternalServiceError: forecast and fallback both failed.
        """
        self._provider.ensure_configured()
        target_dt = self._coerce_target(target, at)
        city = (city or "").strip() or self._default_city

        try:
            entries = await self._provider.get_forecast(city)
            payload = pick_closest_forecast(entries, target_dt)
            if payload is None:
                raise ExternalServiceError("No forecast available")
        except Exception as e:
            log.warning(
                "Forecast lookup failed for %s (%s), falling back to current weather",
                city, e,
            )
            payload = await self._provider.get_current(city)

        insight = normalize_weather_payload(payload, city)
        log.info("Weather for %s on %s: %s", city, target_dt.date(), insight.category.value)
        return insight

    def _coerce_target(self, target: WeatherTarget, at: Optional[str]) -> datetime:
        if isinstance(target, datetime):
            target_dt = target
        elif isinstance(target, date):
            target_dt = datetime.combine(target, time.min)
        elif isinstance(target, str) and target.strip():
            try:
                target_dt = datetime.fromisoformat(target.strip())
            except ValueError:
                raise InputError(f"Invalid date provided for weather lookup: {target!r}")
        else:
            raise InputError("Invalid date provided for weather lookup")

        if at:
            try:
                target_dt = datetime.combine(
                    target_dt.date(), time.fromisoformat(at), tzinfo=target_dt.tzinfo,
                )
            except ValueError:
                raise InputError(f"Invalid time provided for weather lookup: {at!r}")

        if target_dt.tzinfo is None:
            target_dt = target_dt.replace(tzinfo=self._tz)
        return target_dt
