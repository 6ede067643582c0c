"""Weather providers.

``WeatherProvider`` defines the two lookups the reservation flow needs;
``OpenWeatherMapProvider`` implements them against the OpenWeatherMap
2.5 REST API.
"""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from typing import Any, Optional

import httpx

from reservations.config import settings
from reservations.errors import ConfigurationError, ExternalServiceError

logger = logging.getLogger(__name__)


class WeatherProvider(ABC):
    """Abstract weather backend."""

    @abstractmethod
    def ensure_configured(self) -> None:
        """Raise ConfigurationError if the provider cannot make calls."""

    @abstractmethod
    async def get_forecast(self, city: str) -> list[dict[str, Any]]:
        """Return the multi-day forecast for ``city``.

        Returns:
            List of forecast entries, each carrying at least ``dt``
            (epoch seconds) plus ``weather``, ``main`` and ``wind`` blocks.
        """

    @abstractmethod
    async def get_current(self, city: str) -> dict[str, Any]:
        """Return the current conditions for ``city`` as a single entry."""


class OpenWeatherMapProvider(WeatherProvider):
    """WeatherProvider backed by api.openweathermap.org."""

    def __init__(
        self,
        api_key: Optional[str] = None,
        base_url: Optional[str] = None,
        timeout: Optional[float] = None,
        client: Optional[httpx.AsyncClient] = None,
    ) -> None:
        self._api_key = settings.openweather_api_key if api_key is None else api_key
        self._base_url = (base_url or settings.openweather_base_url).rstrip("/")
        self._timeout = timeout or settings.http_timeout
        self._client = client

    # ---- WeatherProvider interface -----------------------------------------

    def ensure_configured(self) -> None:
        if not self._api_key:
            raise ConfigurationError("OPENWEATHER_API_KEY is missing")

    async def get_forecast(self, city: str) -> list[dict[str, Any]]:
        data = await self._get("forecast", city)
        return data.get("list") or []

    async def get_current(self, city: str) -> dict[str, Any]:
        return await self._get("weather", city)

    # ---- Internal helpers --------------------------------------------------

    async def _get(self, endpoint: str, city: str) -> dict[str, Any]:
        self.ensure_configured()
        url = f"{self._base_url}/{endpoint}"
        params = {"q": city, "appid": self._api_key, "units": "metric"}

        try:
            if self._client is not None:
                resp = await self._client.get(url, params=params)
            else:
                async with httpx.AsyncClient(timeout=self._timeout) as client:
                    resp = await client.get(url, params=params)
            resp.raise_for_status()
            data = resp.json()
        except httpx.HTTPStatusError as exc:
            raise ExternalServiceError(
                f"OpenWeatherMap {endpoint} returned status {exc.response.status_code}"
            ) from exc
        except httpx.HTTPError as exc:
            raise ExternalServiceError(
                f"OpenWeatherMap {endpoint} request failed: {exc}"
            ) from exc
        except ValueError as exc:
            raise ExternalServiceError(
                f"OpenWeatherMap {endpoint} returned invalid JSON"
            ) from exc

        if not isinstance(data, dict):
            raise ExternalServiceError(f"OpenWeatherMap {endpoint} returned {type(data).__name__}")
        logger.debug("OpenWeatherMap %s for %s ok", endpoint, city)
        return data
