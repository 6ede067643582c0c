"""Pure helpers that turn OpenWeatherMap payloads into WeatherInsight records."""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Any, Optional, Sequence

from reservations.models.weather import SeatingPreference, WeatherCategory, WeatherInsight

SOURCE_TAG = "openweathermap"
MS_TO_KPH = 3.6


def map_condition_to_category(condition: Optional[str] = "") -> WeatherCategory:
    """Collapse a provider condition string into one of four categories.

    Checked in priority order: thunder, rain/drizzle, cloud. Anything
    else, including an empty string, counts as sunny.
    """
    value = (condition or "").lower()
    if "thunder" in value:
        return WeatherCategory.THUNDERSTORM
    if "rain" in value or "drizzle" in value:
        return WeatherCategory.RAINY
    if "cloud" in value:
        return WeatherCategory.CLOUDY
    return WeatherCategory.SUNNY


def seating_for_category(category: WeatherCategory | str) -> SeatingPreference:
    category = WeatherCategory(category)
    if category is WeatherCategory.SUNNY:
        return SeatingPreference.OUTDOOR
    if category is WeatherCategory.CLOUDY:
        return SeatingPreference.EITHER
    return SeatingPreference.INDOOR


def pick_closest_forecast(
    entries: Optional[Sequence[dict[str, Any]]],
    target: datetime,
) -> Optional[dict[str, Any]]:
    """Return the forecast entry whose ``dt`` is closest to ``target``.

    Distance is measured in fractional hours; on a tie the earlier entry
    in the list wins. Returns None when there is nothing to choose from,
    which tells the caller to fall back to current conditions.
    """
    if not entries:
        return None
    if target.tzinfo is None:
        target = target.replace(tzinfo=timezone.utc)

    best: Optional[dict[str, Any]] = None
    smallest = float("inf")
    for entry in entries:
        dt = entry.get("dt") if isinstance(entry, dict) else None
        if not isinstance(dt, (int, float)):
            continue
        entry_time = datetime.fromtimestamp(dt, tz=timezone.utc)
        diff = abs((entry_time - target).total_seconds()) / 3600
        if diff < smallest:
            smallest = diff
            best = entry
    return best


def normalize_weather_payload(
    payload: Optional[dict[str, Any]],
    city: str,
    now: Optional[datetime] = None,
) -> WeatherInsight:
    """Convert a forecast entry or current-weather response."""
    payload = payload or {}
    conditions = payload.get("weather") or [{}]
    first = conditions[0] or {}
    weather_main = first.get("main") or "Clear"
    description = first.get("description") or ""

    main = payload.get("main") or {}
    wind = payload.get("wind") or {}
    speed = wind.get("speed")

    dt = payload.get("dt")
    if dt:
        timestamp = datetime.fromtimestamp(dt, tz=timezone.utc)
    else:
        timestamp = now or datetime.now(tz=timezone.utc)

    return WeatherInsight(
        category=map_condition_to_category(weather_main),
        summary=description,
        raw_condition=weather_main,
        temperature_c=main.get("temp"),
        humidity=main.get("humidity"),
        wind_kph=float(speed) * MS_TO_KPH if speed is not None else None,
        city=city,
        timestamp=timestamp,
        source=SOURCE_TAG,
    )
