"""Open-Meteo current weather adapter.

Uses the forecast endpoint with ``current_weather=true``, which returns the
latest observation for a coordinate pair without an API key.
"""

import logging
from datetime import datetime, timezone
from typing import Any

import httpx
from pydantic import ValidationError

from ..schemas.stop import Location, Weather
from .ports import LookupUnavailable

logger = logging.getLogger(__name__)

PROVIDER = "open-meteo"

# WMO weather interpretation codes as documented by Open-Meteo.
WMO_CONDITIONS: dict[int, str] = {
    0: "Clear sky",
    1: "Mainly clear",
    2: "Partly cloudy",
    3: "Overcast",
    45: "Fog",
    48: "Depositing rime fog",
    51: "Light drizzle",
    53: "Moderate drizzle",
    55: "Dense drizzle",
    56: "Light freezing drizzle",
    57: "Dense freezing drizzle",
    61: "Slight rain",
    63: "Moderate rain",
    65: "Heavy rain",
    66: "Light freezing rain",
    67: "Heavy freezing rain",
    71: "Slight snow fall",
    73: "Moderate snow fall",
    75: "Heavy snow fall",
    77: "Snow grains",
    80: "Slight rain showers",
    81: "Moderate rain showers",
    82: "Violent rain showers",
    85: "Slight snow showers",
    86: "Heavy snow showers",
    95: "Thunderstorm",
    96: "Thunderstorm with slight hail",
    99: "Thunderstorm with heavy hail",
}


def describe_weather_code(code: int | None) -> str | None:
    """Return a short text for a WMO weather code, or None if unknown."""
    if code is None:
        return None
    return WMO_CONDITIONS.get(code)


class OpenMeteoWeatherProvider:
    """Weather lookup backed by the Open-Meteo forecast API."""

    def __init__(
        self,
        client: httpx.AsyncClient,
        base_url: str = "https://api.open-meteo.com",
        temperature_unit: str = "fahrenheit",
    ):
        self.client = client
        self.base_url = base_url.rstrip("/")
        self.temperature_unit = temperature_unit

    async def current_conditions(self, location: Location) -> Weather:
        params = {
            "latitude": location.latitude,
            "longitude": location.longitude,
            "current_weather": "true",
            "temperature_unit": self.temperature_unit,
            "timezone": "UTC",
        }

        try:
            response = await self.client.get(f"{self.base_url}/v1/forecast", params=params)
        except httpx.TimeoutException as e:
            raise LookupUnavailable(PROVIDER, "request timed out", cause=e) from e
        except httpx.HTTPError as e:
            raise LookupUnavailable(PROVIDER, "request failed", cause=e) from e

        if response.status_code >= 400:
            # Open-Meteo explains 400s in a "reason" member
            reason = None
            try:
                body = response.json()
                reason = body.get("reason") if isinstance(body, dict) else None
            except ValueError:
                pass
            message = f"unexpected status {response.status_code}"
            if reason:
                message += f" ({reason})"
            raise LookupUnavailable(PROVIDER, message, status_code=response.status_code)

        try:
            payload = response.json()
            weather = self._to_weather(payload["current_weather"])
        except (KeyError, TypeError, ValueError, ValidationError) as e:
            raise LookupUnavailable(PROVIDER, "malformed current weather payload", cause=e) from e

        logger.debug(
            "Current weather retrieved",
            extra={
                "postal_code": location.postal_code,
                "temperature": weather.temperature,
                "weather_code": weather.weather_code,
            }
        )
        return weather

    def _to_weather(self, current: dict[str, Any]) -> Weather:
        code = current.get("weathercode")
        code = int(code) if code is not None else None

        observed_at = None
        if current.get("time"):
            observed_at = datetime.fromisoformat(current["time"]).replace(tzinfo=timezone.utc)

        return Weather(
            temperature=float(current["temperature"]),
            temperature_unit=self.temperature_unit,
            wind_speed=current.get("windspeed"),
            weather_code=code,
            condition=describe_weather_code(code),
            observed_at=observed_at,
        )
