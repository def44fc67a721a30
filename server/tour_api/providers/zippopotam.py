"""Zippopotam.us postal code geocoder adapter.

Zippopotam.us needs no API key and answers ``GET /{country}/{postal_code}``
with the places that share the postal code, or 404 when there is none.
"""

import logging
from typing import Any

import httpx
from pydantic import ValidationError

from ..schemas.stop import Location
from .ports import LookupNotFound, LookupUnavailable

logger = logging.getLogger(__name__)

PROVIDER = "zippopotam"


class ZippopotamGeocoder:
    """Geocoder backed by the Zippopotam.us REST API."""

    def __init__(
        self,
        client: httpx.AsyncClient,
        base_url: str = "https://api.zippopotam.us",
        country_code: str = "us",
    ):
        self.client = client
        self.base_url = base_url.rstrip("/")
        self.country_code = country_code.lower()

    async def geocode(self, postal_code: str) -> Location:
        url = f"{self.base_url}/{self.country_code}/{postal_code}"

        try:
            response = await self.client.get(url)
        except httpx.TimeoutException as e:
            raise LookupUnavailable(PROVIDER, "request timed out", cause=e) from e
        except httpx.HTTPError as e:
            raise LookupUnavailable(PROVIDER, "request failed", cause=e) from e

        if response.status_code == 404:
            raise LookupNotFound(PROVIDER, f"no places for postal code '{postal_code}'")
        if response.status_code >= 400:
            raise LookupUnavailable(
                PROVIDER,
                f"unexpected status {response.status_code}",
                status_code=response.status_code,
            )

        try:
            payload = response.json()
        except ValueError as e:
            raise LookupUnavailable(PROVIDER, "response is not JSON", cause=e) from e

        places = payload.get("places") if isinstance(payload, dict) else None
        if not places:
            raise LookupNotFound(PROVIDER, f"no places for postal code '{postal_code}'")

        try:
            location = self._to_location(postal_code, payload, places[0])
        except (KeyError, TypeError, ValueError, ValidationError) as e:
            raise LookupUnavailable(PROVIDER, "malformed place record", cause=e) from e

        logger.debug(
            "Postal code geocoded",
            extra={
                "postal_code": postal_code,
                "region": location.region,
                "place_count": len(places),
            }
        )
        return location

    @staticmethod
    def _to_location(postal_code: str, payload: dict[str, Any], place: dict[str, Any]) -> Location:
        return Location(
            postal_code=payload.get("post code") or postal_code,
            city=place.get("place name"),
            region=place["state"],
            region_code=place.get("state abbreviation"),
            country=payload.get("country"),
            country_code=payload.get("country abbreviation"),
            latitude=float(place["latitude"]),
            longitude=float(place["longitude"]),
        )
