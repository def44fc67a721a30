"""Lookup ports used by the stop enrichment pipeline.

Each port is a small async protocol so the pipeline can be wired to the
real HTTP providers in production and to in-memory fakes in tests.
Adapters translate their transport's failures into the two lookup errors
defined here; the pipeline decides what those mean for a stop.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Optional, Protocol

from ..schemas.stop import Location, Weather


@dataclass
class ProviderError(Exception):
    """Base error for lookup providers.

    Attributes:
        provider: Name of the provider that failed
        message: Human-readable error description
        cause: Optional underlying exception
    """

    provider: str
    message: str
    cause: Optional[Exception] = field(default=None, repr=False)

    def __str__(self) -> str:
        if self.cause:
            return f"{self.provider}: {self.message}: {self.cause}"
        return f"{self.provider}: {self.message}"

    def __post_init__(self) -> None:
        super().__init__(self.message)


@dataclass
class LookupNotFound(ProviderError):
    """The provider answered, but has no result for the query."""


@dataclass
class LookupUnavailable(ProviderError):
    """The provider could not be reached, timed out, or returned an unusable answer.

    Attributes:
        status_code: HTTP status returned by the provider, if any
    """

    status_code: Optional[int] = None


class GeocoderPort(Protocol):
    """Resolves a postal code to a location."""

    async def geocode(self, postal_code: str) -> Location:
        """Return the location for ``postal_code``.

        Raises:
            LookupNotFound: No location matches the postal code.
            LookupUnavailable: The provider failed.
        """
        ...


class WeatherPort(Protocol):
    """Looks up current conditions for a resolved location."""

    async def current_conditions(self, location: Location) -> Weather:
        """Return current weather at ``location``'s coordinates.

        Raises:
            LookupNotFound, LookupUnavailable: The provider failed.
        """
        ...
