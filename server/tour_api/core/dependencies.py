"""FastAPI dependencies for the stop enrichment pipeline."""

from typing import AsyncGenerator

import httpx
from fastapi import Depends, Request

from .config import settings
from ..providers.open_meteo import OpenMeteoWeatherProvider
from ..providers.zippopotam import ZippopotamGeocoder
from ..services.enrichment_service import StopEnrichmentService


def create_http_client() -> httpx.AsyncClient:
    """Build the shared outbound HTTP client used by the lookup providers."""
    return httpx.AsyncClient(
        timeout=httpx.Timeout(settings.lookup_timeout_seconds),
        headers={"User-Agent": settings.http_user_agent, "Accept": "application/json"},
        follow_redirects=True,
    )


async def get_http_client(request: Request) -> AsyncGenerator[httpx.AsyncClient, None]:
    """
    Yield the application-wide HTTP client opened in the lifespan.

    Falls back to a request-scoped client when the app runs without its
    lifespan (e.g. under a bare ASGI transport).
    """
    client = getattr(request.app.state, "http_client", None)
    if client is not None:
        yield client
        return

    async with create_http_client() as client:
        yield client


async def get_enrichment_service(
    client: httpx.AsyncClient = Depends(get_http_client),
) -> StopEnrichmentService:
    """Wire the stop enrichment pipeline to the configured providers."""
    return StopEnrichmentService(
        geocoder=ZippopotamGeocoder(
            client,
            base_url=settings.geocoder_base_url,
            country_code=settings.geocoder_country_code,
        ),
        weather=OpenMeteoWeatherProvider(
            client,
            base_url=settings.weather_base_url,
            temperature_unit=settings.temperature_unit,
        ),
        postal_code_pattern=settings.postal_code_pattern,
    )

