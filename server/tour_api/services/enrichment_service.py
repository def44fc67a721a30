"""Stop enrichment pipeline: postal code -> geocoded, weather-annotated stop."""

import re
import time
from uuid import uuid4

from opentelemetry import trace

from ..core.exceptions import (
    EnrichmentError,
    InvalidIdentifierError,
    LocationNotFoundError,
    UpstreamUnavailableError,
    WeatherUnavailableError,
)
from ..core.observability import get_logger, metrics_collector
from ..providers.ports import GeocoderPort, LookupNotFound, LookupUnavailable, ProviderError, WeatherPort
from ..schemas.stop import Location, Stop, Weather

logger = get_logger(__name__)
tracer = trace.get_tracer(__name__)

DEFAULT_POSTAL_CODE_PATTERN = r"^\d{5}(-\d{4})?$"
ZIP_PLUS_FOUR = re.compile(r"^(\d{5})-\d{4}$")


class StopEnrichmentService:
    """
    Builds fully enriched stops from postal codes.

    The service holds no state between calls. It either returns a stop with
    both ``location`` and ``weather`` populated, or raises an
    ``EnrichmentError`` subclass; a partially resolved stop never leaves it.
    """

    def __init__(
        self,
        geocoder: GeocoderPort,
        weather: WeatherPort,
        postal_code_pattern: str = DEFAULT_POSTAL_CODE_PATTERN,
    ):
        self.geocoder = geocoder
        self.weather = weather
        self.postal_code_pattern = re.compile(postal_code_pattern)

    def normalize_postal_code(self, postal_code: str) -> str:
        """
        Validate a raw postal code and return the form sent to the geocoder.

        Surrounding whitespace is stripped and US ZIP+4 codes are reduced to
        their five-digit prefix. Other formats, hyphenated ones included, are
        passed on unchanged.

        Raises:
            InvalidIdentifierError: If the code does not match the configured pattern
        """
        candidate = (postal_code or "").strip()
        if not self.postal_code_pattern.fullmatch(candidate):
            raise InvalidIdentifierError(postal_code)
        zip_plus_four = ZIP_PLUS_FOUR.fullmatch(candidate)
        if zip_plus_four:
            return zip_plus_four.group(1)
        return candidate

    async def enrich(self, postal_code: str) -> Stop:
        """
        Resolve a postal code into a new stop.

        Args:
            postal_code: Raw postal code supplied by the client

        Returns:
            Stop with a fresh ID, location and weather, and no attendance

        Raises:
            InvalidIdentifierError: Malformed postal code
            LocationNotFoundError: Geocoder has no match
            UpstreamUnavailableError: Geocoder failed or timed out
            WeatherUnavailableError: Weather lookup failed or timed out
        """
        log = logger.with_context(postal_code=postal_code)

        try:
            code = self.normalize_postal_code(postal_code)
            location = await self._geocode(code)
            weather = await self._current_weather(code, location)
        except EnrichmentError as e:
            metrics_collector.record_enrichment_failure(e.code or "UNKNOWN")
            log.warning("stop_enrichment_failed", code=e.code, detail=e.problem_details.get("detail"))
            raise

        stop = Stop(id=uuid4().hex, location=location, weather=weather)
        log.info(
            "stop_enriched",
            stop_id=stop.id,
            region=location.region,
            temperature=weather.temperature,
        )
        return stop

    async def _geocode(self, postal_code: str) -> Location:
        with tracer.start_as_current_span("stop_enrichment.geocode") as span:
            span.set_attribute("postal_code", postal_code)
            started = time.perf_counter()
            try:
                return await self.geocoder.geocode(postal_code)
            except LookupNotFound as e:
                raise LocationNotFoundError(postal_code) from e
            except ProviderError as e:
                span.record_exception(e)
                raise UpstreamUnavailableError(postal_code, detail=str(e)) from e
            finally:
                metrics_collector.observe_enrichment_step("geocode", time.perf_counter() - started)

    async def _current_weather(self, postal_code: str, location: Location) -> Weather:
        with tracer.start_as_current_span("stop_enrichment.weather") as span:
            span.set_attribute("latitude", location.latitude)
            span.set_attribute("longitude", location.longitude)
            started = time.perf_counter()
            try:
                return await self.weather.current_conditions(location)
            except (LookupNotFound, LookupUnavailable) as e:
                span.record_exception(e)
                raise WeatherUnavailableError(postal_code, detail=str(e)) from e
            finally:
                metrics_collector.observe_enrichment_step("weather", time.perf_counter() - started)
