"""Lookup providers used to enrich stops."""

from .open_meteo import OpenMeteoWeatherProvider
from .ports import GeocoderPort, LookupNotFound, LookupUnavailable, ProviderError, WeatherPort
from .zippopotam import ZippopotamGeocoder

__all__ = [
    "GeocoderPort",
    "LookupNotFound",
    "LookupUnavailable",
    "OpenMeteoWeatherProvider",
    "ProviderError",
    "WeatherPort",
    "ZippopotamGeocoder",
]
