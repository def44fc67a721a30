"""Stop-related Pydantic schemas."""

from datetime import datetime

from pydantic import AliasChoices, Field

from .common import CamelModel


class Location(CamelModel):
    """Location resolved from a postal code by the geocoder."""

    postal_code: str = Field(..., description="Postal code the location was resolved from")
    city: str | None = Field(None, description="Place name")
    region: str = Field(..., description="State or region name")
    region_code: str | None = Field(None, description="State or region abbreviation")
    country: str | None = Field(None, description="Country name")
    country_code: str | None = Field(None, description="ISO country code")
    latitude: float = Field(..., ge=-90, le=90, description="Latitude in decimal degrees")
    longitude: float = Field(..., ge=-180, le=180, description="Longitude in decimal degrees")


class Weather(CamelModel):
    """Current conditions at a resolved location."""

    temperature: float = Field(..., description="Current temperature")
    temperature_unit: str = Field(..., description="Unit of the temperature value")
    wind_speed: float | None = Field(None, description="Current wind speed")
    weather_code: int | None = Field(None, description="WMO weather interpretation code")
    condition: str | None = Field(None, description="Short description of the conditions")
    observed_at: datetime | None = Field(None, description="Observation time reported by the provider")


class Stop(CamelModel):
    """A fully enriched stop embedded in a tour."""

    id: str = Field(..., description="Stop ID, unique within its tour")
    location: Location = Field(..., description="Resolved location")
    weather: Weather = Field(..., description="Conditions at enrichment time")
    attendance: int | None = Field(None, ge=0, description="Recorded attendance")


class AddStopRequest(CamelModel):
    """Request schema for adding a stop to a tour."""

    postal_code: str = Field(
        ...,
        min_length=1,
        max_length=32,
        validation_alias=AliasChoices("postalCode", "postal_code", "zip"),
        description="Postal code to enrich into a stop",
    )


class UpdateStopRequest(CamelModel):
    """
    Patchable stop fields.

    Only ``attendance`` may be changed by clients; any other field sent in the
    body (including ``location`` and ``weather``) is ignored.
    """

    attendance: int | None = Field(None, ge=0, description="Recorded attendance")
