"""Tour-related Pydantic schemas."""

from datetime import datetime, timezone

from pydantic import Field, field_validator

from .common import CamelModel
from .stop import Stop


def _as_utc(value: datetime) -> datetime:
    # SQLite hands back naive datetimes; everything is stored as UTC
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


class CreateTourRequest(CamelModel):
    """Request schema for creating a tour."""

    title: str = Field(..., min_length=1, max_length=255, description="Tour title")
    activities: list[str] = Field(default_factory=list, description="Ordered activities")
    launch_date: datetime | None = Field(None, description="Launch date, defaults to now")

    @field_validator("launch_date")
    @classmethod
    def normalize_launch_date(cls, v: datetime | None) -> datetime | None:
        return _as_utc(v) if v is not None else None


class ReplaceTourRequest(CamelModel):
    """
    Request schema for replacing a tour.

    Only ``title`` and ``activities`` are replaced. ``version`` is optional:
    when sent it must match the stored version, otherwise the write is
    last-write-wins. Other document fields are ignored.
    """

    title: str = Field(..., min_length=1, max_length=255, description="Tour title")
    activities: list[str] = Field(default_factory=list, description="Ordered activities")
    version: int | None = Field(None, ge=0, description="Version the replacement is based on")


class TourSummary(CamelModel):
    """Projected tour returned by list reads."""

    id: str = Field(..., description="Unique tour ID")
    title: str = Field(..., description="Tour title")
    launch_date: datetime = Field(..., description="Launch date (ISO 8601)")

    @field_validator("launch_date")
    @classmethod
    def normalize_launch_date(cls, v: datetime) -> datetime:
        return _as_utc(v)


class Tour(TourSummary):
    """Full tour document."""

    activities: list[str] = Field(..., description="Ordered activities")
    version: int = Field(..., ge=0, description="Optimistic concurrency version")
    stops: list[Stop] = Field(..., description="Ordered, fully enriched stops")
