"""Service layer package."""

from .enrichment_service import StopEnrichmentService
from .tour_service import TourService

__all__ = [
    "StopEnrichmentService",
    "TourService",
]
