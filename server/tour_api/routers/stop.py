"""Stop router for operations on the stops embedded in a tour."""

import logging

from fastapi import APIRouter, Depends
from fastapi.responses import JSONResponse
from sqlalchemy.ext.asyncio import AsyncSession

from ..core.database import get_db
from ..core.dependencies import get_enrichment_service
from ..core.exceptions import InternalServerError, ProblemDetailsException
from ..schemas.common import Problem, RemovedResponse
from ..schemas.stop import AddStopRequest, Stop, UpdateStopRequest
from ..services.enrichment_service import StopEnrichmentService
from ..services.tour_service import TourService
from .tour import parse_tour_id

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/tours/{tour_id}/stops", tags=["stops"])

ENRICHMENT_ERROR_RESPONSES = {
    400: {"model": Problem, "description": "Invalid postal code or request body"},
    404: {"model": Problem, "description": "Tour not found"},
    422: {"model": Problem, "description": "No location matches the postal code"},
    502: {"model": Problem, "description": "Weather lookup failed"},
    503: {"model": Problem, "description": "Location lookup unavailable"},
}


@router.post("", response_model=Stop, responses=ENRICHMENT_ERROR_RESPONSES)
async def add_stop(
    tour_id: str,
    request: AddStopRequest,
    db: AsyncSession = Depends(get_db),
    enrichment: StopEnrichmentService = Depends(get_enrichment_service),
) -> JSONResponse:
    """
    Add a stop to a tour from a postal code.

    The tour must exist before any lookup is made. The stop is enriched with
    location and weather outside any database transaction and only then
    appended, so a failed lookup leaves the tour and its version untouched.
    """
    tour_service = TourService(db)
    tour_uuid = parse_tour_id(tour_id)

    try:
        await tour_service.ensure_tour_exists(tour_uuid)
        stop = await enrichment.enrich(request.postal_code)
        await tour_service.add_stop(tour_uuid, stop)

        return JSONResponse(
            status_code=200,
            content=stop.to_json()
        )

    except ProblemDetailsException:
        raise

    except Exception as e:
        logger.error(
            "Unexpected error while adding stop",
            extra={
                "tour_id": tour_id,
                "postal_code": request.postal_code,
                "error": str(e)
            },
            exc_info=True
        )
        raise InternalServerError() from e


@router.put("/{stop_id}", response_model=Stop, responses={404: {"model": Problem}})
async def update_stop(
    tour_id: str,
    stop_id: str,
    request: UpdateStopRequest,
    db: AsyncSession = Depends(get_db),
) -> JSONResponse:
    """
    Update a stop's attendance.

    The whole stop document may be sent back; only ``attendance`` is applied.
    """
    stop = await TourService(db).update_stop(parse_tour_id(tour_id), stop_id, request)

    return JSONResponse(
        status_code=200,
        content=stop.to_json()
    )


@router.delete("/{stop_id}", response_model=RemovedResponse, responses={404: {"model": Problem}})
async def remove_stop(
    tour_id: str,
    stop_id: str,
    db: AsyncSession = Depends(get_db),
) -> JSONResponse:
    """Remove a stop from a tour."""
    await TourService(db).remove_stop(parse_tour_id(tour_id), stop_id)

    return JSONResponse(
        status_code=200,
        content=RemovedResponse(removed=True).model_dump()
    )
