"""Tour router for tour aggregate operations."""

import logging
from uuid import UUID

from fastapi import APIRouter, Depends
from fastapi.responses import JSONResponse
from sqlalchemy.ext.asyncio import AsyncSession

from ..core.database import get_db
from ..core.exceptions import InternalServerError, NotFoundError, ProblemDetailsException
from ..models.tour import Tour as TourModel
from ..schemas.common import Problem, RemovedResponse
from ..schemas.stop import Stop
from ..schemas.tour import CreateTourRequest, ReplaceTourRequest, Tour, TourSummary
from ..services.tour_service import TourService

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/tours", tags=["tours"])


def parse_tour_id(tour_id: str) -> UUID:
    """Parse a tour ID path parameter; a malformed ID cannot name a tour."""
    try:
        return UUID(tour_id)
    except ValueError:
        raise NotFoundError(resource_type="tour", resource_id=tour_id) from None


def convert_tour_to_schema(tour_model: TourModel) -> Tour:
    """Convert tour model to the full tour document."""
    return Tour(
        id=str(tour_model.id),
        title=tour_model.title,
        activities=list(tour_model.activities or []),
        launch_date=tour_model.launch_date,
        version=tour_model.version,
        stops=[Stop.model_validate(stop) for stop in tour_model.stops or []],
    )


@router.post("", response_model=Tour, responses={400: {"model": Problem}})
async def create_tour(
    request: CreateTourRequest,
    db: AsyncSession = Depends(get_db)
) -> JSONResponse:
    """
    Create a new tour.

    The tour starts at version 0 with no stops; the launch date defaults to now.
    """
    tour_service = TourService(db)

    try:
        tour = await tour_service.create_tour(request)
        response_data = convert_tour_to_schema(tour)

        return JSONResponse(
            status_code=200,
            content=response_data.to_json()
        )

    except ProblemDetailsException:
        raise

    except Exception as e:
        logger.error(
            "Unexpected error in tour creation",
            extra={
                "title": request.title,
                "error": str(e)
            },
            exc_info=True
        )
        raise InternalServerError() from e


@router.get("", response_model=list[TourSummary])
async def list_tours(db: AsyncSession = Depends(get_db)) -> JSONResponse:
    """List all tours in creation order with only id, title and launch date."""
    summaries = await TourService(db).list_tours()

    return JSONResponse(
        status_code=200,
        content=[summary.to_json() for summary in summaries]
    )


@router.get("/{tour_id}", response_model=Tour, responses={404: {"model": Problem}})
async def get_tour(tour_id: str, db: AsyncSession = Depends(get_db)) -> JSONResponse:
    """Get a full tour document, including its stops."""
    tour = await TourService(db).get_tour_by_id_or_raise(parse_tour_id(tour_id))

    return JSONResponse(
        status_code=200,
        content=convert_tour_to_schema(tour).to_json()
    )


@router.put(
    "/{tour_id}",
    response_model=Tour,
    responses={404: {"model": Problem}, 409: {"model": Problem}}
)
async def replace_tour(
    tour_id: str,
    request: ReplaceTourRequest,
    db: AsyncSession = Depends(get_db)
) -> JSONResponse:
    """
    Replace a tour's title and activities.

    Sending ``version`` makes the write conditional on it; without it the
    last write wins. Stops, launch date and ID are never changed here.
    """
    tour_service = TourService(db)

    try:
        tour = await tour_service.replace_tour(parse_tour_id(tour_id), request)
        response_data = convert_tour_to_schema(tour)

        return JSONResponse(
            status_code=200,
            content=response_data.to_json()
        )

    except ProblemDetailsException:
        raise

    except Exception as e:
        logger.error(
            "Unexpected error in tour replacement",
            extra={
                "tour_id": tour_id,
                "error": str(e)
            },
            exc_info=True
        )
        raise InternalServerError() from e


@router.delete("/{tour_id}", response_model=RemovedResponse, responses={404: {"model": Problem}})
async def delete_tour(tour_id: str, db: AsyncSession = Depends(get_db)) -> JSONResponse:
    """Delete a tour and all of its stops."""
    await TourService(db).delete_tour(parse_tour_id(tour_id))

    return JSONResponse(
        status_code=200,
        content=RemovedResponse(removed=True).model_dump()
    )
