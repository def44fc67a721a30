"""Operational endpoints: liveness, readiness, service info and Prometheus metrics."""

import logging
from datetime import datetime, timezone

from fastapi import APIRouter, Response, status
from fastapi.responses import JSONResponse
from sqlalchemy.exc import SQLAlchemyError

from ..core.config import settings
from ..core.database import check_db
from ..core.observability import SERVICE_NAME, SERVICE_VERSION, get_prometheus_metrics
from ..schemas.health import HealthResponse, HealthStatus, ReadinessResponse

logger = logging.getLogger(__name__)

router = APIRouter(tags=["Health"])


@router.get("/health", summary="Health Check", response_model=dict)
async def health_check():
    """Report that the process is up and serving requests."""
    return {
        "status": HealthStatus.HEALTHY.value,
        "service": SERVICE_NAME,
        "version": SERVICE_VERSION,
        "environment": settings.environment,
        "debug": settings.debug,
    }


@router.get("/ready", summary="Readiness Check", response_model=ReadinessResponse)
async def readiness_check() -> JSONResponse:
    """
    Check that the service can reach its database.

    Returns 503 with the failing check when the database is unreachable.
    """
    try:
        await check_db()
        database = "ok"
    except (SQLAlchemyError, OSError) as e:
        logger.warning("Readiness check failed", extra={"error": str(e)})
        database = "unavailable"

    ready = database == "ok"
    response_data = ReadinessResponse(
        status=HealthStatus.READY if ready else HealthStatus.UNAVAILABLE,
        service=SERVICE_NAME,
        checks={"database": database},
    )
    return JSONResponse(
        status_code=status.HTTP_200_OK if ready else status.HTTP_503_SERVICE_UNAVAILABLE,
        content=response_data.model_dump(mode="json")
    )


@router.get("/info", summary="Service Information", response_model=dict)
async def service_info():
    """Describe the service and its endpoints."""
    return {
        "service": SERVICE_NAME,
        "version": SERVICE_VERSION,
        "description": "Tours with embedded stops enriched from postal codes",
        "environment": settings.environment,
        "debug": settings.debug,
        "features": {
            "optimistic_concurrency": True,
            "stop_enrichment": True,
            "tracing": True,
            "problem_details": True,
        },
        "providers": {
            "geocoder": settings.geocoder_base_url,
            "weather": settings.weather_base_url,
        },
        "endpoints": {
            "tours": "/tours",
            "health": "/health",
            "readiness": "/ready",
            "info": "/info",
            "metrics": "/metrics",
            "docs": "/docs" if settings.debug else None,
        },
    }


@router.post("/v1/health/ping", response_model=HealthResponse)
async def health_ping() -> JSONResponse:
    """RPC-style liveness ping returning the server time."""
    response_data = HealthResponse(
        status=HealthStatus.HEALTHY,
        timestamp=datetime.now(timezone.utc),
        version=SERVICE_VERSION
    )

    logger.debug(
        "Health ping requested",
        extra={"timestamp": response_data.timestamp.isoformat()}
    )

    return JSONResponse(
        status_code=200,
        content=response_data.model_dump(mode="json")
    )


@router.get(
    "/metrics",
    summary="Prometheus Metrics",
    response_class=Response,
    tags=["Observability"]
)
async def metrics():
    """Return Prometheus metrics in text exposition format."""
    return Response(
        content=get_prometheus_metrics(),
        media_type="text/plain; version=0.0.4; charset=utf-8"
    )
