"""Custom exceptions following RFC 9457 Problem Details for HTTP APIs."""

from typing import Any, Dict, List, Optional
from fastapi import HTTPException, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
import uuid
from datetime import datetime, timezone


class ProblemDetailsException(HTTPException):
    """
    Base exception class following RFC 9457 Problem Details for HTTP APIs.

    https://tools.ietf.org/rfc/rfc9457.txt
    """

    def __init__(
        self,
        status_code: int,
        title: str,
        detail: Optional[str] = None,
        type_uri: Optional[str] = None,
        instance: Optional[str] = None,
        extensions: Optional[Dict[str, Any]] = None,
        headers: Optional[Dict[str, str]] = None,
    ):
        """
        Initialize Problem Details exception.

        Args:
            status_code: HTTP status code
            title: Short, human-readable summary of the problem type
            detail: Human-readable explanation specific to this occurrence
            type_uri: URI reference that identifies the problem type
            instance: URI reference that identifies the specific occurrence
            extensions: Additional problem-specific information
            headers: HTTP headers to include in response
        """
        self.status_code = status_code
        self.title = title
        self.detail = detail
        self.type_uri = type_uri or f"about:blank#{status_code}"
        self.instance = instance
        self.extensions = extensions or {}

        self.problem_details = {
            "type": self.type_uri,
            "title": self.title,
            "status": self.status_code,
        }

        if self.detail:
            self.problem_details["detail"] = self.detail

        if self.instance:
            self.problem_details["instance"] = self.instance

        self.problem_details.update(self.extensions)

        super().__init__(
            status_code=status_code,
            detail=self.problem_details,
            headers=headers
        )

    @property
    def code(self) -> Optional[str]:
        """Application-specific error code, if any."""
        return self.problem_details.get("code")


class ValidationError(ProblemDetailsException):
    """Exception for request validation errors."""

    def __init__(
        self,
        detail: str = "The request data failed validation",
        violations: Optional[List[Dict[str, str]]] = None,
        instance: Optional[str] = None,
    ):
        extensions: Dict[str, Any] = {"code": "VALIDATION_ERROR", "retryable": False}
        if violations:
            extensions["violations"] = violations

        super().__init__(
            status_code=400,
            title="Validation Error",
            detail=detail,
            type_uri="https://example.com/problems/validation-error",
            instance=instance,
            extensions=extensions,
        )


class NotFoundError(ProblemDetailsException):
    """Exception for resource not found errors."""

    def __init__(
        self,
        resource_type: str = "resource",
        resource_id: Optional[str] = None,
        detail: Optional[str] = None,
        instance: Optional[str] = None,
    ):
        if not detail:
            detail = f"The requested {resource_type}"
            if resource_id:
                detail += f" with ID '{resource_id}'"
            detail += " could not be found"

        extensions = {
            "code": "NOT_FOUND",
            "resource_type": resource_type,
        }
        if resource_id:
            extensions["resource_id"] = resource_id

        super().__init__(
            status_code=404,
            title="Resource Not Found",
            detail=detail,
            type_uri="https://example.com/problems/resource-not-found",
            instance=instance,
            extensions=extensions,
        )


class ConflictError(ProblemDetailsException):
    """Exception for resource conflict errors."""

    def __init__(
        self,
        detail: str = "The request conflicts with the current state of the resource",
        conflicting_resource: Optional[Dict[str, Any]] = None,
        instance: Optional[str] = None,
    ):
        extensions = {}
        if conflicting_resource:
            extensions["conflicting_resource"] = conflicting_resource

        super().__init__(
            status_code=409,
            title="Resource Conflict",
            detail=detail,
            type_uri="https://example.com/problems/resource-conflict",
            instance=instance,
            extensions=extensions,
        )


class VersionConflictError(ConflictError):
    """Exception when a tour write is based on a version that is no longer current."""

    def __init__(
        self,
        tour_id: str,
        current_version: Optional[int] = None,
        expected_version: Optional[int] = None,
    ):
        if expected_version is not None:
            detail = (
                f"Tour {tour_id} is at version {current_version}, "
                f"but the request was based on version {expected_version}"
            )
        else:
            detail = f"Tour {tour_id} was modified concurrently; retry the request"

        super().__init__(
            detail=detail,
            conflicting_resource={
                "id": tour_id,
                "version": current_version,
            },
        )
        self.problem_details.update({
            "code": "VERSION_CONFLICT",
            "retryable": expected_version is None,
        })


class InternalServerError(ProblemDetailsException):
    """Exception for internal server errors."""

    def __init__(
        self,
        detail: str = "An unexpected error occurred while processing the request",
        error_id: Optional[str] = None,
        instance: Optional[str] = None,
    ):
        if not error_id:
            error_id = str(uuid.uuid4())

        extensions = {
            "error_id": error_id,
            "timestamp": _utc_timestamp(),
        }

        super().__init__(
            status_code=500,
            title="Internal Server Error",
            detail=detail,
            type_uri="https://example.com/problems/internal-server-error",
            instance=instance,
            extensions=extensions,
        )


# Stop enrichment exceptions

class EnrichmentError(ProblemDetailsException):
    """Base class for failures while enriching a stop from its postal code."""

    def __init__(
        self,
        status_code: int,
        title: str,
        code: str,
        postal_code: str,
        detail: str,
        retryable: bool,
    ):
        super().__init__(
            status_code=status_code,
            title=title,
            detail=detail,
            type_uri=f"https://example.com/problems/{code.lower().replace('_', '-')}",
            extensions={
                "code": code,
                "retryable": retryable,
                "postal_code": postal_code,
            },
        )
        self.postal_code = postal_code


class InvalidIdentifierError(EnrichmentError):
    """The postal code is not syntactically valid for the geocoder."""

    def __init__(self, postal_code: str, detail: Optional[str] = None):
        super().__init__(
            status_code=400,
            title="Invalid Postal Code",
            code="INVALID_IDENTIFIER",
            postal_code=postal_code,
            detail=detail or f"'{postal_code}' is not a valid postal code",
            retryable=False,
        )


class LocationNotFoundError(EnrichmentError):
    """The geocoder returned no match for the postal code."""

    def __init__(self, postal_code: str, detail: Optional[str] = None):
        super().__init__(
            status_code=422,
            title="Location Not Found",
            code="LOCATION_NOT_FOUND",
            postal_code=postal_code,
            detail=detail or f"No location matches postal code '{postal_code}'",
            retryable=False,
        )


class UpstreamUnavailableError(EnrichmentError):
    """The geocoder could not be reached or answered with an error."""

    def __init__(self, postal_code: str, detail: Optional[str] = None):
        super().__init__(
            status_code=503,
            title="Upstream Unavailable",
            code="UPSTREAM_UNAVAILABLE",
            postal_code=postal_code,
            detail=detail or "The location lookup service is unavailable",
            retryable=True,
        )


class WeatherUnavailableError(EnrichmentError):
    """The weather provider failed after the location was resolved."""

    def __init__(self, postal_code: str, detail: Optional[str] = None):
        super().__init__(
            status_code=502,
            title="Weather Unavailable",
            code="WEATHER_UNAVAILABLE",
            postal_code=postal_code,
            detail=detail or "Current weather could not be retrieved for the resolved location",
            retryable=True,
        )


def _utc_timestamp() -> str:
    return datetime.now(timezone.utc).isoformat().replace("+00:00", "Z")


async def problem_details_handler(request: Request, exc: ProblemDetailsException) -> JSONResponse:
    """
    Exception handler for Problem Details exceptions.

    Args:
        request: FastAPI request object
        exc: Problem Details exception

    Returns:
        JSONResponse: Problem Details formatted response
    """
    return JSONResponse(
        status_code=exc.status_code,
        content=exc.problem_details,
        headers=exc.headers,
        media_type="application/problem+json",
    )


async def validation_exception_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    """
    Convert FastAPI request validation failures into a 400 Validation Error problem.

    Each Pydantic error becomes a violation with a dotted path into the request.
    """
    violations = [
        {
            "path": ".".join(str(part) for part in error.get("loc", ())),
            "message": error.get("msg", "Invalid value"),
        }
        for error in exc.errors()
    ]
    problem = ValidationError(violations=violations, instance=request.url.path)
    return await problem_details_handler(request, problem)


async def generic_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    """
    Generic exception handler that converts unhandled exceptions to Problem Details format.

    Args:
        request: FastAPI request object
        exc: Unhandled exception

    Returns:
        JSONResponse: Problem Details formatted response
    """
    problem = InternalServerError(instance=str(request.url))
    return await problem_details_handler(request, problem)
