"""
Custom exceptions and error handlers for consistent error responses.

Provides standardized error codes and global exception handlers.
Trip sequencing errors carry the conflicting ledger value so clients can
render "must exceed X" style messages.
"""

import logging
from datetime import datetime
from fastapi import HTTPException, Request, status
from fastapi.responses import JSONResponse
from fastapi.exceptions import RequestValidationError
from fastapi.encoders import jsonable_encoder
from typing import Any, Dict

logger = logging.getLogger("fleet")


class AppException(Exception):
    """Base application exception."""

    def __init__(
        self,
        message: str,
        error_code: str,
        status_code: int = 500,
        details: Dict[str, Any] = None,
        extra: Dict[str, Any] = None,
    ):
        self.message = message
        self.error_code = error_code
        self.status_code = status_code
        self.details = details or {}
        # Fields promoted to the top level of the error body
        self.extra = extra or {}
        super().__init__(message)


class InsufficientPermissionsError(AppException):
    """Raised when user doesn't have permission to perform an action."""

    def __init__(self, message: str = "Insufficient permissions", details: Dict[str, Any] = None):
        super().__init__(
            message=message,
            error_code="ERR_PERM_001",
            status_code=status.HTTP_403_FORBIDDEN,
            details=details
        )


class VehicleNotAssignedError(AppException):
    """Raised when a driver has no assignment record for the vehicle."""

    def __init__(self, vehicle_id: int):
        super().__init__(
            message="You are not allowed to drive this vehicle",
            error_code="ERR_PERM_002",
            status_code=status.HTTP_403_FORBIDDEN,
            details={"vehicle_id": vehicle_id}
        )


class ResourceNotFoundError(AppException):
    """Raised when requested resource is not found."""

    def __init__(self, resource: str, resource_id: Any = None):
        message = f"{resource} not found"
        if resource_id:
            message = f"{resource} with ID {resource_id} not found"
        super().__init__(
            message=message,
            error_code="ERR_NOT_FOUND_001",
            status_code=status.HTTP_404_NOT_FOUND,
            details={"resource": resource, "id": resource_id}
        )


class TripValidationError(AppException):
    """Base class for trip sequencing rule violations (always 400)."""

    kind = "TripValidation"

    def __init__(self, message: str, error_code: str, extra: Dict[str, Any] = None):
        super().__init__(
            message=message,
            error_code=error_code,
            status_code=status.HTTP_400_BAD_REQUEST,
            details={"kind": self.kind},
            extra=extra,
        )


class InvalidTimeRangeError(TripValidationError):
    kind = "InvalidTimeRange"

    def __init__(self):
        super().__init__(
            message="Arrival time must be after departure time",
            error_code="ERR_TRIP_TIME_RANGE",
        )


class DepartureNotAfterLastTripError(TripValidationError):
    kind = "DepartureNotAfterLastTrip"

    def __init__(self, last_departure: datetime):
        self.last_departure = last_departure
        super().__init__(
            message=f"Departure must be after the last trip's departure ({last_departure.isoformat()})",
            error_code="ERR_TRIP_DEPARTURE",
            extra={"last_departure": last_departure},
        )


class OdometerNotIncreasingError(TripValidationError):
    kind = "OdometerNotIncreasing"

    def __init__(self, last_odometer: int):
        self.last_odometer = last_odometer
        super().__init__(
            message=f"Final odometer must exceed {last_odometer}",
            error_code="ERR_TRIP_ODOMETER",
            extra={"last_odometer": last_odometer},
        )


class TripConflictError(AppException):
    """Raised when a concurrent write took the same ledger slot first."""

    def __init__(self, vehicle_id: int):
        super().__init__(
            message="Another trip was recorded for this vehicle at the same time, please retry",
            error_code="ERR_TRIP_CONFLICT",
            status_code=status.HTTP_409_CONFLICT,
            details={"vehicle_id": vehicle_id}
        )


# Global Exception Handlers

async def app_exception_handler(request: Request, exc: AppException) -> JSONResponse:
    """Handler for custom application exceptions."""
    content = {
        "error_code": exc.error_code,
        "error": exc.message,
        "details": exc.details,
    }
    content.update(exc.extra)
    return JSONResponse(status_code=exc.status_code, content=jsonable_encoder(content))


async def http_exception_handler(request: Request, exc: HTTPException) -> JSONResponse:
    """Handler for FastAPI HTTPException with standardized format."""
    error_code_map = {
        400: "ERR_BAD_REQUEST",
        401: "ERR_UNAUTHORIZED",
        403: "ERR_FORBIDDEN",
        404: "ERR_NOT_FOUND",
        409: "ERR_CONFLICT",
        500: "ERR_INTERNAL_SERVER"
    }

    return JSONResponse(
        status_code=exc.status_code,
        content={
            "error_code": error_code_map.get(exc.status_code, "ERR_UNKNOWN"),
            "error": exc.detail,
            "details": {}
        },
        headers=getattr(exc, "headers", None),
    )


async def validation_exception_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    """Handler for malformed request bodies, paths and query strings."""
    return JSONResponse(
        status_code=status.HTTP_400_BAD_REQUEST,
        content=jsonable_encoder({
            "error_code": "ERR_MALFORMED_REQUEST",
            "error": "Malformed request",
            "details": {
                "errors": exc.errors()
            }
        })
    )


async def generic_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    """Handler for unhandled exceptions."""
    logger.exception("Unhandled exception on %s %s", request.method, request.url.path)

    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content={
            "error_code": "ERR_INTERNAL_SERVER",
            "error": "An internal server error occurred",
            "details": {}
        }
    )
