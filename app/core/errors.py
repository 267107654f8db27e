"""
Custom exception hierarchy for the Stay Digest service.

Rule: every HTTP error has a machine-readable `code` string so clients
can branch on it without parsing English messages.
"""
from __future__ import annotations

from typing import Any

from fastapi import Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette import status

from app.core.logging import get_logger

log = get_logger(__name__)


# ---------------------------------------------------------------------------
# Exception classes
# ---------------------------------------------------------------------------

class AppException(Exception):
    """Base class for all application-level errors."""
    http_status: int = status.HTTP_500_INTERNAL_SERVER_ERROR
    code: str = "INTERNAL_ERROR"

    def __init__(self, message: str, details: dict[str, Any] | None = None):
        self.message = message
        self.details = details or {}
        super().__init__(message)

    def to_dict(self) -> dict:
        payload: dict[str, Any] = {"code": self.code, "message": self.message}
        if self.details:
            payload["details"] = self.details
        return payload


class UnauthorizedError(AppException):
    http_status = status.HTTP_401_UNAUTHORIZED
    code = "UNAUTHORIZED"

    def __init__(self):
        super().__init__(message="Missing or invalid bearer token.")


class EventIngestionError(AppException):
    http_status = status.HTTP_500_INTERNAL_SERVER_ERROR
    code = "INGESTION_ERROR"

    def __init__(self, message: str, event_id: str | None = None):
        super().__init__(
            message=message,
            details={"event_id": event_id} if event_id else {},
        )


class DigestNotFoundError(AppException):
    http_status = status.HTTP_404_NOT_FOUND
    code = "DIGEST_NOT_FOUND"

    def __init__(self, digest_id: int):
        super().__init__(
            message=f"Digest {digest_id} does not exist.",
            details={"digest_id": digest_id},
        )


class NotificationDeliveryError(AppException):
    http_status = status.HTTP_502_BAD_GATEWAY
    code = "NOTIFICATION_DELIVERY_FAILED"

    def __init__(self, message: str, digest_id: str | None = None):
        super().__init__(
            message=message,
            details={"digest_id": digest_id} if digest_id else {},
        )


# ---------------------------------------------------------------------------
# FastAPI exception handlers
# ---------------------------------------------------------------------------

async def app_exception_handler(request: Request, exc: AppException) -> JSONResponse:
    return JSONResponse(
        status_code=exc.http_status,
        content=exc.to_dict(),
    )


async def validation_exception_handler(
    request: Request, exc: RequestValidationError
) -> JSONResponse:
    """Return structured 422 with machine-readable field errors."""
    field_errors = []
    for error in exc.errors():
        field_errors.append({
            "field": ".".join(str(loc) for loc in error["loc"] if loc != "body"),
            "message": error["msg"],
            "type": error["type"],
        })
    return JSONResponse(
        status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
        content={
            "code": "VALIDATION_ERROR",
            "message": "Request validation failed.",
            "details": {"errors": field_errors},
        },
    )


async def unhandled_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    log.error("request.unhandled_error", path=request.url.path, exc_info=exc)
    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content={
            "code": "INTERNAL_ERROR",
            "message": "An unexpected error occurred.",
        },
    )
