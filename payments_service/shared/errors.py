"""
Error taxonomy and the FastAPI handlers that render it.

Every failure reaches the caller as ``{"error": <kind>, "detail": <message>}``:

- invalid_request             – 400, malformed or out-of-bounds input
- store_unavailable           – 500, database unreachable or query failed
- conflict_resolution_failed  – 500, unique violation but no row found on re-read
- not_found                   – 404, lookup by id matched nothing
"""
from __future__ import annotations

from enum import Enum

import structlog
from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

from payments_service.shared.schemas import ErrorResponse

logger = structlog.get_logger(__name__)


class ErrorKind(str, Enum):
    invalid_request = "invalid_request"
    store_unavailable = "store_unavailable"
    conflict_resolution_failed = "conflict_resolution_failed"
    not_found = "not_found"


class ServiceError(Exception):
    """Base class for errors surfaced to HTTP callers."""

    kind: ErrorKind = ErrorKind.store_unavailable
    status_code: int = status.HTTP_500_INTERNAL_SERVER_ERROR

    def __init__(self, detail: str) -> None:
        super().__init__(detail)
        self.detail = detail


class InvalidRequest(ServiceError):
    kind = ErrorKind.invalid_request
    status_code = status.HTTP_400_BAD_REQUEST


class StoreUnavailable(ServiceError):
    kind = ErrorKind.store_unavailable


class ConflictResolutionFailed(ServiceError):
    kind = ErrorKind.conflict_resolution_failed


class NotFound(ServiceError):
    kind = ErrorKind.not_found
    status_code = status.HTTP_404_NOT_FOUND


def error_response(kind: ErrorKind, detail: str, status_code: int) -> JSONResponse:
    body = ErrorResponse(error=kind.value, detail=detail)
    return JSONResponse(content=body.model_dump(), status_code=status_code)


async def service_error_handler(request: Request, exc: ServiceError) -> JSONResponse:
    if isinstance(exc, ConflictResolutionFailed):
        # The unique constraint reported a row that cannot be read back.
        logger.error(
            "conflict_resolution_failed", path=request.url.path, detail=exc.detail
        )
    elif exc.status_code >= 500:
        logger.error(
            "request_failed",
            path=request.url.path,
            kind=exc.kind.value,
            detail=exc.detail,
        )
    return error_response(exc.kind, exc.detail, exc.status_code)


async def validation_error_handler(
    request: Request, exc: RequestValidationError
) -> JSONResponse:
    messages = []
    for err in exc.errors():
        loc = ".".join(str(part) for part in err.get("loc", ()) if part != "body")
        messages.append(f"{loc}: {err.get('msg')}" if loc else str(err.get("msg")))
    logger.info("invalid_request", path=request.url.path, errors=messages)
    return error_response(
        ErrorKind.invalid_request,
        "; ".join(messages) or "invalid request",
        status.HTTP_400_BAD_REQUEST,
    )


def register_exception_handlers(app: FastAPI) -> None:
    app.add_exception_handler(ServiceError, service_error_handler)  # type: ignore[arg-type]
    app.add_exception_handler(RequestValidationError, validation_error_handler)  # type: ignore[arg-type]
