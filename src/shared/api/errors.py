"""Mapping from domain and service errors to HTTP responses.

Every error body has the same shape: ``error`` (the exception class),
``message`` and, for validation errors, ``details`` with the per-field
messages.
"""

import structlog
from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse
from protean.exceptions import ObjectNotFoundError, ValidationError

from shared.exceptions import (
    ForbiddenError,
    InvalidTransitionError,
    PublishUnavailable,
    ShopflowError,
    error_details,
)

logger = structlog.get_logger(__name__)

_STATUS_CODES: list[tuple[type[Exception], int]] = [
    (ValidationError, 400),
    (ForbiddenError, 403),
    (ObjectNotFoundError, 404),
    (InvalidTransitionError, 409),
    (PublishUnavailable, 503),
    (ShopflowError, 500),
]


def status_code_for(exc: Exception) -> int:
    for error_type, status_code in _STATUS_CODES:
        if isinstance(exc, error_type):
            return status_code
    return 500


async def error_handler(request: Request, exc: Exception) -> JSONResponse:
    status_code = status_code_for(exc)
    if status_code >= 500:
        logger.error("Request failed", path=request.url.path, error=error_details(exc), error_type=type(exc).__name__)
    else:
        logger.info("Request rejected", path=request.url.path, status_code=status_code, error=error_details(exc))

    content: dict = {"error": type(exc).__name__, "message": str(exc)}
    if isinstance(exc, ValidationError):
        content["details"] = exc.messages
    return JSONResponse(status_code=status_code, content=content)


def register_error_handlers(app: FastAPI) -> None:
    for error_type, _ in _STATUS_CODES:
        app.add_exception_handler(error_type, error_handler)
