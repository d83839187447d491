"""Correlation id middleware.

Takes ``X-Correlation-Id`` from the request (or generates one), binds it
to the structlog context for the duration of the request and echoes it
on the response.
"""

from uuid import uuid4

import structlog
from fastapi import Request

from shared.api.dependencies import CORRELATION_HEADER


async def correlation_id_middleware(request: Request, call_next):
    correlation_id = request.headers.get(CORRELATION_HEADER) or str(uuid4())
    request.state.correlation_id = correlation_id
    with structlog.contextvars.bound_contextvars(correlation_id=correlation_id, path=request.url.path):
        response = await call_next(request)
    response.headers[CORRELATION_HEADER] = correlation_id
    return response
