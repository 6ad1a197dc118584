"""
Request ID middleware for distributed tracing and debugging.

Adds a unique correlation ID to every request for tracking across services.
"""
import uuid
from typing import Callable

import structlog
from fastapi import Request
from starlette.middleware.base import BaseHTTPMiddleware


class RequestIDMiddleware(BaseHTTPMiddleware):
    """
    Middleware that adds a unique request ID to every request.

    The request ID can be:
    1. Provided by the client via X-Request-ID header
    2. Auto-generated if not provided

    The ID is then:
    - Added to request.state for access in route handlers
    - Bound into the structlog context so every log line carries it
    - Returned in the X-Request-ID response header
    """

    async def dispatch(self, request: Request, call_next: Callable):
        request_id = request.headers.get("X-Request-ID") or str(uuid.uuid4())

        request.state.request_id = request_id

        structlog.contextvars.clear_contextvars()
        structlog.contextvars.bind_contextvars(
            request_id=request_id,
            method=request.method,
            path=request.url.path,
        )

        response = await call_next(request)
        response.headers["X-Request-ID"] = request_id

        return response


def get_request_id(request: Request) -> str:
    """Return the request ID for the current request, or "unknown"."""
    return getattr(request.state, "request_id", "unknown")
