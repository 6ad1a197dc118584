"""
Custom middleware for request logging and Prometheus metrics
"""

import time

import structlog
from emoji_search.core.metrics import http_request_duration_seconds, http_requests_total
from fastapi import Request
from starlette.middleware.base import BaseHTTPMiddleware

logger = structlog.get_logger(__name__)


class MetricsMiddleware(BaseHTTPMiddleware):
    """
    Track request metrics for Prometheus and log request completion
    """

    async def dispatch(self, request: Request, call_next):
        start_time = time.time()
        endpoint = request.url.path
        method = request.method

        try:
            response = await call_next(request)
        except Exception as exc:
            duration = time.time() - start_time
            http_requests_total.labels(method=method, endpoint=endpoint, status_code="500").inc()
            http_request_duration_seconds.labels(method=method, endpoint=endpoint).observe(duration)
            logger.error(
                "request_failed",
                duration_seconds=duration,
                error=str(exc),
                exc_info=True,
            )
            raise

        duration = time.time() - start_time
        http_requests_total.labels(
            method=method,
            endpoint=endpoint,
            status_code=str(response.status_code),
        ).inc()
        http_request_duration_seconds.labels(method=method, endpoint=endpoint).observe(duration)

        logger.info(
            "request_completed",
            status_code=response.status_code,
            duration_seconds=round(duration, 4),
        )
        return response
