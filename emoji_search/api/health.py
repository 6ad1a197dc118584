"""
Health check endpoints
"""

import time
from typing import Dict

from emoji_search.core.config import settings
from emoji_search.core.logging import get_logger
from emoji_search.core.resilience import get_circuit_breaker_status
from fastapi import APIRouter, Request, status
from fastapi.responses import JSONResponse
from pydantic import BaseModel

router = APIRouter()
logger = get_logger(__name__)


class HealthResponse(BaseModel):
    """Health check response model"""

    status: str
    version: str
    timestamp: float


class ReadinessResponse(BaseModel):
    """Readiness check response model"""

    status: str
    checks: Dict[str, bool]
    circuit_breakers: Dict[str, Dict]
    timestamp: float


@router.get("/health", response_model=HealthResponse)
async def health_check():
    """
    Basic health check endpoint
    Returns 200 if the service is running
    """
    logger.debug("health_check_requested")
    return HealthResponse(
        status="healthy",
        version=settings.APP_VERSION,
        timestamp=time.time(),
    )


@router.get("/ready", response_class=JSONResponse)
async def readiness_check(request: Request):
    """
    Readiness check endpoint
    Verifies connectivity to the cache store and the vector index.
    Returns 200 if all dependencies are accessible, 503 otherwise.

    An unreachable cache does not break searches (they fall through to
    live computation) but is still reported here.
    """
    pipeline = request.app.state.search_pipeline

    checks = {
        "cache": await pipeline.cache.search_store.ping(),
        "vector_index": await pipeline.index.ping(),
    }

    all_ready = all(checks.values())
    response_status = status.HTTP_200_OK if all_ready else status.HTTP_503_SERVICE_UNAVAILABLE

    if not all_ready:
        logger.warning("readiness_check_failed", checks=checks)
    else:
        logger.debug("readiness_check_passed")

    return JSONResponse(
        status_code=response_status,
        content=ReadinessResponse(
            status="ready" if all_ready else "not_ready",
            checks=checks,
            circuit_breakers=get_circuit_breaker_status(),
            timestamp=time.time(),
        ).model_dump(),
    )
