"""Prometheus metrics endpoint.

Exposes cache hit/miss rates, pipeline stage latency, rate-limit decisions
and HTTP request metrics. No authentication; secure at the infrastructure
level.
"""

from fastapi import APIRouter, Response
from prometheus_client import CONTENT_TYPE_LATEST, generate_latest

router = APIRouter(prefix="/metrics", tags=["observability"])


@router.get("", response_class=Response)
async def prometheus_metrics():
    """Expose Prometheus metrics in text format."""
    return Response(content=generate_latest(), media_type=CONTENT_TYPE_LATEST)
