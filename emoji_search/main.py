"""
Main FastAPI application
"""

from contextlib import asynccontextmanager
from typing import Optional

import uvicorn
from emoji_search.api import health, metrics, search
from emoji_search.core.config import settings
from emoji_search.core.dependencies import build_search_pipeline
from emoji_search.core.errors import EmojiSearchError, UpstreamUnavailable
from emoji_search.core.logging import configure_logging, get_logger
from emoji_search.core.middleware import MetricsMiddleware
from emoji_search.core.request_id import RequestIDMiddleware
from emoji_search.services.cache_service import create_cache_store
from emoji_search.services.emoji_vocabulary import load_vocabulary
from emoji_search.services.rate_limiter import RateLimiter, default_strategies
from emoji_search.services.search_pipeline import SearchPipeline
from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from openai import AsyncOpenAI
from qdrant_client import AsyncQdrantClient

# Configure structured logging
configure_logging()
logger = get_logger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Create external clients at start-up and close them at shutdown."""
    if getattr(app.state, "search_pipeline", None) is not None:
        yield
        return

    openai_client = AsyncOpenAI(
        api_key=settings.OPENAI_API_KEY,
        base_url=settings.OPENAI_BASE_URL,
        max_retries=0,
    )
    qdrant_client = AsyncQdrantClient(
        url=settings.QDRANT_URL,
        api_key=settings.QDRANT_API_KEY,
        timeout=int(settings.VECTOR_QUERY_TIMEOUT_SEC),
    )
    cache_store = create_cache_store(settings)

    app.state.search_pipeline = build_search_pipeline(
        settings,
        openai_client=openai_client,
        qdrant_client=qdrant_client,
        cache_store=cache_store,
        vocabulary=load_vocabulary(settings.EMOJI_KEYWORDS_PATH),
        rate_limiter=RateLimiter.from_settings(settings),
    )

    logger.info(
        "application_startup",
        app_name=settings.APP_NAME,
        version=settings.APP_VERSION,
        environment=settings.ENVIRONMENT,
        embedding_model=settings.EMBEDDING_MODEL,
        rerank_model=settings.RERANK_MODEL,
        cache_backend=settings.CACHE_BACKEND,
    )

    try:
        yield
    finally:
        await cache_store.close()
        await qdrant_client.close()
        await openai_client.close()
        logger.info("application_shutdown")


async def emoji_search_error_handler(request: Request, exc: EmojiSearchError) -> JSONResponse:
    if isinstance(exc, UpstreamUnavailable):
        logger.error("search_upstream_unavailable", upstream=exc.upstream, error=exc.message)
    return JSONResponse(status_code=exc.status_code, content={"error": exc.public_message})


async def validation_error_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    logger.info("request_validation_failed", errors=exc.errors())
    return JSONResponse(
        status_code=status.HTTP_400_BAD_REQUEST,
        content={"error": "Query parameter 'query' is required and must not be empty"},
    )


def create_app(search_pipeline: Optional[SearchPipeline] = None) -> FastAPI:
    """Build the application. Passing a pipeline skips client construction."""
    app = FastAPI(
        title=settings.APP_NAME,
        version=settings.APP_VERSION,
        debug=settings.DEBUG,
        description="""
    Emoji Search API

    ## Features
    - Free-text emoji search: vector candidates reranked by an LLM
    - Two-tier caching of nearest-neighbour matches and final results
    - Per-client rate limiting
    - Prometheus metrics and structured logging with request IDs
    """,
        lifespan=lifespan,
    )

    app.state.search_pipeline = search_pipeline
    app.state.client_ip_strategies = default_strategies(settings.TRUSTED_IP_HEADER)

    app.add_exception_handler(EmojiSearchError, emoji_search_error_handler)
    app.add_exception_handler(RequestValidationError, validation_error_handler)

    # Middleware order: last added runs first
    app.add_middleware(MetricsMiddleware)
    app.add_middleware(RequestIDMiddleware)

    allowed_origins = [origin.strip() for origin in settings.ALLOWED_ORIGINS.split(",") if origin.strip()]
    app.add_middleware(
        CORSMiddleware,
        allow_origins=allowed_origins,
        allow_methods=["GET"],
        allow_headers=["*"],
        expose_headers=["X-Request-ID"],
    )

    app.include_router(health.router, tags=["health"])
    app.include_router(metrics.router)
    app.include_router(search.router, prefix="/api")

    return app


app = create_app()


if __name__ == "__main__":
    uvicorn.run("emoji_search.main:app", host="0.0.0.0", port=8000, reload=settings.DEBUG)
