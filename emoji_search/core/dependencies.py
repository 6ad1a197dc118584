"""
FastAPI dependencies and service wiring.

External clients (OpenAI-compatible gateway, Qdrant, cache store) are
created once by the application lifespan and passed into the pipeline
here; nothing in the services layer constructs its own global client.
"""

from typing import Sequence

from emoji_search.core.config import Settings
from emoji_search.services.cache_service import CacheStore
from emoji_search.services.embedding_service import EmbeddingProvider
from emoji_search.services.emoji_vocabulary import EmojiVocabulary
from emoji_search.services.rate_limiter import (
    ClientIPStrategy,
    RateLimiter,
    default_strategies,
    rate_limit_key,
    resolve_client_ip,
)
from emoji_search.services.reranker import LLMReranker, RerankerConfig
from emoji_search.services.search_cache import SearchCache
from emoji_search.services.search_pipeline import SearchOptions, SearchPipeline
from emoji_search.services.vector_index import VectorIndex
from fastapi import Request
from openai import AsyncOpenAI
from qdrant_client import AsyncQdrantClient


def build_search_pipeline(
    settings: Settings,
    openai_client: AsyncOpenAI,
    qdrant_client: AsyncQdrantClient,
    cache_store: CacheStore,
    vocabulary: EmojiVocabulary,
    rate_limiter: RateLimiter,
) -> SearchPipeline:
    """Assemble the search pipeline from already-constructed clients."""
    return SearchPipeline(
        rate_limiter=rate_limiter,
        cache=SearchCache.from_settings(cache_store, settings),
        embedder=EmbeddingProvider(
            openai_client,
            model=settings.EMBEDDING_MODEL,
            timeout_sec=settings.EMBEDDING_TIMEOUT_SEC,
        ),
        index=VectorIndex(
            qdrant_client,
            collection_name=settings.QDRANT_COLLECTION,
            timeout_sec=settings.VECTOR_QUERY_TIMEOUT_SEC,
        ),
        vocabulary=vocabulary,
        reranker=LLMReranker(openai_client, RerankerConfig.from_settings(settings)),
        options=SearchOptions.from_settings(settings),
    )


def get_search_pipeline(request: Request) -> SearchPipeline:
    return request.app.state.search_pipeline


def get_client_ip_strategies(request: Request) -> Sequence[ClientIPStrategy]:
    strategies = getattr(request.app.state, "client_ip_strategies", None)
    return strategies if strategies is not None else default_strategies()


def get_client_key(request: Request) -> str:
    """Rate-limit key for the request's best-available origin IP."""
    client_ip = resolve_client_ip(request.headers, get_client_ip_strategies(request))
    return rate_limit_key(client_ip)
