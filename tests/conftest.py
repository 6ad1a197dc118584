from __future__ import annotations

import os

# Settings are read at import time; make them importable without Redis,
# Qdrant or a gateway key. Only applied when the caller/CI has not set them.
os.environ.setdefault("ENVIRONMENT", "test")
os.environ.setdefault("DEBUG", "false")
os.environ.setdefault("CACHE_BACKEND", "memory")
os.environ.setdefault("OPENAI_API_KEY", "test-key")
os.environ.setdefault("RATE_LIMIT_STORAGE_URI", "async+memory://")

from typing import List, Sequence  # noqa: E402
from unittest.mock import AsyncMock  # noqa: E402

import pytest  # noqa: E402
from emoji_search.core.resilience import gateway_breaker, qdrant_breaker  # noqa: E402
from emoji_search.services.cache_service import InMemoryCacheStore  # noqa: E402
from emoji_search.services.emoji_vocabulary import EmojiVocabulary  # noqa: E402
from emoji_search.services.search_cache import CachePolicy, SearchCache  # noqa: E402
from emoji_search.services.search_pipeline import SearchOptions, SearchPipeline  # noqa: E402
from emoji_search.services.vector_index import VectorMatch  # noqa: E402

EMBEDDING_MODEL = "test/embedding-model"
RERANK_MODEL = "test/rerank-model"

CAT_VOCABULARY = {
    "🐱": ["cat"],
    "🐈": ["cat", "feline"],
    "🐶": ["dog"],
}


@pytest.fixture(autouse=True)
def reset_circuit_breakers():
    """Failures in one test must not open a breaker for the next."""
    gateway_breaker.close()
    qdrant_breaker.close()
    yield
    gateway_breaker.close()
    qdrant_breaker.close()


class AllowAll:
    def __init__(self):
        self.keys: List[str] = []

    async def admit(self, client_key: str) -> bool:
        self.keys.append(client_key)
        return True


def make_matches(glyphs: Sequence[str]) -> List[VectorMatch]:
    return [VectorMatch(id=glyph, score=1.0 - i * 0.01) for i, glyph in enumerate(glyphs)]


@pytest.fixture
def vocabulary() -> EmojiVocabulary:
    return EmojiVocabulary(CAT_VOCABULARY)


@pytest.fixture
def cache_store() -> InMemoryCacheStore:
    return InMemoryCacheStore(maxsize=100)


@pytest.fixture
def search_cache(cache_store) -> SearchCache:
    return SearchCache(
        match_store=cache_store,
        search_store=cache_store,
        match_policy=CachePolicy(ttl_seconds=None),
        search_policy=CachePolicy(ttl_seconds=60 * 60 * 24 * 7, min_entries=10),
    )


@pytest.fixture
def embedder():
    mock = AsyncMock()
    mock.model = EMBEDDING_MODEL
    mock.embed.return_value = [0.1, 0.2, 0.3]
    return mock


@pytest.fixture
def index():
    mock = AsyncMock()
    mock.query.return_value = make_matches(["🐱", "🐈", "🐶"])
    return mock


@pytest.fixture
def reranker():
    mock = AsyncMock()
    mock.model = RERANK_MODEL
    mock.rerank.return_value = ["🐱", "🐈"]
    return mock


@pytest.fixture
def rate_limiter() -> AllowAll:
    return AllowAll()


@pytest.fixture
def pipeline(rate_limiter, search_cache, embedder, index, vocabulary, reranker) -> SearchPipeline:
    return SearchPipeline(
        rate_limiter=rate_limiter,
        cache=search_cache,
        embedder=embedder,
        index=index,
        vocabulary=vocabulary,
        reranker=reranker,
        options=SearchOptions(top_k=100),
    )
