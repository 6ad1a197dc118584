"""
Emoji search pipeline.

Request flow:

    RECEIVED -> RATE_CHECKED -> RESULT_CACHE_CHECKED -> HIT -> DONE
                                                     -> MISS -> MATCH_CACHE_CHECKED
        -> HIT, or MISS -> EMBEDDED -> VECTOR_QUERIED -> MATCH_CACHE_WRITTEN
        -> RERANKED -> SANITIZED -> RESULT_CACHE_MAYBE_WRITTEN -> DONE

- A rate-limit denial short-circuits everything else.
- Empty cached lists are treated as misses in both tiers.
- The match cache is written on every miss; the search cache only when the
  sanitized result has at least MIN_EMOJIS_TO_CACHE entries.
- Nothing is retried. Any failure after the rate check surfaces as
  UpstreamUnavailable; cache failures are misses, never errors.

All collaborators are injected, so the pipeline holds no process-wide
clients and is stateless across requests.
"""

from __future__ import annotations

import time
from dataclasses import dataclass
from typing import List, Optional, Protocol, Sequence

from emoji_search.core.config import Settings
from emoji_search.core.errors import EmojiSearchError, InvalidInput, RateLimitExceeded, UpstreamUnavailable
from emoji_search.core.logging import get_logger
from emoji_search.core.metrics import (
    rerank_rejected_items_total,
    search_requests_total,
    search_results_total,
    search_stage_duration_seconds,
)
from emoji_search.services.emoji_validator import sanitize_emojis
from emoji_search.services.emoji_vocabulary import Candidate, EmojiVocabulary
from emoji_search.services.query_normalizer import normalize_query
from emoji_search.services.search_cache import SearchCache, match_cache_key, search_cache_key
from emoji_search.services.vector_index import VectorMatch

logger = get_logger(__name__)


class Admitter(Protocol):
    async def admit(self, client_key: str) -> bool: ...


class Embedder(Protocol):
    model: str

    async def embed(self, text: str) -> List[float]: ...


class NearestNeighbours(Protocol):
    async def query(self, vector: Sequence[float], top_k: int) -> List[VectorMatch]: ...


class Reranker(Protocol):
    model: str

    async def rerank(self, query: str, candidates: Sequence[Candidate]) -> List[str]: ...


@dataclass
class SearchOptions:
    """Tunable pipeline parameters."""

    top_k: int = 100
    restrict_to_candidates: bool = True

    @classmethod
    def from_settings(cls, settings: Settings) -> "SearchOptions":
        return cls(top_k=settings.MATCH_TOP_K)


class SearchPipeline:
    """Orchestrates rate limiting, caching, retrieval, rerank and sanitization."""

    def __init__(
        self,
        rate_limiter: Admitter,
        cache: SearchCache,
        embedder: Embedder,
        index: NearestNeighbours,
        vocabulary: EmojiVocabulary,
        reranker: Reranker,
        options: Optional[SearchOptions] = None,
    ):
        self.rate_limiter = rate_limiter
        self.cache = cache
        self.embedder = embedder
        self.index = index
        self.vocabulary = vocabulary
        self.reranker = reranker
        self.options = options or SearchOptions()

    async def search(self, query: str, client_key: str) -> List[str]:
        """Return emojis matching ``query``, most relevant first.

        Raises:
            RateLimitExceeded: ``client_key`` is over quota
            InvalidInput: the query is empty after normalization
            UpstreamUnavailable: embedding, vector index or rerank failed
        """
        if not await self.rate_limiter.admit(client_key):
            search_requests_total.labels(outcome="rate_limited").inc()
            raise RateLimitExceeded()

        normalized_query = normalize_query(query)
        if not normalized_query:
            search_requests_total.labels(outcome="invalid").inc()
            raise InvalidInput()

        start_time = time.time()
        result_key = search_cache_key(self.reranker.model, normalized_query)

        cached = await self.cache.get_results(result_key)
        if cached:
            search_requests_total.labels(outcome="cache_hit").inc()
            logger.info("search_cache_hit", query=normalized_query, emojis=len(cached))
            return cached

        try:
            emojis = await self._compute(normalized_query, result_key)
        except EmojiSearchError:
            search_requests_total.labels(outcome="upstream_error").inc()
            raise
        except Exception as exc:
            search_requests_total.labels(outcome="upstream_error").inc()
            logger.error("search_failed", query=normalized_query, error=str(exc), exc_info=True)
            raise UpstreamUnavailable(f"Search failed: {exc}") from exc

        duration = time.time() - start_time
        search_stage_duration_seconds.labels(stage="total").observe(duration)
        search_results_total.observe(len(emojis))
        search_requests_total.labels(outcome="computed").inc()
        logger.info(
            "search_completed",
            query=normalized_query,
            emojis=len(emojis),
            duration_ms=round(duration * 1000, 1),
        )
        return emojis

    async def _compute(self, normalized_query: str, result_key: str) -> List[str]:
        candidates = await self.get_candidates(normalized_query)

        ranked = await self.reranker.rerank(normalized_query, candidates)

        allowed = [candidate.id for candidate in candidates] if self.options.restrict_to_candidates else None
        emojis = sanitize_emojis(ranked, allowed=allowed)

        rejected = len(ranked) - len(emojis)
        if rejected:
            rerank_rejected_items_total.inc(rejected)
            logger.debug("rerank_items_rejected", query=normalized_query, rejected=rejected)

        await self.cache.set_results(result_key, emojis)
        return emojis

    async def get_candidates(self, normalized_query: str) -> List[Candidate]:
        """Vector-search candidates for the query, through the match cache."""
        key = match_cache_key(self.embedder.model, self.options.top_k, normalized_query)

        cached = await self.cache.get_matches(key)
        if cached:
            return cached

        vector = await self.embedder.embed(normalized_query)
        matches = await self.index.query(vector, top_k=self.options.top_k)
        candidates = [self.vocabulary.candidate(match.id) for match in matches]

        await self.cache.set_matches(key, candidates)
        logger.debug("match_cache_written", key=key, candidates=len(candidates))
        return candidates
