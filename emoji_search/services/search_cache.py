"""Two-tier search caching.

Cache Strategy:
- Match cache: vector index candidates per (embedding model, top-K,
  normalized query). The index is a stable snapshot, so entries do not
  expire by default and are written on every miss regardless of size.
- Search cache: final sanitized rerank result per (rerank model,
  normalized query). Reranks depend on the model and prompt, so entries
  expire after a week and are only written when the result is large
  enough to be trusted.

Keys are pure functions of their inputs; no hidden state goes into them.
Callers pass already-normalized queries.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import List, Optional

from emoji_search.core.config import Settings
from emoji_search.core.logging import get_logger
from emoji_search.core.metrics import cache_hits_total, cache_misses_total, cache_writes_total
from emoji_search.services.cache_service import CacheStore
from emoji_search.services.emoji_vocabulary import Candidate

logger = get_logger(__name__)

MATCHES_NAMESPACE = "matches"
SEARCH_NAMESPACE = "search"


def match_cache_key(embedding_model: str, top_k: int, normalized_query: str) -> str:
    return f"{MATCHES_NAMESPACE}:{embedding_model}:{top_k}:{normalized_query}"


def search_cache_key(rerank_model: str, normalized_query: str) -> str:
    return f"{SEARCH_NAMESPACE}:{rerank_model}:{normalized_query}"


@dataclass(frozen=True)
class CachePolicy:
    """Expiry and admission policy for one cache namespace."""

    ttl_seconds: Optional[int] = None
    min_entries: int = 0

    def admits(self, entries: int) -> bool:
        return entries >= self.min_entries


class SearchCache:
    """Typed access to the match cache and the search cache.

    Both tiers may share one CacheStore or use separate ones.
    """

    def __init__(
        self,
        match_store: CacheStore,
        search_store: CacheStore,
        match_policy: CachePolicy,
        search_policy: CachePolicy,
    ):
        self.match_store = match_store
        self.search_store = search_store
        self.match_policy = match_policy
        self.search_policy = search_policy

    @classmethod
    def from_settings(cls, store: CacheStore, settings: Settings) -> "SearchCache":
        return cls(
            match_store=store,
            search_store=store,
            match_policy=CachePolicy(ttl_seconds=settings.MATCH_CACHE_TTL_SECONDS),
            search_policy=CachePolicy(
                ttl_seconds=settings.SEARCH_CACHE_TTL_SECONDS,
                min_entries=settings.MIN_EMOJIS_TO_CACHE,
            ),
        )

    async def get_matches(self, key: str) -> Optional[List[Candidate]]:
        """Cached candidates, or None on miss. An empty list counts as a miss."""
        cached = await self.match_store.get(key)
        candidates = self._decode_candidates(key, cached)
        if not candidates:
            cache_misses_total.labels(namespace=MATCHES_NAMESPACE).inc()
            return None

        cache_hits_total.labels(namespace=MATCHES_NAMESPACE).inc()
        logger.debug("match_cache_hit", key=key, candidates=len(candidates))
        return candidates

    async def set_matches(self, key: str, candidates: List[Candidate]) -> None:
        if not self.match_policy.admits(len(candidates)):
            return
        await self.match_store.put(
            key,
            [candidate.to_dict() for candidate in candidates],
            ttl=self.match_policy.ttl_seconds,
        )
        cache_writes_total.labels(namespace=MATCHES_NAMESPACE).inc()

    async def get_results(self, key: str) -> Optional[List[str]]:
        """Cached emoji list, or None on miss. An empty list counts as a miss."""
        cached = await self.search_store.get(key)
        if not isinstance(cached, list) or not cached or not all(isinstance(e, str) for e in cached):
            cache_misses_total.labels(namespace=SEARCH_NAMESPACE).inc()
            return None

        cache_hits_total.labels(namespace=SEARCH_NAMESPACE).inc()
        return cached

    async def set_results(self, key: str, emojis: List[str]) -> bool:
        """Store ``emojis`` if the search policy admits them. Returns whether it did."""
        if not self.search_policy.admits(len(emojis)):
            logger.debug("search_cache_skipped", key=key, emojis=len(emojis))
            return False
        await self.search_store.put(key, emojis, ttl=self.search_policy.ttl_seconds)
        cache_writes_total.labels(namespace=SEARCH_NAMESPACE).inc()
        return True

    @staticmethod
    def _decode_candidates(key: str, cached: object) -> Optional[List[Candidate]]:
        if not isinstance(cached, list):
            return None
        try:
            return [Candidate.from_dict(item) for item in cached]
        except (KeyError, TypeError, AttributeError) as exc:
            logger.warning("match_cache_corrupt_entry", key=key, error=str(exc))
            return None
