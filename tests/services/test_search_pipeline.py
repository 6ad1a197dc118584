"""Tests for the search pipeline orchestration."""

from unittest.mock import AsyncMock, MagicMock

import pytest
from emoji_search.core.errors import CacheUnavailable, InvalidInput, RateLimitExceeded, UpstreamUnavailable
from emoji_search.services import search_cache as search_cache_module
from emoji_search.services import search_pipeline as search_pipeline_module
from emoji_search.services.cache_service import CacheStore
from emoji_search.services.emoji_vocabulary import Candidate, EmojiVocabulary
from emoji_search.services.rate_limiter import RateLimiter
from emoji_search.services.search_cache import CachePolicy, SearchCache, match_cache_key, search_cache_key
from emoji_search.services.search_pipeline import SearchOptions, SearchPipeline

from tests.conftest import EMBEDDING_MODEL, RERANK_MODEL, make_matches

FRUIT = ["🍎", "🍐", "🍊", "🍋", "🍌", "🍉", "🍇", "🍓", "🍒", "🍑", "🥭"]


class DenyAll:
    async def admit(self, client_key):
        return False


class UnreachableStore(CacheStore):
    def __init__(self):
        super().__init__(timeout_sec=None)
        self.reads = 0
        self.writes = 0

    async def _read(self, key):
        self.reads += 1
        raise CacheUnavailable("connection refused")

    async def _write(self, key, data, ttl):
        self.writes += 1
        raise CacheUnavailable("connection refused")


@pytest.fixture
def fruit_pipeline(rate_limiter, search_cache, embedder, index, reranker):
    index.query.return_value = make_matches(FRUIT)
    reranker.rerank.return_value = list(FRUIT)
    return SearchPipeline(
        rate_limiter=rate_limiter,
        cache=search_cache,
        embedder=embedder,
        index=index,
        vocabulary=EmojiVocabulary({glyph: ["fruit"] for glyph in FRUIT}),
        reranker=reranker,
        options=SearchOptions(top_k=100),
    )


@pytest.mark.asyncio
async def test_search_returns_reranked_emojis(pipeline, embedder, index, reranker):
    """Test the full miss path from embedding to sanitized rerank output."""
    result = await pipeline.search("cats", client_key="search:203.0.113.7")

    assert result == ["🐱", "🐈"]
    embedder.embed.assert_awaited_once_with("cats")
    index.query.assert_awaited_once_with([0.1, 0.2, 0.3], top_k=100)

    query, candidates = reranker.rerank.await_args.args
    assert query == "cats"
    assert candidates == [
        Candidate("🐱", ("cat",)),
        Candidate("🐈", ("cat", "feline")),
        Candidate("🐶", ("dog",)),
    ]


@pytest.mark.asyncio
async def test_search_normalizes_query_before_use(pipeline, embedder, reranker):
    await pipeline.search("  CATS ", client_key="search:unknown")

    embedder.embed.assert_awaited_once_with("cats")
    assert reranker.rerank.await_args.args[0] == "cats"


@pytest.mark.asyncio
async def test_search_removes_duplicate_emojis(pipeline, reranker):
    reranker.rerank.return_value = ["🐱", "🐱", "🐈", "🐱"]

    assert await pipeline.search("cats", client_key="search:unknown") == ["🐱", "🐈"]


@pytest.mark.asyncio
async def test_search_drops_invalid_emojis(pipeline, reranker):
    reranker.rerank.return_value = ["cat", "🐱", "(=^･ω･^=)", "🐈🐈", "🐈"]

    assert await pipeline.search("cats", client_key="search:unknown") == ["🐱", "🐈"]


@pytest.mark.asyncio
async def test_search_drops_emojis_outside_candidates(pipeline, reranker):
    """Test that glyphs the model invents are never returned."""
    reranker.rerank.return_value = ["🦁", "🐱", "🐯"]

    assert await pipeline.search("cats", client_key="search:unknown") == ["🐱"]


@pytest.mark.asyncio
async def test_search_can_allow_emojis_outside_candidates(pipeline, reranker):
    pipeline.options = SearchOptions(top_k=100, restrict_to_candidates=False)
    reranker.rerank.return_value = ["🦁", "🐱"]

    assert await pipeline.search("cats", client_key="search:unknown") == ["🦁", "🐱"]


@pytest.mark.asyncio
async def test_search_may_return_empty_list(pipeline, reranker):
    reranker.rerank.return_value = []

    assert await pipeline.search("xyzzy", client_key="search:unknown") == []


@pytest.mark.asyncio
async def test_rate_limited_request_does_no_work(search_cache, embedder, index, vocabulary, reranker):
    """Test that a denied client never reaches the cache or any upstream."""
    cache = AsyncMock(wraps=search_cache)
    pipeline = SearchPipeline(DenyAll(), cache, embedder, index, vocabulary, reranker)

    with pytest.raises(RateLimitExceeded):
        await pipeline.search("cats", client_key="search:203.0.113.7")

    cache.get_results.assert_not_awaited()
    embedder.embed.assert_not_awaited()
    index.query.assert_not_awaited()
    reranker.rerank.assert_not_awaited()


@pytest.mark.asyncio
async def test_rate_limit_uses_client_key(pipeline, rate_limiter):
    await pipeline.search("cats", client_key="search:203.0.113.7")

    assert rate_limiter.keys == ["search:203.0.113.7"]


@pytest.mark.asyncio
@pytest.mark.parametrize("query", ["", "   ", "\t\n"])
async def test_empty_query_is_invalid_input(pipeline, embedder, query):
    with pytest.raises(InvalidInput):
        await pipeline.search(query, client_key="search:unknown")

    embedder.embed.assert_not_awaited()


@pytest.mark.asyncio
async def test_rate_limit_checked_before_query_validation():
    pipeline = SearchPipeline(DenyAll(), AsyncMock(), AsyncMock(), AsyncMock(), EmojiVocabulary({}), AsyncMock())

    with pytest.raises(RateLimitExceeded):
        await pipeline.search("", client_key="search:unknown")


@pytest.mark.asyncio
async def test_small_results_are_not_cached(pipeline, cache_store, reranker):
    """Test that results with fewer than ten emojis are recomputed every time."""
    await pipeline.search("cats", client_key="search:unknown")
    await pipeline.search("cats", client_key="search:unknown")

    assert await cache_store.get(search_cache_key(RERANK_MODEL, "cats")) is None
    assert reranker.rerank.await_count == 2


@pytest.mark.asyncio
async def test_match_cache_written_on_miss_regardless_of_size(pipeline, cache_store, embedder, index):
    await pipeline.search("cats", client_key="search:unknown")
    await pipeline.search("cats", client_key="search:unknown")

    cached = await cache_store.get(match_cache_key(EMBEDDING_MODEL, 100, "cats"))
    assert [item["id"] for item in cached] == ["🐱", "🐈", "🐶"]
    assert embedder.embed.await_count == 1
    assert index.query.await_count == 1


@pytest.mark.asyncio
async def test_large_results_are_cached(fruit_pipeline, cache_store, reranker):
    first = await fruit_pipeline.search("fruit", client_key="search:unknown")
    second = await fruit_pipeline.search("fruit", client_key="search:unknown")

    assert first == second == FRUIT
    assert await cache_store.get(search_cache_key(RERANK_MODEL, "fruit")) == FRUIT
    assert reranker.rerank.await_count == 1


@pytest.mark.asyncio
async def test_equivalent_queries_share_cached_result(fruit_pipeline, embedder, reranker):
    """Test that " Fruit " and "fruit" resolve to the same cache entry."""
    first = await fruit_pipeline.search(" Fruit ", client_key="search:unknown")
    second = await fruit_pipeline.search("fruit", client_key="search:unknown")

    assert first == second
    assert embedder.embed.await_count == 1
    assert reranker.rerank.await_count == 1


@pytest.mark.asyncio
async def test_cached_result_short_circuits_upstreams(fruit_pipeline, cache_store, embedder, index, reranker):
    await cache_store.put(search_cache_key(RERANK_MODEL, "fruit"), ["🍎", "🍐"])

    assert await fruit_pipeline.search("fruit", client_key="search:unknown") == ["🍎", "🍐"]
    embedder.embed.assert_not_awaited()
    index.query.assert_not_awaited()
    reranker.rerank.assert_not_awaited()


@pytest.mark.asyncio
async def test_empty_cached_result_is_recomputed(pipeline, cache_store, reranker):
    await cache_store.put(search_cache_key(RERANK_MODEL, "cats"), [])

    assert await pipeline.search("cats", client_key="search:unknown") == ["🐱", "🐈"]
    reranker.rerank.assert_awaited_once()


@pytest.mark.asyncio
async def test_cached_matches_skip_embedding(pipeline, cache_store, embedder, index, reranker):
    await cache_store.put(
        match_cache_key(EMBEDDING_MODEL, 100, "cats"),
        [{"id": "🐈", "keywords": ["cat"]}],
    )
    reranker.rerank.return_value = ["🐈"]

    assert await pipeline.search("cats", client_key="search:unknown") == ["🐈"]
    embedder.embed.assert_not_awaited()
    index.query.assert_not_awaited()
    assert reranker.rerank.await_args.args[1] == [Candidate("🐈", ("cat",))]


@pytest.mark.asyncio
async def test_cache_outage_falls_through_to_live_search(rate_limiter, embedder, index, vocabulary, reranker):
    """Test that an unreachable cache never fails a search."""
    store = UnreachableStore()
    cache = SearchCache(store, store, CachePolicy(), CachePolicy(ttl_seconds=60, min_entries=0))
    pipeline = SearchPipeline(rate_limiter, cache, embedder, index, vocabulary, reranker)

    assert await pipeline.search("cats", client_key="search:unknown") == ["🐱", "🐈"]
    assert store.reads == 2
    assert store.writes == 2


@pytest.mark.asyncio
async def test_upstream_failure_propagates_without_caching(pipeline, cache_store, reranker):
    reranker.rerank.side_effect = UpstreamUnavailable("model overloaded", upstream="rerank")

    with pytest.raises(UpstreamUnavailable):
        await pipeline.search("cats", client_key="search:unknown")

    assert await cache_store.get(search_cache_key(RERANK_MODEL, "cats")) is None


@pytest.mark.asyncio
async def test_unexpected_error_becomes_upstream_unavailable(pipeline, embedder, reranker):
    embedder.embed.side_effect = RuntimeError("socket closed")

    with pytest.raises(UpstreamUnavailable):
        await pipeline.search("cats", client_key="search:unknown")

    reranker.rerank.assert_not_awaited()


@pytest.mark.asyncio
async def test_match_cache_key_uses_top_k(pipeline, cache_store, index):
    pipeline.options = SearchOptions(top_k=25)

    await pipeline.search("cats", client_key="search:unknown")

    index.query.assert_awaited_once_with([0.1, 0.2, 0.3], top_k=25)
    assert await cache_store.get(match_cache_key(EMBEDDING_MODEL, 25, "cats")) is not None
    assert await cache_store.get(match_cache_key(EMBEDDING_MODEL, 100, "cats")) is None


@pytest.mark.asyncio
async def test_search_returns_exact_candidate_glyphs(rate_limiter, search_cache, embedder, index, reranker):
    """Test that a variant the model returns is mapped back to the candidate glyph."""
    heart = "❤"
    heart_emoji = "❤️"
    index.query.return_value = make_matches([heart_emoji, "🐱"])
    reranker.rerank.return_value = [heart, "🐱"]
    pipeline = SearchPipeline(
        rate_limiter,
        search_cache,
        embedder,
        index,
        EmojiVocabulary({heart_emoji: ["red_heart", "love"], "🐱": ["cat"]}),
        reranker,
    )

    result = await pipeline.search("love", client_key="search:unknown")

    assert result == [heart_emoji, "🐱"]
    assert set(result) <= {heart_emoji, "🐱"}


@pytest.mark.asyncio
async def test_rate_limiter_storage_failure_ends_request(search_cache, embedder, index, vocabulary, reranker):
    """Test that an unreachable limiter store denies the request before any work."""
    limiter = RateLimiter("30/minute")
    limiter._strategy = AsyncMock()
    limiter._strategy.hit.side_effect = ConnectionError("redis down")
    pipeline = SearchPipeline(limiter, search_cache, embedder, index, vocabulary, reranker)

    with pytest.raises(RateLimitExceeded):
        await pipeline.search("cats", client_key="search:203.0.113.7")

    embedder.embed.assert_not_awaited()
    reranker.rerank.assert_not_awaited()


@pytest.mark.asyncio
async def test_cache_hit_logged_once(fruit_pipeline, cache_store, monkeypatch):
    pipeline_logger = MagicMock()
    cache_logger = MagicMock()
    monkeypatch.setattr(search_pipeline_module, "logger", pipeline_logger)
    monkeypatch.setattr(search_cache_module, "logger", cache_logger)
    await cache_store.put(search_cache_key(RERANK_MODEL, "fruit"), FRUIT)

    await fruit_pipeline.search("fruit", client_key="search:unknown")

    events = [
        call.args[0]
        for log in (pipeline_logger, cache_logger)
        for call in log.method_calls
        if call.args and call.args[0] == "search_cache_hit"
    ]
    assert events == ["search_cache_hit"]
