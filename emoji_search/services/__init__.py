"""
Service layer for the emoji search pipeline

This module provides services for:
- Query normalization and emoji sanitization
- Match/search caching over Redis or in-process stores
- Query embeddings and Qdrant vector lookup
- LLM reranking
- Per-client rate limiting
"""

from emoji_search.services.cache_service import CacheStore, InMemoryCacheStore, RedisCacheStore
from emoji_search.services.embedding_service import EmbeddingProvider
from emoji_search.services.emoji_validator import is_valid_emoji, normalize_emoji, sanitize_emojis
from emoji_search.services.emoji_vocabulary import Candidate, EmojiVocabulary, load_vocabulary
from emoji_search.services.query_normalizer import normalize_query
from emoji_search.services.rate_limiter import RateLimiter
from emoji_search.services.reranker import LLMReranker, RerankerConfig
from emoji_search.services.search_cache import CachePolicy, SearchCache
from emoji_search.services.search_pipeline import SearchOptions, SearchPipeline
from emoji_search.services.vector_index import VectorIndex, VectorMatch

__all__ = [
    "CacheStore",
    "InMemoryCacheStore",
    "RedisCacheStore",
    "EmbeddingProvider",
    "is_valid_emoji",
    "normalize_emoji",
    "sanitize_emojis",
    "Candidate",
    "EmojiVocabulary",
    "load_vocabulary",
    "normalize_query",
    "RateLimiter",
    "LLMReranker",
    "RerankerConfig",
    "CachePolicy",
    "SearchCache",
    "SearchOptions",
    "SearchPipeline",
    "VectorIndex",
    "VectorMatch",
]
