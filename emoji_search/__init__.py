"""Emoji search service: vector candidates reranked by an LLM, cached in two tiers."""

__version__ = "0.1.0"
