"""
Error taxonomy for the emoji search pipeline.

Only two failure kinds are distinguished for callers:
- RATE_LIMIT_EXCEEDED (429): the client should slow down
- INVALID_INPUT (400): the query was missing or empty

Every upstream failure (embedding, vector index, LLM) collapses into
UPSTREAM_UNAVAILABLE (500) with a generic message so provider details
never reach the client. CacheUnavailable is internal to the cache layer
and is always converted into a miss or a skipped write.
"""

from typing import Optional


class ErrorCodes:
    """Standard error codes for consistent error handling."""

    INVALID_INPUT = "INVALID_INPUT"
    RATE_LIMIT_EXCEEDED = "RATE_LIMIT_EXCEEDED"
    UPSTREAM_UNAVAILABLE = "UPSTREAM_UNAVAILABLE"
    CACHE_UNAVAILABLE = "CACHE_UNAVAILABLE"


class EmojiSearchError(Exception):
    """Base class for errors raised by the search pipeline."""

    code: str = ErrorCodes.UPSTREAM_UNAVAILABLE
    status_code: int = 500
    public_message: str = "Something went wrong"

    def __init__(self, message: Optional[str] = None):
        super().__init__(message or self.public_message)
        self.message = message or self.public_message


class RateLimitExceeded(EmojiSearchError):
    """The client exceeded its request quota."""

    code = ErrorCodes.RATE_LIMIT_EXCEEDED
    status_code = 429
    public_message = "Rate limit exceeded"


class InvalidInput(EmojiSearchError):
    """The query is missing or empty after normalization."""

    code = ErrorCodes.INVALID_INPUT
    status_code = 400
    public_message = "Query must not be empty"


class UpstreamUnavailable(EmojiSearchError):
    """An embedding, vector index or LLM call failed or timed out.

    The detailed message is kept for logs; clients only ever see
    ``public_message``.
    """

    code = ErrorCodes.UPSTREAM_UNAVAILABLE
    status_code = 500

    def __init__(self, message: Optional[str] = None, upstream: str = "unknown"):
        super().__init__(message)
        self.upstream = upstream


class CacheUnavailable(EmojiSearchError):
    """The cache store could not be reached or returned garbage."""

    code = ErrorCodes.CACHE_UNAVAILABLE
    status_code = 500
