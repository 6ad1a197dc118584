"""Per-client admission control for search requests.

Client identity is the best available origin IP, resolved by trying an
ordered list of extraction strategies against the request headers:

1. the trusted connecting-IP header set by the edge proxy
2. the first hop of X-Forwarded-For
3. the constant "unknown" (every unidentifiable client shares one bucket)

Quotas use the slowapi/limits rate string notation ("30/minute") with a
moving window. Counters live in a ``limits`` storage backend, in-process
by default or Redis when several instances must share them.
"""

from __future__ import annotations

from typing import Callable, Mapping, Optional, Sequence

from emoji_search.core.config import Settings
from emoji_search.core.logging import get_logger
from emoji_search.core.metrics import rate_limit_decisions_total
from limits import RateLimitItem, parse
from limits.aio.strategies import MovingWindowRateLimiter
from limits.storage import storage_from_string

logger = get_logger(__name__)

UNKNOWN_CLIENT = "unknown"
RATE_LIMIT_NAMESPACE = "search"

ClientIPStrategy = Callable[[Mapping[str, str]], Optional[str]]


def trusted_header(name: str) -> ClientIPStrategy:
    """Strategy reading the client IP from a single trusted header."""

    def extract(headers: Mapping[str, str]) -> Optional[str]:
        value = headers.get(name)
        if not value:
            return None
        return value.strip() or None

    extract.__name__ = f"trusted_header[{name}]"
    return extract


def forwarded_for_first_hop(headers: Mapping[str, str]) -> Optional[str]:
    """Strategy reading the originating client from X-Forwarded-For."""
    forwarded = headers.get("x-forwarded-for")
    if not forwarded:
        return None
    return forwarded.split(",")[0].strip() or None


def default_strategies(trusted_header_name: str = "cf-connecting-ip") -> list[ClientIPStrategy]:
    return [trusted_header(trusted_header_name), forwarded_for_first_hop]


def resolve_client_ip(headers: Mapping[str, str], strategies: Sequence[ClientIPStrategy]) -> str:
    """Return the first IP any strategy finds, else UNKNOWN_CLIENT."""
    for strategy in strategies:
        ip = strategy(headers)
        if ip:
            return ip
    return UNKNOWN_CLIENT


def rate_limit_key(client_ip: str) -> str:
    return f"{RATE_LIMIT_NAMESPACE}:{client_ip}"


class RateLimiter:
    """Moving-window rate limiter: ``admit(client_key) -> bool``."""

    def __init__(self, limit: str | RateLimitItem = "30/minute", storage_uri: str = "async+memory://"):
        self.limit = parse(limit) if isinstance(limit, str) else limit
        self.storage = storage_from_string(storage_uri)
        self._strategy = MovingWindowRateLimiter(self.storage)

    @classmethod
    def from_settings(cls, settings: Settings) -> "RateLimiter":
        limiter = cls(limit=settings.RATE_LIMIT, storage_uri=settings.RATE_LIMIT_STORAGE_URI)
        logger.info("rate_limiter_initialized", limit=str(limiter.limit))
        return limiter

    async def admit(self, client_key: str) -> bool:
        """Consume one unit of quota for ``client_key``.

        Storage failures deny the request: the check fails closed.
        """
        try:
            allowed = await self._strategy.hit(self.limit, client_key)
        except Exception as exc:
            rate_limit_decisions_total.labels(decision="storage_error").inc()
            logger.error("rate_limit_storage_failed", client_key=client_key, error=str(exc))
            return False

        rate_limit_decisions_total.labels(decision="allowed" if allowed else "denied").inc()
        if not allowed:
            logger.info("rate_limit_denied", client_key=client_key, limit=str(self.limit))
        return allowed

    async def reset(self) -> None:
        await self.storage.reset()
