"""
Resilience patterns: Circuit Breakers

Upstream calls in the search pipeline are never retried. Circuit breakers
let a repeatedly failing dependency fail fast instead of making every
request wait for its full timeout.

Usage:
    result = await call_with_breaker(qdrant_breaker, lambda: client.query_points(...))

Circuit Breaker States:
- CLOSED: Normal operation, requests pass through
- OPEN: Service is failing, requests fail immediately
- HALF-OPEN: Testing if service recovered
"""

from typing import Any, Awaitable, Callable, TypeVar

import structlog
from pybreaker import STATE_CLOSED, STATE_OPEN, CircuitBreaker, CircuitBreakerError

logger = structlog.get_logger(__name__)

T = TypeVar("T")


# =============================================================================
# Circuit Breakers for External Dependencies
# =============================================================================

# Qdrant Vector DB Circuit Breaker
qdrant_breaker = CircuitBreaker(
    fail_max=5,
    reset_timeout=60,
    name="qdrant_circuit_breaker",
)

# AI gateway (embeddings + rerank) Circuit Breaker
# Higher fail threshold and longer reset for external API
gateway_breaker = CircuitBreaker(
    fail_max=10,
    reset_timeout=120,
    name="gateway_circuit_breaker",
)


def _record_failure(breaker: CircuitBreaker, exc: BaseException) -> None:
    def _fail():
        raise exc

    try:
        breaker.call(_fail)
    except CircuitBreakerError:
        logger.warning("circuit_breaker_opened", breaker=breaker.name, error=str(exc))
    except Exception as recorded:
        if recorded is not exc:
            raise


async def call_with_breaker(breaker: CircuitBreaker, call: Callable[[], Awaitable[T]]) -> T:
    """Await ``call()`` under ``breaker``.

    Raises CircuitBreakerError without invoking ``call`` while the breaker
    is open and its reset timeout has not elapsed. Once it has, ``call`` is
    the trial: a failure reopens the breaker at once, a success leaves it
    closed. Otherwise failures are counted and re-raised unchanged and a
    success resets the failure count.
    """
    trial = breaker.current_state != STATE_CLOSED
    if trial:
        # Raises until reset_timeout elapses, otherwise closes the breaker
        breaker.call(lambda: None)

    try:
        result = await call()
    except Exception as exc:
        if trial:
            breaker.open()
            logger.warning("circuit_breaker_reopened", breaker=breaker.name, error=str(exc))
        else:
            _record_failure(breaker, exc)
        raise

    if breaker.current_state != STATE_OPEN:
        breaker.call(lambda: None)
    return result


# =============================================================================
# Circuit Breaker Status Utilities
# =============================================================================


def get_circuit_breaker_status() -> dict[str, Any]:
    """
    Get status of all circuit breakers for health monitoring.

    Returns:
        Dict with breaker name -> status info
    """
    breakers = {
        "qdrant": qdrant_breaker,
        "gateway": gateway_breaker,
    }

    return {
        name: {
            "state": str(breaker.current_state),
            "fail_count": breaker.fail_counter,
            "fail_max": breaker.fail_max,
            "reset_timeout": breaker.reset_timeout,
        }
        for name, breaker in breakers.items()
    }
