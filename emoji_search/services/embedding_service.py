"""Query embeddings via an OpenAI-compatible embeddings endpoint.

The model must match the one used by ``scripts/embed_emojis.py`` to build
the vector index; nothing checks this at runtime.
"""

from __future__ import annotations

import asyncio
import time
from typing import List

from emoji_search.core.errors import UpstreamUnavailable
from emoji_search.core.logging import get_logger
from emoji_search.core.metrics import search_stage_duration_seconds
from emoji_search.core.resilience import call_with_breaker, gateway_breaker
from openai import AsyncOpenAI, OpenAIError
from pybreaker import CircuitBreakerError

logger = get_logger(__name__)


class EmbeddingProvider:
    """Turns query text into a vector. Calls are not retried."""

    def __init__(self, client: AsyncOpenAI, model: str, timeout_sec: float = 5.0):
        self.client = client
        self.model = model
        self.timeout_sec = timeout_sec

    async def embed(self, text: str) -> List[float]:
        start_time = time.time()
        try:
            response = await call_with_breaker(
                gateway_breaker,
                lambda: asyncio.wait_for(
                    self.client.embeddings.create(model=self.model, input=text),
                    timeout=self.timeout_sec,
                ),
            )
        except asyncio.TimeoutError as exc:
            logger.error("embedding_timeout", model=self.model, timeout_sec=self.timeout_sec)
            raise UpstreamUnavailable("Embedding request timed out", upstream="embedding") from exc
        except CircuitBreakerError as exc:
            logger.error("embedding_circuit_open", model=self.model)
            raise UpstreamUnavailable("Embedding provider circuit open", upstream="embedding") from exc
        except OpenAIError as exc:
            logger.error("embedding_failed", model=self.model, error=str(exc))
            raise UpstreamUnavailable(f"Embedding request failed: {exc}", upstream="embedding") from exc

        if not response.data:
            raise UpstreamUnavailable("Embedding response contained no vectors", upstream="embedding")

        search_stage_duration_seconds.labels(stage="embedding").observe(time.time() - start_time)
        return list(response.data[0].embedding)
