"""
Nearest-neighbour lookup over pre-computed emoji embeddings in Qdrant.

Points are written by ``scripts/embed_emojis.py``. Qdrant point ids must
be integers or UUIDs, so each point carries its glyph in the payload under
``emoji`` and that glyph is what the index reports as the match id.
"""

from __future__ import annotations

import asyncio
import time
from dataclasses import dataclass
from typing import List, Sequence

from emoji_search.core.errors import UpstreamUnavailable
from emoji_search.core.logging import get_logger
from emoji_search.core.metrics import search_stage_duration_seconds
from emoji_search.core.resilience import call_with_breaker, qdrant_breaker
from pybreaker import CircuitBreakerError
from qdrant_client import AsyncQdrantClient

logger = get_logger(__name__)

EMOJI_PAYLOAD_KEY = "emoji"


@dataclass
class VectorMatch:
    """A single nearest-neighbour hit."""

    id: str
    score: float


class VectorIndex:
    """Query a Qdrant collection of emoji embeddings. Calls are not retried."""

    def __init__(self, client: AsyncQdrantClient, collection_name: str, timeout_sec: float = 5.0):
        self.client = client
        self.collection_name = collection_name
        self.timeout_sec = timeout_sec

    async def query(self, vector: Sequence[float], top_k: int) -> List[VectorMatch]:
        """Return up to ``top_k`` matches, most similar first."""
        start_time = time.time()
        try:
            response = await call_with_breaker(
                qdrant_breaker,
                lambda: asyncio.wait_for(
                    self.client.query_points(
                        collection_name=self.collection_name,
                        query=list(vector),
                        limit=top_k,
                        with_payload=[EMOJI_PAYLOAD_KEY],
                    ),
                    timeout=self.timeout_sec,
                ),
            )
        except asyncio.TimeoutError as exc:
            logger.error("vector_query_timeout", collection=self.collection_name, timeout_sec=self.timeout_sec)
            raise UpstreamUnavailable("Vector query timed out", upstream="vector_index") from exc
        except CircuitBreakerError as exc:
            logger.error("vector_query_circuit_open", collection=self.collection_name)
            raise UpstreamUnavailable("Vector index circuit open", upstream="vector_index") from exc
        except Exception as exc:
            logger.error("vector_query_failed", collection=self.collection_name, error=str(exc), exc_info=True)
            raise UpstreamUnavailable(f"Vector query failed: {exc}", upstream="vector_index") from exc

        matches = []
        for point in response.points:
            glyph = (point.payload or {}).get(EMOJI_PAYLOAD_KEY)
            if not glyph:
                logger.warning("vector_point_missing_emoji", point_id=str(point.id))
                continue
            matches.append(VectorMatch(id=glyph, score=point.score))

        search_stage_duration_seconds.labels(stage="vector_query").observe(time.time() - start_time)
        return matches

    async def ping(self) -> bool:
        try:
            await self.client.get_collections()
            return True
        except Exception:
            return False
