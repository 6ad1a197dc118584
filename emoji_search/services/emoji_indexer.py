"""Builds the Qdrant collection the vector index queries.

Each vocabulary entry is embedded as ``"<emoji>: <space-joined keywords>"``
with the same model the search path uses for queries, and stored as a
point with a deterministic UUIDv5 id and payload ``{"emoji", "keywords"}``.
Re-running the indexer overwrites points in place.
"""

from __future__ import annotations

import uuid
from dataclasses import dataclass
from typing import Iterable, Iterator, List, Sequence, Tuple, TypeVar

from emoji_search.core.logging import get_logger
from emoji_search.services.emoji_vocabulary import EmojiVocabulary
from emoji_search.services.vector_index import EMOJI_PAYLOAD_KEY
from openai import AsyncOpenAI
from qdrant_client import AsyncQdrantClient
from qdrant_client.models import Distance, PointStruct, VectorParams

logger = get_logger(__name__)

T = TypeVar("T")

EMOJI_NAMESPACE = uuid.uuid5(uuid.NAMESPACE_URL, "emoji-search/emoji")
KEYWORDS_PAYLOAD_KEY = "keywords"


def embedding_text(glyph: str, keywords: Sequence[str]) -> str:
    return f"{glyph}: {' '.join(keywords)}"


def point_id(glyph: str) -> str:
    """Stable Qdrant point id for ``glyph``."""
    return str(uuid.uuid5(EMOJI_NAMESPACE, glyph))


def batched(items: Iterable[T], size: int) -> Iterator[List[T]]:
    if size < 1:
        raise ValueError("batch size must be at least 1")
    batch: List[T] = []
    for item in items:
        batch.append(item)
        if len(batch) == size:
            yield batch
            batch = []
    if batch:
        yield batch


@dataclass
class IndexStats:
    emojis_total: int = 0
    emojis_indexed: int = 0
    batches: int = 0


class EmojiIndexer:
    """Embeds the vocabulary and upserts it into a Qdrant collection."""

    def __init__(
        self,
        openai_client: AsyncOpenAI,
        qdrant_client: AsyncQdrantClient,
        collection_name: str,
        embedding_model: str,
        batch_size: int = 100,
        dry_run: bool = False,
    ):
        self.openai = openai_client
        self.qdrant = qdrant_client
        self.collection_name = collection_name
        self.embedding_model = embedding_model
        self.batch_size = batch_size
        self.dry_run = dry_run

    async def ensure_collection(self, vector_size: int, recreate: bool = False) -> None:
        exists = await self.qdrant.collection_exists(self.collection_name)
        if exists and not recreate:
            logger.info("collection_exists", collection=self.collection_name)
            return
        if self.dry_run:
            logger.info("collection_create_skipped", collection=self.collection_name, dry_run=True)
            return
        if exists:
            await self.qdrant.delete_collection(self.collection_name)
        await self.qdrant.create_collection(
            collection_name=self.collection_name,
            vectors_config=VectorParams(size=vector_size, distance=Distance.COSINE),
        )
        logger.info("collection_created", collection=self.collection_name, vector_size=vector_size)

    async def embed_batch(self, texts: List[str]) -> List[List[float]]:
        response = await self.openai.embeddings.create(model=self.embedding_model, input=texts)
        return [list(item.embedding) for item in sorted(response.data, key=lambda d: d.index)]

    async def index(self, vocabulary: EmojiVocabulary, recreate: bool = False) -> IndexStats:
        entries: List[Tuple[str, Tuple[str, ...]]] = list(vocabulary.items())
        stats = IndexStats(emojis_total=len(entries))
        collection_ready = False

        for batch in batched(entries, self.batch_size):
            vectors = await self.embed_batch([embedding_text(glyph, keywords) for glyph, keywords in batch])

            if not collection_ready:
                await self.ensure_collection(vector_size=len(vectors[0]), recreate=recreate)
                collection_ready = True

            points = [
                PointStruct(
                    id=point_id(glyph),
                    vector=vector,
                    payload={EMOJI_PAYLOAD_KEY: glyph, KEYWORDS_PAYLOAD_KEY: list(keywords)},
                )
                for (glyph, keywords), vector in zip(batch, vectors)
            ]

            stats.batches += 1
            if self.dry_run:
                logger.info("batch_skipped", batch=stats.batches, points=len(points), dry_run=True)
                continue

            await self.qdrant.upsert(collection_name=self.collection_name, points=points)
            stats.emojis_indexed += len(points)
            logger.info("batch_indexed", batch=stats.batches, points=len(points))

        return stats
