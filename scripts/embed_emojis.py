#!/usr/bin/env python3
"""
Emoji Vocabulary Embedder

Embeds every emoji in the vocabulary into the Qdrant collection the search
API queries. Uses the same embedding model as the API so query vectors and
emoji vectors share one embedding space.

Usage:
    python scripts/embed_emojis.py                     # Upsert all emojis
    python scripts/embed_emojis.py --recreate          # Drop and rebuild the collection
    python scripts/embed_emojis.py --dry-run           # Embed without writing to Qdrant
    python scripts/embed_emojis.py --collection NAME   # Custom collection name

Environment Variables:
    QDRANT_URL           - Qdrant server URL
    OPENAI_API_KEY       - API key for the OpenAI-compatible gateway
    OPENAI_BASE_URL      - Gateway base URL
    EMBEDDING_MODEL      - Embedding model id
    EMOJI_KEYWORDS_PATH  - Optional emojilib-format keyword file
"""

import argparse
import asyncio
import sys

from emoji_search.core.config import settings
from emoji_search.core.logging import configure_logging
from emoji_search.services.emoji_indexer import EmojiIndexer
from emoji_search.services.emoji_vocabulary import load_vocabulary
from openai import AsyncOpenAI
from qdrant_client import AsyncQdrantClient


async def main():
    parser = argparse.ArgumentParser(description="Embed the emoji vocabulary into Qdrant")
    parser.add_argument("--recreate", action="store_true", help="Drop and recreate the collection")
    parser.add_argument("--dry-run", action="store_true", help="Embed without writing to Qdrant")
    parser.add_argument("--collection", default=settings.QDRANT_COLLECTION, help="Collection name")
    parser.add_argument("--batch-size", type=int, default=100, help="Emojis per embeddings call")
    parser.add_argument("--keywords", default=settings.EMOJI_KEYWORDS_PATH, help="emojilib-format keyword file")
    args = parser.parse_args()

    if not settings.OPENAI_API_KEY:
        print("Error: OPENAI_API_KEY environment variable not set")
        sys.exit(1)

    configure_logging()
    vocabulary = load_vocabulary(args.keywords)

    print("=" * 60)
    print("Emoji Vocabulary Embedder")
    print("=" * 60)
    print(f"Qdrant URL: {settings.QDRANT_URL}")
    print(f"Collection: {args.collection}")
    print(f"Embedding Model: {settings.EMBEDDING_MODEL}")
    print(f"Vocabulary: {len(vocabulary)} emojis")

    openai_client = AsyncOpenAI(api_key=settings.OPENAI_API_KEY, base_url=settings.OPENAI_BASE_URL)
    qdrant_client = AsyncQdrantClient(url=settings.QDRANT_URL, api_key=settings.QDRANT_API_KEY)

    indexer = EmojiIndexer(
        openai_client=openai_client,
        qdrant_client=qdrant_client,
        collection_name=args.collection,
        embedding_model=settings.EMBEDDING_MODEL,
        batch_size=args.batch_size,
        dry_run=args.dry_run,
    )

    try:
        stats = await indexer.index(vocabulary, recreate=args.recreate)
    finally:
        await qdrant_client.close()
        await openai_client.close()

    print("\n" + "=" * 60)
    print("Summary")
    print("=" * 60)
    print(f"Emojis in vocabulary: {stats.emojis_total}")
    print(f"Batches embedded: {stats.batches}")
    print(f"Emojis indexed: {stats.emojis_indexed}")


if __name__ == "__main__":
    asyncio.run(main())
