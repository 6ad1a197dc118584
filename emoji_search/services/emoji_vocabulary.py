"""Static emoji vocabulary: glyph -> ordered keyword tags.

The vocabulary enriches vector index hits before they are shown to the
reranker, and is the source the offline indexing script embeds. It is
loaded either from an emojilib-format JSON file::

    {"😀": ["grinning_face", "face", "smile", "happy"], ...}

or, when no file is configured, derived from the CLDR names and aliases
shipped with the ``emoji`` package.
"""

from __future__ import annotations

import json
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, Iterator, List, Mapping, Optional, Tuple

import emoji
from emoji_search.core.logging import get_logger
from emoji_search.services.emoji_validator import normalize_emoji

logger = get_logger(__name__)


@dataclass(frozen=True)
class Candidate:
    """An emoji surfaced by vector similarity, with its keyword tags."""

    id: str
    keywords: Tuple[str, ...] = field(default_factory=tuple)

    def to_dict(self) -> Dict[str, Any]:
        return {"id": self.id, "keywords": list(self.keywords)}

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "Candidate":
        return cls(id=str(data["id"]), keywords=tuple(str(k) for k in data.get("keywords") or ()))


def _strip_colons(name: str) -> str:
    return name.strip(":")


def _keywords_from_emoji_data(data: Mapping[str, Any]) -> List[str]:
    name = _strip_colons(data["en"])
    keywords = [name]
    for alias in data.get("alias", []):
        alias = _strip_colons(alias)
        if alias not in keywords:
            keywords.append(alias)
    for word in name.split("_"):
        if word and word not in keywords:
            keywords.append(word)
    return keywords


class EmojiVocabulary:
    """Read-only mapping from emoji glyph to keyword list."""

    def __init__(self, keywords: Mapping[str, List[str]]):
        self._keywords: Dict[str, Tuple[str, ...]] = {
            glyph: tuple(tags) for glyph, tags in keywords.items()
        }
        # Variation-selector-insensitive index for glyphs stored without FE0F
        self._by_key: Dict[str, str] = {}
        for glyph in self._keywords:
            self._by_key.setdefault(normalize_emoji(glyph), glyph)

    def __len__(self) -> int:
        return len(self._keywords)

    def __contains__(self, glyph: object) -> bool:
        return isinstance(glyph, str) and normalize_emoji(glyph) in self._by_key

    def __iter__(self) -> Iterator[str]:
        return iter(self._keywords)

    def items(self):
        return self._keywords.items()

    def keywords_for(self, glyph: str) -> Tuple[str, ...]:
        """Keywords for ``glyph``; empty when the glyph is unknown."""
        tags = self._keywords.get(glyph)
        if tags is not None:
            return tags
        stored = self._by_key.get(normalize_emoji(glyph))
        return self._keywords[stored] if stored is not None else ()

    def candidate(self, glyph: str) -> Candidate:
        return Candidate(id=glyph, keywords=self.keywords_for(glyph))

    @classmethod
    def from_json_file(cls, path: str | Path) -> "EmojiVocabulary":
        with open(path, encoding="utf-8") as fh:
            raw = json.load(fh)
        if not isinstance(raw, dict):
            raise ValueError(f"Emoji keyword file {path} must contain a JSON object")
        vocabulary = cls({str(glyph): [str(tag) for tag in tags] for glyph, tags in raw.items()})
        logger.info("emoji_vocabulary_loaded", source=str(path), size=len(vocabulary))
        return vocabulary

    @classmethod
    def from_emoji_package(cls) -> "EmojiVocabulary":
        fully_qualified = emoji.STATUS["fully_qualified"]
        keywords = {
            glyph: _keywords_from_emoji_data(data)
            for glyph, data in emoji.EMOJI_DATA.items()
            if data.get("status") == fully_qualified
        }
        vocabulary = cls(keywords)
        logger.info("emoji_vocabulary_loaded", source="emoji", size=len(vocabulary))
        return vocabulary


def load_vocabulary(path: Optional[str] = None) -> EmojiVocabulary:
    """Load the vocabulary from ``path`` when given, else from the emoji package."""
    if path:
        return EmojiVocabulary.from_json_file(path)
    return EmojiVocabulary.from_emoji_package()
