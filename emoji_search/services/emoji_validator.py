"""Emoji validation and deduplication for rerank output.

LLM output is untrusted. Everything the reranker returns passes through
``sanitize_emojis`` before it is cached or returned to a client:

1. drop anything that is not exactly one valid emoji (text, kaomoji,
   descriptions, multi-emoji strings)
2. optionally drop glyphs that were not among the candidates, replacing a
   presentation variant of a candidate with the candidate itself
3. collapse presentation variants by stripping variation selectors
4. keep the first occurrence of each glyph, preserving rerank order
"""

from __future__ import annotations

from typing import Dict, Iterable, List, Optional

import emoji

# U+FE0E (text presentation) and U+FE0F (emoji presentation)
VARIATION_SELECTORS = ("\ufe0e", "\ufe0f")


def is_valid_emoji(value: object) -> bool:
    """True when ``value`` is a string holding exactly one emoji sequence."""
    if not isinstance(value, str) or not value:
        return False
    return emoji.is_emoji(value)


def normalize_emoji(glyph: str) -> str:
    """Normalization key used for duplicate detection."""
    for selector in VARIATION_SELECTORS:
        glyph = glyph.replace(selector, "")
    return glyph


def sanitize_emojis(raw: Iterable[object], allowed: Optional[Iterable[str]] = None) -> List[str]:
    """Filter and deduplicate a raw emoji list.

    Args:
        raw: Items returned by the reranker, most relevant first
        allowed: Candidate glyphs; when given, anything outside this set is
            dropped. Membership is checked on normalization keys and the
            candidate's exact glyph is returned in place of the variant.

    Returns:
        Valid, distinct emojis in their original relative order
    """
    allowed_glyphs: Optional[Dict[str, str]] = None
    if allowed is not None:
        allowed_glyphs = {}
        for glyph in allowed:
            allowed_glyphs.setdefault(normalize_emoji(glyph), glyph)

    unique: List[str] = []
    seen: set[str] = set()

    for item in raw:
        if not is_valid_emoji(item):
            continue

        key = normalize_emoji(item)
        if key in seen:
            continue
        if allowed_glyphs is not None:
            if key not in allowed_glyphs:
                continue
            item = allowed_glyphs[key]

        seen.add(key)
        unique.append(item)

    return unique
