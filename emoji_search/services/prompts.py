"""Prompts for the LLM rerank step."""

from typing import Sequence

from emoji_search.services.emoji_vocabulary import Candidate

SYSTEM_PROMPT = """You are an emoji search engine expert. Your task is to filter a candidate list for a query.

Rules:
1. Return ONLY valid Unicode emojis (no text, kaomoji, or descriptions)
2. You MUST choose emojis only from the provided candidate list
3. Be very permissive: keep as many emojis as possible that could plausibly match
4. Filter out only emojis that are clearly unrelated
5. Return at least 10 emojis, more is better
6. Never repeat emojis
7. Return emojis in order from most to least relevant
"""


def system_prompt() -> str:
    return SYSTEM_PROMPT


def format_candidate(candidate: Candidate) -> str:
    return f"{candidate.id}: {' '.join(candidate.keywords)}"


def user_prompt(query: str, candidates: Sequence[Candidate]) -> str:
    """Render the query and one ``<emoji>: <keywords>`` line per candidate."""
    candidate_lines = "\n".join(format_candidate(candidate) for candidate in candidates)
    return (
        f'Query: "{query}"\n'
        "\n"
        "Candidate emojis:\n"
        f"{candidate_lines}\n"
        "\n"
        "Return a filtered list from the candidate emojis. "
        "Keep as many as possible, and drop only the clearly unrelated ones."
    )
