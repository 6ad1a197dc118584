"""Query normalization.

The normalized form is both the text sent to the embedding model and the
query component of every cache key, so " Cats " and "cats" share cache
entries.
"""


def normalize_query(query: str) -> str:
    """Trim surrounding whitespace and lowercase.

    Total and idempotent: normalize_query(normalize_query(q)) == normalize_query(q).
    """
    return query.strip().lower()
