"""Keyword extraction for the fallback text search."""


def extract_keywords(context_text: str, min_length: int = 3, max_count: int = 5) -> list[str]:
    """Lowercased whitespace tokens longer than ``min_length``, first ``max_count`` kept.

    Order follows the text; duplicates are kept because they do not change
    which records match.
    """
    tokens = [token for token in context_text.lower().split() if len(token) > min_length]
    return tokens[:max_count]
