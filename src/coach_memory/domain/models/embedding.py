"""Embedding request types."""

from enum import Enum


class EmbeddingType(str, Enum):
    """Which side of a retrieval an embedding is for."""

    DOCUMENT = "document"  # stored memory text
    QUERY = "query"  # conversational context
