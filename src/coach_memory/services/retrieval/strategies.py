"""Retrieval tiers.

Each strategy either returns records or raises. ``StrategySkipped`` means
the tier does not apply to this request; any other exception is a failure.
Either way the engine moves on to the next tier.

Tiers never return pinned records; those are fetched separately and always
come first, so a tier result fills only the remaining slots.
"""

import asyncio
from typing import Protocol

from coach_memory.core.base import ErrorDetails
from coach_memory.core.errors import ProviderUnavailableError
from coach_memory.domain.models import MANAGEMENT_ORDER, RECENCY_ORDER, EmbeddingType, MemoryRecord
from coach_memory.domain.specifications import active_unpinned, active_unpinned_keyword_match
from coach_memory.services import EmbeddingService, MemoryStore
from coach_memory.services.retrieval.keywords import extract_keywords


class StrategySkipped(Exception):
    """The tier is not applicable; not an error."""


class RetrievalStrategy(Protocol):
    name: str

    async def retrieve(self, owner_id: str, context_text: str, limit: int) -> list[MemoryRecord]: ...


class SimilarityStrategy:
    """Nearest active, unpinned records to the embedded context above a score threshold."""

    name = "similarity"

    def __init__(
        self,
        store: MemoryStore,
        embeddings: EmbeddingService | None,
        threshold: float = 0.5,
        timeout_seconds: float = 10.0,
    ):
        self.store = store
        self.embeddings = embeddings
        self.threshold = threshold
        self.timeout_seconds = timeout_seconds

    async def retrieve(self, owner_id: str, context_text: str, limit: int) -> list[MemoryRecord]:
        if self.embeddings is None:
            raise StrategySkipped("no embedding provider configured")
        if not context_text.strip():
            raise StrategySkipped("empty context")

        embedding = await asyncio.wait_for(
            self.embeddings.embed_text(context_text, EmbeddingType.QUERY),
            timeout=self.timeout_seconds,
        )
        if not embedding:
            raise ProviderUnavailableError(
                message="Embedding provider returned no vector",
                details=ErrorDetails(source="similarity_strategy", operation="embed_context"),
            )
        return await self.store.nearest(owner_id, embedding, self.threshold, limit)


class KeywordStrategy:
    """Case-insensitive substring match on content or summary for any keyword."""

    name = "keyword"

    def __init__(self, store: MemoryStore, min_length: int = 3, max_count: int = 5):
        self.store = store
        self.min_length = min_length
        self.max_count = max_count

    async def retrieve(self, owner_id: str, context_text: str, limit: int) -> list[MemoryRecord]:
        keywords = extract_keywords(context_text, self.min_length, self.max_count)
        if not keywords:
            raise StrategySkipped("no usable keywords")
        return await self.store.find(owner_id, active_unpinned_keyword_match(keywords), MANAGEMENT_ORDER, limit)


class RecencyStrategy:
    """Most recently created active, unpinned records."""

    name = "recency"

    def __init__(self, store: MemoryStore):
        self.store = store

    async def retrieve(self, owner_id: str, context_text: str, limit: int) -> list[MemoryRecord]:
        return await self.store.find(owner_id, active_unpinned(), RECENCY_ORDER, limit)
