"""Embedding of memory records for storage."""

import asyncio

from coach_memory.core.logging import get_logger
from coach_memory.domain.models import EmbeddingType, MemoryRecord
from coach_memory.services import EmbeddingService

logger = get_logger(__name__)


def embedding_source(summary: str | None, content: str) -> str:
    """Text a record is embedded from: the summary when present."""
    return summary or content


class RecordEmbedder:
    """Embeds memory text with a deadline and never raises.

    A failed or empty embedding is returned as None; the record is stored
    without one and picked up by the embedding backfill pass later.
    """

    def __init__(self, embeddings: EmbeddingService | None, timeout_seconds: float = 10.0):
        self.embeddings = embeddings
        self.timeout_seconds = timeout_seconds

    @property
    def enabled(self) -> bool:
        return self.embeddings is not None

    async def embed(self, text: str, owner_id: str | None = None) -> list[float] | None:
        if self.embeddings is None:
            return None
        try:
            embedding = await asyncio.wait_for(
                self.embeddings.embed_text(text, EmbeddingType.DOCUMENT),
                timeout=self.timeout_seconds,
            )
        except Exception as e:
            logger.warning(f"Embedding failed: {e!s}", owner_id=owner_id, error_type=type(e).__name__)
            return None
        return embedding or None

    async def embed_record(self, record: MemoryRecord) -> list[float] | None:
        return await self.embed(embedding_source(record.summary, record.content), record.owner_id)
