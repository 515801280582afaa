"""Memory ranking and relevance retrieval."""

from collections.abc import Sequence

from coach_memory.core.base import ErrorLevel
from coach_memory.core.config import RetrievalConfig
from coach_memory.core.decorators import with_error_handling
from coach_memory.core.logging import get_logger
from coach_memory.domain.models import MANAGEMENT_ORDER, MemoryRecord
from coach_memory.domain.specifications import active, active_pinned
from coach_memory.services import EmbeddingService, MemoryStore
from coach_memory.services.retrieval.strategies import (
    KeywordStrategy,
    RecencyStrategy,
    RetrievalStrategy,
    SimilarityStrategy,
    StrategySkipped,
)

logger = get_logger(__name__)


def merge_unique(pinned: list[MemoryRecord], ranked: list[MemoryRecord]) -> list[MemoryRecord]:
    """Pinned records first, then ranked records not already pinned, order kept."""
    seen = {record.id for record in pinned}
    return pinned + [record for record in ranked if record.id not in seen]


class RelevanceRetriever:
    """Selects the memories handed to the coaching model for one conversation turn.

    Pinned records always come first. The rest of the budget is filled by the
    first tier that succeeds, in order: vector similarity, keyword match,
    recency. Dependency failures only move retrieval down a tier; when every
    tier fails the result is whatever pinned records were found.
    """

    def __init__(
        self,
        store: MemoryStore,
        strategies: Sequence[RetrievalStrategy],
        default_limit: int = 5,
    ):
        self.store = store
        self.strategies = list(strategies)
        self.default_limit = default_limit

    @classmethod
    def from_config(
        cls,
        store: MemoryStore,
        embeddings: EmbeddingService | None,
        config: RetrievalConfig,
    ) -> "RelevanceRetriever":
        """Build the standard similarity, keyword, recency chain."""
        return cls(
            store,
            [
                SimilarityStrategy(
                    store,
                    embeddings,
                    threshold=config.similarity_threshold,
                    timeout_seconds=config.provider_timeout_seconds,
                ),
                KeywordStrategy(store, config.keyword_min_length, config.keyword_max_count),
                RecencyStrategy(store),
            ],
            default_limit=config.default_limit,
        )

    @with_error_handling(error_level=ErrorLevel.ERROR, reraise=True)
    async def list_memories(self, owner_id: str, include_archived: bool = True) -> list[MemoryRecord]:
        """All of the owner's records in management order: pinned, important, recent."""
        spec = None if include_archived else active()
        return await self.store.find(owner_id, spec, MANAGEMENT_ORDER)

    async def _pinned(self, owner_id: str, limit: int) -> list[MemoryRecord]:
        try:
            return await self.store.find(owner_id, active_pinned(), MANAGEMENT_ORDER, limit)
        except Exception as e:
            logger.warning(f"Pinned lookup failed, continuing without pinned memories: {e!s}", owner_id=owner_id)
            return []

    async def _ranked(self, owner_id: str, context_text: str, limit: int) -> list[MemoryRecord]:
        for strategy in self.strategies:
            try:
                records = await strategy.retrieve(owner_id, context_text, limit)
            except StrategySkipped as e:
                logger.debug(f"Retrieval tier '{strategy.name}' skipped: {e!s}", owner_id=owner_id)
                continue
            except Exception as e:
                logger.warning(
                    f"Retrieval tier '{strategy.name}' failed, falling back: {e!s}",
                    owner_id=owner_id,
                    error_type=type(e).__name__,
                )
                continue
            logger.debug(f"Retrieval tier '{strategy.name}' returned {len(records)} memories", owner_id=owner_id)
            return records[:limit]

        logger.warning("All retrieval tiers exhausted", owner_id=owner_id)
        return []

    async def get_relevant_memories(
        self,
        owner_id: str,
        context_text: str,
        limit: int | None = None,
    ) -> list[MemoryRecord]:
        """Up to ``limit`` memories relevant to ``context_text``; never raises for dependency failures."""
        limit = self.default_limit if limit is None else limit
        if limit <= 0:
            return []

        pinned = await self._pinned(owner_id, limit)
        if len(pinned) >= limit:
            return pinned[:limit]

        ranked = await self._ranked(owner_id, context_text, limit - len(pinned))
        return merge_unique(pinned, ranked)
