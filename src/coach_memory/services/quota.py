"""Admission control for the per-owner active memory quota."""

import asyncio
from collections import defaultdict

from coach_memory.core.base import ErrorLevel, QuotaErrorDetails
from coach_memory.core.decorators import with_error_handling
from coach_memory.core.errors import QuotaExceededError
from coach_memory.core.logging import get_logger
from coach_memory.domain.models import MemoryCandidate, MemoryQuota, MemoryRecord
from coach_memory.domain.specifications import active
from coach_memory.services import EmbeddingService, MemoryStore
from coach_memory.services.embedding import RecordEmbedder

logger = get_logger(__name__)


class MemoryQuotaGuard:
    """Admits new memories only while the owner is under quota.

    Only non-archived records count. The count and the insert run under one
    lock per owner, so concurrent admissions in this process cannot jointly
    exceed the quota. Separate processes sharing a store are not coordinated.
    """

    def __init__(
        self,
        store: MemoryStore,
        quota: int = 150,
        embeddings: EmbeddingService | None = None,
        embedding_timeout_seconds: float = 10.0,
    ):
        self.store = store
        self.quota = quota
        self.embedder = RecordEmbedder(embeddings, embedding_timeout_seconds)
        self._locks: defaultdict[str, asyncio.Lock] = defaultdict(asyncio.Lock)

    def lock_for(self, owner_id: str) -> asyncio.Lock:
        return self._locks[owner_id]

    async def _ensure_capacity(self, owner_id: str) -> int:
        used = await self.store.count(owner_id, active())
        if used >= self.quota:
            logger.warning(f"Memory quota reached for owner {owner_id}", used=used, limit=self.quota)
            raise QuotaExceededError(
                limit=self.quota,
                details=QuotaErrorDetails(
                    source="memory_quota_guard",
                    operation="admit",
                    owner_id=owner_id,
                    limit=self.quota,
                    used=used,
                ),
            )
        return used

    async def _embed(self, candidate: MemoryCandidate) -> list[float] | None:
        if candidate.embedding is not None:
            return candidate.embedding
        return await self.embedder.embed(candidate.embedding_source, candidate.owner_id)

    @with_error_handling(error_level=ErrorLevel.ERROR, reraise=True)
    async def admit(self, candidate: MemoryCandidate) -> MemoryRecord:
        """Insert the candidate if the owner has room.

        Raises:
            QuotaExceededError: The owner already holds ``quota`` active memories
            StoreError: Counting or inserting failed
        """
        async with self.lock_for(candidate.owner_id):
            used = await self._ensure_capacity(candidate.owner_id)
            embedding = await self._embed(candidate)
            record = await self.store.insert(candidate.to_record(embedding))
        logger.info(
            f"Admitted memory {record.id}",
            owner_id=record.owner_id,
            used=used + 1,
            limit=self.quota,
            embedded=record.embedding is not None,
        )
        return record

    @with_error_handling(error_level=ErrorLevel.ERROR, reraise=True)
    async def admit_unarchive(self, owner_id: str, memory_id: str) -> MemoryRecord | None:
        """Unarchive a record, which counts as admitting it again.

        Returns None when the record does not exist; an already active record
        is returned unchanged.
        """
        async with self.lock_for(owner_id):
            current = await self.store.get(owner_id, memory_id)
            if current is None:
                return None
            if not current.is_archived:
                return current
            await self._ensure_capacity(owner_id)
            return await self.store.update(owner_id, memory_id, {"is_archived": False})

    async def get_quota(self, owner_id: str) -> MemoryQuota:
        used = await self.store.count(owner_id, active())
        return MemoryQuota(used=used, total=self.quota)
