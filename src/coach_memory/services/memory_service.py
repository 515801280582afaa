"""Memory service facade.

Single entry point for the coaching application: admission through the
quota guard, listings and relevance retrieval through the retriever, and
owner-scoped record mutations.
"""

from collections import defaultdict

from pydantic import ValidationError

from coach_memory.core.base import ErrorLevel, ValidationErrorDetails
from coach_memory.core.decorators import error_context, with_error_handling
from coach_memory.core.errors import InvalidMemoryError, MemoryNotFoundError
from coach_memory.core.logging import get_logger
from coach_memory.domain.models import (
    MANAGEMENT_ORDER,
    MemoryCandidate,
    MemoryQuota,
    MemoryRecord,
    MemoryUpdate,
    SourceType,
)
from coach_memory.domain.specifications import active
from coach_memory.services import MemoryStore
from coach_memory.services.embedding import RecordEmbedder, embedding_source
from coach_memory.services.quota import MemoryQuotaGuard
from coach_memory.services.retrieval import RelevanceRetriever

logger = get_logger(__name__)

NO_MEMORIES_DIGEST = "No memories available."
DIGEST_CONTENT_PREVIEW = 100

_SOURCE_HEADINGS = {
    SourceType.JOURNAL_ENTRY: "Journal entries",
    SourceType.CHAT_MESSAGE: "Chat messages",
}


def _invalid(error: ValidationError, operation: str) -> InvalidMemoryError:
    first = error.errors()[0] if error.errors() else {}
    return InvalidMemoryError(
        message=f"Invalid memory input: {first.get('msg', str(error))}",
        details=ValidationErrorDetails(
            source="memory_service",
            operation=operation,
            field=".".join(str(part) for part in first.get("loc", ())) or None,
            constraint=first.get("type"),
        ),
    )


def _preview(content: str) -> str:
    if len(content) > DIGEST_CONTENT_PREVIEW:
        return content[:DIGEST_CONTENT_PREVIEW] + "..."
    return content


def build_memory_digest(records: list[MemoryRecord]) -> str:
    """Plain-text digest of memories grouped by source type."""
    if not records:
        return NO_MEMORIES_DIGEST

    grouped: dict[SourceType, list[MemoryRecord]] = defaultdict(list)
    for record in records:
        grouped[record.source_type].append(record)

    lines = ["Memory Summary:", ""]
    for source_type, group in grouped.items():
        lines.append(f"{_SOURCE_HEADINGS.get(source_type, source_type.value)}:")
        for record in group:
            lines.append(f"- {record.summary or _preview(record.content)}")
        lines.append("")
    return "\n".join(lines)


class MemoryService:
    """Owner-scoped memory operations.

    Mutations raise MemoryNotFoundError or StoreError to the caller.
    ``get_relevant_memories`` degrades instead of raising.
    """

    def __init__(
        self,
        store: MemoryStore,
        quota_guard: MemoryQuotaGuard,
        retriever: RelevanceRetriever,
        embedder: RecordEmbedder | None = None,
    ):
        self.store = store
        self.quota_guard = quota_guard
        self.retriever = retriever
        self.embedder = embedder or quota_guard.embedder

    async def create_memory(self, candidate: MemoryCandidate | dict) -> MemoryRecord:
        """Admit a new memory.

        Raises:
            InvalidMemoryError: The candidate failed validation
            QuotaExceededError: The owner is at their active memory quota
        """
        if isinstance(candidate, dict):
            try:
                candidate = MemoryCandidate.model_validate(candidate)
            except ValidationError as e:
                raise _invalid(e, "create_memory") from e
        return await self.quota_guard.admit(candidate)

    async def list_memories(self, owner_id: str, include_archived: bool = True) -> list[MemoryRecord]:
        return await self.retriever.list_memories(owner_id, include_archived)

    async def get_relevant_memories(
        self,
        owner_id: str,
        context_text: str,
        limit: int | None = None,
    ) -> list[MemoryRecord]:
        return await self.retriever.get_relevant_memories(owner_id, context_text, limit)

    @error_context(error_level=ErrorLevel.WARNING)
    async def get_memory(self, owner_id: str, memory_id: str) -> MemoryRecord:
        record = await self.store.get(owner_id, memory_id)
        if record is None:
            raise MemoryNotFoundError(memory_id, owner_id)
        return record

    @with_error_handling(error_level=ErrorLevel.ERROR, reraise=True)
    async def update_memory(self, owner_id: str, memory_id: str, update: MemoryUpdate | dict) -> MemoryRecord:
        """Write only the fields present in ``update``.

        Setting ``is_archived`` to False goes through the quota guard. A
        change to the embedded text re-embeds the record; if that fails the
        embedding is cleared for the backfill pass to retry.
        """
        if isinstance(update, dict):
            try:
                update = MemoryUpdate.model_validate(update)
            except ValidationError as e:
                raise _invalid(e, "update_memory") from e

        changes = update.changes()
        if changes.get("is_archived") is False:
            del changes["is_archived"]
            await self.set_archived(owner_id, memory_id, False)
        if not changes:
            return await self.get_memory(owner_id, memory_id)
        await self._refresh_embedding(owner_id, memory_id, changes)

        record = await self.store.update(owner_id, memory_id, changes)
        if record is None:
            raise MemoryNotFoundError(memory_id, owner_id)
        logger.info(f"Updated memory {memory_id}", owner_id=owner_id, fields=sorted(changes))
        return record

    async def _refresh_embedding(self, owner_id: str, memory_id: str, changes: dict) -> None:
        if not self.embedder.enabled or not {"content", "summary"} & changes.keys():
            return
        current = await self.get_memory(owner_id, memory_id)
        before = embedding_source(current.summary, current.content)
        after = embedding_source(changes.get("summary", current.summary), changes.get("content", current.content))
        if after != before or current.embedding is None:
            changes["embedding"] = await self.embedder.embed(after, owner_id)

    @with_error_handling(error_level=ErrorLevel.ERROR, reraise=True)
    async def delete_memory(self, owner_id: str, memory_id: str) -> None:
        """Hard delete; the quota slot is freed immediately."""
        if not await self.store.delete(owner_id, memory_id):
            raise MemoryNotFoundError(memory_id, owner_id)
        logger.info(f"Deleted memory {memory_id}", owner_id=owner_id)

    @with_error_handling(error_level=ErrorLevel.ERROR, reraise=True)
    async def set_pinned(self, owner_id: str, memory_id: str, pinned: bool) -> MemoryRecord:
        record = await self.store.update(owner_id, memory_id, {"is_pinned": pinned})
        if record is None:
            raise MemoryNotFoundError(memory_id, owner_id)
        logger.info(f"{'Pinned' if pinned else 'Unpinned'} memory {memory_id}", owner_id=owner_id)
        return record

    @with_error_handling(error_level=ErrorLevel.ERROR, reraise=True)
    async def set_archived(self, owner_id: str, memory_id: str, archived: bool) -> MemoryRecord:
        """Archive to free a quota slot; unarchiving needs a free slot.

        Raises:
            QuotaExceededError: Unarchiving while the owner is at quota
        """
        if archived:
            record = await self.store.update(owner_id, memory_id, {"is_archived": True})
        else:
            record = await self.quota_guard.admit_unarchive(owner_id, memory_id)
        if record is None:
            raise MemoryNotFoundError(memory_id, owner_id)
        logger.info(f"{'Archived' if archived else 'Unarchived'} memory {memory_id}", owner_id=owner_id)
        return record

    @error_context()
    async def get_quota(self, owner_id: str) -> MemoryQuota:
        return await self.quota_guard.get_quota(owner_id)

    async def build_memory_digest(self, owner_id: str) -> str:
        """Digest of the owner's active memories for prompt context."""
        records = await self.store.find(owner_id, active(), MANAGEMENT_ORDER)
        return build_memory_digest(records)
