"""Service layer interfaces.

External collaborators are reached only through these protocols and are
injected into the services at construction time.
"""

from collections.abc import Sequence
from typing import Any, Protocol, runtime_checkable

from coach_memory.domain.models import EmbeddingType, MemoryRecord, SortKey, UserProfile
from coach_memory.domain.specifications import BaseSpecification


@runtime_checkable
class EmbeddingService(Protocol):
    """Protocol for embedding providers."""

    async def embed_text(self, text: str, embedding_type: EmbeddingType = EmbeddingType.DOCUMENT) -> list[float]:
        """Generate an embedding; raises ProviderUnavailableError when it cannot."""
        ...


@runtime_checkable
class SummarizationService(Protocol):
    """Protocol for summarization providers."""

    async def summarize(self, text: str, user_name: str | None = None) -> str:
        """Summarize memory content, personalized with ``user_name`` when given."""
        ...


@runtime_checkable
class ProfileDirectory(Protocol):
    """Protocol for looking up the owner's name and email."""

    async def get_profile(self, owner_id: str) -> UserProfile | None:
        """Return the profile, None when none is stored.

        Raises SessionExpiredError when the owner's session is gone.
        """
        ...


@runtime_checkable
class MemoryStore(Protocol):
    """Row-level access to memory records; every call is scoped by owner."""

    async def insert(self, record: MemoryRecord) -> MemoryRecord: ...

    async def get(self, owner_id: str, memory_id: str) -> MemoryRecord | None: ...

    async def find(
        self,
        owner_id: str,
        spec: BaseSpecification | None = None,
        order_by: Sequence[SortKey] = (),
        limit: int | None = None,
    ) -> list[MemoryRecord]: ...

    async def count(self, owner_id: str, spec: BaseSpecification | None = None) -> int: ...

    async def update(self, owner_id: str, memory_id: str, fields: dict[str, Any]) -> MemoryRecord | None:
        """Write ``fields`` and stamp ``updated_at``; None when the record does not exist."""
        ...

    async def delete(self, owner_id: str, memory_id: str) -> bool: ...

    async def nearest(
        self,
        owner_id: str,
        embedding: list[float],
        threshold: float,
        limit: int,
    ) -> list[MemoryRecord]:
        """Active, unpinned records by descending similarity, scores in [0, 1]."""
        ...


__all__ = ["EmbeddingService", "MemoryStore", "ProfileDirectory", "SummarizationService"]
