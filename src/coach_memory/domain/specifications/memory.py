"""Memory record specifications.

These are the only filters the engine issues. Owner scoping is applied by
the store itself, so none of these are ever evaluated unscoped.
"""

from typing import Any, Literal

from pydantic import Field

from coach_memory.domain.specifications.composite import BaseSpecification


class OwnerSpecification(BaseSpecification):
    """Records belonging to one owner."""

    type: Literal["owner"] = "owner"
    owner_id: str = Field(min_length=1)

    def is_satisfied_by(self, entity: Any) -> bool:
        return getattr(entity, "owner_id", None) == self.owner_id

    def to_filter(self) -> dict[str, Any]:
        return {"owner_id": self.owner_id}


class ActiveMemorySpecification(BaseSpecification):
    """Records that are not archived."""

    type: Literal["active"] = "active"

    def is_satisfied_by(self, entity: Any) -> bool:
        return not entity.is_archived

    def to_filter(self) -> dict[str, Any]:
        return {"is_archived": False}


class PinnedMemorySpecification(BaseSpecification):
    """Records the owner pinned as always relevant."""

    type: Literal["pinned"] = "pinned"

    def is_satisfied_by(self, entity: Any) -> bool:
        return bool(entity.is_pinned)

    def to_filter(self) -> dict[str, Any]:
        return {"is_pinned": True}


class UnpinnedMemorySpecification(BaseSpecification):
    """Records not pinned; relevance tiers only rank these."""

    type: Literal["unpinned"] = "unpinned"

    def is_satisfied_by(self, entity: Any) -> bool:
        return not entity.is_pinned

    def to_filter(self) -> dict[str, Any]:
        return {"is_pinned": False}


class MissingEmbeddingSpecification(BaseSpecification):
    """Records without a vector, invisible to similarity search."""

    type: Literal["missing_embedding"] = "missing_embedding"

    def is_satisfied_by(self, entity: Any) -> bool:
        return entity.embedding is None

    def to_filter(self) -> dict[str, Any]:
        return {"embedding": None}


class MissingSummarySpecification(BaseSpecification):
    """Records whose summary has not been generated yet."""

    type: Literal["missing_summary"] = "missing_summary"

    def is_satisfied_by(self, entity: Any) -> bool:
        return entity.summary is None

    def to_filter(self) -> dict[str, Any]:
        return {"summary": None}


class HasSummarySpecification(BaseSpecification):
    """Records with a summary."""

    type: Literal["has_summary"] = "has_summary"

    def is_satisfied_by(self, entity: Any) -> bool:
        return entity.summary is not None

    def to_filter(self) -> dict[str, Any]:
        return {"summary__isnull": False}


class KeywordMatchSpecification(BaseSpecification):
    """Records whose content or summary contains any keyword, ignoring case."""

    type: Literal["keyword"] = "keyword"
    keywords: tuple[str, ...] = Field(min_length=1)

    def is_satisfied_by(self, entity: Any) -> bool:
        haystacks = [entity.content.lower()]
        if entity.summary:
            haystacks.append(entity.summary.lower())
        return any(keyword.lower() in text for keyword in self.keywords for text in haystacks)

    def to_filter(self) -> dict[str, Any]:
        return {
            "$or": [
                condition
                for keyword in self.keywords
                for condition in ({"content__icontains": keyword}, {"summary__icontains": keyword})
            ]
        }


def active() -> BaseSpecification:
    return ActiveMemorySpecification()


def active_pinned() -> BaseSpecification:
    return ActiveMemorySpecification().and_(PinnedMemorySpecification())


def active_unpinned() -> BaseSpecification:
    return ActiveMemorySpecification().and_(UnpinnedMemorySpecification())


def active_unpinned_keyword_match(keywords: list[str] | tuple[str, ...]) -> BaseSpecification:
    return active_unpinned().and_(KeywordMatchSpecification(keywords=tuple(keywords)))
