"""Memory records and the inputs that create or change them."""

from datetime import UTC, datetime
from enum import Enum, IntEnum
from typing import Any, NamedTuple
from uuid import uuid4

from pydantic import BaseModel, Field, ValidationInfo, computed_field, field_validator


def utcnow() -> datetime:
    return datetime.now(UTC)


class SourceType(str, Enum):
    """Artifact a memory was extracted from."""

    JOURNAL_ENTRY = "journal_entry"
    CHAT_MESSAGE = "chat_message"


class Importance(IntEnum):
    """Ordinal importance; only ever used as a sort key."""

    LOW = 0
    NORMAL = 1
    MEDIUM = 2
    HIGH = 3


class SortKey(NamedTuple):
    field: str
    descending: bool = False


# Management listing order: pinned, then important, then recent. The id key
# makes the order total so ties never depend on storage order.
MANAGEMENT_ORDER: tuple[SortKey, ...] = (
    SortKey("is_pinned", descending=True),
    SortKey("importance", descending=True),
    SortKey("created_at", descending=True),
    SortKey("id"),
)

RECENCY_ORDER: tuple[SortKey, ...] = (
    SortKey("created_at", descending=True),
    SortKey("id"),
)


def _non_blank(value: str | None, field_name: str) -> str | None:
    if value is not None and not value.strip():
        raise ValueError(f"{field_name} must be null or non-empty")
    return value


class MemoryRecord(BaseModel):
    """A durable, owner-scoped fact derived from a journal entry or chat message."""

    id: str = Field(default_factory=lambda: str(uuid4()))
    owner_id: str = Field(min_length=1)
    content: str
    source_id: str | None = None
    source_type: SourceType = SourceType.JOURNAL_ENTRY
    importance: Importance = Importance.NORMAL
    is_pinned: bool = False
    is_archived: bool = False
    user_notes: str | None = None
    summary: str | None = None
    embedding: list[float] | None = None
    created_at: datetime = Field(default_factory=utcnow)
    updated_at: datetime = Field(default_factory=utcnow)

    @field_validator("summary")
    @classmethod
    def _summary_not_empty(cls, value: str | None) -> str | None:
        return _non_blank(value, "summary")

    def __str__(self) -> str:
        flags = "".join(flag for flag, on in (("P", self.is_pinned), ("A", self.is_archived)) if on)
        return f"MemoryRecord({self.id[:8]}, '{self.content[:40]}...', {flags or '-'})"

    def to_neo4j_properties(self) -> dict[str, Any]:
        """Convert to Neo4j-compatible property dict."""
        props = self.model_dump(mode="python")
        props["source_type"] = self.source_type.value
        props["importance"] = int(self.importance)
        props["created_at"] = self.created_at.timestamp()
        props["updated_at"] = self.updated_at.timestamp()
        # Neo4j drops null properties; similarity search skips nodes without one
        if props.get("embedding") is None:
            props.pop("embedding", None)
        return props

    @classmethod
    def from_neo4j_record(cls, record: dict[str, Any]) -> "MemoryRecord":
        """Create instance from a Neo4j node property map."""
        data = dict(record)
        for key in ("created_at", "updated_at"):
            if isinstance(data.get(key), int | float):
                data[key] = datetime.fromtimestamp(data[key], UTC)
        return cls.model_validate(data)


class MemoryCandidate(BaseModel):
    """Validated input for admitting a new memory."""

    owner_id: str = Field(min_length=1)
    content: str
    source_id: str | None = None
    source_type: SourceType = SourceType.JOURNAL_ENTRY
    importance: Importance = Importance.NORMAL
    is_pinned: bool = False
    user_notes: str | None = None
    summary: str | None = None
    embedding: list[float] | None = None

    @field_validator("content")
    @classmethod
    def _content_not_blank(cls, value: str) -> str:
        if not value.strip():
            raise ValueError("content must not be empty")
        return value

    @field_validator("summary")
    @classmethod
    def _summary_not_empty(cls, value: str | None) -> str | None:
        return _non_blank(value, "summary")

    @property
    def embedding_source(self) -> str:
        """Text used to embed this candidate: the summary when present."""
        return self.summary or self.content

    def to_record(self, embedding: list[float] | None = None) -> MemoryRecord:
        now = utcnow()
        return MemoryRecord(
            **self.model_dump(exclude={"embedding"}),
            embedding=embedding if embedding is not None else self.embedding,
            created_at=now,
            updated_at=now,
        )


class MemoryUpdate(BaseModel):
    """Partial update; only fields explicitly set are written."""

    content: str | None = None
    user_notes: str | None = None
    summary: str | None = None
    importance: Importance | None = None
    is_pinned: bool | None = None
    is_archived: bool | None = None

    @field_validator("content")
    @classmethod
    def _content_not_blank(cls, value: str | None) -> str | None:
        if value is None or not value.strip():
            raise ValueError("content must not be empty")
        return value

    @field_validator("summary")
    @classmethod
    def _summary_not_empty(cls, value: str | None) -> str | None:
        return _non_blank(value, "summary")

    @field_validator("importance", "is_pinned", "is_archived", mode="before")
    @classmethod
    def _flag_not_null(cls, value: Any, info: ValidationInfo) -> Any:
        # Omit the field to leave it unchanged
        if value is None:
            raise ValueError(f"{info.field_name} must not be null")
        return value

    def changes(self) -> dict[str, Any]:
        return self.model_dump(exclude_unset=True)


class MemoryQuota(BaseModel):
    """Active memory usage against the owner's quota."""

    used: int = Field(ge=0)
    total: int = Field(ge=1)

    @computed_field  # type: ignore[prop-decorator]
    @property
    def percentage(self) -> float:
        return (self.used / self.total) * 100
