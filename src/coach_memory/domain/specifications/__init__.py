from .composite import AllOfSpecification, BaseSpecification
from .memory import (
    ActiveMemorySpecification,
    HasSummarySpecification,
    KeywordMatchSpecification,
    MissingEmbeddingSpecification,
    MissingSummarySpecification,
    OwnerSpecification,
    PinnedMemorySpecification,
    UnpinnedMemorySpecification,
    active,
    active_pinned,
    active_unpinned,
    active_unpinned_keyword_match,
)

__all__ = [
    "ActiveMemorySpecification",
    "AllOfSpecification",
    "BaseSpecification",
    "HasSummarySpecification",
    "KeywordMatchSpecification",
    "MissingEmbeddingSpecification",
    "MissingSummarySpecification",
    "OwnerSpecification",
    "PinnedMemorySpecification",
    "UnpinnedMemorySpecification",
    "active",
    "active_pinned",
    "active_unpinned",
    "active_unpinned_keyword_match",
]
