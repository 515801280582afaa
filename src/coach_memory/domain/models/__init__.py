"""Domain models for the coach memory engine."""

from .embedding import EmbeddingType
from .maintenance import (
    MaintenanceFailureReason,
    MaintenancePass,
    MaintenanceReport,
    SummaryMaintenanceResult,
)
from .memory import (
    MANAGEMENT_ORDER,
    RECENCY_ORDER,
    Importance,
    MemoryCandidate,
    MemoryQuota,
    MemoryRecord,
    MemoryUpdate,
    SortKey,
    SourceType,
)
from .profile import UserProfile

__all__ = [
    "MANAGEMENT_ORDER",
    "RECENCY_ORDER",
    # Embedding
    "EmbeddingType",
    # Memory
    "Importance",
    # Maintenance
    "MaintenanceFailureReason",
    "MaintenancePass",
    "MaintenanceReport",
    "MemoryCandidate",
    "MemoryQuota",
    "MemoryRecord",
    "MemoryUpdate",
    "SortKey",
    "SourceType",
    "SummaryMaintenanceResult",
    # Profile
    "UserProfile",
]
