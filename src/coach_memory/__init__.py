"""Per-owner memory engine for an AI coaching assistant.

Quota-guarded admission, tiered relevance retrieval and background summary
maintenance over a Neo4j (or in-process) memory store.
"""

from coach_memory.bootstrap import MemoryEngine, build_in_memory_engine, build_memory_engine
from coach_memory.core.errors import (
    InvalidMemoryError,
    MemoryNotFoundError,
    ProviderUnavailableError,
    QuotaExceededError,
    StoreError,
)
from coach_memory.domain.models import MemoryCandidate, MemoryRecord, MemoryUpdate
from coach_memory.services.memory_service import MemoryService

__version__ = "0.1.0"

__all__ = [
    "InvalidMemoryError",
    "MemoryCandidate",
    "MemoryEngine",
    "MemoryNotFoundError",
    "MemoryRecord",
    "MemoryService",
    "MemoryUpdate",
    "ProviderUnavailableError",
    "QuotaExceededError",
    "StoreError",
    "build_in_memory_engine",
    "build_memory_engine",
]
