"""Process-local memory store.

Evaluates the same specifications the Neo4j store compiles to Cypher, so
services and tests run unchanged against either backend.
"""

import asyncio
from collections.abc import Sequence
from typing import Any

import numpy as np

from coach_memory.core.logging import get_logger
from coach_memory.domain.models import MemoryRecord, SortKey
from coach_memory.domain.models.memory import utcnow
from coach_memory.domain.specifications import BaseSpecification

logger = get_logger(__name__)


def cosine_score(a: list[float], b: list[float]) -> float:
    """Cosine similarity mapped onto [0, 1], the scale vector.similarity.cosine reports."""
    va = np.asarray(a, dtype=np.float64)
    vb = np.asarray(b, dtype=np.float64)
    if va.shape != vb.shape:
        return 0.0
    norm = float(np.linalg.norm(va) * np.linalg.norm(vb))
    if norm == 0.0:
        return 0.0
    return (1.0 + float(np.dot(va, vb)) / norm) / 2.0


def sort_records(records: list[MemoryRecord], order_by: Sequence[SortKey]) -> list[MemoryRecord]:
    """Stable multi-key sort; the last key is applied first."""
    ordered = list(records)
    for key in reversed(order_by):
        ordered.sort(key=lambda r, f=key.field: getattr(r, f), reverse=key.descending)
    return ordered


class InMemoryMemoryStore:
    """Dictionary-backed store keyed by record id."""

    def __init__(self) -> None:
        self._records: dict[str, MemoryRecord] = {}
        self._lock = asyncio.Lock()

    def __len__(self) -> int:
        return len(self._records)

    def _owned(self, owner_id: str, spec: BaseSpecification | None) -> list[MemoryRecord]:
        return [
            record
            for record in self._records.values()
            if record.owner_id == owner_id and (spec is None or spec.is_satisfied_by(record))
        ]

    async def insert(self, record: MemoryRecord) -> MemoryRecord:
        async with self._lock:
            self._records[record.id] = record.model_copy(deep=True)
        logger.debug(f"Stored memory {record.id} for owner {record.owner_id}")
        return record.model_copy(deep=True)

    async def get(self, owner_id: str, memory_id: str) -> MemoryRecord | None:
        record = self._records.get(memory_id)
        if record is None or record.owner_id != owner_id:
            return None
        return record.model_copy(deep=True)

    async def find(
        self,
        owner_id: str,
        spec: BaseSpecification | None = None,
        order_by: Sequence[SortKey] = (),
        limit: int | None = None,
    ) -> list[MemoryRecord]:
        records = sort_records(self._owned(owner_id, spec), order_by)
        if limit is not None:
            records = records[:limit]
        return [record.model_copy(deep=True) for record in records]

    async def count(self, owner_id: str, spec: BaseSpecification | None = None) -> int:
        return len(self._owned(owner_id, spec))

    async def update(self, owner_id: str, memory_id: str, fields: dict[str, Any]) -> MemoryRecord | None:
        async with self._lock:
            current = self._records.get(memory_id)
            if current is None or current.owner_id != owner_id:
                return None
            data = current.model_dump()
            data.update(fields)
            data["updated_at"] = utcnow()
            updated = MemoryRecord.model_validate(data)
            self._records[memory_id] = updated
        return updated.model_copy(deep=True)

    async def delete(self, owner_id: str, memory_id: str) -> bool:
        async with self._lock:
            current = self._records.get(memory_id)
            if current is None or current.owner_id != owner_id:
                return False
            del self._records[memory_id]
        return True

    async def nearest(
        self,
        owner_id: str,
        embedding: list[float],
        threshold: float,
        limit: int,
    ) -> list[MemoryRecord]:
        scored = [
            (cosine_score(embedding, record.embedding), record)
            for record in self._records.values()
            if record.owner_id == owner_id and not record.is_archived and not record.is_pinned and record.embedding
        ]
        scored = [(score, record) for score, record in scored if score >= threshold]
        scored.sort(key=lambda pair: (-pair[0], pair[1].id))
        return [record.model_copy(deep=True) for _, record in scored[:limit]]
