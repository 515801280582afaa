from collections.abc import Sequence
from datetime import datetime
from enum import Enum
from typing import Any, NoReturn

from neo4j import AsyncDriver, AsyncSession
from neo4j.exceptions import DriverError, Neo4jError

from coach_memory.core.base import DatabaseErrorDetails
from coach_memory.core.decorators import with_session
from coach_memory.core.errors import StoreError
from coach_memory.core.logging import get_logger
from coach_memory.domain.models import MemoryRecord, SortKey
from coach_memory.domain.models.memory import utcnow
from coach_memory.domain.specifications import BaseSpecification, OwnerSpecification
from coach_memory.infrastructure.neo4j.filter_compiler import compile_filters
from coach_memory.infrastructure.neo4j.queries import MEMORY_LABEL, MemoryQueries

logger = get_logger(__name__)


def _raise_store_error(operation: str, query_type: str, error: Exception) -> NoReturn:
    logger.error(f"Neo4j {operation} failed", error=str(error))
    raise StoreError(
        message=f"Memory store {operation} failed: {error}",
        details=DatabaseErrorDetails(
            source="neo4j_memory_store",
            operation=operation,
            service_name="neo4j",
            query_type=query_type,
            label=MEMORY_LABEL,
        ),
    ) from error


def _to_property(value: Any) -> Any:
    if isinstance(value, datetime):
        return value.timestamp()
    if isinstance(value, Enum):
        return value.value
    return value


class Neo4jMemoryStore:
    """Memory store backed by Neo4j nodes.

    One session is opened per call. Neo4j driver errors are wrapped in
    StoreError so callers handle a single failure type.
    """

    def __init__(self, driver: AsyncDriver, database: str | None = None):
        self.driver = driver
        self.database = database

    @staticmethod
    def _scoped_filter(owner_id: str, spec: BaseSpecification | None) -> tuple[str, dict[str, Any]]:
        scoped: BaseSpecification = OwnerSpecification(owner_id=owner_id)
        if spec is not None:
            scoped = scoped.and_(spec)
        return compile_filters(scoped.to_filter(), alias="m")

    @with_session()
    async def insert(self, session: AsyncSession, record: MemoryRecord) -> MemoryRecord:
        query, _ = MemoryQueries.insert()
        try:
            result = await session.run(query, properties=record.to_neo4j_properties())
            stored = await result.single()
        except (Neo4jError, DriverError) as e:
            _raise_store_error("insert", "create", e)

        if not stored:
            raise StoreError(
                message="Failed to store memory in database",
                details={"source": "neo4j_memory_store", "operation": "insert", "memory_id": record.id},
            )
        logger.debug(f"Stored memory {record.id} for owner {record.owner_id}")
        return MemoryRecord.from_neo4j_record(dict(stored["m"]))

    @with_session()
    async def get(self, session: AsyncSession, owner_id: str, memory_id: str) -> MemoryRecord | None:
        query, _ = MemoryQueries.get_by_id()
        try:
            result = await session.run(query, id=memory_id, owner_id=owner_id)
            record = await result.single()
        except (Neo4jError, DriverError) as e:
            _raise_store_error("get", "select", e)
        return MemoryRecord.from_neo4j_record(dict(record["m"])) if record else None

    @with_session()
    async def find(
        self,
        session: AsyncSession,
        owner_id: str,
        spec: BaseSpecification | None = None,
        order_by: Sequence[SortKey] = (),
        limit: int | None = None,
    ) -> list[MemoryRecord]:
        where, params = self._scoped_filter(owner_id, spec)
        query, _ = MemoryQueries.find(where, order_by, limited=limit is not None)
        if limit is not None:
            params["limit"] = limit
        try:
            result = await session.run(query, params)
            records = [MemoryRecord.from_neo4j_record(dict(row["m"])) async for row in result]
        except (Neo4jError, DriverError) as e:
            _raise_store_error("find", "select", e)
        logger.debug(f"Found {len(records)} memories for owner {owner_id}")
        return records

    @with_session()
    async def count(self, session: AsyncSession, owner_id: str, spec: BaseSpecification | None = None) -> int:
        where, params = self._scoped_filter(owner_id, spec)
        query, _ = MemoryQueries.count(where)
        try:
            result = await session.run(query, params)
            record = await result.single()
        except (Neo4jError, DriverError) as e:
            _raise_store_error("count", "count", e)
        return int(record["total"]) if record else 0

    @with_session()
    async def update(
        self,
        session: AsyncSession,
        owner_id: str,
        memory_id: str,
        fields: dict[str, Any],
    ) -> MemoryRecord | None:
        properties = {key: _to_property(value) for key, value in fields.items()}
        properties["updated_at"] = utcnow().timestamp()
        query, _ = MemoryQueries.update_fields()
        try:
            result = await session.run(query, id=memory_id, owner_id=owner_id, fields=properties)
            record = await result.single()
        except (Neo4jError, DriverError) as e:
            _raise_store_error("update", "update", e)
        return MemoryRecord.from_neo4j_record(dict(record["m"])) if record else None

    @with_session()
    async def delete(self, session: AsyncSession, owner_id: str, memory_id: str) -> bool:
        query, _ = MemoryQueries.delete()
        try:
            result = await session.run(query, id=memory_id, owner_id=owner_id)
            record = await result.single()
        except (Neo4jError, DriverError) as e:
            _raise_store_error("delete", "delete", e)
        return bool(record and record["deleted"])

    @with_session()
    async def nearest(
        self,
        session: AsyncSession,
        owner_id: str,
        embedding: list[float],
        threshold: float,
        limit: int,
    ) -> list[MemoryRecord]:
        query, _ = MemoryQueries.nearest_active()
        try:
            result = await session.run(
                query,
                embedding=embedding,
                owner_id=owner_id,
                threshold=threshold,
                limit=limit,
            )
            records = [MemoryRecord.from_neo4j_record(dict(row["m"])) async for row in result]
        except (Neo4jError, DriverError) as e:
            _raise_store_error("nearest", "vector_search", e)
        logger.debug(f"Vector search returned {len(records)} memories above {threshold}")
        return records
