"""Centralized Cypher for the memory store.

Every query the store runs is built here. Queries that take a WHERE clause
receive it from ``compile_filters``; they always include the owner filter.
"""

from collections.abc import Sequence
from typing import Any, LiteralString, cast

from coach_memory.domain.models import SortKey

MEMORY_LABEL = "CoachMemory"
PROFILE_LABEL = "UserProfile"


def order_clause(order_by: Sequence[SortKey], alias: str = "m") -> str:
    """Render sort keys as an ORDER BY clause."""
    if not order_by:
        return ""
    parts = []
    for key in order_by:
        if not key.field.isidentifier():
            raise ValueError(f"Invalid sort field: {key.field!r}")
        parts.append(f"{alias}.{key.field} {'DESC' if key.descending else 'ASC'}")
    return "ORDER BY " + ", ".join(parts)


class MemoryQueries:
    """All memory record queries in one place."""

    @staticmethod
    def insert() -> tuple[LiteralString, dict[str, Any]]:
        query = f"""
        CREATE (m:{MEMORY_LABEL})
        SET m = $properties
        RETURN m
        """
        return cast(LiteralString, query), {}

    @staticmethod
    def get_by_id() -> tuple[LiteralString, dict[str, Any]]:
        query = f"""
        MATCH (m:{MEMORY_LABEL} {{id: $id, owner_id: $owner_id}})
        RETURN m
        """
        return cast(LiteralString, query), {}

    @staticmethod
    def find(where: str, order_by: Sequence[SortKey], limited: bool) -> tuple[LiteralString, dict[str, Any]]:
        """Filtered listing; ``where`` comes from compile_filters."""
        query_parts = [f"MATCH (m:{MEMORY_LABEL})", where, "RETURN m", order_clause(order_by)]
        if limited:
            query_parts.append("LIMIT $limit")
        query = "\n".join(part for part in query_parts if part)
        return cast(LiteralString, query), {}

    @staticmethod
    def count(where: str) -> tuple[LiteralString, dict[str, Any]]:
        query = f"""
        MATCH (m:{MEMORY_LABEL})
        {where}
        RETURN count(m) AS total
        """
        return cast(LiteralString, query), {}

    @staticmethod
    def update_fields() -> tuple[LiteralString, dict[str, Any]]:
        """Partial update; null values remove the property."""
        query = f"""
        MATCH (m:{MEMORY_LABEL} {{id: $id, owner_id: $owner_id}})
        SET m += $fields
        RETURN m
        """
        return cast(LiteralString, query), {}

    @staticmethod
    def delete() -> tuple[LiteralString, dict[str, Any]]:
        query = f"""
        MATCH (m:{MEMORY_LABEL} {{id: $id, owner_id: $owner_id}})
        DETACH DELETE m
        RETURN count(*) AS deleted
        """
        return cast(LiteralString, query), {}

    @staticmethod
    def nearest_active() -> tuple[LiteralString, dict[str, Any]]:
        """Exact similarity over the owner's active, unpinned records.

        Scoped before scoring, so results never depend on other owners' data.
        The quota bounds how many nodes are scored. ``vector.similarity.cosine``
        returns (1 + cosine) / 2, so scores and thresholds are in [0, 1].
        """
        query = f"""
        MATCH (m:{MEMORY_LABEL} {{owner_id: $owner_id, is_archived: false, is_pinned: false}})
        WHERE m.embedding IS NOT NULL
        WITH m, vector.similarity.cosine(m.embedding, $embedding) AS score
        WHERE score >= $threshold
        RETURN m, score
        ORDER BY score DESC, m.id ASC
        LIMIT $limit
        """
        return cast(LiteralString, query), {}


class ProfileQueries:
    @staticmethod
    def get_profile() -> tuple[LiteralString, dict[str, Any]]:
        query = f"""
        MATCH (p:{PROFILE_LABEL} {{owner_id: $owner_id}})
        RETURN p.full_name AS full_name, p.email AS email
        """
        return cast(LiteralString, query), {}


class SchemaQueries:
    @staticmethod
    def memory_id_constraint() -> LiteralString:
        return cast(
            LiteralString,
            f"CREATE CONSTRAINT coach_memory_id IF NOT EXISTS FOR (m:{MEMORY_LABEL}) REQUIRE m.id IS UNIQUE",
        )

    @staticmethod
    def owner_index() -> LiteralString:
        return cast(
            LiteralString,
            f"CREATE INDEX coach_memory_owner IF NOT EXISTS FOR (m:{MEMORY_LABEL}) ON (m.owner_id, m.is_archived)",
        )
