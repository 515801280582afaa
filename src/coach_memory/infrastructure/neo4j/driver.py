"""Neo4j driver and schema management.

Async-first driver lifecycle plus the idempotent schema setup (uniqueness
constraint, owner index) the memory store relies on.
"""

from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager

from neo4j import AsyncDriver, AsyncGraphDatabase

from coach_memory.core import ErrorLevel
from coach_memory.core.config import Settings
from coach_memory.core.decorators import with_error_handling
from coach_memory.core.logging import get_logger
from coach_memory.infrastructure.neo4j.queries import SchemaQueries

logger = get_logger(__name__)


@asynccontextmanager
async def create_neo4j_driver(
    settings: Settings,
    max_connection_pool_size: int = 50,
    max_connection_lifetime: int = 3600,
) -> AsyncGenerator[AsyncDriver]:
    """Create a Neo4j driver and close it when the context exits.

    Args:
        settings: Connection settings (uri, user, password)
        max_connection_pool_size: Maximum size of the connection pool
        max_connection_lifetime: Maximum lifetime of connections in seconds

    Yields:
        AsyncDriver: Connected Neo4j driver
    """
    logger.info(
        "Creating Neo4j driver",
        uri=settings.neo4j_uri,
        pool_size=max_connection_pool_size,
        connection_lifetime=max_connection_lifetime,
    )

    driver = AsyncGraphDatabase.driver(
        settings.neo4j_uri,
        auth=(settings.neo4j_user, settings.neo4j_password),
        max_connection_pool_size=max_connection_pool_size,
        max_connection_lifetime=max_connection_lifetime,
    )

    try:
        await driver.verify_connectivity()
        logger.info("Neo4j connection established")
        yield driver
    finally:
        await driver.close()
        logger.info("Neo4j driver closed")


@with_error_handling(error_level=ErrorLevel.ERROR)
async def ensure_schema(driver: AsyncDriver, database: str | None = None) -> None:
    """Create the id constraint and owner index used by the memory store if missing."""
    statements = [SchemaQueries.memory_id_constraint(), SchemaQueries.owner_index()]
    async with driver.session(database=database) as session:
        for query in statements:
            await session.run(query)
    logger.info("Neo4j schema ready")
