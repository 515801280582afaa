from neo4j import AsyncDriver, AsyncSession
from neo4j.exceptions import DriverError, Neo4jError

from coach_memory.core.base import DatabaseErrorDetails
from coach_memory.core.decorators import with_session
from coach_memory.core.errors import StoreError
from coach_memory.core.logging import get_logger
from coach_memory.domain.models import UserProfile
from coach_memory.infrastructure.neo4j.queries import PROFILE_LABEL, ProfileQueries

logger = get_logger(__name__)


class Neo4jProfileDirectory:
    """Reads owner names from ``UserProfile`` nodes.

    A profile node is expected to carry ``owner_id``, ``full_name`` and
    ``email``; a missing node means the owner has no stored profile.
    Driver failures, including an expired driver session, are StoreErrors;
    an expired sign-in session can only be reported by a host-supplied
    directory.
    """

    def __init__(self, driver: AsyncDriver, database: str | None = None):
        self.driver = driver
        self.database = database

    @with_session()
    async def get_profile(self, session: AsyncSession, owner_id: str) -> UserProfile | None:
        query, _ = ProfileQueries.get_profile()
        try:
            result = await session.run(query, owner_id=owner_id)
            record = await result.single()
        except (Neo4jError, DriverError) as e:
            logger.error("Profile lookup failed", owner_id=owner_id, error=str(e))
            raise StoreError(
                message=f"Profile lookup failed: {e}",
                details=DatabaseErrorDetails(
                    source="profile_directory",
                    operation="get_profile",
                    service_name="neo4j",
                    query_type="select",
                    label=PROFILE_LABEL,
                ),
            ) from e

        if record is None:
            return None
        return UserProfile(owner_id=owner_id, full_name=record["full_name"], email=record["email"])
