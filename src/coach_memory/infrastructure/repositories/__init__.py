from .in_memory import InMemoryMemoryStore
from .memory import Neo4jMemoryStore
from .profile import Neo4jProfileDirectory

__all__ = ["InMemoryMemoryStore", "Neo4jMemoryStore", "Neo4jProfileDirectory"]
