from .voyage import VoyageEmbeddingService

__all__ = ["VoyageEmbeddingService"]
