"""Voyage AI embedding service."""

import asyncio
from typing import cast

import voyageai
from voyageai import error as voyage_error

from coach_memory.core.base import ErrorLevel, ServiceErrorDetails
from coach_memory.core.circuit_breaker import CircuitBreaker
from coach_memory.core.decorators import with_error_handling
from coach_memory.core.errors import (
    AuthenticationError,
    ProviderTimeoutError,
    ProviderUnavailableError,
    RateLimitError,
)
from coach_memory.core.logging import get_logger
from coach_memory.domain.models import EmbeddingType

logger = get_logger(__name__)


def _details(operation: str, status_code: int | None = None) -> ServiceErrorDetails:
    return ServiceErrorDetails(
        source="VoyageEmbeddingService",
        operation=operation,
        service_name="Voyage AI",
        endpoint="/embeddings",
        status_code=status_code,
    )


class VoyageEmbeddingService:
    """Voyage AI embedding service implementation.

    Memories are embedded as documents and conversational context as
    queries, so both sides land in the same retrieval space. Every call
    goes through a circuit breaker and a timeout; any failure surfaces as
    ProviderUnavailableError (or one of its subtypes).
    """

    def __init__(
        self,
        api_key: str,
        model: str = "voyage-3",
        timeout_seconds: float = 10.0,
        circuit_breaker: CircuitBreaker | None = None,
    ) -> None:
        """Initialize the Voyage embedding service.

        Args:
            api_key: Voyage API key
            model: Embedding model name
            timeout_seconds: Upper bound for a single embedding call
            circuit_breaker: Optional breaker shared with other callers

        Raises:
            AuthenticationError: If the API key is empty
        """
        if not api_key:
            raise AuthenticationError(
                message="Voyage API key not configured",
                details=_details("initialization"),
            )

        self.model = model
        self.timeout_seconds = timeout_seconds
        # Retries are owned by the retrieval tiers, not the client
        self.client = voyageai.AsyncClient(api_key=api_key, max_retries=0)  # type: ignore[attr-defined]
        self._circuit_breaker = circuit_breaker or CircuitBreaker(
            name="voyage_api",
            failure_threshold=3,
            recovery_timeout=30.0,
            expected_exception_types=(ProviderUnavailableError,),
            success_threshold=2,
        )

    async def _call_voyage_api(self, text: str, input_type: str) -> list[float]:
        try:
            response = await asyncio.wait_for(
                self.client.embed(texts=[text], model=self.model, input_type=input_type),
                timeout=self.timeout_seconds,
            )
        except TimeoutError as e:
            raise ProviderTimeoutError(
                message=f"Voyage embedding timed out after {self.timeout_seconds}s",
                details=_details("embed_text", status_code=408),
            ) from e
        except voyage_error.RateLimitError as e:
            raise RateLimitError(
                message="Rate limit exceeded for embeddings API",
                details=_details("embed_text", status_code=429),
            ) from e
        except voyage_error.VoyageError as e:
            raise ProviderUnavailableError(
                message=f"Voyage embedding failed: {e!s}",
                details=_details("embed_text", status_code=getattr(e, "http_status", None)),
            ) from e

        embeddings = getattr(response, "embeddings", [])
        if not embeddings or not embeddings[0]:
            raise ProviderUnavailableError(
                message="Voyage API returned an empty embedding",
                details=_details("embed_text", status_code=200),
            )
        return cast("list[float]", embeddings[0])

    @with_error_handling(error_level=ErrorLevel.WARNING)
    async def embed_text(self, text: str, embedding_type: EmbeddingType = EmbeddingType.DOCUMENT) -> list[float]:
        """Generate an embedding vector for the provided text."""
        if not text.strip():
            raise ProviderUnavailableError(
                message="Cannot embed empty text",
                details=_details("embed_text"),
            )
        embedding = await self._circuit_breaker.call_async(self._call_voyage_api, text, embedding_type.value)
        logger.debug(f"Embedded {len(text)} chars as {embedding_type.value} ({len(embedding)} dims)")
        return embedding

    def get_circuit_state(self) -> dict:
        return self._circuit_breaker.get_state()
