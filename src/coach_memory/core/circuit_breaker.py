"""Circuit breaker in front of the embedding and summarization providers."""

import time
from collections.abc import Awaitable, Callable
from enum import Enum
from typing import Any, TypeVar

from coach_memory.core.base import ServiceErrorDetails
from coach_memory.core.errors import ProviderUnavailableError
from coach_memory.core.logging import get_logger

logger = get_logger(__name__)

T = TypeVar("T")


class CircuitState(str, Enum):
    CLOSED = "closed"
    OPEN = "open"
    HALF_OPEN = "half_open"


class CircuitBreaker:
    """Stops calling a provider after repeated failures.

    ``failure_threshold`` consecutive failures open the circuit. While open,
    calls are rejected with ProviderUnavailableError, so callers handle an
    open circuit exactly like a provider outage. After ``recovery_timeout``
    seconds one call is let through (half-open); ``success_threshold``
    successes close the circuit again and any failure reopens it.

    Only ``expected_exception_types`` count as failures; anything else is a
    bug in the caller and passes through untouched.
    """

    def __init__(
        self,
        name: str,
        failure_threshold: int = 5,
        recovery_timeout: float = 60.0,
        expected_exception_types: tuple[type[BaseException], ...] = (Exception,),
        success_threshold: int = 2,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.name = name
        self.failure_threshold = failure_threshold
        self.recovery_timeout = recovery_timeout
        self.expected_exception_types = expected_exception_types
        self.success_threshold = success_threshold
        self._clock = clock

        self.state = CircuitState.CLOSED
        self.failure_count = 0
        self.success_count = 0
        self.opened_at: float | None = None
        self.last_exception: BaseException | None = None

    def _transition(self, state: CircuitState) -> None:
        if state == self.state:
            return
        log = logger.warning if state == CircuitState.OPEN else logger.info
        log(f"Circuit '{self.name}' {self.state.value} -> {state.value}", failures=self.failure_count)
        self.state = state
        self.success_count = 0
        if state == CircuitState.OPEN:
            self.opened_at = self._clock()
        elif state == CircuitState.CLOSED:
            self.failure_count = 0
            self.last_exception = None

    def _reject_if_open(self) -> None:
        if self.state == CircuitState.OPEN and self._clock() - (self.opened_at or 0.0) >= self.recovery_timeout:
            self._transition(CircuitState.HALF_OPEN)
        if self.state != CircuitState.OPEN:
            return
        message = f"Circuit '{self.name}' is open"
        if self.last_exception is not None:
            message += f" (last error: {self.last_exception})"
        raise ProviderUnavailableError(
            message=message,
            details=ServiceErrorDetails(
                source="circuit_breaker",
                operation="call_async",
                service_name=self.name,
                status_code=503,
            ),
        )

    def _on_failure(self, error: BaseException) -> None:
        self.last_exception = error
        self.failure_count += 1
        if self.state == CircuitState.HALF_OPEN or self.failure_count >= self.failure_threshold:
            self._transition(CircuitState.OPEN)

    def _on_success(self) -> None:
        if self.state == CircuitState.HALF_OPEN:
            self.success_count += 1
            if self.success_count >= self.success_threshold:
                self._transition(CircuitState.CLOSED)
        else:
            self.failure_count = 0

    async def call_async(self, func: Callable[..., Awaitable[T]], *args: Any, **kwargs: Any) -> T:
        """Await ``func(*args, **kwargs)`` unless the circuit is open.

        Raises:
            ProviderUnavailableError: The circuit is open
        """
        self._reject_if_open()
        try:
            result = await func(*args, **kwargs)
        except self.expected_exception_types as e:
            self._on_failure(e)
            raise
        self._on_success()
        return result

    def get_state(self) -> dict[str, Any]:
        return {
            "name": self.name,
            "state": self.state.value,
            "failure_count": self.failure_count,
            "success_count": self.success_count,
            "opened_at": self.opened_at,
            "last_exception": str(self.last_exception) if self.last_exception else None,
        }
