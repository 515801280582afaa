from .base import (
    ApplicationError,
    ErrorCode,
    ErrorLevel,
    ServiceErrorDetails,
)
from .circuit_breaker import CircuitBreaker, CircuitState
from .errors import (
    InvalidMemoryError,
    MemoryNotFoundError,
    PersonalizationUnavailableError,
    ProviderTimeoutError,
    ProviderUnavailableError,
    QuotaExceededError,
    SessionExpiredError,
    StoreError,
)
