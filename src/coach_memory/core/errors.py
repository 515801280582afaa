"""Specific error types for the coach memory engine."""

from .base import (
    ApplicationError,
    DatabaseErrorDetails,
    ErrorCode,
    ErrorDetails,
    ErrorLevel,
    MemoryErrorDetails,
    QuotaErrorDetails,
    ServiceErrorDetails,
    ValidationErrorDetails,
)


class QuotaExceededError(ApplicationError):
    """Admission refused because the owner is at their active memory quota.

    This is the only user-actionable condition raised by the engine; the
    message tells the user how to free space.
    """

    def __init__(self, limit: int, details: QuotaErrorDetails | None = None):
        self.limit = limit
        super().__init__(
            message=(
                f"Memory limit of {limit} reached. "
                "Please delete some memories to make room for new ones."
            ),
            code=ErrorCode.QUOTA_EXCEEDED,
            level=ErrorLevel.WARNING,
            details=details,
        )


class ProviderUnavailableError(ApplicationError):
    """An embedding or summarization dependency could not serve the call."""

    code_for_kind = ErrorCode.PROVIDER_UNAVAILABLE

    def __init__(self, message: str, details: ServiceErrorDetails | dict | None = None):
        super().__init__(
            message=message,
            code=self.code_for_kind,
            level=ErrorLevel.WARNING,
            details=details
            or ServiceErrorDetails(source="provider", operation="external_call", service_name="unknown"),
        )


class ProviderTimeoutError(ProviderUnavailableError):
    code_for_kind = ErrorCode.PROVIDER_TIMEOUT


class RateLimitError(ProviderUnavailableError):
    code_for_kind = ErrorCode.RATE_LIMITED


class StoreError(ApplicationError):
    """A persistent store query or write failed."""

    def __init__(self, message: str, details: DatabaseErrorDetails | dict | None = None):
        super().__init__(message=message, code=ErrorCode.STORE_FAILED, details=details)


class MemoryNotFoundError(ApplicationError):
    """No record with this id exists for this owner."""

    def __init__(self, memory_id: str, owner_id: str):
        super().__init__(
            message=f"Memory {memory_id} not found",
            code=ErrorCode.MEMORY_NOT_FOUND,
            level=ErrorLevel.INFO,
            details=MemoryErrorDetails(
                source="memory_store",
                operation="lookup",
                owner_id=owner_id,
                memory_id=memory_id,
            ),
        )


class InvalidMemoryError(ApplicationError):
    """Input failed validation before reaching the store."""

    def __init__(self, message: str, details: ValidationErrorDetails | dict | None = None):
        super().__init__(message=message, code=ErrorCode.INVALID_INPUT, level=ErrorLevel.WARNING, details=details)


class PersonalizationUnavailableError(ApplicationError):
    """No first name could be resolved for the owner."""

    def __init__(self, owner_id: str):
        super().__init__(
            message="No user name available",
            code=ErrorCode.PERSONALIZATION_UNAVAILABLE,
            level=ErrorLevel.INFO,
            details=ErrorDetails(source="summary_maintenance", operation="resolve_first_name", owner_id=owner_id),
        )
        self.owner_id = owner_id


class AuthenticationError(ApplicationError):
    """Missing or rejected credentials."""

    def __init__(self, message: str, details: ErrorDetails | dict | None = None):
        super().__init__(message=message, code=ErrorCode.AUTHENTICATION_FAILED, details=details)


class SessionExpiredError(AuthenticationError):
    """The owner's session is gone; profile data cannot be read."""

    def __init__(
        self,
        message: str = "Your session has expired. Please sign in again.",
        details: ErrorDetails | dict | None = None,
    ):
        super().__init__(message, details)
        self.code = ErrorCode.SESSION_EXPIRED
