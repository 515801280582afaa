"""Severity, codes and structured details shared by every engine error."""

import logging
from datetime import UTC, datetime
from enum import Enum
from typing import Any

from logfire.integrations.pydantic import PluginSettings
from pydantic import BaseModel, ConfigDict, Field, field_serializer


class ErrorLevel(str, Enum):
    DEBUG = "debug"
    INFO = "info"
    WARNING = "warning"
    ERROR = "error"
    CRITICAL = "critical"

    def to_logging_level(self) -> int:
        return logging.getLevelNamesMapping()[self.name]


class ErrorCode(str, Enum):
    """Stable error codes, grouped by the part of the engine that raises them."""

    # Caller input (1xxx)
    INVALID_INPUT = "1002"
    MEMORY_NOT_FOUND = "1003"

    # Providers (2xxx)
    AUTHENTICATION_FAILED = "2001"
    PROVIDER_UNAVAILABLE = "2002"
    RATE_LIMITED = "2003"
    SESSION_EXPIRED = "2006"
    PROVIDER_TIMEOUT = "2007"

    # Store (3xxx)
    STORE_FAILED = "3005"

    # Memory lifecycle (7xxx)
    QUOTA_EXCEEDED = "7001"
    PERSONALIZATION_UNAVAILABLE = "7002"


class ErrorDetails(BaseModel, plugin_settings=PluginSettings(logfire={"record": "all"})):
    """Where an error happened and for whom; recorded by logfire."""

    model_config = ConfigDict(extra="allow")

    source: str = Field(description="Component that raised the error")
    operation: str = Field(description="Operation in progress")
    owner_id: str | None = Field(None, description="Owner the operation was scoped to")
    occurred_at: datetime = Field(default_factory=lambda: datetime.now(UTC))

    @field_serializer("occurred_at")
    def _serialize_occurred_at(self, value: datetime) -> str:
        return value.isoformat()


class ValidationErrorDetails(ErrorDetails):
    field: str | None = Field(None, description="Dotted path of the rejected field")
    constraint: str | None = Field(None, description="Validation rule that failed")


class MemoryErrorDetails(ErrorDetails):
    memory_id: str


class QuotaErrorDetails(ErrorDetails):
    limit: int = Field(description="Configured active memory quota")
    used: int = Field(description="Active memories counted at admission time")


class ServiceErrorDetails(ErrorDetails):
    """A failed call to an external service."""

    service_name: str
    endpoint: str | None = None
    status_code: int | None = None


class DatabaseErrorDetails(ServiceErrorDetails):
    query_type: str | None = Field(None, description="select, update, vector_search, ...")
    label: str | None = Field(None, description="Node label queried")


class AIServiceErrorDetails(ServiceErrorDetails):
    model_name: str | None = None
    max_tokens: int | None = None
    temperature: float | None = None


def coerce_details(details: ErrorDetails | dict[str, Any] | None) -> ErrorDetails:
    """Accept a details model or a plain dict; missing source/operation become 'unknown'."""
    if isinstance(details, ErrorDetails):
        return details
    fields = dict(details or {})
    fields.setdefault("source", "unknown")
    fields.setdefault("operation", "unknown")
    return ErrorDetails.model_validate(fields)


class ApplicationError(Exception):
    """Base class for engine errors.

    Every error carries a human-readable message, a stable ``code``, the
    severity it is logged at and structured ``details``.
    """

    def __init__(
        self,
        message: str,
        code: ErrorCode,
        level: ErrorLevel = ErrorLevel.ERROR,
        details: ErrorDetails | dict[str, Any] | None = None,
    ):
        super().__init__(message)
        self.message = message
        self.code = code
        self.level = level
        self.details = coerce_details(details)
