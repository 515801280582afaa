"""Error context capture for structured error logs"""

from datetime import UTC, datetime
from types import TracebackType
from typing import Any
from uuid import uuid4

import structlog

from .base import ApplicationError

logger = structlog.get_logger(__name__)


class ErrorContext:
    """Captures an error together with a trace id and caller-supplied context"""

    def __init__(self, error: Exception, trace_id: str | None = None, **context: Any):
        self.error = error
        self.trace_id = trace_id or str(uuid4())
        self.timestamp = datetime.now(UTC)
        self.context = context

    def to_dict(self) -> dict[str, Any]:
        """Flatten the error, its ApplicationError details and extra context into one dict"""
        result: dict[str, Any] = {
            "error_type": self.error.__class__.__name__,
            "error_message": str(self.error),
            "trace_id": self.trace_id,
            "timestamp": self.timestamp.isoformat(),
        }

        if isinstance(self.error, ApplicationError):
            result["error_code"] = self.error.code.value
            result["error_level"] = self.error.level.value
            for key, value in self.error.details.model_dump().items():
                result[f"details.{key}"] = value

        for key, value in self.context.items():
            result[f"context.{key}"] = value

        return result


class ErrorContextManager:
    """Sync/async context manager yielding an ErrorContext for a caught error"""

    def __init__(self, error: Exception, **context: Any) -> None:
        self._error = error
        self._context = context

    def _capture(self) -> ErrorContext:
        return ErrorContext(self._error, **self._context)

    def _report(self, exc_type: type[BaseException] | None, exc_val: BaseException | None) -> None:
        # Re-raising the handled error is expected; anything else is a bug in the handler
        if exc_val is not None and exc_val is not self._error:
            logger.error(
                f"Exception during error context handling: {exc_type.__name__ if exc_type else '?'}: {exc_val}",
            )

    async def __aenter__(self) -> ErrorContext:
        return self._capture()

    async def __aexit__(
        self,
        exc_type: type[BaseException] | None,
        exc_val: BaseException | None,
        exc_tb: TracebackType | None,
    ) -> None:
        self._report(exc_type, exc_val)

    def __enter__(self) -> ErrorContext:
        return self._capture()

    def __exit__(
        self,
        exc_type: type[BaseException] | None,
        exc_val: BaseException | None,
        exc_tb: TracebackType | None,
    ) -> None:
        self._report(exc_type, exc_val)
