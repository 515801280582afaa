"""Error handling decorators"""

import asyncio
import inspect
from collections.abc import Awaitable, Callable
from functools import wraps
from typing import Any, ParamSpec, TypeVar, cast

from .base import ApplicationError, ErrorLevel
from .error_context import ErrorContextManager
from .logging import get_logger

logger = get_logger(__name__)
P = ParamSpec("P")
T = TypeVar("T")


def _level_for(error: Exception, default: ErrorLevel) -> ErrorLevel:
    # ApplicationErrors carry their own severity (quota refusals are warnings, not errors)
    if isinstance(error, ApplicationError):
        return error.level
    return default


def with_error_handling(
    error_level: ErrorLevel = ErrorLevel.ERROR,
    reraise: bool = True,
) -> Callable[[Callable[P, T]], Callable[P, T]]:
    """Decorator for logging errors raised by a function.

    Args:
        error_level: Severity used for errors that are not ApplicationErrors
        reraise: Whether to re-raise the error after logging; when False the
            wrapped call returns None

    Returns:
        Decorated function with error handling
    """

    def decorator(func: Callable[P, T]) -> Callable[P, T]:
        original_signature = inspect.signature(func)

        if asyncio.iscoroutinefunction(func):

            @wraps(func)
            async def async_wrapper(*args: P.args, **kwargs: P.kwargs) -> T:
                try:
                    return await cast("Callable[P, Awaitable[T]]", func)(*args, **kwargs)
                except Exception as e:
                    async with ErrorContextManager(e) as ctx:
                        logger.log(
                            _level_for(e, error_level).to_logging_level(),
                            f"Error in {func.__name__}: {e!s}",
                            function=func.__name__,
                            error_context=ctx.to_dict(),
                        )
                        if reraise:
                            raise
                        return cast("T", None)

            async_wrapper.__signature__ = original_signature  # type: ignore[attr-defined]
            return cast("Callable[P, T]", async_wrapper)

        @wraps(func)
        def sync_wrapper(*args: P.args, **kwargs: P.kwargs) -> T:
            try:
                return func(*args, **kwargs)
            except Exception as e:
                with ErrorContextManager(e) as ctx:
                    logger.log(
                        _level_for(e, error_level).to_logging_level(),
                        f"Error in {func.__name__}: {e!s}",
                        function=func.__name__,
                        error_context=ctx.to_dict(),
                    )
                    if reraise:
                        raise
                    return cast("T", None)

        sync_wrapper.__signature__ = original_signature  # type: ignore[attr-defined]
        return sync_wrapper

    return decorator


def error_context(
    error_level: ErrorLevel = ErrorLevel.ERROR,
) -> Callable[[Callable[P, T]], Callable[P, T]]:
    """Decorator that logs the error context and always re-raises."""

    def decorator(func: Callable[P, T]) -> Callable[P, T]:
        original_signature = inspect.signature(func)

        @wraps(func)
        async def async_wrapper(*args: P.args, **kwargs: P.kwargs) -> T:
            try:
                return await cast("Callable[P, Awaitable[T]]", func)(*args, **kwargs)
            except Exception as e:
                async with ErrorContextManager(e) as ctx:
                    logger.log(
                        _level_for(e, error_level).to_logging_level(),
                        f"Error context for {func.__name__}: {e!s}",
                        error_context=ctx.to_dict(),
                    )
                raise

        async_wrapper.__signature__ = original_signature  # type: ignore[attr-defined]
        return cast("Callable[P, T]", async_wrapper)

    return decorator


def with_session(driver_attr: str = "driver") -> Callable[[Callable[..., Awaitable[T]]], Callable[..., Awaitable[T]]]:
    """Decorator to manage a Neo4j session per call.

    The decorated coroutine receives the open session as its first argument
    after ``self``::

        @with_session()
        async def count(self, session, spec):
            result = await session.run(query, params)
    """

    def decorator(func: Callable[..., Awaitable[T]]) -> Callable[..., Awaitable[T]]:
        @wraps(func)
        async def wrapper(self_obj: Any, *args: Any, **kwargs: Any) -> T:
            driver = getattr(self_obj, driver_attr, None)
            if driver is None:
                raise AttributeError(
                    f"Object {self_obj.__class__.__name__} has no attribute '{driver_attr}'. "
                    f"Either provide the correct driver_attr or ensure the object has a driver."
                )

            session_kwargs: dict[str, Any] = {}
            database = getattr(self_obj, "database", None)
            if database:
                session_kwargs["database"] = database

            async with driver.session(**session_kwargs) as session:
                return await func(self_obj, session, *args, **kwargs)

        return wrapper

    return decorator
