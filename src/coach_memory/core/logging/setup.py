"""structlog configuration with every event forwarded to Logfire.

Logfire itself reads LOGFIRE_TOKEN, LOGFIRE_SERVICE_NAME and
LOGFIRE_ENVIRONMENT from the environment.
"""

import logging
import sys

import logfire
import structlog
from structlog.processors import CallsiteParameter, CallsiteParameterAdder
from structlog.types import EventDict, Processor, WrappedLogger
from structlog.typing import FilteringBoundLogger

# Chatty at INFO; raised to WARNING unless the root level is DEBUG
NOISY_LOGGERS = ("neo4j", "httpx", "httpcore", "openai", "apscheduler")


def drop_vectors(_logger: WrappedLogger, _method_name: str, event_dict: EventDict) -> EventDict:
    """Replace embedding vectors in an event with their length."""
    for key in ("embedding", "query_embedding"):
        value = event_dict.get(key)
        if isinstance(value, list | tuple):
            event_dict[key] = f"<{len(value)} floats>"
    return event_dict


def _pre_chain() -> list[Processor]:
    return [
        # owner_id and maintenance_pass are bound here by the maintenance worker
        structlog.contextvars.merge_contextvars,
        structlog.processors.add_log_level,
        structlog.processors.TimeStamper(fmt="iso", utc=True),
        CallsiteParameterAdder(
            parameters=[CallsiteParameter.MODULE, CallsiteParameter.FUNC_NAME, CallsiteParameter.LINENO]
        ),
        drop_vectors,
        structlog.processors.StackInfoRenderer(),
        structlog.dev.set_exc_info,
    ]


def _renderer(json: bool, colors: bool) -> Processor:
    if json:
        return structlog.processors.JSONRenderer()
    return structlog.dev.ConsoleRenderer(colors=colors)


def setup_logging(level: int = logging.INFO, colors: bool = True, json: bool = False) -> None:
    """Configure structlog, Logfire forwarding and the standard library root logger.

    Args:
        level: Minimum level for the root logger
        colors: ANSI colors in console output
        json: Render one JSON object per line instead of console output
    """
    structlog.configure(
        processors=[*_pre_chain(), logfire.StructlogProcessor(), _renderer(json, colors)],
        logger_factory=structlog.PrintLoggerFactory(file=sys.stdout),
        cache_logger_on_first_use=True,
    )

    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(
        structlog.stdlib.ProcessorFormatter(
            processor=_renderer(json, colors),
            foreign_pre_chain=_pre_chain(),
        )
    )
    root_logger = logging.getLogger()
    root_logger.handlers = [handler]
    root_logger.setLevel(level)

    for name in NOISY_LOGGERS:
        logging.getLogger(name).setLevel(level if level <= logging.DEBUG else logging.WARNING)


def get_logger(name: str | None = None) -> FilteringBoundLogger:
    return structlog.get_logger(name)
