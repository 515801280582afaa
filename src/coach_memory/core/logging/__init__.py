"""Structured logging through structlog, forwarded to Logfire."""

from .setup import get_logger, setup_logging

__all__ = ["get_logger", "setup_logging"]
