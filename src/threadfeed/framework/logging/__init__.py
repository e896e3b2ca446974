"""
threadfeed logging - structured, stream-aware logging.

This module provides:
- Structured logging with structlog
- Feed context propagation via contextvars
- Environment-based configuration

Usage:
    from threadfeed.framework.logging import configure_logging, get_logger, bind_context

    configure_logging()
    log = get_logger(__name__)

    bind_context(identity="@me", operation="roots")
    log.info("roots.start", limit=20)
"""

from threadfeed.framework.logging.config import configure_logging
from threadfeed.framework.logging.context import (
    LogContext,
    bind_context,
    clear_context,
    get_context,
    get_logger,
    new_stream_id,
)

__all__ = [
    # Configuration
    "configure_logging",
    # Context
    "get_logger",
    "clear_context",
    "get_context",
    "bind_context",
    "new_stream_id",
    "LogContext",
]
