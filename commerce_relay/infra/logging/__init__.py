"""Logging infrastructure.

Structured logging on top of the standard library:
- JSONL format for log aggregation
- Automatic context injection via contextvars
- Bound loggers with ``get_logger(name, **context)``

Basic usage:
    import logging

    from commerce_relay.infra.logging import set_log_context

    logger = logging.getLogger(__name__)
    set_log_context(actor_id="user-42")
    logger.info("Committing unit of work")  # includes actor_id
"""

from commerce_relay.infra.logging.config import configure_logging, setup_logging
from commerce_relay.infra.logging.context import (
    ContextBoundLogger,
    ContextInjectingFilter,
    clear_log_context,
    get_log_context,
    get_logger,
    remove_from_log_context,
    set_log_context,
)
from commerce_relay.infra.logging.formatters import JSONFormatter

__all__ = [
    "ContextBoundLogger",
    "ContextInjectingFilter",
    "JSONFormatter",
    "clear_log_context",
    "configure_logging",
    "get_log_context",
    "get_logger",
    "remove_from_log_context",
    "set_log_context",
    "setup_logging",
]
