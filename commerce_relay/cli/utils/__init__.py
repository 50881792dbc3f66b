"""CLI utilities for running async operations and formatting output."""

from commerce_relay.cli.utils.async_runner import coro
from commerce_relay.cli.utils.formatters import error, header, info, key_value, success, warning

__all__ = [
    "coro",
    "error",
    "header",
    "info",
    "key_value",
    "success",
    "warning",
]
