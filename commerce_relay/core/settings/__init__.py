"""Modular Pydantic Settings v2 configuration.

Settings are split by concern and read from environment variables:

- DB_*      DatabaseSettings
- OUTBOX_*  OutboxSettings
- AUDIT_*   AuditSettings
- LOG_*     LoggingSettings

Import settings via the cached loaders:
    from commerce_relay.core.settings import get_outbox_settings
"""

from __future__ import annotations

from .audit import AuditSettings
from .database import DatabaseSettings
from .loader import (
    clear_settings_cache,
    get_audit_settings,
    get_db_settings,
    get_logging_settings,
    get_outbox_settings,
)
from .logs import LoggingSettings
from .outbox import OutboxSettings

__all__ = [
    "AuditSettings",
    "DatabaseSettings",
    "LoggingSettings",
    "OutboxSettings",
    "clear_settings_cache",
    "get_audit_settings",
    "get_db_settings",
    "get_logging_settings",
    "get_outbox_settings",
]
