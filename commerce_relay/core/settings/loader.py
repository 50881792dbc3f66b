"""LRU-cached settings loaders.

Settings are loaded and validated once, then cached for the lifetime of the
process.

Testing:
    In tests, clear the cache to force reload:
    get_outbox_settings.cache_clear()

    Or construct settings directly:
    settings = OutboxSettings(batch_size=5)
"""

from __future__ import annotations

from functools import lru_cache

from .audit import AuditSettings
from .database import DatabaseSettings
from .logs import LoggingSettings
from .outbox import OutboxSettings


@lru_cache(maxsize=1)
def get_db_settings() -> DatabaseSettings:
    """Get cached database settings."""
    return DatabaseSettings()


@lru_cache(maxsize=1)
def get_outbox_settings() -> OutboxSettings:
    """Get cached outbox settings."""
    return OutboxSettings()


@lru_cache(maxsize=1)
def get_audit_settings() -> AuditSettings:
    """Get cached audit settings."""
    return AuditSettings()


@lru_cache(maxsize=1)
def get_logging_settings() -> LoggingSettings:
    """Get cached logging settings."""
    return LoggingSettings()


def clear_settings_cache() -> None:
    """Clear every cached settings instance (tests and reloads)."""
    get_db_settings.cache_clear()
    get_outbox_settings.cache_clear()
    get_audit_settings.cache_clear()
    get_logging_settings.cache_clear()
