"""Change-capture audit settings.

Environment variables use the AUDIT_ prefix, e.g. AUDIT_ENABLED=false.
"""

from __future__ import annotations

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class AuditSettings(BaseSettings):
    """Configuration for the change-capture interceptor."""

    enabled: bool = Field(
        default=True,
        description="Capture an audit log entry for every entity mutation.",
    )
    sensitive_entity_types: frozenset[str] = Field(
        default=frozenset({"User", "RefreshToken"}),
        description=(
            "Entity class names that are not audited when no actor is established "
            "(registration, login and token refresh)."
        ),
    )
    app_version: str | None = Field(
        default=None,
        max_length=50,
        description="Application version recorded on every audit entry.",
    )

    model_config = SettingsConfigDict(
        env_prefix="AUDIT_",
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        frozen=True,
        extra="ignore",
        env_ignore_empty=True,
    )
