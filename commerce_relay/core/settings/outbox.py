"""Outbox delivery settings.

Environment variables use the OUTBOX_ prefix, e.g. OUTBOX_BATCH_SIZE=50.
"""

from __future__ import annotations

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class OutboxSettings(BaseSettings):
    """Publisher, retention sweeper and periodic runner configuration."""

    # ─────────────────────────────────────────────────────
    # Publisher
    # ─────────────────────────────────────────────────────
    batch_size: int = Field(
        default=50,
        ge=1,
        le=1000,
        description="Maximum messages selected per process_messages() invocation.",
    )
    max_backoff_exponent: int = Field(
        default=6,
        ge=0,
        le=20,
        description="Retry delay is min(2^retry_count, 2^max_backoff_exponent) minutes.",
    )
    max_retry_count: int | None = Field(
        default=None,
        ge=1,
        description=(
            "Optional ceiling on retry_count. Messages at or above it stay Failed "
            "but are no longer selected. None keeps retrying indefinitely."
        ),
    )
    error_max_length: int = Field(
        default=1000,
        ge=50,
        description="Maximum stored length of last_error.",
    )

    # ─────────────────────────────────────────────────────
    # Retention
    # ─────────────────────────────────────────────────────
    days_to_keep_processed_messages: int = Field(
        default=7,
        ge=0,
        description="Processed messages older than this many days are deleted.",
    )

    # ─────────────────────────────────────────────────────
    # Periodic runner
    # ─────────────────────────────────────────────────────
    processing_interval_ms: int = Field(
        default=5000,
        ge=100,
        description="Interval between publisher invocations in the periodic runner.",
    )
    cleanup_interval_hours: float = Field(
        default=24,
        gt=0,
        description="Interval between retention sweeps in the periodic runner.",
    )

    model_config = SettingsConfigDict(
        env_prefix="OUTBOX_",
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        frozen=True,
        extra="ignore",
        env_ignore_empty=True,
    )
