"""Prometheus metrics."""

from commerce_relay.infra.metrics.prometheus import (
    REGISTRY,
    audit_capture_failures_total,
    audit_entries_captured_total,
    outbox_batch_duration_seconds,
    outbox_messages_cleaned_total,
    outbox_messages_enqueued_total,
    outbox_messages_processed_total,
)

__all__ = [
    "REGISTRY",
    "audit_capture_failures_total",
    "audit_entries_captured_total",
    "outbox_batch_duration_seconds",
    "outbox_messages_cleaned_total",
    "outbox_messages_enqueued_total",
    "outbox_messages_processed_total",
]
