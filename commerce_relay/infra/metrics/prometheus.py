"""Prometheus metrics for outbox delivery and audit capture."""

from __future__ import annotations

from prometheus_client import CollectorRegistry, Counter, Histogram

# Custom registry so tests and embedding applications control exposure
REGISTRY = CollectorRegistry()

# Covers a single empty poll (~1ms) up to a slow batch of 50 dispatches
BATCH_LATENCY_BUCKETS = (
    0.001,
    0.005,
    0.01,
    0.05,
    0.1,
    0.5,
    1.0,
    5.0,
    10.0,
    30.0,
)

# Outbox metrics
outbox_messages_enqueued_total = Counter(
    "outbox_messages_enqueued_total",
    "Total outbox messages committed for deferred delivery",
    ["type"],
    registry=REGISTRY,
)

outbox_messages_processed_total = Counter(
    "outbox_messages_processed_total",
    "Total outbox delivery attempts by outcome",
    ["outcome"],
    registry=REGISTRY,
)

outbox_messages_cleaned_total = Counter(
    "outbox_messages_cleaned_total",
    "Total processed outbox messages removed by the retention sweeper",
    registry=REGISTRY,
)

outbox_batch_duration_seconds = Histogram(
    "outbox_batch_duration_seconds",
    "Duration of one outbox processing batch in seconds",
    buckets=BATCH_LATENCY_BUCKETS,
    registry=REGISTRY,
)

# Audit metrics
audit_entries_captured_total = Counter(
    "audit_entries_captured_total",
    "Total audit log entries captured by action",
    ["action"],
    registry=REGISTRY,
)

audit_capture_failures_total = Counter(
    "audit_capture_failures_total",
    "Total entities whose audit entry could not be built",
    ["entity_type"],
    registry=REGISTRY,
)
