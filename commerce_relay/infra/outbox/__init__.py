"""Transactional outbox.

Components:
- OutboxMessage / OutboxStatus: the durable envelope and its lifecycle
- compute_retry_delay: capped exponential backoff
- OutboxRepository: publisher, sweeper and operator queries
- OutboxService: publish, process_messages, cleanup_old_messages
- OutboxProcessingService: APScheduler runner for the two periodic jobs
"""

from commerce_relay.infra.outbox.backoff import compute_retry_delay
from commerce_relay.infra.outbox.models import OutboxMessage, OutboxStatus
from commerce_relay.infra.outbox.repository import OutboxRepository
from commerce_relay.infra.outbox.runner import OutboxProcessingService
from commerce_relay.infra.outbox.service import BatchResult, OutboxService

__all__ = [
    "BatchResult",
    "OutboxMessage",
    "OutboxProcessingService",
    "OutboxRepository",
    "OutboxService",
    "OutboxStatus",
    "compute_retry_delay",
]
