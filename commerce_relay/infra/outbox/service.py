"""Outbox publishing, batch delivery and retention.

``OutboxService`` exposes the three operations the scheduling layer calls:

- ``publish``: stage a payload for deferred delivery in its own transaction
- ``process_messages``: deliver one bounded batch of due messages
- ``cleanup_old_messages``: delete processed messages past the retention window

Each call is a single bounded unit of work; no loop is owned here (see
``OutboxProcessingService`` for the periodic runner).

Delivery is at-least-once: a crash after dispatch but before the outcome is
committed leaves the message eligible for redelivery, so consumers must be
idempotent.
"""

from __future__ import annotations

import asyncio
import logging
import time
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import TYPE_CHECKING, Any

from commerce_relay.core.database.base import utcnow
from commerce_relay.core.exceptions import (
    MessageDeserializationError,
    MessageTypeResolutionError,
    RelayError,
)
from commerce_relay.core.settings import get_outbox_settings
from commerce_relay.infra.logging import set_log_context
from commerce_relay.infra.metrics import (
    outbox_batch_duration_seconds,
    outbox_messages_cleaned_total,
    outbox_messages_enqueued_total,
    outbox_messages_processed_total,
)
from commerce_relay.infra.outbox.backoff import compute_retry_delay
from commerce_relay.infra.outbox.models import OutboxMessage
from commerce_relay.infra.outbox.repository import OutboxRepository

if TYPE_CHECKING:
    from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

    from commerce_relay.core.events.dispatcher import NotificationDispatcher
    from commerce_relay.core.events.registry import MessageTypeRegistry
    from commerce_relay.core.settings.outbox import OutboxSettings

logger = logging.getLogger(__name__)


@dataclass(slots=True)
class BatchResult:
    """Outcome of one ``process_messages`` invocation.

    Attributes:
        fetched: Messages selected for this batch
        processed: Messages delivered and marked Processed
        failed: Messages marked Failed and rescheduled
        cancelled: True if a stop was requested before the batch finished
    """

    fetched: int = 0
    processed: int = 0
    failed: int = 0
    cancelled: bool = False

    @property
    def attempted(self) -> int:
        return self.processed + self.failed

    @property
    def skipped(self) -> int:
        """Messages fetched but left untouched because of a stop request."""
        return self.fetched - self.attempted


def _error_text(exc: BaseException) -> str:
    if isinstance(exc, RelayError):
        return exc.message
    return str(exc) or type(exc).__name__


class OutboxService:
    """Deferred delivery through the ``outbox_messages`` table.

    Attributes:
        session_factory: Factory for the sessions each operation opens
        registry: Discriminator registry used to encode and decode payloads
        dispatcher: In-process notification dispatcher
        settings: Batch size, backoff cap, retention defaults
    """

    def __init__(
        self,
        session_factory: async_sessionmaker[AsyncSession],
        registry: MessageTypeRegistry,
        dispatcher: NotificationDispatcher,
        *,
        settings: OutboxSettings | None = None,
        repository: OutboxRepository | None = None,
    ) -> None:
        self.session_factory = session_factory
        self.registry = registry
        self.dispatcher = dispatcher
        self.settings = settings or get_outbox_settings()
        self._repository = repository or OutboxRepository()

    @property
    def repository(self) -> OutboxRepository:
        return self._repository

    # ------------------------------------------------------------------
    # Publish
    # ------------------------------------------------------------------

    async def publish(self, message: Any, scheduled_at: datetime | None = None) -> OutboxMessage:
        """Stage ``message`` for deferred delivery and commit it.

        Returns once the outbox row is durably stored. For publishing inside
        a caller's business transaction use
        ``DomainEventService.enqueue_for_outbox`` instead.

        Args:
            message: A domain event or a registered pydantic payload
            scheduled_at: Earliest delivery time (defaults to now)

        Raises:
            MessageTypeResolutionError: If the payload type is not registered.
        """
        outbox_message = OutboxMessage.for_payload(message, self.registry, scheduled_at)

        async with self.session_factory() as session:
            session.add(outbox_message)
            await session.commit()

        outbox_messages_enqueued_total.labels(type=outbox_message.type).inc()
        logger.debug(
            "Outbox message stored",
            extra={
                "message_id": str(outbox_message.id),
                "message_type": outbox_message.type,
                "scheduled_at": outbox_message.scheduled_at.isoformat(),
            },
        )
        return outbox_message

    # ------------------------------------------------------------------
    # Batch delivery
    # ------------------------------------------------------------------

    async def process_messages(self, stop_event: asyncio.Event | None = None) -> BatchResult:
        """Deliver one batch of due messages.

        Messages are handled sequentially, oldest-due first. Every message's
        outcome is committed before the next message is attempted, and one
        message's failure never prevents the rest of the batch from running.

        A stop request (``stop_event`` set, or task cancellation) is honoured
        between messages: the message in flight always finishes its
        dispatch and commit.

        Args:
            stop_event: Optional event checked before each message

        Returns:
            Counts for the batch. An empty batch is a no-op.

        Raises:
            SQLAlchemyError: If the outbox table cannot be read or written.
        """
        started = time.perf_counter()
        result = BatchResult()

        async with self.session_factory() as session:
            messages = await self._repository.fetch_unprocessed(
                session,
                batch_size=self.settings.batch_size,
                max_retry_count=self.settings.max_retry_count,
            )
            # End the read transaction; each outcome gets its own
            await session.commit()

            result.fetched = len(messages)
            if not messages:
                return result

            logger.debug("Processing outbox batch", extra={"batch_size": len(messages)})

            for message in messages:
                if stop_event is not None and stop_event.is_set():
                    result.cancelled = True
                    break

                task = asyncio.ensure_future(self._process_one(session, message))
                try:
                    delivered = await asyncio.shield(task)
                except asyncio.CancelledError:
                    # Finish the message in flight before honouring cancellation
                    await task
                    raise
                if delivered:
                    result.processed += 1
                else:
                    result.failed += 1

        outbox_batch_duration_seconds.observe(time.perf_counter() - started)
        logger.info(
            "Outbox batch processed",
            extra={
                "fetched": result.fetched,
                "processed": result.processed,
                "failed": result.failed,
                "cancelled": result.cancelled,
            },
        )
        return result

    async def _process_one(self, session: AsyncSession, message: OutboxMessage) -> bool:
        """Resolve, decode, dispatch and record the outcome of one message.

        Returns:
            True if the message was marked Processed, False if Failed.
        """
        # Runs in its own task, so the context ends with the message
        set_log_context(outbox_message_id=str(message.id), outbox_message_type=message.type)

        try:
            payload = self.registry.decode(message.type, message.content)
        except (MessageTypeResolutionError, MessageDeserializationError) as exc:
            # Retrying cannot help until someone registers or fixes the type
            logger.warning(
                "Outbox message cannot be decoded",
                extra={
                    "message_id": str(message.id),
                    "message_type": message.type,
                    "error": exc.message,
                },
            )
            self._record_failure(message, exc)
        else:
            try:
                await self.dispatcher.publish(payload)
            except Exception as exc:
                self._record_failure(message, exc)
            else:
                message.mark_as_processed()

        await session.commit()

        if message.is_processed:
            outbox_messages_processed_total.labels(outcome="processed").inc()
            logger.debug(
                "Outbox message processed",
                extra={"message_id": str(message.id), "message_type": message.type},
            )
            return True

        outbox_messages_processed_total.labels(outcome="failed").inc()
        return False

    def _record_failure(self, message: OutboxMessage, exc: BaseException) -> None:
        message.mark_as_failed(_error_text(exc), max_length=self.settings.error_max_length)
        message.reschedule(
            compute_retry_delay(message.retry_count, self.settings.max_backoff_exponent)
        )
        logger.warning(
            "Outbox message failed, scheduled for retry",
            extra={
                "message_id": str(message.id),
                "message_type": message.type,
                "error": message.last_error,
                "retry_count": message.retry_count,
                "next_attempt_at": message.scheduled_at.isoformat(),
            },
        )

    # ------------------------------------------------------------------
    # Retention
    # ------------------------------------------------------------------

    async def cleanup_old_messages(
        self,
        days_to_keep: int | None = None,
        stop_event: asyncio.Event | None = None,
    ) -> int:
        """Delete Processed messages older than the retention window.

        Pending and Failed messages are never deleted regardless of age.

        Args:
            days_to_keep: Retention window in days (defaults to
                ``days_to_keep_processed_messages``)
            stop_event: Optional event; if already set nothing is deleted

        Returns:
            Number of messages deleted
        """
        if days_to_keep is None:
            days_to_keep = self.settings.days_to_keep_processed_messages
        if days_to_keep < 0:
            raise ValueError(f"days_to_keep must be non-negative, got {days_to_keep}")

        if stop_event is not None and stop_event.is_set():
            return 0

        cutoff = utcnow() - timedelta(days=days_to_keep)

        async with self.session_factory() as session:
            deleted = await self._repository.delete_processed_before(session, cutoff)
            await session.commit()

        outbox_messages_cleaned_total.inc(deleted)
        logger.info(
            "Deleted processed outbox messages",
            extra={"deleted_count": deleted, "cutoff": cutoff.isoformat()},
        )
        return deleted


__all__ = ["BatchResult", "OutboxService"]
