"""Bridge from domain events to consumers.

Business code picks one of two delivery modes per call site:

- ``publish_immediate``: dispatch in-process right now, for consumers that
  must observe the event within the same logical operation.
- ``enqueue_for_outbox``: stage an outbox message in the caller's session so
  the event is delivered only after the business transaction commits.

Both may be used for the same logical event by different callers.

Usage:
    async with UnitOfWork(session_factory) as uow:
        order = Order(...)
        uow.session.add(order)
        events.enqueue_for_outbox(uow.session, OrderPlaced(order_id=str(order.id)))
        await uow.commit(actor=AuditContext(user_id=current_user_id))
"""

from __future__ import annotations

import logging
from datetime import datetime
from typing import TYPE_CHECKING

from sqlalchemy import event as sa_event
from sqlalchemy.orm import Session

from commerce_relay.core.events.base import DomainEvent, DomainEventNotification
from commerce_relay.infra.metrics import outbox_messages_enqueued_total

if TYPE_CHECKING:
    from sqlalchemy.ext.asyncio import AsyncSession
    from sqlalchemy.orm import SessionTransaction

    from commerce_relay.core.events.dispatcher import NotificationDispatcher
    from commerce_relay.core.events.registry import MessageTypeRegistry
    from commerce_relay.infra.outbox.models import OutboxMessage

logger = logging.getLogger(__name__)

# Outbox message types staged in a session's current transaction
STAGED_TYPES_KEY = "outbox_staged_types"


@sa_event.listens_for(Session, "after_commit")
def _count_committed_enqueues(session: Session) -> None:
    # Fires for savepoints too; only the outermost commit is durable
    if session.in_nested_transaction():
        return
    for message_type in session.info.pop(STAGED_TYPES_KEY, ()):
        outbox_messages_enqueued_total.labels(type=message_type).inc()


@sa_event.listens_for(Session, "after_transaction_end")
def _forget_staged_enqueues(session: Session, transaction: SessionTransaction) -> None:
    if transaction.parent is None:
        session.info.pop(STAGED_TYPES_KEY, None)


class DomainEventService:
    """Publish domain events immediately or through the outbox."""

    def __init__(
        self,
        dispatcher: NotificationDispatcher,
        registry: MessageTypeRegistry,
    ) -> None:
        self._dispatcher = dispatcher
        self._registry = registry

    async def publish_immediate(self, event: DomainEvent) -> None:
        """Dispatch ``event`` to in-process consumers and wait for them.

        Raises:
            MessageDispatchError: If a consumer fails. Nothing is retried.
        """
        await self._dispatcher.publish(DomainEventNotification(event))
        logger.debug(
            "Domain event published immediately",
            extra={"event_name": event.event_name(), "event_id": event.event_id},
        )

    def enqueue_for_outbox(
        self,
        session: AsyncSession,
        event: DomainEvent,
        scheduled_at: datetime | None = None,
    ) -> OutboxMessage:
        """Stage ``event`` as an outbox message in the caller's transaction.

        Nothing is flushed or committed here: the message becomes durable
        together with the business change when the caller commits, and
        disappears with it on rollback.
        """
        # Import here to avoid circular imports
        from commerce_relay.infra.outbox.models import OutboxMessage

        message = OutboxMessage.for_payload(event, self._registry, scheduled_at)
        session.add(message)
        # Counted once the caller's transaction commits
        session.info.setdefault(STAGED_TYPES_KEY, []).append(message.type)

        logger.debug(
            "Domain event staged in outbox",
            extra={
                "message_id": str(message.id),
                "message_type": message.type,
                "event_id": event.event_id,
            },
        )
        return message


__all__ = ["STAGED_TYPES_KEY", "DomainEventService"]
