"""OutboxMessage SQLAlchemy model for the transactional outbox.

Messages are written to this table in the same transaction as the business
change that produced them, so either both are durable or neither is. The
outbox publisher later reads due messages and dispatches them to in-process
consumers, recording the outcome on each row.

Lifecycle:
    Pending -> Processed            successful delivery
    Pending/Failed -> Failed        failed delivery, rescheduled with backoff

``Failed`` is retry-eligible, not terminal: a failed message is selected
again once ``scheduled_at`` has passed.
"""

from __future__ import annotations

from datetime import datetime, timedelta
from enum import StrEnum
from typing import TYPE_CHECKING, Any

from sqlalchemy import Index, Integer, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from commerce_relay.core.database.base import Base, UUIDv7PKMixin, generate_uuid7, utcnow
from commerce_relay.core.database.types import UTCDateTime

if TYPE_CHECKING:
    from commerce_relay.core.events.registry import MessageTypeRegistry

ERROR_MAX_LENGTH = 1000


class OutboxStatus(StrEnum):
    """Delivery status of an outbox message."""

    PENDING = "Pending"
    PROCESSED = "Processed"
    FAILED = "Failed"


class OutboxMessage(Base, UUIDv7PKMixin):
    """Durable envelope for a not-yet-delivered payload.

    Attributes:
        id: UUID v7 primary key
        type: Discriminator of the payload (``"Event:<Name>"`` or a literal
            registered type)
        content: JSON-serialized payload
        status: Pending, Processed or Failed
        scheduled_at: Earliest time the message may be delivered
        retry_count: Number of failed delivery attempts
        last_error: Last failure description
        processed_at: When the message was successfully delivered
        created_at: When the message was staged

    The publisher selects messages with ``status != Processed`` and
    ``scheduled_at <= now`` ordered by ``scheduled_at``; the sweeper deletes
    Processed rows by ``processed_at``. Both queries are indexed.
    """

    __tablename__ = "outbox_messages"

    type: Mapped[str] = mapped_column(
        String(255),
        nullable=False,
        index=True,
        comment="Payload discriminator",
    )
    content: Mapped[str] = mapped_column(
        Text,
        nullable=False,
        comment="JSON-serialized payload",
    )
    status: Mapped[str] = mapped_column(
        String(20),
        nullable=False,
        default=OutboxStatus.PENDING,
        comment="Pending, Processed or Failed",
    )
    scheduled_at: Mapped[datetime] = mapped_column(
        UTCDateTime(),
        nullable=False,
        default=utcnow,
        comment="Earliest time the message is eligible for delivery",
    )
    retry_count: Mapped[int] = mapped_column(
        Integer,
        nullable=False,
        default=0,
        comment="Number of failed delivery attempts",
    )
    last_error: Mapped[str | None] = mapped_column(
        Text,
        nullable=True,
        comment="Last failure description",
    )
    processed_at: Mapped[datetime | None] = mapped_column(
        UTCDateTime(),
        nullable=True,
        index=True,
        comment="When the message was successfully delivered",
    )
    created_at: Mapped[datetime] = mapped_column(
        UTCDateTime(),
        nullable=False,
        default=utcnow,
        comment="When the message was staged",
    )

    __table_args__ = (
        # Publisher selection: status filter, then oldest-due first
        Index("ix_outbox_messages_status_scheduled_at", "status", "scheduled_at"),
    )

    @classmethod
    def create(
        cls,
        message_type: str,
        content: str,
        scheduled_at: datetime | None = None,
    ) -> OutboxMessage:
        """Build a Pending message.

        Python-side column defaults only apply at INSERT time, so every
        field is set explicitly here to make the instance usable before
        it is flushed.
        """
        now = utcnow()
        return cls(
            id=generate_uuid7(),
            type=message_type,
            content=content,
            status=OutboxStatus.PENDING,
            scheduled_at=scheduled_at or now,
            retry_count=0,
            last_error=None,
            processed_at=None,
            created_at=now,
        )

    @classmethod
    def for_payload(
        cls,
        payload: Any,
        registry: MessageTypeRegistry,
        scheduled_at: datetime | None = None,
    ) -> OutboxMessage:
        """Build a Pending message for a registered payload or domain event."""
        return cls.create(
            registry.discriminator_for(payload),
            registry.encode(payload),
            scheduled_at,
        )

    @property
    def is_processed(self) -> bool:
        return self.status == OutboxStatus.PROCESSED

    def is_due(self, now: datetime | None = None) -> bool:
        """Whether the publisher may select this message at ``now``."""
        now = now or utcnow()
        return not self.is_processed and self.scheduled_at <= now

    def mark_as_processed(self) -> None:
        """Record successful delivery. ``retry_count`` is kept for history."""
        self.status = OutboxStatus.PROCESSED
        self.processed_at = utcnow()
        self.last_error = None

    def mark_as_failed(self, error: str, *, max_length: int = ERROR_MAX_LENGTH) -> None:
        """Record a failed delivery attempt.

        The caller is expected to ``reschedule`` afterwards.
        """
        self.status = OutboxStatus.FAILED
        self.retry_count = (self.retry_count or 0) + 1
        self.last_error = error[:max_length]

    def reschedule(self, delay: timedelta) -> None:
        """Move the next eligible delivery time to ``now + delay``."""
        self.scheduled_at = utcnow() + delay

    def __repr__(self) -> str:
        return (
            f"OutboxMessage("
            f"id={self.id}, "
            f"type={self.type!r}, "
            f"status={self.status}, "
            f"retry_count={self.retry_count}"
            f")"
        )


__all__ = ["ERROR_MAX_LENGTH", "OutboxMessage", "OutboxStatus"]
