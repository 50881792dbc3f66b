"""Domain event base class and the notification envelope.

Domain events are immutable pydantic models describing something that
happened in the business domain. They reach consumers wrapped in a
``DomainEventNotification``, whether they are published immediately or
replayed from the outbox, so a consumer never has to know which delivery
mode produced the notification.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import UTC, datetime
from typing import Any, Generic, TypeVar

from pydantic import BaseModel, ConfigDict, Field

from commerce_relay.core.database.base import generate_uuid7


class DomainEvent(BaseModel):
    """Base class for all domain events.

    The event's outbox discriminator is derived from the class name
    (``"Event:<ClassName>"``), so subclass names must be unique across the
    registry they are registered with.

    Example:
        class OrderPlaced(DomainEvent):
            order_id: str
            total: Decimal

    Attributes:
        event_id: Unique identifier for this event instance (UUID v7)
        occurred_at: When the event occurred (UTC)
        correlation_id: ID linking related events of one business operation
        metadata: Additional context (aggregate id, request id, ...)
    """

    event_id: str = Field(
        default_factory=lambda: str(generate_uuid7()),
        description="Unique event identifier (UUID v7 for time-ordering)",
    )
    occurred_at: datetime = Field(
        default_factory=lambda: datetime.now(UTC),
        description="Event timestamp in UTC",
    )
    correlation_id: str | None = Field(
        default=None,
        description="Correlation ID for tracing one business operation",
    )
    metadata: dict[str, Any] = Field(
        default_factory=dict,
        description="Additional event metadata",
    )

    model_config = ConfigDict(
        frozen=True,  # Events are immutable
        str_strip_whitespace=True,
        extra="forbid",
    )

    @classmethod
    def event_name(cls) -> str:
        """Name used in the ``"Event:<Name>"`` outbox discriminator."""
        return cls.__name__

    def with_correlation(self, correlation_id: str) -> DomainEvent:
        """Create a copy of this event with a correlation ID."""
        return self.model_copy(update={"correlation_id": correlation_id})


E = TypeVar("E", bound=DomainEvent)


@dataclass(frozen=True, slots=True)
class DomainEventNotification(Generic[E]):
    """Envelope handed to notification consumers for a domain event.

    Consumers subscribe by event class and receive this envelope; the
    wrapped event is available as ``notification.event``.
    """

    event: E

    @property
    def event_name(self) -> str:
        return self.event.event_name()


__all__ = ["DomainEvent", "DomainEventNotification"]
