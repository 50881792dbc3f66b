"""Domain events, the outbox type registry and in-process dispatch.

Usage:
    from commerce_relay.core.events import DomainEvent, MessageTypeRegistry

    registry = MessageTypeRegistry()

    @registry.register_event
    class OrderPlaced(DomainEvent):
        order_id: str
"""

from commerce_relay.core.events.base import DomainEvent, DomainEventNotification
from commerce_relay.core.events.dispatcher import NotificationDispatcher, NotificationHandler
from commerce_relay.core.events.registry import (
    EVENT_PREFIX,
    MessageRegistration,
    MessageTypeRegistry,
    event_discriminator,
)
from commerce_relay.core.events.service import DomainEventService

__all__ = [
    "EVENT_PREFIX",
    "DomainEvent",
    "DomainEventNotification",
    "DomainEventService",
    "MessageRegistration",
    "MessageTypeRegistry",
    "NotificationDispatcher",
    "NotificationHandler",
    "event_discriminator",
]
