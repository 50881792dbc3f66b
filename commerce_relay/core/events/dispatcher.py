"""In-process notification dispatcher.

A typed dispatch table keyed by payload class. Domain event notifications
are keyed by the wrapped event's class, so a consumer subscribes to
``OrderPlaced`` and receives ``DomainEventNotification[OrderPlaced]``.

Usage:
    dispatcher = NotificationDispatcher()

    async def send_confirmation(notification: DomainEventNotification[OrderPlaced]) -> None:
        ...

    dispatcher.subscribe(OrderPlaced, send_confirmation)
    await dispatcher.publish(DomainEventNotification(OrderPlaced(order_id="o-1")))

Consumers must tolerate duplicate delivery: outbox replay is at-least-once.
"""

from __future__ import annotations

import logging
from collections import defaultdict
from collections.abc import Awaitable, Callable
from typing import Any

from commerce_relay.core.events.base import DomainEventNotification
from commerce_relay.core.exceptions import MessageDispatchError

logger = logging.getLogger(__name__)

NotificationHandler = Callable[[Any], Awaitable[None]]


def _dispatch_key(payload: Any) -> type:
    if isinstance(payload, DomainEventNotification):
        return type(payload.event)
    return type(payload)


def _handler_name(handler: NotificationHandler) -> str:
    return getattr(handler, "__qualname__", None) or repr(handler)


class NotificationDispatcher:
    """Fan a payload out to every consumer subscribed to its class.

    Handlers run sequentially in subscription order and each is awaited
    before the next starts. The first handler failure stops the fan-out and
    is raised as ``MessageDispatchError``.
    """

    def __init__(self) -> None:
        self._handlers: dict[type, list[NotificationHandler]] = defaultdict(list)

    def subscribe(self, payload_type: type, handler: NotificationHandler) -> None:
        """Register ``handler`` for payloads of ``payload_type``.

        For domain events pass the event class, not the notification class.
        Subscribing the same handler twice is a no-op.
        """
        handlers = self._handlers[payload_type]
        if handler not in handlers:
            handlers.append(handler)

    def unsubscribe(self, payload_type: type, handler: NotificationHandler) -> None:
        handlers = self._handlers.get(payload_type, [])
        if handler in handlers:
            handlers.remove(handler)

    def handlers_for(self, payload: Any) -> list[NotificationHandler]:
        return list(self._handlers.get(_dispatch_key(payload), []))

    async def publish(self, payload: Any) -> int:
        """Deliver ``payload`` to all subscribed handlers.

        Returns:
            Number of handlers invoked. A payload nobody subscribed to is
            delivered to zero handlers and counts as success.

        Raises:
            MessageDispatchError: If a handler raises.
        """
        handlers = self.handlers_for(payload)
        payload_type = _dispatch_key(payload).__name__

        if not handlers:
            logger.debug("No handlers subscribed", extra={"payload_type": payload_type})
            return 0

        for handler in handlers:
            try:
                await handler(payload)
            except Exception as exc:
                raise MessageDispatchError(payload_type, _handler_name(handler), exc) from exc

        return len(handlers)


__all__ = ["NotificationDispatcher", "NotificationHandler"]
