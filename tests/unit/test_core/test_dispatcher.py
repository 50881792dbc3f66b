"""Unit tests for the in-process notification dispatcher."""
from __future__ import annotations

from unittest.mock import AsyncMock

import pytest

from commerce_relay.core.events import DomainEventNotification, NotificationDispatcher
from commerce_relay.core.exceptions import MessageDispatchError
from tests.fixtures.models import OrderCancelled, OrderPlaced, ReindexRequest


@pytest.mark.unit
class TestNotificationDispatcher:
    """Test suite for NotificationDispatcher."""

    async def test_publish_notification_reaches_event_subscribers(self):
        """Notifications are dispatched by the wrapped event's class."""
        dispatcher = NotificationDispatcher()
        handler = AsyncMock()
        dispatcher.subscribe(OrderPlaced, handler)
        notification = DomainEventNotification(OrderPlaced(order_id="o-1"))

        count = await dispatcher.publish(notification)

        assert count == 1
        handler.assert_awaited_once_with(notification)

    async def test_publish_literal_payload(self):
        dispatcher = NotificationDispatcher()
        handler = AsyncMock()
        dispatcher.subscribe(ReindexRequest, handler)

        await dispatcher.publish(ReindexRequest(catalog="shoes"))

        handler.assert_awaited_once()

    async def test_publish_without_subscribers_succeeds(self):
        """Zero handlers is a successful delivery."""
        dispatcher = NotificationDispatcher()

        count = await dispatcher.publish(DomainEventNotification(OrderCancelled(order_id="o-1")))

        assert count == 0

    async def test_handlers_run_in_subscription_order(self):
        dispatcher = NotificationDispatcher()
        calls: list[str] = []

        async def first(_):
            calls.append("first")

        async def second(_):
            calls.append("second")

        dispatcher.subscribe(OrderPlaced, first)
        dispatcher.subscribe(OrderPlaced, second)

        await dispatcher.publish(DomainEventNotification(OrderPlaced(order_id="o-1")))

        assert calls == ["first", "second"]

    async def test_subscribe_same_handler_twice_is_noop(self):
        dispatcher = NotificationDispatcher()
        handler = AsyncMock()
        dispatcher.subscribe(OrderPlaced, handler)
        dispatcher.subscribe(OrderPlaced, handler)

        count = await dispatcher.publish(DomainEventNotification(OrderPlaced(order_id="o-1")))

        assert count == 1

    async def test_unsubscribe_removes_handler(self):
        dispatcher = NotificationDispatcher()
        handler = AsyncMock()
        dispatcher.subscribe(OrderPlaced, handler)
        dispatcher.unsubscribe(OrderPlaced, handler)

        await dispatcher.publish(DomainEventNotification(OrderPlaced(order_id="o-1")))

        handler.assert_not_awaited()

    async def test_handler_failure_raises_dispatch_error(self):
        """The first failing handler stops the fan-out."""
        dispatcher = NotificationDispatcher()

        async def broken(_):
            raise RuntimeError("smtp down")

        after = AsyncMock()
        dispatcher.subscribe(OrderPlaced, broken)
        dispatcher.subscribe(OrderPlaced, after)

        with pytest.raises(MessageDispatchError) as exc_info:
            await dispatcher.publish(DomainEventNotification(OrderPlaced(order_id="o-1")))

        assert exc_info.value.payload_type == "OrderPlaced"
        assert "smtp down" in str(exc_info.value)
        assert isinstance(exc_info.value.cause, RuntimeError)
        after.assert_not_awaited()
