"""Unit tests for domain events and the outbox message type registry."""
from __future__ import annotations

from datetime import UTC, datetime

import pytest
from pydantic import BaseModel, ValidationError

from commerce_relay.core.events import (
    DomainEvent,
    DomainEventNotification,
    MessageTypeRegistry,
    event_discriminator,
)
from commerce_relay.core.exceptions import (
    DuplicateRegistrationError,
    MessageDeserializationError,
    MessageTypeResolutionError,
)
from tests.fixtures.models import OrderCancelled, OrderPlaced, ReindexRequest

# ──────────────────────────────────────────────────────────────
# DomainEvent
# ──────────────────────────────────────────────────────────────


@pytest.mark.unit
class TestDomainEvent:
    """Tests for the DomainEvent base class."""

    def test_event_has_auto_generated_id(self):
        """Event should auto-generate a UUID v7 event_id."""
        event = OrderPlaced(order_id="o-1")

        assert len(event.event_id) == 36
        assert event.event_id[14] == "7"

    def test_event_has_utc_timestamp(self):
        before = datetime.now(UTC)
        event = OrderPlaced(order_id="o-1")

        assert before <= event.occurred_at <= datetime.now(UTC)

    def test_event_is_immutable(self):
        event = OrderPlaced(order_id="o-1")

        with pytest.raises(ValidationError):
            event.order_id = "o-2"

    def test_event_rejects_unknown_fields(self):
        with pytest.raises(ValidationError):
            OrderPlaced(order_id="o-1", unexpected=True)

    def test_with_correlation_returns_copy(self):
        event = OrderPlaced(order_id="o-1")

        correlated = event.with_correlation("corr-123")

        assert correlated.correlation_id == "corr-123"
        assert correlated.event_id == event.event_id
        assert event.correlation_id is None

    def test_notification_exposes_event_name(self):
        notification = DomainEventNotification(OrderPlaced(order_id="o-1"))

        assert notification.event_name == "OrderPlaced"
        assert notification.event.order_id == "o-1"


# ──────────────────────────────────────────────────────────────
# MessageTypeRegistry
# ──────────────────────────────────────────────────────────────


@pytest.mark.unit
class TestMessageTypeRegistry:
    """Tests for discriminator registration, encoding and decoding."""

    def test_event_discriminator_uses_event_prefix(self):
        assert event_discriminator(OrderPlaced) == "Event:OrderPlaced"

    def test_register_event_as_decorator(self):
        """register_event should return the class unchanged."""
        registry = MessageTypeRegistry()

        @registry.register_event
        class StockDepleted(DomainEvent):
            sku: str

        assert registry.is_registered("Event:StockDepleted")
        assert StockDepleted.__name__ == "StockDepleted"

    def test_register_event_rejects_plain_models(self):
        registry = MessageTypeRegistry()

        with pytest.raises(TypeError):
            registry.register_event(ReindexRequest)

    def test_literal_discriminator_cannot_use_event_prefix(self):
        registry = MessageTypeRegistry()

        with pytest.raises(ValueError, match="reserved"):
            registry.register("Event:Reindex", ReindexRequest)

    def test_registering_same_model_twice_is_idempotent(self):
        registry = MessageTypeRegistry()
        registry.register_event(OrderPlaced)
        registry.register_event(OrderPlaced)

        assert registry.discriminators == ["Event:OrderPlaced"]

    def test_conflicting_registration_raises(self):
        class Other(BaseModel):
            value: int

        registry = MessageTypeRegistry()
        registry.register("catalog.reindex", ReindexRequest)

        with pytest.raises(DuplicateRegistrationError):
            registry.register("catalog.reindex", Other)

    def test_discriminators_are_sorted(self, registry):
        assert registry.discriminators == ["Event:OrderPlaced", "catalog.reindex"]

    def test_resolve_unknown_raises(self, registry):
        """An unregistered discriminator is a lookup miss."""
        with pytest.raises(MessageTypeResolutionError) as exc_info:
            registry.resolve("Event:OrderCancelled")

        assert exc_info.value.message == "Cannot find type Event:OrderCancelled"
        assert exc_info.value.message_type == "Event:OrderCancelled"

    def test_discriminator_for_event_and_notification(self, registry):
        event = OrderPlaced(order_id="o-1")

        assert registry.discriminator_for(event) == "Event:OrderPlaced"
        assert registry.discriminator_for(DomainEventNotification(event)) == "Event:OrderPlaced"

    def test_discriminator_for_unregistered_event_uses_alias(self, registry):
        """Events always map to their alias, registered or not."""
        assert registry.discriminator_for(OrderCancelled(order_id="o-1")) == "Event:OrderCancelled"

    def test_discriminator_for_literal_payload(self, registry):
        assert registry.discriminator_for(ReindexRequest(catalog="shoes")) == "catalog.reindex"

    def test_discriminator_for_unknown_payload_raises(self, registry):
        class Unknown(BaseModel):
            value: int

        with pytest.raises(MessageTypeResolutionError):
            registry.discriminator_for(Unknown(value=1))

    def test_encode_rejects_non_models(self, registry):
        with pytest.raises(TypeError):
            registry.encode({"order_id": "o-1"})

    def test_decode_event_wraps_in_notification(self, registry):
        event = OrderPlaced(order_id="o-1", correlation_id="corr-1")

        decoded = registry.decode("Event:OrderPlaced", registry.encode(event))

        assert isinstance(decoded, DomainEventNotification)
        assert decoded.event == event

    def test_decode_literal_payload_returns_model(self, registry):
        decoded = registry.decode("catalog.reindex", '{"catalog": "shoes", "full": true}')

        assert decoded == ReindexRequest(catalog="shoes", full=True)

    def test_decode_invalid_content_raises(self, registry):
        with pytest.raises(MessageDeserializationError) as exc_info:
            registry.decode("Event:OrderPlaced", "{not json")

        assert exc_info.value.message_type == "Event:OrderPlaced"

    def test_decode_content_missing_fields_raises(self, registry):
        with pytest.raises(MessageDeserializationError):
            registry.decode("catalog.reindex", "{}")
