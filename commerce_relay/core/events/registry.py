"""Explicit registry mapping outbox discriminators to payload decoders.

Every payload that may travel through the outbox is registered here at
startup. Two kinds of discriminator exist:

- ``"Event:<Name>"`` for domain events. Content is the event's JSON and it
  is decoded into a ``DomainEventNotification`` wrapping the event.
- Any other string, registered literally for a pydantic model. Content is
  the model's JSON and it is decoded into the model itself.

A discriminator that is not registered is a lookup miss
(``MessageTypeResolutionError``), never a search through loaded code.

Usage:
    registry = MessageTypeRegistry()

    @registry.register_event
    class OrderPlaced(DomainEvent):
        order_id: str

    registry.register("catalog.reindex", ReindexRequest)

    payload = registry.decode("Event:OrderPlaced", '{"order_id": "o-1"}')
"""

from __future__ import annotations

import logging
from collections.abc import Callable
from dataclasses import dataclass
from typing import Any, TypeVar

from pydantic import BaseModel, ValidationError

from commerce_relay.core.events.base import DomainEvent, DomainEventNotification
from commerce_relay.core.exceptions import (
    DuplicateRegistrationError,
    MessageDeserializationError,
    MessageTypeResolutionError,
)

logger = logging.getLogger(__name__)

EVENT_PREFIX = "Event:"

M = TypeVar("M", bound=BaseModel)


@dataclass(frozen=True, slots=True)
class MessageRegistration:
    """One registry entry: the discriminator, its model and how to decode it."""

    discriminator: str
    model: type[BaseModel]
    decoder: Callable[[str], Any]


def event_discriminator(event_cls: type[DomainEvent]) -> str:
    """Outbox discriminator for a domain event class."""
    return f"{EVENT_PREFIX}{event_cls.event_name()}"


class MessageTypeRegistry:
    """Registry of payload types that may be stored in the outbox.

    Registration is expected during startup; lookups are read-only
    afterwards.
    """

    def __init__(self) -> None:
        self._by_discriminator: dict[str, MessageRegistration] = {}
        self._by_model: dict[type[BaseModel], str] = {}

    def register_event(self, event_cls: type[M]) -> type[M]:
        """Register a domain event class under its ``"Event:<Name>"`` alias.

        Usable as a class decorator.
        """
        if not issubclass(event_cls, DomainEvent):
            raise TypeError(f"{event_cls.__name__} is not a DomainEvent")

        def _decode(content: str) -> DomainEventNotification[Any]:
            return DomainEventNotification(event_cls.model_validate_json(content))

        self._add(MessageRegistration(event_discriminator(event_cls), event_cls, _decode))
        return event_cls

    def register(self, discriminator: str, model: type[M]) -> type[M]:
        """Register a pydantic model under a literal discriminator."""
        if discriminator.startswith(EVENT_PREFIX):
            raise ValueError(f"Discriminator prefix '{EVENT_PREFIX}' is reserved for domain events")
        self._add(MessageRegistration(discriminator, model, model.model_validate_json))
        return model

    def _add(self, registration: MessageRegistration) -> None:
        existing = self._by_discriminator.get(registration.discriminator)
        if existing is not None:
            if existing.model is registration.model:
                # Already registered (idempotent)
                return
            raise DuplicateRegistrationError(
                registration.discriminator, existing.model, registration.model
            )

        self._by_discriminator[registration.discriminator] = registration
        self._by_model[registration.model] = registration.discriminator
        logger.debug(
            "Registered outbox message type",
            extra={"discriminator": registration.discriminator, "model": registration.model.__name__},
        )

    def is_registered(self, discriminator: str) -> bool:
        return discriminator in self._by_discriminator

    @property
    def discriminators(self) -> list[str]:
        """All registered discriminators, sorted."""
        return sorted(self._by_discriminator)

    def resolve(self, discriminator: str) -> MessageRegistration:
        """Look up a discriminator.

        Raises:
            MessageTypeResolutionError: If nothing is registered under it.
        """
        registration = self._by_discriminator.get(discriminator)
        if registration is None:
            raise MessageTypeResolutionError(discriminator)
        return registration

    def discriminator_for(self, payload: Any) -> str:
        """Discriminator under which ``payload`` is stored.

        Domain events (bare or wrapped in a notification) always use their
        event alias; other payloads must have been registered.

        Raises:
            MessageTypeResolutionError: If the payload's type is unknown.
        """
        if isinstance(payload, DomainEventNotification):
            payload = payload.event
        if isinstance(payload, DomainEvent):
            return event_discriminator(type(payload))

        discriminator = self._by_model.get(type(payload))
        if discriminator is None:
            raise MessageTypeResolutionError(type(payload).__name__)
        return discriminator

    def encode(self, payload: Any) -> str:
        """Serialize a payload to the JSON content stored on the message."""
        if isinstance(payload, DomainEventNotification):
            payload = payload.event
        if not isinstance(payload, BaseModel):
            raise TypeError(f"Cannot encode {type(payload).__name__}: not a pydantic model")
        return payload.model_dump_json()

    def decode(self, discriminator: str, content: str) -> Any:
        """Resolve ``discriminator`` and decode ``content`` into its shape.

        Raises:
            MessageTypeResolutionError: If the discriminator is unknown.
            MessageDeserializationError: If the content does not validate.
        """
        registration = self.resolve(discriminator)
        try:
            return registration.decoder(content)
        except ValidationError as exc:
            raise MessageDeserializationError(discriminator, str(exc)) from exc


__all__ = [
    "EVENT_PREFIX",
    "MessageRegistration",
    "MessageTypeRegistry",
    "event_discriminator",
]
