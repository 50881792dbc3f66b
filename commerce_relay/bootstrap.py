"""Wiring of the payload registry and notification consumers.

The outbox publisher can only deliver what the process has registered. The
application that owns the domain events exposes a factory returning its
``RelayComponents``; operator entrypoints (CLI, runner) load it by
``"package.module:factory"`` reference.

Example:
    # shop/relay.py
    def build() -> RelayComponents:
        components = RelayComponents()
        components.registry.register_event(OrderPlaced)
        components.dispatcher.subscribe(OrderPlaced, send_confirmation_email)
        return components

    $ COMMERCE_RELAY_BOOTSTRAP=shop.relay:build commerce-relay outbox process
"""

from __future__ import annotations

import importlib
import logging
from dataclasses import dataclass, field

from commerce_relay.core.events.dispatcher import NotificationDispatcher
from commerce_relay.core.events.registry import MessageTypeRegistry

logger = logging.getLogger(__name__)


@dataclass
class RelayComponents:
    """Registry and dispatcher shared by the publisher and the event bridge."""

    registry: MessageTypeRegistry = field(default_factory=MessageTypeRegistry)
    dispatcher: NotificationDispatcher = field(default_factory=NotificationDispatcher)


def load_components(target: str | None) -> RelayComponents:
    """Import ``"module:factory"`` and call it.

    Without a target an empty registry is returned, so every stored message
    fails to resolve until the application registers its payloads.

    Raises:
        ValueError: If the reference is malformed.
        ImportError: If the module cannot be imported.
        TypeError: If the factory does not return ``RelayComponents``.
    """
    if not target:
        logger.warning("No bootstrap configured; outbox registry is empty")
        return RelayComponents()

    module_name, sep, attr = target.partition(":")
    if not sep or not module_name or not attr:
        raise ValueError(f"Bootstrap reference must look like 'package.module:factory', got {target!r}")

    module = importlib.import_module(module_name)
    factory = getattr(module, attr)
    components = factory()
    if not isinstance(components, RelayComponents):
        raise TypeError(f"{target} returned {type(components).__name__}, expected RelayComponents")

    logger.info(
        "Loaded relay components",
        extra={"bootstrap": target, "message_types": components.registry.discriminators},
    )
    return components


__all__ = ["RelayComponents", "load_components"]
