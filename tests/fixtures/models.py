"""Entities and payloads used only by the test suite.

The entities register on the package's shared metadata, so ``create_all``
in the database fixtures creates their tables next to the outbox and audit
tables.
"""

from __future__ import annotations

from dataclasses import dataclass

from pydantic import BaseModel
from sqlalchemy import Integer, String
from sqlalchemy.orm import Mapped, composite, mapped_column

from commerce_relay.core.database import AuditableEntity, Entity
from commerce_relay.core.events import DomainEvent


@dataclass
class Money:
    """Value object persisted as two columns."""

    amount_cents: int
    currency: str


class Product(AuditableEntity):
    __tablename__ = "test_products"

    name: Mapped[str] = mapped_column(String(255))
    price_amount: Mapped[int | None] = mapped_column(Integer, nullable=True)
    price_currency: Mapped[str | None] = mapped_column(String(3), nullable=True)
    price: Mapped[Money | None] = composite("price_amount", "price_currency")


class User(AuditableEntity):
    __tablename__ = "test_users"

    email: Mapped[str] = mapped_column(String(255))


class RefreshToken(Entity):
    __tablename__ = "test_refresh_tokens"

    token: Mapped[str] = mapped_column(String(255))


class OrderPlaced(DomainEvent):
    order_id: str


class OrderCancelled(DomainEvent):
    """Never registered; used for resolution failures."""

    order_id: str


class ReindexRequest(BaseModel):
    catalog: str
    full: bool = False
