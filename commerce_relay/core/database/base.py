"""Declarative base and composable mixins for persisted aggregates.

Every mutable aggregate in the back office derives from ``AuditableEntity``
and therefore carries:

- a time-sortable UUID v7 primary key
- a ``version`` counter bumped on every update by the change-capture
  interceptor (used for auditing, not for optimistic locking)
- ``created_at`` / ``updated_at`` timestamps
- ``created_by`` / ``modified_by`` actor ids

The outbox and audit tables use ``Base`` plus ``UUIDv7PKMixin`` directly so
they are never mistaken for auditable business data.

Examples:
    class Product(AuditableEntity):
        __tablename__ = "products"
        name: Mapped[str] = mapped_column(String(255))

    class CartItem(Entity):
        __tablename__ = "cart_items"
        quantity: Mapped[int]
"""

from __future__ import annotations

import os
import time
import uuid
from datetime import UTC, datetime

from sqlalchemy import Integer, MetaData, String
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column
from sqlalchemy.sql import func

from commerce_relay.core.database.types import UTCDateTime

# Consistent naming convention for database constraints
NAMING_CONVENTION = {
    "ix": "ix_%(column_0_label)s",
    "uq": "uq_%(table_name)s_%(column_0_name)s",
    "ck": "ck_%(table_name)s_%(constraint_name)s",
    "fk": "fk_%(table_name)s_%(column_0_name)s_%(referred_table_name)s",
    "pk": "pk_%(table_name)s",
}


class Base(DeclarativeBase):
    """Declarative base shared by business, outbox and audit tables.

    Keeping all three on one metadata is what lets a single unit of work
    commit business state, audit trail and outbox envelopes atomically.
    """

    metadata = MetaData(naming_convention=NAMING_CONVENTION)


def generate_uuid7() -> uuid.UUID:
    """Generate a time-ordered UUID v7.

    The first 48 bits hold the Unix timestamp in milliseconds, so ids sort
    in creation order and keep B-tree inserts local.
    """
    timestamp_ms = int(time.time() * 1000)
    random_bytes = os.urandom(10)

    uuid_bytes = bytearray(16)
    uuid_bytes[0:6] = timestamp_ms.to_bytes(6, byteorder="big")
    uuid_bytes[6] = (random_bytes[0] & 0x0F) | 0x70  # Version 7
    uuid_bytes[7] = random_bytes[1]
    uuid_bytes[8] = (random_bytes[2] & 0x3F) | 0x80  # Variant
    uuid_bytes[9:16] = random_bytes[3:10]

    return uuid.UUID(bytes=bytes(uuid_bytes))


def utcnow() -> datetime:
    """Current time as a timezone-aware UTC datetime."""
    return datetime.now(UTC)


# ============================================================================
# Mixins
# ============================================================================


class UUIDv7PKMixin:
    """UUID v7 primary key (time-sortable).

    Provides:
        id: UUID v7 primary key, assigned on construction or at flush time.
    """

    __allow_unmapped__ = True

    id: Mapped[uuid.UUID] = mapped_column(
        primary_key=True,
        default=generate_uuid7,
        comment="UUID v7 primary key (time-sortable)",
    )


class TimestampMixin:
    """Creation and modification timestamps.

    Uses Python-side defaults so values exist before the INSERT is emitted
    (and therefore appear in audit snapshots), plus server defaults for rows
    written outside the ORM.
    """

    __allow_unmapped__ = True

    created_at: Mapped[datetime] = mapped_column(
        UTCDateTime(),
        default=utcnow,
        server_default=func.now(),
        nullable=False,
        comment="Timestamp of record creation",
    )
    updated_at: Mapped[datetime] = mapped_column(
        UTCDateTime(),
        default=utcnow,
        server_default=func.now(),
        onupdate=utcnow,
        nullable=False,
        comment="Timestamp of last update",
    )


class VersionMixin:
    """Monotonic modification counter.

    Incremented by the change-capture interceptor whenever the entity is
    flushed as modified. It is deliberately not configured as a SQLAlchemy
    ``version_id_col`` because no locking semantics are wanted.
    """

    __allow_unmapped__ = True

    version: Mapped[int] = mapped_column(
        Integer,
        default=1,
        nullable=False,
        comment="Monotonically increasing modification counter",
    )

    def increment_version(self) -> int:
        """Bump the version counter and return the new value."""
        self.version = (self.version or 0) + 1
        return self.version


class AuditColumnsMixin:
    """Actor tracking for create and update operations.

    Populated by the change-capture interceptor from the explicit actor
    context of the unit of work. Nullable because background
    jobs and pre-authentication flows run without an actor.
    """

    __allow_unmapped__ = True

    created_by: Mapped[str | None] = mapped_column(
        String(255),
        nullable=True,
        comment="Actor who created this record",
    )
    modified_by: Mapped[str | None] = mapped_column(
        String(255),
        nullable=True,
        comment="Actor who last modified this record",
    )

    def set_creation_audit_info(self, actor_id: str | None) -> None:
        self.created_by = actor_id
        self.modified_by = actor_id

    def set_audit_info(self, actor_id: str | None) -> None:
        self.modified_by = actor_id


# ============================================================================
# Convenience Bases
# ============================================================================


class Entity(Base, UUIDv7PKMixin, VersionMixin):
    """Base for every tracked entity.

    Only subclasses of ``Entity`` are captured by the audit interceptor.
    """

    __abstract__ = True


class AuditableEntity(Entity, TimestampMixin, AuditColumnsMixin):
    """Entity that also carries timestamps and actor stamps."""

    __abstract__ = True


__all__ = [
    "NAMING_CONVENTION",
    "AuditColumnsMixin",
    "AuditableEntity",
    "Base",
    "Entity",
    "TimestampMixin",
    "UUIDv7PKMixin",
    "VersionMixin",
    "generate_uuid7",
    "utcnow",
]
