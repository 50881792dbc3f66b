"""Audit log database model.

Provides the AuditLog model for the append-only compliance trail:
- Entity identification (type, id)
- Action (Create, Update, Delete)
- Actor and request provenance (user id, IP address, user agent)
- Before/after value snapshots
- Application version that wrote the entry

Entries are created by the change-capture interceptor in the same
transaction as the mutation they describe. They are never updated and this
package never deletes them.
"""

from __future__ import annotations

from datetime import datetime
from enum import StrEnum
from typing import Any

from sqlalchemy import JSON, Index, String
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.orm import Mapped, mapped_column

from commerce_relay.core.database.base import Base, UUIDv7PKMixin, generate_uuid7, utcnow
from commerce_relay.core.database.types import UTCDateTime
from commerce_relay.core.exceptions import AuditLogValidationError

# Substituted for an empty snapshot so old/new values are never stored empty
EMPTY_VALUES_PLACEHOLDER: dict[str, Any] = {"_placeholder": "empty"}

# JSONB on PostgreSQL, JSON text everywhere else
JSONVariant = JSON().with_variant(JSONB(), "postgresql")


class AuditAction(StrEnum):
    """Audited state transitions."""

    CREATE = "Create"
    UPDATE = "Update"
    DELETE = "Delete"


def _non_empty(values: dict[str, Any] | None) -> dict[str, Any]:
    if not values:
        return dict(EMPTY_VALUES_PLACEHOLDER)
    return values


class AuditLog(Base, UUIDv7PKMixin):
    """Audit log entry for one entity mutation.

    Attributes:
        id: Time-sortable UUID (UUIDv7)
        entity_type: Class name of the audited entity (e.g. "Product")
        entity_id: Primary key of the audited entity
        action: Create, Update or Delete
        user_id: Actor who performed the mutation, None outside an
            authenticated context
        old_values: Snapshot before the mutation
        new_values: Snapshot after the mutation
        ip_address: Client IP address
        user_agent: Client user agent
        app_version: Version of the application that wrote the entry
        occurred_at: When the mutation was flushed

    Example:
        entry = AuditLog.create_for_update(
            "Product",
            product.id,
            old_values={"name": "Mug"},
            new_values={"name": "Large mug"},
            user_id="user-42",
        )
    """

    __tablename__ = "audit_logs"

    entity_type: Mapped[str] = mapped_column(
        String(100),
        nullable=False,
        comment="Type of entity affected",
    )
    entity_id: Mapped[str] = mapped_column(
        String(255),
        nullable=False,
        comment="ID of the affected entity",
    )
    action: Mapped[str] = mapped_column(
        String(20),
        nullable=False,
        index=True,
        comment="Create, Update or Delete",
    )
    user_id: Mapped[str | None] = mapped_column(
        String(255),
        nullable=True,
        index=True,
        comment="Actor who performed the action",
    )
    old_values: Mapped[dict[str, Any]] = mapped_column(
        JSONVariant,
        nullable=False,
        comment="Previous state",
    )
    new_values: Mapped[dict[str, Any]] = mapped_column(
        JSONVariant,
        nullable=False,
        comment="New state",
    )
    ip_address: Mapped[str | None] = mapped_column(
        String(45),  # IPv6 max length
        nullable=True,
        comment="Client IP address",
    )
    user_agent: Mapped[str | None] = mapped_column(
        String(500),
        nullable=True,
        comment="Client user agent",
    )
    app_version: Mapped[str | None] = mapped_column(
        String(50),
        nullable=True,
        comment="Application version that wrote the entry",
    )
    occurred_at: Mapped[datetime] = mapped_column(
        UTCDateTime(),
        default=utcnow,
        nullable=False,
        index=True,
        comment="When the mutation occurred",
    )

    __table_args__ = (
        # Entity history
        Index("ix_audit_logs_entity", "entity_type", "entity_id"),
    )

    @classmethod
    def create(
        cls,
        entity_type: str,
        entity_id: Any,
        action: AuditAction,
        old_values: dict[str, Any] | None = None,
        new_values: dict[str, Any] | None = None,
        *,
        user_id: str | None = None,
        ip_address: str | None = None,
        user_agent: str | None = None,
        app_version: str | None = None,
    ) -> AuditLog:
        """Validate and build an entry.

        Empty snapshots are replaced by ``{"_placeholder": "empty"}``.

        Raises:
            AuditLogValidationError: If ``entity_type`` or ``entity_id`` is empty.
        """
        if not entity_type or not entity_type.strip():
            raise AuditLogValidationError("entity_type", "must not be empty")
        if entity_id is None or not str(entity_id).strip():
            raise AuditLogValidationError("entity_id", "must not be empty")

        return cls(
            id=generate_uuid7(),
            entity_type=entity_type,
            entity_id=str(entity_id),
            action=AuditAction(action),
            user_id=user_id,
            old_values=_non_empty(old_values),
            new_values=_non_empty(new_values),
            ip_address=ip_address,
            user_agent=user_agent,
            app_version=app_version,
            occurred_at=utcnow(),
        )

    @classmethod
    def create_for_create(
        cls,
        entity_type: str,
        entity_id: Any,
        values: dict[str, Any],
        **context: Any,
    ) -> AuditLog:
        return cls.create(entity_type, entity_id, AuditAction.CREATE, None, values, **context)

    @classmethod
    def create_for_update(
        cls,
        entity_type: str,
        entity_id: Any,
        old_values: dict[str, Any],
        new_values: dict[str, Any],
        **context: Any,
    ) -> AuditLog:
        return cls.create(
            entity_type, entity_id, AuditAction.UPDATE, old_values, new_values, **context
        )

    @classmethod
    def create_for_delete(
        cls,
        entity_type: str,
        entity_id: Any,
        values: dict[str, Any],
        **context: Any,
    ) -> AuditLog:
        return cls.create(entity_type, entity_id, AuditAction.DELETE, values, None, **context)

    def __repr__(self) -> str:
        return (
            f"<AuditLog(id={self.id}, action={self.action}, "
            f"entity_type={self.entity_type}, entity_id={self.entity_id})>"
        )


__all__ = ["EMPTY_VALUES_PLACEHOLDER", "AuditAction", "AuditLog"]
