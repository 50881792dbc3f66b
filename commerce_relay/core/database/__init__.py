"""Core database package: declarative base, mixins and column types.

Base Classes and Mixins:
    - Base: Declarative base shared by business, outbox and audit tables
    - UUIDv7PKMixin: Time-sortable primary key
    - TimestampMixin: created_at, updated_at tracking
    - VersionMixin: Modification counter bumped on every update
    - AuditColumnsMixin: created_by, modified_by tracking

Convenience Bases:
    - Entity: UUID v7 PK + version (captured by the audit interceptor)
    - AuditableEntity: Entity + timestamps + actor columns

Custom Types:
    - UTCDateTime: Timezone-aware datetimes on every backend
"""

from commerce_relay.core.database.base import (
    NAMING_CONVENTION,
    AuditableEntity,
    AuditColumnsMixin,
    Base,
    Entity,
    TimestampMixin,
    UUIDv7PKMixin,
    VersionMixin,
    generate_uuid7,
    utcnow,
)
from commerce_relay.core.database.types import UTCDateTime

__all__ = [
    "NAMING_CONVENTION",
    "AuditColumnsMixin",
    "AuditableEntity",
    "Base",
    "Entity",
    "TimestampMixin",
    "UTCDateTime",
    "UUIDv7PKMixin",
    "VersionMixin",
    "generate_uuid7",
    "utcnow",
]
