"""Custom SQLAlchemy column types.

Types included:
- UTCDateTime: timezone-aware datetimes that round-trip as UTC on every backend
"""

from __future__ import annotations

from datetime import UTC, datetime
from typing import TYPE_CHECKING

from sqlalchemy import DateTime, TypeDecorator

if TYPE_CHECKING:
    from sqlalchemy.engine import Dialect


class UTCDateTime(TypeDecorator[datetime]):
    """Timezone-aware datetime stored in UTC.

    PostgreSQL keeps the offset natively, but SQLite drops it and hands back
    naive values. Normalizing on the way in and re-attaching UTC on the way
    out keeps comparisons against ``datetime.now(UTC)`` valid everywhere.

    Example:
        >>> class OutboxMessage(Base):
        ...     scheduled_at: Mapped[datetime] = mapped_column(UTCDateTime())
    """

    impl = DateTime(timezone=True)
    cache_ok = True

    def process_bind_param(self, value: datetime | None, dialect: Dialect) -> datetime | None:
        """Convert incoming values to UTC.

        Naive datetimes are assumed to already be UTC.
        """
        if value is None:
            return None
        if value.tzinfo is None:
            return value.replace(tzinfo=UTC)
        return value.astimezone(UTC)

    def process_result_value(self, value: datetime | None, dialect: Dialect) -> datetime | None:
        if value is None:
            return None
        if value.tzinfo is None:
            return value.replace(tzinfo=UTC)
        return value.astimezone(UTC)


__all__ = ["UTCDateTime"]
