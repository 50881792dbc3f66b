"""Repository for OutboxMessage queries.

Provides methods for:
- Fetching due messages for the publisher
- Read queries used by operators (status, type, date range, failures)
- Deleting processed messages for the retention sweeper

Like every repository in this package it is stateless: each method takes
the session it should run in, so callers own transaction boundaries.
"""

from __future__ import annotations

from datetime import datetime
from typing import TYPE_CHECKING

from sqlalchemy import delete, func, select

from commerce_relay.core.database.base import utcnow
from commerce_relay.infra.outbox.models import OutboxMessage, OutboxStatus

if TYPE_CHECKING:
    from collections.abc import Sequence
    from uuid import UUID

    from sqlalchemy.ext.asyncio import AsyncSession


class OutboxRepository:
    """Queries over the ``outbox_messages`` table."""

    async def fetch_unprocessed(
        self,
        session: AsyncSession,
        *,
        batch_size: int = 50,
        max_retry_count: int | None = None,
        now: datetime | None = None,
    ) -> Sequence[OutboxMessage]:
        """Fetch messages due for delivery.

        Returns messages that:
        - Are not Processed (Pending or Failed)
        - Have ``scheduled_at <= now``
        - Have fewer than ``max_retry_count`` failures, when a ceiling is set

        Ordered by ``scheduled_at`` ascending so the oldest-due message is
        attempted first.

        Args:
            session: Database session
            batch_size: Maximum number of messages to fetch
            max_retry_count: Optional failure ceiling; exhausted messages stay
                Failed but are no longer selected
            now: Reference time (defaults to the current UTC time)

        Returns:
            Sequence of due OutboxMessage records
        """
        now = now or utcnow()

        stmt = (
            select(OutboxMessage)
            .where(
                OutboxMessage.status != OutboxStatus.PROCESSED,
                OutboxMessage.scheduled_at <= now,
            )
            .order_by(OutboxMessage.scheduled_at.asc(), OutboxMessage.id.asc())
            .limit(batch_size)
        )
        if max_retry_count is not None:
            stmt = stmt.where(OutboxMessage.retry_count < max_retry_count)

        result = await session.execute(stmt)
        return result.scalars().all()

    async def get(self, session: AsyncSession, message_id: UUID) -> OutboxMessage | None:
        return await session.get(OutboxMessage, message_id)

    async def list_all(self, session: AsyncSession) -> Sequence[OutboxMessage]:
        """All messages, newest first."""
        stmt = select(OutboxMessage).order_by(OutboxMessage.created_at.desc())
        result = await session.execute(stmt)
        return result.scalars().all()

    async def get_by_status(
        self,
        session: AsyncSession,
        status: OutboxStatus,
    ) -> Sequence[OutboxMessage]:
        """Messages in ``status``, newest first."""
        stmt = (
            select(OutboxMessage)
            .where(OutboxMessage.status == status)
            .order_by(OutboxMessage.created_at.desc())
        )
        result = await session.execute(stmt)
        return result.scalars().all()

    async def get_by_type(
        self,
        session: AsyncSession,
        message_type: str,
    ) -> Sequence[OutboxMessage]:
        """Messages whose discriminator equals ``message_type`` exactly."""
        stmt = (
            select(OutboxMessage)
            .where(OutboxMessage.type == message_type)
            .order_by(OutboxMessage.created_at.desc())
        )
        result = await session.execute(stmt)
        return result.scalars().all()

    async def get_by_date_range(
        self,
        session: AsyncSession,
        start: datetime,
        end: datetime,
    ) -> Sequence[OutboxMessage]:
        """Messages created within ``[start, end]``, newest first."""
        stmt = (
            select(OutboxMessage)
            .where(OutboxMessage.created_at >= start, OutboxMessage.created_at <= end)
            .order_by(OutboxMessage.created_at.desc())
        )
        result = await session.execute(stmt)
        return result.scalars().all()

    async def get_failed_messages(self, session: AsyncSession) -> Sequence[OutboxMessage]:
        return await self.get_by_status(session, OutboxStatus.FAILED)

    async def count_unprocessed(self, session: AsyncSession) -> int:
        """Count messages still waiting for successful delivery.

        Useful for monitoring and alerting.
        """
        stmt = (
            select(func.count())
            .select_from(OutboxMessage)
            .where(OutboxMessage.status != OutboxStatus.PROCESSED)
        )
        result = await session.execute(stmt)
        return result.scalar_one()

    async def count_total(self, session: AsyncSession) -> int:
        stmt = select(func.count()).select_from(OutboxMessage)
        result = await session.execute(stmt)
        return result.scalar_one()

    async def stats(self, session: AsyncSession) -> dict[str, int]:
        """Message count per status, with every status present."""
        stmt = select(OutboxMessage.status, func.count()).group_by(OutboxMessage.status)
        result = await session.execute(stmt)
        counts = {status.value: 0 for status in OutboxStatus}
        for status, count in result.all():
            counts[status] = count
        return counts

    async def delete_processed_before(self, session: AsyncSession, cutoff: datetime) -> int:
        """Delete Processed messages whose ``processed_at`` is before ``cutoff``.

        Pending and Failed messages are never deleted, whatever their age.

        Returns:
            Number of messages deleted
        """
        stmt = (
            delete(OutboxMessage)
            .where(
                OutboxMessage.status == OutboxStatus.PROCESSED,
                OutboxMessage.processed_at.is_not(None),
                OutboxMessage.processed_at < cutoff,
            )
            .execution_options(synchronize_session=False)
        )
        result = await session.execute(stmt)
        return result.rowcount or 0


__all__ = ["OutboxRepository"]
