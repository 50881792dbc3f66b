"""Read queries over the audit trail.

Audit entries are append-only, so this repository only reads. Writes happen
exclusively through the change-capture interceptor.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Any

from sqlalchemy import select

from commerce_relay.infra.audit.models import AuditLog

if TYPE_CHECKING:
    from collections.abc import Sequence

    from sqlalchemy.ext.asyncio import AsyncSession


class AuditLogRepository:
    """Queries over the ``audit_logs`` table."""

    async def get_entity_history(
        self,
        session: AsyncSession,
        entity_type: str,
        entity_id: Any,
    ) -> Sequence[AuditLog]:
        """All entries for one entity, oldest first."""
        stmt = (
            select(AuditLog)
            .where(AuditLog.entity_type == entity_type, AuditLog.entity_id == str(entity_id))
            .order_by(AuditLog.occurred_at.asc(), AuditLog.id.asc())
        )
        result = await session.execute(stmt)
        return result.scalars().all()

    async def get_by_user(self, session: AsyncSession, user_id: str) -> Sequence[AuditLog]:
        """Entries recorded for ``user_id``, newest first."""
        stmt = (
            select(AuditLog)
            .where(AuditLog.user_id == user_id)
            .order_by(AuditLog.occurred_at.desc(), AuditLog.id.desc())
        )
        result = await session.execute(stmt)
        return result.scalars().all()

    async def get_recent(self, session: AsyncSession, limit: int = 50) -> Sequence[AuditLog]:
        stmt = select(AuditLog).order_by(AuditLog.occurred_at.desc(), AuditLog.id.desc()).limit(limit)
        result = await session.execute(stmt)
        return result.scalars().all()


__all__ = ["AuditLogRepository"]
