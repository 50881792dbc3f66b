"""Database engine, session factory and unit of work.

Business rows, audit entries and outbox messages share one engine and one
session per unit of work. Sessions are ``AuditingSession`` under the hood,
so every flush runs the change-capture interceptor.

Usage:
    async with UnitOfWork() as uow:
        product = Product(name="Mug")
        uow.session.add(product)
        events.enqueue_for_outbox(uow.session, ProductCreated(product_id=str(product.id)))
        await uow.commit(actor=AuditContext(user_id="user-42"))
"""

from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from typing import TYPE_CHECKING, Any

from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker, create_async_engine

from commerce_relay.core.database.base import Base
from commerce_relay.core.settings import get_db_settings
from commerce_relay.infra.audit.context import AUDIT_CONTEXT_KEY
from commerce_relay.infra.audit.interceptor import AuditingSession

if TYPE_CHECKING:
    from collections.abc import AsyncGenerator
    from types import TracebackType

    from commerce_relay.core.settings.database import DatabaseSettings
    from commerce_relay.infra.audit.context import AuditContext

logger = logging.getLogger(__name__)

_engine: AsyncEngine | None = None
_session_factory: async_sessionmaker[AsyncSession] | None = None


def create_engine(settings: DatabaseSettings | None = None, **kwargs: Any) -> AsyncEngine:
    """Create the async engine from database settings."""
    settings = settings or get_db_settings()
    options: dict[str, Any] = {"echo": settings.echo}
    if not settings.is_sqlite:
        options["pool_pre_ping"] = settings.pool_pre_ping
    options.update(kwargs)
    return create_async_engine(settings.url, **options)


def create_session_factory(engine: AsyncEngine) -> async_sessionmaker[AsyncSession]:
    """Session factory whose sessions capture audit entries on flush.

    ``expire_on_commit`` is off: the outbox publisher commits once per
    message and keeps using the batch it fetched.
    """
    return async_sessionmaker(
        engine,
        class_=AsyncSession,
        sync_session_class=AuditingSession,
        expire_on_commit=False,
        autoflush=False,
    )


def get_engine() -> AsyncEngine:
    """Process-wide engine, created on first use."""
    global _engine
    if _engine is None:
        _engine = create_engine()
    return _engine


def get_session_factory() -> async_sessionmaker[AsyncSession]:
    """Process-wide session factory, created on first use."""
    global _session_factory
    if _session_factory is None:
        _session_factory = create_session_factory(get_engine())
    return _session_factory


@asynccontextmanager
async def get_async_session() -> AsyncGenerator[AsyncSession]:
    """Get async database session.

    Yields:
        Database session that is automatically closed.

    Example:
        async with get_async_session() as session:
            stats = await OutboxRepository().stats(session)
    """
    async with get_session_factory()() as session:
        try:
            yield session
        finally:
            await session.close()


class UnitOfWork:
    """One business transaction: business rows, audit trail and outbox together.

    The actor is passed explicitly, either to the constructor (visible to
    every flush of the unit of work) or to ``commit`` (overrides it for that
    commit only). Leaving the context without committing rolls everything
    back.

    Attributes:
        session: The session of this unit of work (available inside the
            ``async with`` block)
        actor: Actor bound for the lifetime of the unit of work
    """

    def __init__(
        self,
        session_factory: async_sessionmaker[AsyncSession] | None = None,
        actor: AuditContext | None = None,
    ) -> None:
        self._session_factory = session_factory or get_session_factory()
        self._session: AsyncSession | None = None
        self.actor = actor

    @property
    def session(self) -> AsyncSession:
        if self._session is None:
            raise RuntimeError("UnitOfWork is not active; use 'async with UnitOfWork() as uow'")
        return self._session

    async def __aenter__(self) -> UnitOfWork:
        self._session = self._session_factory()
        self._bind_actor(self.actor)
        return self

    def _bind_actor(self, actor: AuditContext | None) -> None:
        if actor is None:
            self.session.info.pop(AUDIT_CONTEXT_KEY, None)
        else:
            self.session.info[AUDIT_CONTEXT_KEY] = actor

    async def __aexit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        tb: TracebackType | None,
    ) -> None:
        session = self.session
        try:
            if exc_type is not None or session.in_transaction():
                await session.rollback()
        finally:
            await session.close()
            self._session = None

    async def commit(self, actor: AuditContext | None = None) -> None:
        """Flush and commit, auditing every mutation of the transaction.

        Args:
            actor: Actor for this commit; defaults to the one bound to the
                unit of work. Changes flushed earlier in the transaction
                are attributed to it as well.

        Raises:
            SQLAlchemyError: If the store rejects the transaction. The
                session is rolled back first, so nothing is persisted.
        """
        session = self.session
        self._bind_actor(actor or self.actor)
        try:
            await session.commit()
        except SQLAlchemyError:
            logger.exception("Unit of work commit failed, rolling back")
            await session.rollback()
            raise
        finally:
            self._bind_actor(self.actor)

    async def rollback(self) -> None:
        await self.session.rollback()


async def create_all(engine: AsyncEngine | None = None) -> None:
    """Create all tables from metadata (tests and first-run setups)."""
    engine = engine or get_engine()
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)


async def init_database() -> None:
    """Check that the database answers a trivial query.

    Raises:
        SQLAlchemyError: If the database is unreachable.
    """
    engine = get_engine()
    async with engine.connect() as conn:
        await conn.execute(text("SELECT 1"))
    logger.info("Database connection established", extra={"dialect": engine.dialect.name})


async def close_database() -> None:
    """Dispose of the process-wide engine. Call on shutdown."""
    global _engine, _session_factory
    if _engine is not None:
        await _engine.dispose()
        logger.info("Database connection closed")
    _engine = None
    _session_factory = None


__all__ = [
    "UnitOfWork",
    "close_database",
    "create_all",
    "create_engine",
    "create_session_factory",
    "get_async_session",
    "get_engine",
    "get_session_factory",
    "init_database",
]
