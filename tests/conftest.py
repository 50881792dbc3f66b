"""Pytest configuration and shared fixtures.

Organization:
    - Environment: settings isolated from the developer's .env and shell
    - Database Fixtures: in-memory SQLite engine, auditing session factory
    - Messaging Fixtures: registry, dispatcher, outbox and event services

Every database test runs against a fresh in-memory SQLite database with the
outbox, audit and test entity tables created from metadata.
"""

from __future__ import annotations

import os
from collections.abc import AsyncGenerator
from typing import TYPE_CHECKING

import pytest
from sqlalchemy.pool import StaticPool

from commerce_relay.core.events import DomainEventService, MessageTypeRegistry, NotificationDispatcher
from commerce_relay.core.settings import (
    AuditSettings,
    DatabaseSettings,
    OutboxSettings,
    clear_settings_cache,
)
from commerce_relay.infra.audit.interceptor import AuditingSession
from commerce_relay.infra.database import create_all, create_engine, create_session_factory
from commerce_relay.infra.outbox import OutboxService
from tests.fixtures.models import OrderPlaced, ReindexRequest

if TYPE_CHECKING:
    from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker

# Ensure tests never touch a real database
os.environ.setdefault("DB_URL", "sqlite+aiosqlite:///:memory:")
os.environ.setdefault("AUDIT_APP_VERSION", "test")


# ============================================================================
# Environment
# ============================================================================


@pytest.fixture(autouse=True)
def _reset_settings_cache():
    """Drop cached settings before and after every test."""
    clear_settings_cache()
    yield
    clear_settings_cache()


@pytest.fixture(autouse=True)
def _default_interceptor(monkeypatch):
    """Run every test with the default audit configuration.

    Tests that need different audit settings assign their own interceptor
    to ``session.sync_session.interceptor``.
    """
    from commerce_relay.infra.audit.interceptor import ChangeCaptureInterceptor

    monkeypatch.setattr(
        AuditingSession,
        "interceptor",
        ChangeCaptureInterceptor(AuditSettings(app_version="test")),
    )


# ============================================================================
# Database Fixtures
# ============================================================================


@pytest.fixture
async def db_engine() -> AsyncGenerator[AsyncEngine]:
    """In-memory SQLite engine with all tables created.

    StaticPool keeps the single in-memory database alive across sessions.
    """
    # Register test entities on the shared metadata
    import tests.fixtures.models  # noqa: F401

    engine = create_engine(
        DatabaseSettings(url="sqlite+aiosqlite:///:memory:"),
        poolclass=StaticPool,
        connect_args={"check_same_thread": False},
    )
    await create_all(engine)
    yield engine
    await engine.dispose()


@pytest.fixture
def session_factory(db_engine) -> async_sessionmaker[AsyncSession]:
    """Auditing session factory bound to the test engine."""
    return create_session_factory(db_engine)


@pytest.fixture
async def db_session(session_factory) -> AsyncGenerator[AsyncSession]:
    """A session for arranging and inspecting rows directly."""
    async with session_factory() as session:
        yield session


# ============================================================================
# Messaging Fixtures
# ============================================================================


@pytest.fixture
def registry() -> MessageTypeRegistry:
    """Registry with the test event and literal payload registered."""
    registry = MessageTypeRegistry()
    registry.register_event(OrderPlaced)
    registry.register("catalog.reindex", ReindexRequest)
    return registry


@pytest.fixture
def dispatcher() -> NotificationDispatcher:
    return NotificationDispatcher()


@pytest.fixture
def outbox_settings() -> OutboxSettings:
    return OutboxSettings(batch_size=50, max_backoff_exponent=6, days_to_keep_processed_messages=7)


@pytest.fixture
def outbox_service(session_factory, registry, dispatcher, outbox_settings) -> OutboxService:
    return OutboxService(session_factory, registry, dispatcher, settings=outbox_settings)


@pytest.fixture
def event_service(registry, dispatcher) -> DomainEventService:
    return DomainEventService(dispatcher, registry)
