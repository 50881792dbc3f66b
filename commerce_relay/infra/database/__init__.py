"""Database infrastructure: engine, sessions and the unit of work."""

from commerce_relay.infra.database.session import (
    UnitOfWork,
    close_database,
    create_all,
    create_engine,
    create_session_factory,
    get_async_session,
    get_engine,
    get_session_factory,
    init_database,
)

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
