"""Database commands.

Example:bash
    # Verify connectivity
    commerce-relay db check

    # Create the outbox and audit tables without Alembic
    commerce-relay db create
"""

import sys

import click

from commerce_relay.cli.utils import coro, error, info, success


@click.group(name="db")
def db() -> None:
    """Database management commands."""


@db.command()
@coro
async def check() -> None:
    """Verify database connectivity."""
    from commerce_relay.core.settings import get_db_settings
    from commerce_relay.infra.database import close_database, init_database

    info(f"Connecting to: {get_db_settings().url.split('@')[-1]}")
    try:
        await init_database()
    except Exception as e:
        error(f"Failed to connect to database: {e}")
        sys.exit(1)
    finally:
        await close_database()
    success("Database connected successfully!")


@db.command()
@coro
async def create() -> None:
    """Create all tables from model metadata.

    Intended for local development; use Alembic migrations elsewhere.
    """
    # Import models so they register on the metadata
    import commerce_relay.infra.audit.models
    import commerce_relay.infra.outbox.models  # noqa: F401
    from commerce_relay.infra.database import close_database, create_all

    try:
        await create_all()
    except Exception as e:
        error(f"Failed to create tables: {e}")
        sys.exit(1)
    finally:
        await close_database()
    success("Tables created")
