"""Outbox operator commands.

Example:bash
    # Deliver one batch of due messages
    commerce-relay outbox process

    # Delete processed messages older than 14 days
    commerce-relay outbox cleanup --days 14

    # Counts per status, and the failed messages
    commerce-relay outbox stats
    commerce-relay outbox failed

    # Run publisher and sweeper on their intervals until interrupted
    commerce-relay outbox run

Commands that deliver messages need the application's payload registry;
point ``--bootstrap`` (or ``COMMERCE_RELAY_BOOTSTRAP``) at its factory.
"""

import asyncio
import contextlib
import signal
import sys

import click

from commerce_relay.cli.utils import coro, error, header, info, key_value, success, warning


def _build_service(bootstrap: str | None):
    """Build an OutboxService with lazy imports."""
    from commerce_relay.bootstrap import load_components
    from commerce_relay.infra.database import get_session_factory
    from commerce_relay.infra.outbox import OutboxService

    components = load_components(bootstrap)
    return OutboxService(get_session_factory(), components.registry, components.dispatcher)


@click.group(name="outbox")
@click.option(
    "--bootstrap",
    envvar="COMMERCE_RELAY_BOOTSTRAP",
    default=None,
    help="Factory returning RelayComponents, as 'package.module:factory'.",
)
@click.pass_context
def outbox(ctx: click.Context, bootstrap: str | None) -> None:
    """Transactional outbox delivery and maintenance."""
    ctx.ensure_object(dict)
    ctx.obj["bootstrap"] = bootstrap


@outbox.command()
@click.pass_context
@coro
async def process(ctx: click.Context) -> None:
    """Deliver one batch of due messages."""
    from commerce_relay.infra.database import close_database

    try:
        service = _build_service(ctx.obj.get("bootstrap"))
        result = await service.process_messages()
    except Exception as e:
        error(f"Outbox processing failed: {e}")
        sys.exit(1)
    finally:
        await close_database()

    if result.fetched == 0:
        info("No messages due")
        return

    success(f"Processed {result.processed} of {result.fetched} messages")
    if result.failed:
        warning(f"{result.failed} messages failed and were rescheduled")


@outbox.command()
@click.option(
    "--days",
    type=click.IntRange(min=0),
    default=None,
    help="Retention window in days (default: OUTBOX_DAYS_TO_KEEP_PROCESSED_MESSAGES).",
)
@click.pass_context
@coro
async def cleanup(ctx: click.Context, days: int | None) -> None:
    """Delete processed messages older than the retention window."""
    from commerce_relay.infra.database import close_database

    try:
        service = _build_service(ctx.obj.get("bootstrap"))
        deleted = await service.cleanup_old_messages(days)
    except Exception as e:
        error(f"Outbox cleanup failed: {e}")
        sys.exit(1)
    finally:
        await close_database()

    success(f"Deleted {deleted} processed messages")


@outbox.command()
@coro
async def stats() -> None:
    """Show message counts per status."""
    from commerce_relay.infra.database import close_database, get_async_session
    from commerce_relay.infra.outbox import OutboxRepository

    repo = OutboxRepository()
    try:
        async with get_async_session() as session:
            counts = await repo.stats(session)
            total = await repo.count_total(session)
    except Exception as e:
        error(f"Failed to read outbox statistics: {e}")
        sys.exit(1)
    finally:
        await close_database()

    header("Outbox Messages")
    for status, count in counts.items():
        key_value(status, count)
    key_value("Total", total)


@outbox.command()
@click.option("--limit", type=click.IntRange(min=1), default=20, help="Maximum messages to show.")
@coro
async def failed(limit: int) -> None:
    """List failed messages, newest first."""
    from commerce_relay.infra.database import close_database, get_async_session
    from commerce_relay.infra.outbox import OutboxRepository

    try:
        async with get_async_session() as session:
            messages = await OutboxRepository().get_failed_messages(session)
    except Exception as e:
        error(f"Failed to read failed messages: {e}")
        sys.exit(1)
    finally:
        await close_database()

    if not messages:
        success("No failed messages")
        return

    header(f"Failed Messages ({len(messages)})")
    for message in messages[:limit]:
        click.echo(
            f"  {message.id}  {message.type}  retries={message.retry_count}  "
            f"next={message.scheduled_at.isoformat()}"
        )
        if message.last_error:
            click.secho(f"      {message.last_error}", dim=True)


@outbox.command()
@click.pass_context
@coro
async def run(ctx: click.Context) -> None:
    """Run the publisher and sweeper on their intervals until interrupted."""
    from commerce_relay.infra.database import close_database
    from commerce_relay.infra.outbox import OutboxProcessingService

    service = _build_service(ctx.obj.get("bootstrap"))
    runner = OutboxProcessingService(service)

    stop = asyncio.Event()
    loop = asyncio.get_running_loop()
    for sig in (signal.SIGINT, signal.SIGTERM):
        # Not available on every platform (e.g. Windows)
        with contextlib.suppress(NotImplementedError):
            loop.add_signal_handler(sig, stop.set)

    await runner.start()
    info("Outbox processing service running; press Ctrl+C to stop")
    try:
        await stop.wait()
    finally:
        await runner.stop()
        await close_database()
    success("Outbox processing service stopped")
