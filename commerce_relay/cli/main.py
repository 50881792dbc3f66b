"""Main CLI entry point for commerce-relay operator commands."""

import click

from commerce_relay import __version__
from commerce_relay.cli.commands import database, outbox
from commerce_relay.infra.logging.config import setup_logging


@click.group()
@click.version_option(version=__version__, prog_name="commerce-relay")
@click.pass_context
def cli(ctx: click.Context) -> None:
    """Commerce Relay CLI - operate the outbox publisher and audit store.

    \b
    Command Groups:
      outbox     Deliver, sweep and inspect outbox messages
      db         Database connectivity and table creation

    \b
    Quick Start:
      commerce-relay db create          # Create outbox and audit tables
      commerce-relay outbox stats       # Message counts per status
      commerce-relay outbox run         # Periodic publisher and sweeper
    """
    setup_logging()
    ctx.ensure_object(dict)


cli.add_command(database.db)
cli.add_command(outbox.outbox)


def main() -> None:
    """Entry point for CLI."""
    cli(obj={})


if __name__ == "__main__":
    main()
