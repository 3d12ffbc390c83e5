"""Main CLI entry point."""

import click

from ledgerfix.config import configure_logging, get_settings
from ledgerfix.database.factories import create_sqlite_store

# Import and register all commands at module level
from ledgerfix.cli.commands import (
    align,
    check,
    fix,
    ledger,
    renumber,
    reset,
    stock,
)


@click.group()
@click.option(
    "--db-path",
    type=click.Path(),
    help="Path to database file (overrides LEDGERFIX_DB_PATH environment variable)",
    envvar="LEDGERFIX_DB_PATH",
)
@click.option(
    "--factory",
    "factory_id",
    help="Restrict scans and postings to one factory (overrides LEDGERFIX_FACTORY_ID)",
    envvar="LEDGERFIX_FACTORY_ID",
)
@click.option(
    "--log-level",
    type=click.Choice(["DEBUG", "INFO", "WARNING", "ERROR"], case_sensitive=False),
    help="Log level (overrides LEDGERFIX_LOG_LEVEL)",
)
@click.pass_context
def cli(ctx, db_path: str | None, factory_id: str | None, log_level: str | None):
    """Ledgerfix - Double-entry ledger diagnosis and repair.

    Detects unbalanced transactions, stale balances and missing postings in
    the ledger store, and posts the corrective entries that restore them.
    """
    ctx.ensure_object(dict)
    settings = get_settings()
    configure_logging(level=log_level.upper() if log_level else None)

    # Open the store only when actually running a command (not when showing help)
    if ctx.invoked_subcommand is not None:
        db = create_sqlite_store(database_path=db_path)
        db.connect()
        db.initialize_schema()
        ctx.obj["db"] = db
        ctx.obj["settings"] = settings
        ctx.obj["factory_id"] = factory_id or settings.factory_id
        ctx.call_on_close(db.disconnect)


# Register all commands
check.register_commands(cli)
fix.register_commands(cli)
ledger.register_commands(cli)
align.register_commands(cli)
renumber.register_commands(cli)
reset.register_commands(cli)
stock.register_commands(cli)


def main():
    """Main entry point for CLI."""
    cli()


if __name__ == "__main__":
    main()
