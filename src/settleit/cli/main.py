"""Main CLI entry point."""

import logging

import click
import yaml
from settleit.config import load_config
from settleit.database.factories import create_sqlite_database
from settleit.domain.errors import ConfigurationError
from settleit.engine import SettlementEngine
from settleit.logging_config import configure_logging

# Import and register all commands at module level
from settleit.cli.commands import (
    analytics,
    balance,
    payment,
    payout,
    quote,
    refund,
    revenue_config,
)


@click.group()
@click.option(
    "--db-path",
    type=click.Path(),
    help="Path to database file (overrides SETTLEIT_DB_PATH environment variable)",
    envvar="SETTLEIT_DB_PATH",
)
@click.option(
    "--config",
    "config_path",
    type=click.Path(),
    help="Path to engine configuration YAML (overrides SETTLEIT_CONFIG environment variable)",
    envvar="SETTLEIT_CONFIG",
)
@click.option(
    "--log-level",
    type=click.Choice(["DEBUG", "INFO", "WARNING", "ERROR"], case_sensitive=False),
    default="WARNING",
    show_default=True,
    help="Structured log level written to stderr",
)
@click.pass_context
def cli(ctx, db_path: str | None, config_path: str | None, log_level: str):
    """Settleit - Marketplace payment settlement engine.

    Price payments with taxes and fees, split revenue between platform and
    sellers, and move seller balances out through refunds and payouts.
    Amounts are entered and shown in major units (e.g. 1000.00).
    """
    ctx.ensure_object(dict)

    # Open the database only when actually running a command
    # (not when showing help)
    if ctx.invoked_subcommand is not None:
        configure_logging(level=getattr(logging, log_level.upper()))
        try:
            config = load_config(config_path)
        except (OSError, yaml.YAMLError, ConfigurationError) as e:
            click.echo(f"Error: Could not load configuration: {e}", err=True)
            ctx.exit(1)

        db = create_sqlite_database(database_path=db_path)
        db.connect()
        db.initialize_schema()
        ctx.obj["db"] = db
        ctx.obj["engine"] = SettlementEngine(db, config)


# Register all commands
quote.register_commands(cli)
payment.register_commands(cli)
refund.register_commands(cli)
payout.register_commands(cli)
balance.register_commands(cli)
analytics.register_commands(cli)
revenue_config.register_commands(cli)


def main():
    """Main entry point for CLI."""
    cli()


if __name__ == "__main__":
    main()
