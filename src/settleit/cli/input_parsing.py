"""CLI helpers for parsing amounts and key=value options."""

from __future__ import annotations

from decimal import Decimal, InvalidOperation

import click
from settleit.utils.amount_parser import parse_amount


def parse_amount_or_exit(ctx: click.Context, value: str | None, label: str = "amount") -> int | None:
    """Parse a display amount into minor units, or exit with a CLI error.

    Returns None when no value was given.
    """
    if value is None:
        return None
    try:
        return parse_amount(value)
    except ValueError as exc:
        click.echo(f"Error: Invalid {label}: {exc}", err=True)
        ctx.exit(1)


def parse_percentage_or_exit(ctx: click.Context, value: str | None, label: str = "percentage") -> Decimal | None:
    """Parse a percentage such as ``2.5`` or ``2.5%``, or exit with a CLI error."""
    if value is None:
        return None
    try:
        return Decimal(value.strip().rstrip("%"))
    except InvalidOperation:
        click.echo(f"Error: Invalid {label}: '{value}'", err=True)
        ctx.exit(1)


def parse_key_values_or_exit(ctx: click.Context, pairs: tuple[str, ...], option: str) -> dict[str, str]:
    """Parse repeated ``key=value`` options into a dict, or exit with a CLI error."""
    parsed = {}
    for pair in pairs:
        key, sep, value = pair.partition("=")
        if not sep or not key.strip():
            click.echo(f"Error: {option} expects key=value, got '{pair}'", err=True)
            ctx.exit(1)
        parsed[key.strip()] = value.strip()
    return parsed
