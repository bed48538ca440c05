"""CLI helpers for date range resolution."""

from datetime import date, datetime, time, timedelta

import click

from settleit.utils.date_parser import get_date_range, parse_date

PERIODS = ("this-week", "this-month", "this-year", "last-week", "last-month", "last-year")


def period_options(command):
    """Add --start-date, --end-date and a flag per named period to a command.

    The period flags reach the command as ``this_month`` style keyword
    arguments.
    """
    for period in reversed(PERIODS):
        command = click.option(f"--{period}", is_flag=True, help=f"Filter to {period.replace('-', ' ')}")(command)
    command = click.option("--end-date", help="End date, inclusive (YYYY-MM-DD or relative like 'today')")(command)
    command = click.option("--start-date", help="Start date (YYYY-MM-DD or relative like 'last month')")(command)
    return command


def resolve_cli_date_range(
    ctx,
    *,
    start_date: str | None,
    end_date: str | None,
    period_flags: dict[str, bool],
    default_range: tuple[date, date] | None = None,
) -> tuple[date | None, date | None]:
    """Resolve CLI date range from period flags or explicit dates."""
    selected = [name for name, is_set in period_flags.items() if is_set]

    if len(selected) > 1:
        click.echo(
            "Error: Only one period option (--this-month, --this-year, --this-week, --last-month, --last-year, --last-week) can be specified at a time.",
            err=True,
        )
        ctx.exit(1)

    if selected and (start_date or end_date):
        click.echo(
            "Error: Period options (--this-month, --this-year, etc.) cannot be combined with --start-date or --end-date.",
            err=True,
        )
        ctx.exit(1)

    if selected:
        return get_date_range(selected[0].replace("_", "-"))

    start = None
    end = None
    if start_date:
        try:
            start = parse_date(start_date)
        except ValueError as e:
            click.echo(f"Error: Invalid start date: {e}", err=True)
            ctx.exit(1)

    if end_date:
        try:
            end = parse_date(end_date)
        except ValueError as e:
            click.echo(f"Error: Invalid end date: {e}", err=True)
            ctx.exit(1)

    if start is None and end is None and default_range is not None:
        start, end = default_range

    return start, end


def to_datetime_range(start: date | None, end: date | None) -> tuple[datetime | None, datetime | None]:
    """Turn an inclusive day range into a ``[start, end)`` datetime range."""
    start_at = datetime.combine(start, time.min) if start is not None else None
    end_at = datetime.combine(end + timedelta(days=1), time.min) if end is not None else None
    return start_at, end_at
