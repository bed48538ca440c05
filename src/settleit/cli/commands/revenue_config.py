"""Revenue share configuration commands."""

import click
from settleit.cli.error_handling import handle_domain_error
from settleit.cli.input_parsing import parse_amount_or_exit, parse_percentage_or_exit
from settleit.domain.entities import UserTypeRate
from settleit.domain.errors import DomainError
from settleit.utils.amount_parser import format_amount


def parse_user_type_rates(ctx, values: tuple[str, ...]) -> tuple[UserTypeRate, ...]:
    """Parse ``type:percentage[:fixed[:minimum]]`` options into user type rates."""
    rates = []
    for value in values:
        parts = [part.strip() for part in value.split(":")]
        if len(parts) < 2 or len(parts) > 4 or not parts[0]:
            click.echo(f"Error: --user-type-rate expects type:percentage[:fixed[:minimum]], got '{value}'", err=True)
            ctx.exit(1)
        fixed = parse_amount_or_exit(ctx, parts[2], "fixed commission") if len(parts) > 2 else 0
        minimum = parse_amount_or_exit(ctx, parts[3], "minimum commission") if len(parts) > 3 else 0
        rates.append(
            UserTypeRate(
                user_type=parts[0],
                percentage=parse_percentage_or_exit(ctx, parts[1]),
                fixed=fixed,
                minimum_commission=minimum,
            )
        )
    return tuple(rates)


@click.group()
def revenue_config_group():
    """Manage revenue share configurations."""
    pass


@revenue_config_group.command("list")
@click.option("--all", "include_inactive", is_flag=True, help="Include inactive configurations")
@click.pass_context
def list_configs(ctx, include_inactive: bool):
    """List revenue share configurations."""
    engine = ctx.obj["engine"]
    base = engine.config.base_currency
    engine.revenue.ensure_seeded()
    configs = engine.revenue.list_configs(include_inactive=include_inactive)
    if not configs:
        click.echo("No revenue share configurations found.")
        return

    for config in configs:
        flags = []
        if config.is_default:
            flags.append("default")
        if not config.is_active:
            flags.append("inactive")
        flag_str = f" [{', '.join(flags)}]" if flags else ""
        click.echo(f"{config.id}: {config.name} v{config.version}{flag_str}")
        click.echo(
            f"    {config.platform_commission_percentage}% + {format_amount(config.platform_commission_fixed, base)}, "
            f"minimum {format_amount(config.minimum_commission, base)}"
        )
        for rate in config.user_type_rates:
            click.echo(
                f"    {rate.user_type}: {rate.percentage}% + {format_amount(rate.fixed, base)}, "
                f"minimum {format_amount(rate.minimum_commission, base)}"
            )


@revenue_config_group.command("create")
@click.argument("name")
@click.option("--percentage", required=True, help="Platform commission percentage (e.g., 2.5)")
@click.option("--fixed", default="0", show_default=True, help="Fixed commission per payment")
@click.option("--minimum", default="0", show_default=True, help="Minimum commission per payment")
@click.option(
    "--user-type-rate",
    multiple=True,
    help="Override as type:percentage[:fixed[:minimum]] (repeatable)",
)
@click.option("--description", help="Configuration description")
@click.option("--default", "is_default", is_flag=True, help="Make this the default configuration")
@click.pass_context
def create_config(
    ctx,
    name: str,
    percentage: str,
    fixed: str,
    minimum: str,
    user_type_rate: tuple[str, ...],
    description: str | None,
    is_default: bool,
):
    """Create a configuration, or a new version of an existing name.

    Examples:
        settleit revenue-config create standard --percentage 3 --default
        settleit revenue-config create standard --percentage 2.5 --user-type-rate business:2:0:50.00
    """
    engine = ctx.obj["engine"]
    try:
        config_id = engine.revenue.create_config(
            name=name,
            platform_commission_percentage=parse_percentage_or_exit(ctx, percentage),
            platform_commission_fixed=parse_amount_or_exit(ctx, fixed, "fixed commission"),
            minimum_commission=parse_amount_or_exit(ctx, minimum, "minimum commission"),
            user_type_rates=parse_user_type_rates(ctx, user_type_rate),
            description=description,
            is_default=is_default,
        )
    except DomainError as e:
        handle_domain_error(ctx, e)

    config = engine.revenue.get_config(config_id)
    click.echo(f"Created revenue share configuration '{config.name}' version {config.version} (ID: {config.id})")


@revenue_config_group.command("set-default")
@click.argument("config_id", type=int)
@click.pass_context
def set_default(ctx, config_id: int):
    """Make a configuration the default."""
    engine = ctx.obj["engine"]
    try:
        engine.revenue.set_default(config_id)
    except DomainError as e:
        handle_domain_error(ctx, e)
    click.echo(f"Configuration {config_id} is now the default")


@revenue_config_group.command("deactivate")
@click.argument("config_id", type=int)
@click.pass_context
def deactivate(ctx, config_id: int):
    """Deactivate a configuration so new payments cannot use it."""
    engine = ctx.obj["engine"]
    try:
        engine.revenue.deactivate(config_id)
    except DomainError as e:
        handle_domain_error(ctx, e)
    click.echo(f"Deactivated configuration {config_id}")


def register_commands(cli):
    """Register revenue share configuration commands with main CLI."""
    cli.add_command(revenue_config_group, name="revenue-config")
