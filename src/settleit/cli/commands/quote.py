"""Quote command."""

import click
from settleit.cli.error_handling import handle_domain_error
from settleit.cli.input_parsing import parse_amount_or_exit
from settleit.domain.entities import Category, InitializePayment, ItemizedCharges, RevenueSplitSnapshot
from settleit.domain.errors import DomainError
from settleit.utils.amount_parser import format_amount

CATEGORY_CHOICE = click.Choice([c.value for c in Category], case_sensitive=False)


def echo_charges(charges: ItemizedCharges, currency: str) -> None:
    """Print itemized taxes and fees."""
    for title, lines in (("Taxes", charges.taxes), ("Fees", charges.fees)):
        if not lines:
            continue
        click.echo(f"{title}:")
        for line in lines:
            click.echo(f"  {line.name:<40} {str(line.rate):>8} {format_amount(line.amount, currency):>20}")


def echo_split(split: RevenueSplitSnapshot, currency: str) -> None:
    """Print the platform and seller shares of a revenue split."""
    click.echo("Revenue split:")
    for item in (split.platform_commission, split.seller_payout, *split.additional_fees):
        recipient = f" ({item.recipient_id})" if item.recipient_id else ""
        label = f"{item.name}{recipient}"
        click.echo(f"  {label:<40} {str(item.percentage) + '%':>8} {format_amount(item.amount, currency):>20}")
    if split.config_id is not None:
        click.echo(f"  Configuration: {split.config_id} (version {split.config_version})")


@click.command("quote")
@click.option("--amount", required=True, help="Payment amount (e.g., 1000.00)")
@click.option("--currency", help="Currency code (default: base currency)")
@click.option("--method", "payment_method", required=True, help="Payment method (e.g., card)")
@click.option("--category", required=True, type=CATEGORY_CHOICE, help="Transaction category")
@click.option("--payee", help="Seller receiving the payment")
@click.option("--user-type", help="Seller user type for commission overrides")
@click.option("--revenue-config", type=int, help="Revenue share configuration ID (default: the default one)")
@click.pass_context
def quote(
    ctx,
    amount: str,
    currency: str | None,
    payment_method: str,
    category: str,
    payee: str | None,
    user_type: str | None,
    revenue_config: int | None,
):
    """Price a payment without recording anything.

    Examples:
        settleit quote --amount 1000.00 --method card --category services
        settleit quote --amount 50 --currency USD --method card --category products --payee seller-1
    """
    engine = ctx.obj["engine"]
    minor = parse_amount_or_exit(ctx, amount)

    request = InitializePayment(
        amount=minor,
        currency=currency or engine.config.base_currency,
        payment_method=payment_method,
        payer_id="",
        category=Category(category.lower()),
        payee_id=payee,
        seller_user_type=user_type,
        revenue_config_id=revenue_config,
    )
    try:
        result = engine.transactions.quote(request)
    except DomainError as e:
        handle_domain_error(ctx, e)

    code = result.currency
    click.echo(f"\nQuote for {format_amount(result.amount, code)} via {payment_method} ({result.provider})")
    click.echo("-" * 72)
    echo_charges(result.charges, code)
    echo_split(result.split, code)
    click.echo("-" * 72)
    click.echo(f"{'Payer total':<50} {format_amount(result.payer_total, code):>20}")
    if code != engine.config.base_currency:
        click.echo(
            f"{'Amount in ' + engine.config.base_currency:<50} "
            f"{format_amount(result.amount_in_base_currency, engine.config.base_currency):>20}"
        )


def register_commands(cli):
    """Register quote command with main CLI."""
    cli.add_command(quote)
