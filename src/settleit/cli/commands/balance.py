"""Seller balance commands."""

import click
from settleit.cli.error_handling import handle_domain_error
from settleit.domain.errors import DomainError
from settleit.utils.amount_parser import format_amount


@click.command("balance")
@click.argument("seller_id")
@click.option("--currency", help="Only this currency")
@click.option("--ledger", is_flag=True, help="Show the ledger entries behind the balance")
@click.pass_context
def balance(ctx, seller_id: str, currency: str | None, ledger: bool):
    """Show a seller's available and pending balances."""
    engine = ctx.obj["engine"]
    try:
        if currency:
            balances = [engine.payouts.get_seller_balance(seller_id, currency)]
        else:
            balances = engine.payouts.list_balances(seller_id)
    except DomainError as e:
        handle_domain_error(ctx, e)

    if not balances:
        click.echo(f"No balances for {seller_id}.")
        return

    click.echo(f"\nBalances for {seller_id}:")
    click.echo("-" * 62)
    click.echo(f"{'Currency':<10} {'Available':>25} {'Pending':>25}")
    click.echo("-" * 62)
    for row in balances:
        click.echo(
            f"{row.currency:<10} {format_amount(row.available_balance, row.currency):>25} "
            f"{format_amount(row.pending_balance, row.currency):>25}"
        )

    if not ledger:
        return

    entries = engine.payouts.list_ledger(seller_id, currency.upper() if currency else None)
    click.echo("\nLedger:")
    click.echo("-" * 100)
    click.echo(f"{'ID':<6} {'Date':<20} {'Type':<22} {'Amount':>20} {'Remaining':>20}")
    click.echo("-" * 100)
    for entry in entries:
        click.echo(
            f"{entry.id:<6} {entry.created_at.strftime('%Y-%m-%d %H:%M:%S'):<20} {entry.entry_type.value:<22} "
            f"{format_amount(entry.amount, entry.currency):>20} {format_amount(entry.remaining, entry.currency):>20}"
        )


def register_commands(cli):
    """Register balance command with main CLI."""
    cli.add_command(balance)
