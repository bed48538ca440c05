"""Payout commands."""

import click
from settleit.cli.error_handling import handle_domain_error
from settleit.cli.input_parsing import parse_amount_or_exit, parse_key_values_or_exit
from settleit.domain.calendar import next_payout_date
from settleit.domain.entities import CreatePayout, Payout, PayoutAccount, PayoutStatus
from settleit.domain.errors import DomainError
from settleit.utils.amount_parser import format_amount


def echo_payout(payout: Payout) -> None:
    """Print a one-line summary of a payout."""
    line = (
        f"Payout {payout.id} ({payout.reference_number}) of {format_amount(payout.total_amount, payout.currency)} "
        f"to {payout.seller_id}: {payout.status.value}"
    )
    if payout.failure_reason:
        line += f" ({payout.failure_reason})"
    click.echo(line)


@click.group()
def payout_group():
    """Pay seller balances out."""
    pass


@payout_group.command("account")
@click.argument("seller_id")
@click.option("--currency", help="Currency code (default: base currency)")
@click.option("--method", help="Payout method (e.g., bank_transfer); omit to show the current account")
@click.option("--detail", multiple=True, help="Account detail as key=value (repeatable)")
@click.pass_context
def payout_account(ctx, seller_id: str, currency: str | None, method: str | None, detail: tuple[str, ...]):
    """Show or set a seller's payout account.

    Examples:
        settleit payout account seller-1 --method bank_transfer --detail bank=058 --detail account=0123456789
    """
    engine = ctx.obj["engine"]
    currency = (currency or engine.config.base_currency).upper()

    if method is None:
        account = engine.payouts.get_account(seller_id, currency)
        if account is None:
            click.echo(f"No payout account for {seller_id} in {currency}.")
            return
        click.echo(f"{account.seller_id} ({account.currency}): {account.method}")
        for key, value in sorted(account.details.items()):
            click.echo(f"  {key}: {value}")
        return

    account = PayoutAccount(
        seller_id=seller_id,
        currency=currency,
        method=method,
        details=parse_key_values_or_exit(ctx, detail, "--detail"),
    )
    try:
        engine.payouts.save_account(account)
    except DomainError as e:
        handle_domain_error(ctx, e)
    click.echo(f"Saved {method} payout account for {seller_id} ({currency})")


@payout_group.command("create")
@click.argument("seller_id")
@click.option("--currency", help="Currency code (default: base currency)")
@click.option("--amount", help="Amount to pay out (default: the full available balance)")
@click.option("--notes", help="Payout notes")
@click.pass_context
def create_payout(ctx, seller_id: str, currency: str | None, amount: str | None, notes: str | None):
    """Pay out a seller balance to the seller's payout account."""
    engine = ctx.obj["engine"]
    currency = (currency or engine.config.base_currency).upper()
    minor = parse_amount_or_exit(ctx, amount)

    account = engine.payouts.get_account(seller_id, currency)
    if account is None:
        click.echo(
            f"Error: No payout account for {seller_id} in {currency}. Set one with 'payout account'.", err=True
        )
        ctx.exit(1)

    try:
        payout = engine.payouts.create_payout(
            CreatePayout(seller_id=seller_id, currency=currency, account=account, amount=minor, notes=notes)
        )
    except DomainError as e:
        handle_domain_error(ctx, e)

    echo_payout(payout)
    click.echo(f"  Fees: {format_amount(payout.fees, payout.currency)}, net: {format_amount(payout.net_amount, payout.currency)}")
    if payout.status == PayoutStatus.FAILED:
        ctx.exit(1)


@payout_group.command("verify")
@click.argument("payout_id", type=int)
@click.pass_context
def verify_payout(ctx, payout_id: int):
    """Resolve a processing payout with the payout rail."""
    engine = ctx.obj["engine"]
    try:
        payout = engine.payouts.verify_payout(payout_id)
    except DomainError as e:
        handle_domain_error(ctx, e)
    echo_payout(payout)


@payout_group.command("cancel")
@click.argument("payout_id", type=int)
@click.option("--reason", help="Cancellation reason")
@click.pass_context
def cancel_payout(ctx, payout_id: int, reason: str | None):
    """Cancel a pending payout and return its amount to the seller balance."""
    engine = ctx.obj["engine"]
    try:
        payout = engine.payouts.cancel_payout(payout_id, reason)
    except DomainError as e:
        handle_domain_error(ctx, e)
    echo_payout(payout)


@payout_group.command("show")
@click.argument("payout_id", type=int)
@click.pass_context
def show_payout(ctx, payout_id: int):
    """Show a payout with the settlement credits it pays out."""
    engine = ctx.obj["engine"]
    try:
        payout = engine.payouts.get_payout(payout_id)
    except DomainError as e:
        handle_domain_error(ctx, e)

    code = payout.currency
    echo_payout(payout)
    click.echo(f"  Batch: {payout.batch_id}")
    click.echo(f"  Method: {payout.method}")
    click.echo(f"  Fees: {format_amount(payout.fees, code)}, net: {format_amount(payout.net_amount, code)}")
    click.echo(f"  Retries: {payout.retry_count}/{payout.max_retries}")
    if payout.scheduled_for:
        click.echo(f"  Scheduled for: {payout.scheduled_for}")
    if payout.settled_at:
        click.echo(f"  Settled: {payout.settled_at}")
    if payout.items:
        click.echo("Items:")
        for item in payout.items:
            source = f"transaction {item.transaction_id}" if item.transaction_id else "balance"
            click.echo(
                f"  {source:<24} {format_amount(item.amount, code):>18} "
                f"fee {format_amount(item.fee, code):>14} net {format_amount(item.net_amount, code):>18}"
            )


@payout_group.command("list")
@click.option("--seller", help="Filter by seller")
@click.option("--status", type=click.Choice([s.value for s in PayoutStatus]), help="Filter by status")
@click.pass_context
def list_payouts(ctx, seller: str | None, status: str | None):
    """List payouts."""
    engine = ctx.obj["engine"]
    payouts = engine.payouts.list_payouts(seller, PayoutStatus(status) if status else None)
    if not payouts:
        click.echo("No payouts found.")
        return

    click.echo(f"\nFound {len(payouts)} payout(s):")
    click.echo("-" * 100)
    click.echo(f"{'ID':<6} {'Reference':<26} {'Seller':<16} {'Status':<11} {'Amount':>18} {'Net':>18}")
    click.echo("-" * 100)
    for payout in payouts:
        click.echo(
            f"{payout.id:<6} {payout.reference_number:<26} {payout.seller_id[:16]:<16} {payout.status.value:<11} "
            f"{format_amount(payout.total_amount, payout.currency):>18} {format_amount(payout.net_amount, payout.currency):>18}"
        )


@payout_group.command("schedule")
@click.pass_context
def schedule_payouts(ctx):
    """Schedule automatic payouts for today, if today is a payout day."""
    engine = ctx.obj["engine"]
    policy = engine.config.payout_policy
    if not policy.auto_payout_enabled:
        click.echo("Automatic payouts are disabled.")
        return

    scheduled = engine.payouts.schedule_automatic_payouts()
    if not scheduled:
        today = engine.payouts.clock().date()
        next_day = next_payout_date(today, policy.payout_frequency, policy.payout_day)
        if next_day != today:
            click.echo(f"No payouts scheduled. Next payout day: {next_day.isoformat()}")
        else:
            click.echo("No payouts scheduled.")
        return
    for payout in scheduled:
        echo_payout(payout)
    click.echo(f"Scheduled {len(scheduled)} payout(s) in batch {scheduled[0].batch_id}")


@payout_group.command("run")
@click.pass_context
def run_payouts(ctx):
    """Send scheduled payouts that are due."""
    engine = ctx.obj["engine"]
    processed = engine.payouts.process_due_payouts()
    if not processed:
        click.echo("No payouts due.")
        return
    for payout in processed:
        echo_payout(payout)
    click.echo(f"Processed {len(processed)} payout(s)")


def register_commands(cli):
    """Register payout commands with main CLI."""
    cli.add_command(payout_group, name="payout")
