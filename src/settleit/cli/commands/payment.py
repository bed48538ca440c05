"""Payment lifecycle commands."""

import click
from settleit.cli.commands.quote import CATEGORY_CHOICE, echo_charges, echo_split
from settleit.cli.date_filters import period_options, resolve_cli_date_range, to_datetime_range
from settleit.cli.error_handling import handle_domain_error
from settleit.cli.input_parsing import parse_amount_or_exit, parse_key_values_or_exit
from settleit.domain.entities import Category, InitializePayment, Transaction, TransactionStatus, TransactionType
from settleit.domain.errors import DomainError
from settleit.domain.transaction import PROVIDER_EVENTS
from settleit.utils.amount_parser import format_amount


def echo_status(transaction: Transaction) -> None:
    """Print a one-line status for a transaction."""
    line = f"{transaction.reference}: {transaction.status.value}"
    if transaction.failure_reason:
        line += f" ({transaction.failure_reason})"
    click.echo(line)


@click.group()
def payment_group():
    """Initialize, verify and inspect payments."""
    pass


@payment_group.command("init")
@click.option("--amount", required=True, help="Payment amount (e.g., 1000.00)")
@click.option("--currency", help="Currency code (default: base currency)")
@click.option("--method", "payment_method", required=True, help="Payment method (e.g., card)")
@click.option("--category", required=True, type=CATEGORY_CHOICE, help="Transaction category")
@click.option("--payer", required=True, help="Buyer making the payment")
@click.option("--payee", help="Seller receiving the payment")
@click.option("--user-type", help="Seller user type for commission overrides")
@click.option("--order-id", help="Marketplace order ID")
@click.option("--description", help="Payment description")
@click.option("--metadata", multiple=True, help="Extra metadata as key=value (repeatable)")
@click.option("--revenue-config", type=int, help="Revenue share configuration ID (default: the default one)")
@click.pass_context
def init_payment(
    ctx,
    amount: str,
    currency: str | None,
    payment_method: str,
    category: str,
    payer: str,
    payee: str | None,
    user_type: str | None,
    order_id: str | None,
    description: str | None,
    metadata: tuple[str, ...],
    revenue_config: int | None,
):
    """Create a payment and register it with the payment provider.

    Examples:
        settleit payment init --amount 1000.00 --method card --category services --payer buyer-1 --payee seller-1
    """
    engine = ctx.obj["engine"]
    request = InitializePayment(
        amount=parse_amount_or_exit(ctx, amount),
        currency=currency or engine.config.base_currency,
        payment_method=payment_method,
        payer_id=payer,
        category=Category(category.lower()),
        payee_id=payee,
        seller_user_type=user_type,
        order_id=order_id,
        description=description,
        metadata=parse_key_values_or_exit(ctx, metadata, "--metadata"),
        revenue_config_id=revenue_config,
    )
    try:
        transaction = engine.transactions.initialize(request)
    except DomainError as e:
        handle_domain_error(ctx, e)

    click.echo(
        f"Initialized payment {transaction.reference} for "
        f"{format_amount(transaction.total_amount, transaction.currency)} ({transaction.status.value})"
    )
    if transaction.metadata.get("authorization_url"):
        click.echo(f"Authorization URL: {transaction.metadata['authorization_url']}")
    if transaction.status == TransactionStatus.FAILED:
        click.echo(f"Error: {transaction.failure_reason}", err=True)
        ctx.exit(1)


@payment_group.command("verify")
@click.argument("reference")
@click.pass_context
def verify_payment(ctx, reference: str):
    """Reconcile a payment with the payment provider."""
    engine = ctx.obj["engine"]
    try:
        transaction = engine.transactions.verify(reference)
    except DomainError as e:
        handle_domain_error(ctx, e)
    echo_status(transaction)


@payment_group.command("event")
@click.argument("reference")
@click.argument("event", type=click.Choice(sorted(PROVIDER_EVENTS)))
@click.option("--gateway-response", help="Provider message, used as the failure reason")
@click.pass_context
def payment_event(ctx, reference: str, event: str, gateway_response: str | None):
    """Apply a provider callback to a payment.

    REFERENCE may be the payment reference or the provider's reference.
    """
    engine = ctx.obj["engine"]
    data = {"gateway_response": gateway_response} if gateway_response else {}
    try:
        transaction = engine.transactions.handle_provider_event(reference, event, data)
    except DomainError as e:
        handle_domain_error(ctx, e)
    echo_status(transaction)


@payment_group.command("cancel")
@click.argument("reference")
@click.option("--reason", help="Cancellation reason")
@click.pass_context
def cancel_payment(ctx, reference: str, reason: str | None):
    """Cancel a pending payment."""
    engine = ctx.obj["engine"]
    try:
        transaction = engine.transactions.cancel(reference, reason)
    except DomainError as e:
        handle_domain_error(ctx, e)
    echo_status(transaction)


@payment_group.command("note")
@click.argument("reference")
@click.argument("text")
@click.pass_context
def add_note(ctx, reference: str, text: str):
    """Append a note to a transaction."""
    engine = ctx.obj["engine"]
    try:
        engine.transactions.add_note(reference, text)
    except DomainError as e:
        handle_domain_error(ctx, e)
    click.echo(f"Added note to {reference}")


@payment_group.command("expire")
@click.pass_context
def expire_payments(ctx):
    """Expire payments left unresolved past their expiry time."""
    engine = ctx.obj["engine"]
    expired = engine.transactions.expire_stale()
    if not expired:
        click.echo("No payments expired.")
        return
    for transaction in expired:
        echo_status(transaction)
    click.echo(f"Expired {len(expired)} payment(s)")


@payment_group.command("show")
@click.argument("reference")
@click.pass_context
def show_payment(ctx, reference: str):
    """Show a transaction with its charges, split and notes."""
    engine = ctx.obj["engine"]
    try:
        txn = engine.transactions.get_transaction(reference)
    except DomainError as e:
        handle_domain_error(ctx, e)

    code = txn.currency
    click.echo(f"\nTransaction {txn.reference}")
    click.echo("=" * 72)
    click.echo(f"  Type: {txn.type.value}")
    click.echo(f"  Status: {txn.status.value}")
    click.echo(f"  Amount: {format_amount(txn.amount, code)}")
    click.echo(f"  Total charged: {format_amount(txn.total_amount, code)}")
    if txn.payment_method:
        click.echo(f"  Method: {txn.payment_method} ({txn.provider})")
    if txn.category:
        click.echo(f"  Category: {txn.category.value}")
    if txn.payer_id:
        click.echo(f"  Payer: {txn.payer_id}")
    if txn.payee_id:
        click.echo(f"  Payee: {txn.payee_id}")
    if txn.order_id:
        click.echo(f"  Order: {txn.order_id}")
    if txn.parent_reference:
        click.echo(f"  Parent: {txn.parent_reference}")
    if txn.external_reference:
        click.echo(f"  Provider reference: {txn.external_reference}")
    if txn.failure_reason:
        click.echo(f"  Failure reason: {txn.failure_reason}")
    click.echo(f"  Initiated: {txn.initiated_at}")
    if txn.completed_at:
        click.echo(f"  Completed: {txn.completed_at}")
    click.echo("-" * 72)
    echo_charges(txn.charges, code)
    if txn.revenue_split is not None:
        echo_split(txn.revenue_split, code)
    if txn.notes:
        click.echo("Notes:")
        for note in txn.notes:
            click.echo(f"  {note}")


@payment_group.command("list")
@period_options
@click.option(
    "--type",
    "transaction_type",
    type=click.Choice([t.value for t in TransactionType]),
    default=TransactionType.PAYMENT.value,
    show_default=True,
    help="Transaction type",
)
@click.option("--status", type=click.Choice([s.value for s in TransactionStatus]), help="Filter by status")
@click.option("--payer", help="Filter by payer")
@click.option("--payee", help="Filter by payee")
@click.option("--limit", type=int, help="Show at most this many transactions")
@click.pass_context
def list_payments(
    ctx,
    start_date: str | None,
    end_date: str | None,
    transaction_type: str,
    status: str | None,
    payer: str | None,
    payee: str | None,
    limit: int | None,
    **period_flags: bool,
):
    """List transactions, newest first."""
    engine = ctx.obj["engine"]
    start, end = resolve_cli_date_range(
        ctx, start_date=start_date, end_date=end_date, period_flags=period_flags
    )
    start_at, end_at = to_datetime_range(start, end)

    transactions = engine.transactions.list_transactions(
        transaction_type=TransactionType(transaction_type),
        status=TransactionStatus(status) if status else None,
        payer_id=payer,
        payee_id=payee,
        start_date=start_at,
        end_date=end_at,
        limit=limit,
    )
    if not transactions:
        click.echo("No transactions found.")
        return

    click.echo(f"\nFound {len(transactions)} transaction(s):")
    click.echo("-" * 110)
    click.echo(f"{'Reference':<28} {'Date':<20} {'Status':<11} {'Amount':>18} {'Payer':<15} {'Payee':<15}")
    click.echo("-" * 110)
    for txn in transactions:
        click.echo(
            f"{txn.reference:<28} {txn.initiated_at.strftime('%Y-%m-%d %H:%M:%S'):<20} {txn.status.value:<11} "
            f"{format_amount(txn.amount, txn.currency):>18} {(txn.payer_id or '')[:15]:<15} {(txn.payee_id or '')[:15]:<15}"
        )


def register_commands(cli):
    """Register payment commands with main CLI."""
    cli.add_command(payment_group, name="payment")
