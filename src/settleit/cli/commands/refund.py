"""Refund commands."""

import click
from settleit.cli.error_handling import handle_domain_error
from settleit.cli.input_parsing import parse_amount_or_exit
from settleit.domain.entities import Refund, RefundStatus, RequestRefund
from settleit.domain.errors import DomainError
from settleit.utils.amount_parser import format_amount


def echo_refund(refund: Refund) -> None:
    """Print a one-line summary of a refund."""
    line = (
        f"Refund {refund.id} ({refund.reference_number}) of {format_amount(refund.amount, refund.currency)} "
        f"for {refund.transaction_reference}: {refund.status.value}"
    )
    if refund.failure_reason:
        line += f" ({refund.failure_reason})"
    click.echo(line)


@click.group()
def refund_group():
    """Refund completed payments."""
    pass


@refund_group.command("request")
@click.argument("reference")
@click.option("--reason", required=True, help="Why the payment is refunded")
@click.option("--amount", help="Amount to refund (default: everything still refundable)")
@click.option("--method", default="original_payment", show_default=True, help="Refund method")
@click.pass_context
def request_refund(ctx, reference: str, reason: str, amount: str | None, method: str):
    """Refund all or part of a completed payment.

    Examples:
        settleit refund request PAY1700000000000ABC123 --reason "Item not delivered"
        settleit refund request PAY1700000000000ABC123 --amount 250.00 --reason "Partial return"
    """
    engine = ctx.obj["engine"]
    request = RequestRefund(
        transaction_reference=reference,
        reason=reason,
        amount=parse_amount_or_exit(ctx, amount),
        method=method,
    )
    try:
        refund = engine.refunds.request_refund(request)
    except DomainError as e:
        handle_domain_error(ctx, e)

    echo_refund(refund)
    if refund.status == RefundStatus.COMPLETED:
        click.echo(
            f"  Seller reversal: {format_amount(refund.seller_reversal, refund.currency)}, "
            f"commission reversal: {format_amount(refund.commission_reversal, refund.currency)}"
        )
    if refund.status == RefundStatus.FAILED:
        ctx.exit(1)


@refund_group.command("verify")
@click.argument("refund_id", type=int)
@click.pass_context
def verify_refund(ctx, refund_id: int):
    """Resolve a refund whose provider outcome was unknown."""
    engine = ctx.obj["engine"]
    try:
        refund = engine.refunds.verify_refund(refund_id)
    except DomainError as e:
        handle_domain_error(ctx, e)
    echo_refund(refund)


@refund_group.command("list")
@click.option("--transaction", "reference", help="Only refunds of this payment reference")
@click.option("--status", type=click.Choice([s.value for s in RefundStatus]), help="Filter by status")
@click.pass_context
def list_refunds(ctx, reference: str | None, status: str | None):
    """List refunds."""
    engine = ctx.obj["engine"]
    try:
        refunds = engine.refunds.list_refunds(reference, RefundStatus(status) if status else None)
    except DomainError as e:
        handle_domain_error(ctx, e)

    if not refunds:
        click.echo("No refunds found.")
        return

    click.echo(f"\nFound {len(refunds)} refund(s):")
    click.echo("-" * 100)
    click.echo(f"{'ID':<6} {'Reference':<26} {'Payment':<28} {'Status':<11} {'Amount':>18}")
    click.echo("-" * 100)
    for refund in refunds:
        click.echo(
            f"{refund.id:<6} {refund.reference_number:<26} {refund.transaction_reference:<28} "
            f"{refund.status.value:<11} {format_amount(refund.amount, refund.currency):>18}"
        )


def register_commands(cli):
    """Register refund commands with main CLI."""
    cli.add_command(refund_group, name="refund")
