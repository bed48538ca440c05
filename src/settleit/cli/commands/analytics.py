"""Analytics command."""

from datetime import date

import click
from settleit.cli.date_filters import period_options, resolve_cli_date_range, to_datetime_range
from settleit.cli.error_handling import handle_domain_error
from settleit.domain.errors import DomainError
from settleit.utils.amount_parser import format_amount
from settleit.utils.date_parser import get_date_range


@click.command("analytics")
@period_options
@click.option("--seller", help="Only payments to this seller")
@click.option("--currency", help="Only payments in this currency (default: all, in base currency)")
@click.pass_context
def analytics(ctx, start_date: str | None, end_date: str | None, seller: str | None, currency: str | None, **period_flags: bool):
    """Show payment analytics for a period (default: this month)."""
    engine = ctx.obj["engine"]
    start, end = resolve_cli_date_range(
        ctx,
        start_date=start_date,
        end_date=end_date,
        period_flags=period_flags,
        default_range=get_date_range("this-month"),
    )
    if start is None:
        click.echo("Error: --start-date is required with --end-date.", err=True)
        ctx.exit(1)
    end = end or date.today()
    start_at, end_at = to_datetime_range(start, end)

    try:
        report = engine.analytics.get_analytics(start_at, end_at, seller_id=seller, currency=currency)
    except DomainError as e:
        handle_domain_error(ctx, e)

    code = report.currency or engine.config.base_currency
    scope = f" for {seller}" if seller else ""
    click.echo(f"\nPayment analytics{scope}: {start.isoformat()} to {end.isoformat()} ({code})")
    click.echo("-" * 72)
    rows = [
        ("Transactions", str(report.total_transactions)),
        ("Successful", str(report.successful_transactions)),
        ("Failed", str(report.failed_transactions)),
        ("Success rate", f"{report.success_rate}%"),
        ("Total revenue", format_amount(report.total_revenue, code)),
        ("Platform revenue", format_amount(report.platform_revenue, code)),
        ("Seller revenue", format_amount(report.seller_revenue, code)),
        ("Average transaction", format_amount(report.average_transaction_value, code)),
        ("Refunds", format_amount(report.total_refunds, code)),
        ("Refund rate", f"{report.refund_rate}%"),
    ]
    for label, value in rows:
        click.echo(f"{label:<50} {value:>20}")

    if report.payment_method_breakdown:
        click.echo("\nBy payment method:")
        click.echo("-" * 100)
        click.echo(f"{'Method':<20} {'Count':>8} {'Success':>9} {'Revenue':>22} {'Average':>18} {'Fees':>18}")
        click.echo("-" * 100)
        for method, metrics in report.payment_method_breakdown.items():
            click.echo(
                f"{method:<20} {metrics.transactions:>8} {str(metrics.success_rate) + '%':>9} "
                f"{format_amount(metrics.revenue, code):>22} {format_amount(metrics.average_value, code):>18} "
                f"{format_amount(metrics.fees, code):>18}"
            )

    if not seller:
        totals = engine.analytics.platform_revenue_total(start_at, end_at, currency.upper() if currency else None)
        if totals:
            click.echo("\nPlatform revenue ledger (net of reversals):")
            for code, total in sorted(totals.items()):
                click.echo(f"  {code:<10} {format_amount(total, code):>20}")


def register_commands(cli):
    """Register analytics command with main CLI."""
    cli.add_command(analytics)
