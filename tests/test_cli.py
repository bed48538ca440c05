"""Tests for CLI commands."""

from settleit.cli.main import cli


def run(cli_runner, temp_db, config_file, *args):
    return cli_runner.invoke(cli, ["--db-path", temp_db.database_path, "--config", config_file, *args])


def init_payment(cli_runner, temp_db, config_file, *extra):
    """Initialize a 1,000.00 services payment by card and return its reference."""
    result = run(
        cli_runner,
        temp_db,
        config_file,
        "payment",
        "init",
        "--amount",
        "1000",
        "--method",
        "card",
        "--category",
        "services",
        "--payer",
        "buyer-1",
        "--payee",
        "seller-1",
        *extra,
    )
    assert result.exit_code == 0, result.output
    # "Initialized payment PAY... for 1,141.00 NGN (processing)"
    return result.output.split()[2]


def test_help_does_not_need_database(cli_runner):
    result = cli_runner.invoke(cli, ["--help"])
    assert result.exit_code == 0
    assert "settlement engine" in result.output


def test_bad_config_path(cli_runner, temp_db, tmp_path):
    result = run(cli_runner, temp_db, str(tmp_path / "missing.yaml"), "payment", "list")
    assert result.exit_code == 1
    assert "Could not load configuration" in result.output


def test_quote(cli_runner, temp_db, config_file):
    result = run(
        cli_runner, temp_db, config_file, "quote", "--amount", "1000", "--method", "card", "--category", "services",
        "--payee", "seller-1",
    )

    assert result.exit_code == 0, result.output
    assert "Quote for 1,000.00 NGN via card (paystack)" in result.output
    assert "Value Added Tax (VAT)" in result.output
    assert "Seller Payout (seller-1)" in result.output
    assert "975.00 NGN" in result.output
    assert "1,141.00 NGN" in result.output


def test_quote_foreign_currency(cli_runner, temp_db, config_file):
    result = run(
        cli_runner, temp_db, config_file, "quote", "--amount", "50", "--currency", "USD", "--method", "card",
        "--category", "products",
    )

    assert result.exit_code == 0, result.output
    assert "Amount in NGN" in result.output
    assert "80,000.00 NGN" in result.output


def test_quote_errors(cli_runner, temp_db, config_file):
    result = run(
        cli_runner, temp_db, config_file, "quote", "--amount", "1000", "--method", "crypto", "--category", "services"
    )
    assert result.exit_code == 1
    assert "Error:" in result.output

    result = run(
        cli_runner, temp_db, config_file, "quote", "--amount", "lots", "--method", "card", "--category", "services"
    )
    assert result.exit_code == 1
    assert "Invalid amount" in result.output


def test_payment_lifecycle(cli_runner, temp_db, config_file):
    reference = init_payment(cli_runner, temp_db, config_file, "--order-id", "order-9", "--metadata", "cart=42")

    result = run(cli_runner, temp_db, config_file, "payment", "verify", reference)
    assert result.exit_code == 0
    assert f"{reference}: completed" in result.output

    result = run(cli_runner, temp_db, config_file, "payment", "note", reference, "Delivered")
    assert f"Added note to {reference}" in result.output

    result = run(cli_runner, temp_db, config_file, "payment", "show", reference)
    assert result.exit_code == 0
    assert "Status: completed" in result.output
    assert "Order: order-9" in result.output
    assert "Revenue split:" in result.output
    assert "Delivered" in result.output

    result = run(cli_runner, temp_db, config_file, "payment", "list", "--status", "completed")
    assert "Found 1 transaction(s):" in result.output
    assert reference in result.output


def test_payment_event(cli_runner, temp_db, config_file):
    reference = init_payment(cli_runner, temp_db, config_file)

    result = run(
        cli_runner, temp_db, config_file, "payment", "event", reference, "charge.failed",
        "--gateway-response", "Insufficient funds",
    )

    assert result.exit_code == 0
    assert f"{reference}: failed (Insufficient funds)" in result.output


def test_cancel_requires_pending(cli_runner, temp_db, config_file):
    reference = init_payment(cli_runner, temp_db, config_file)

    result = run(cli_runner, temp_db, config_file, "payment", "cancel", reference)

    assert result.exit_code == 1
    assert "Cannot cancel" in result.output


def test_empty_listings(cli_runner, temp_db, config_file):
    assert "No transactions found." in run(cli_runner, temp_db, config_file, "payment", "list").output
    assert "No payments expired." in run(cli_runner, temp_db, config_file, "payment", "expire").output
    assert "No refunds found." in run(cli_runner, temp_db, config_file, "refund", "list").output
    assert "No payouts found." in run(cli_runner, temp_db, config_file, "payout", "list").output
    assert "No payouts due." in run(cli_runner, temp_db, config_file, "payout", "run").output
    assert "No balances for seller-1." in run(cli_runner, temp_db, config_file, "balance", "seller-1").output


def test_payment_list_period_conflict(cli_runner, temp_db, config_file):
    result = run(
        cli_runner, temp_db, config_file, "payment", "list", "--this-month", "--start-date", "2024-01-01"
    )
    assert result.exit_code == 1


def test_refund_and_balance(cli_runner, temp_db, config_file):
    reference = init_payment(cli_runner, temp_db, config_file)
    run(cli_runner, temp_db, config_file, "payment", "verify", reference)

    result = run(
        cli_runner, temp_db, config_file, "refund", "request", reference, "--amount", "400", "--reason", "Damaged"
    )
    assert result.exit_code == 0, result.output
    assert f"of 400.00 NGN for {reference}: completed" in result.output
    assert "Seller reversal: 390.00 NGN, commission reversal: 10.00 NGN" in result.output

    result = run(cli_runner, temp_db, config_file, "balance", "seller-1", "--ledger")
    assert "Balances for seller-1:" in result.output
    assert "585.00 NGN" in result.output
    assert "refund_reversal" in result.output

    result = run(
        cli_runner, temp_db, config_file, "refund", "request", reference, "--amount", "700", "--reason", "Again"
    )
    assert result.exit_code == 1
    assert "exceeds refundable amount" in result.output


def test_payout_commands(cli_runner, temp_db, config_file):
    reference = init_payment(cli_runner, temp_db, config_file)
    run(cli_runner, temp_db, config_file, "payment", "verify", reference)

    result = run(cli_runner, temp_db, config_file, "payout", "create", "seller-1")
    assert result.exit_code == 1
    assert "No payout account for seller-1 in NGN" in result.output

    result = run(
        cli_runner, temp_db, config_file, "payout", "account", "seller-1", "--method", "bank_transfer",
        "--detail", "bank_code=058", "--detail", "account_number=0123456789",
    )
    assert "Saved bank_transfer payout account for seller-1 (NGN)" in result.output

    result = run(cli_runner, temp_db, config_file, "payout", "account", "seller-1")
    assert "seller-1 (NGN): bank_transfer" in result.output
    assert "account_number: 0123456789" in result.output

    result = run(cli_runner, temp_db, config_file, "payout", "create", "seller-1")
    assert result.exit_code == 0, result.output
    assert "of 975.00 NGN to seller-1: completed" in result.output
    assert "Fees: 10.00 NGN, net: 965.00 NGN" in result.output

    result = run(cli_runner, temp_db, config_file, "payout", "show", "1")
    assert "Retries: 0/2" in result.output
    assert "Items:" in result.output

    result = run(cli_runner, temp_db, config_file, "payout", "create", "seller-1", "--amount", "1")
    assert result.exit_code == 1
    assert "Insufficient balance" in result.output


def test_payout_schedule_waits_for_holding_period(cli_runner, temp_db, config_file):
    reference = init_payment(cli_runner, temp_db, config_file)
    run(cli_runner, temp_db, config_file, "payment", "verify", reference)
    run(cli_runner, temp_db, config_file, "payout", "account", "seller-1", "--method", "bank_transfer")

    result = run(cli_runner, temp_db, config_file, "payout", "schedule")

    assert result.exit_code == 0
    assert "No payouts scheduled." in result.output


def test_revenue_config_commands(cli_runner, temp_db, config_file):
    result = run(cli_runner, temp_db, config_file, "revenue-config", "list")
    assert "1: standard v1 [default]" in result.output
    assert "business: 2.0% + 0.00 NGN, minimum 50.00 NGN" in result.output

    result = run(
        cli_runner, temp_db, config_file, "revenue-config", "create", "promo", "--percentage", "1.5%",
        "--user-type-rate", "premium:1:0:25", "--default",
    )
    assert result.exit_code == 0, result.output
    assert "Created revenue share configuration 'promo' version 1 (ID: 2)" in result.output

    result = run(cli_runner, temp_db, config_file, "revenue-config", "deactivate", "2")
    assert result.exit_code == 1
    assert "is the default" in result.output

    assert "now the default" in run(cli_runner, temp_db, config_file, "revenue-config", "set-default", "1").output
    assert "Deactivated configuration 2" in run(
        cli_runner, temp_db, config_file, "revenue-config", "deactivate", "2"
    ).output

    result = run(cli_runner, temp_db, config_file, "revenue-config", "list", "--all")
    assert "2: promo v1 [inactive]" in result.output

    result = run(
        cli_runner, temp_db, config_file, "revenue-config", "create", "bad", "--percentage", "1",
        "--user-type-rate", "nocolon",
    )
    assert result.exit_code == 1


def test_analytics(cli_runner, temp_db, config_file):
    reference = init_payment(cli_runner, temp_db, config_file)
    run(cli_runner, temp_db, config_file, "payment", "verify", reference)

    result = run(cli_runner, temp_db, config_file, "analytics")

    assert result.exit_code == 0, result.output
    assert "Payment analytics:" in result.output
    assert "1,000.00 NGN" in result.output
    assert "100.00%" in result.output
    assert "Platform revenue ledger" in result.output
    assert "25.00 NGN" in result.output

    result = run(cli_runner, temp_db, config_file, "analytics", "--end-date", "2024-01-31")
    assert result.exit_code == 1
