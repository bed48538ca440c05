"""Shared pytest fixtures for settleit tests."""

import copy
import os
import tempfile

import pytest
import yaml

from settleit.config import parse_config
from settleit.database.factories import create_sqlite_database
from settleit.domain.entities import Category, CreatePayout, InitializePayment, PayoutAccount
from settleit.domain.notifications import RecordingNotifier
from settleit.engine import SettlementEngine
from settleit.logging_config import reset_logging
from settleit.providers.sandbox import SandboxPaymentProvider, SandboxPayoutProvider

# Amounts are kobo. A 100,000 services payment by card costs the payer
# 114,100: VAT 7,500 + service tax 5,000 + card fee 1,600.
CONFIG_DATA = {
    "base_currency": "NGN",
    "currency_rates": {"NGN": 1, "USD": 1600, "EUR": 1750},
    "tax_rules": [
        {
            "id": "vat",
            "name": "Value Added Tax (VAT)",
            "kind": "percentage",
            "rate": 7.5,
            "priority": 10,
            "applies_to": ["products", "services"],
        },
        {
            "id": "service_tax",
            "name": "Service Tax",
            "kind": "percentage",
            "rate": 5.0,
            "threshold": 50000,
            "priority": 20,
            "applies_to": ["services", "freelance"],
        },
        {
            "id": "stamp_duty",
            "name": "Stamp Duty",
            "kind": "fixed",
            "rate": 5000,
            "threshold": 1000000,
            "priority": 40,
            "applies_to": ["real_estate", "contracts"],
        },
        {
            "id": "delivery_levy",
            "name": "Delivery Levy",
            "kind": "tiered",
            "charge_type": "fee",
            "priority": 10,
            "applies_to": ["delivery"],
            "bands": [
                {"up_to": 500000, "rate": 1.0},
                {"up_to": 2000000, "rate": 0.5},
                {"rate": 0.25},
            ],
        },
    ],
    "payment_methods": [
        {"method": "card", "provider": "paystack", "fee_percentage": 1.6, "fee_fixed": 0, "currencies": ["NGN", "USD"]},
        {
            "method": "bank_transfer",
            "provider": "paystack",
            "fee_percentage": 0.5,
            "fee_fixed": 5000,
            "max_fee": 100000,
            "currencies": ["NGN"],
        },
        {
            "method": "mobile_money",
            "provider": "flutterwave",
            "fee_percentage": 1.0,
            "fee_fixed": 1000,
            "min_fee": 5000,
            "max_fee": 50000,
            "currencies": ["NGN"],
        },
    ],
    "payout_fees": {"bank_transfer": {"fixed": 1000}, "paypal": {"percentage": 2.0}},
    "payout_policy": {
        "auto_payout_enabled": True,
        "payout_frequency": "daily",
        "minimum_amount": 10000,
        "holding_period_days": 7,
        "max_retries": 2,
    },
    "transactions": {"expiry_minutes": 30},
    "providers": {"timeout_seconds": 5, "max_retries": 2, "retry_backoff_seconds": 0.5},
    "revenue_share": {
        "name": "standard",
        "platform_commission_percentage": 2.5,
        "user_type_rates": [{"user_type": "business", "percentage": 2.0, "minimum_commission": 5000}],
    },
}


@pytest.fixture(autouse=True)
def clean_logging():
    """Undo logging configuration done by CLI invocations."""
    yield
    reset_logging()


@pytest.fixture
def temp_db():
    """Create a temporary database for testing."""
    fd, db_path = tempfile.mkstemp(suffix=".db")
    os.close(fd)

    db = create_sqlite_database(database_path=db_path)
    # Store the path for tests that need it
    db.database_path = db_path
    db.connect()
    db.initialize_schema()

    yield db

    # Cleanup
    db.disconnect()
    if os.path.exists(db_path):
        os.unlink(db_path)


@pytest.fixture
def config_data():
    """A private copy of the test configuration dict."""
    return copy.deepcopy(CONFIG_DATA)


@pytest.fixture
def engine_config(config_data):
    return parse_config(config_data)


@pytest.fixture
def config_file(tmp_path, config_data):
    """The test configuration written to a YAML file."""
    path = tmp_path / "settleit.yaml"
    path.write_text(yaml.safe_dump(config_data), encoding="utf-8")
    return str(path)


@pytest.fixture
def payment_provider():
    return SandboxPaymentProvider()


@pytest.fixture
def payout_provider():
    return SandboxPayoutProvider()


@pytest.fixture
def notifier():
    return RecordingNotifier()


@pytest.fixture
def sleeps():
    """Delays requested by retry loops; nothing actually sleeps."""
    return []


@pytest.fixture
def engine(temp_db, engine_config, payment_provider, payout_provider, notifier, sleeps):
    """Create a SettlementEngine over the temporary database with sandbox providers."""
    return SettlementEngine(
        temp_db,
        engine_config,
        payment_provider=payment_provider,
        payout_provider=payout_provider,
        notifier=notifier,
        sleep=sleeps.append,
    )


@pytest.fixture
def transaction_service(engine):
    return engine.transactions


@pytest.fixture
def refund_service(engine):
    return engine.refunds


@pytest.fixture
def payout_service(engine):
    return engine.payouts


@pytest.fixture
def revenue_service(engine):
    return engine.revenue


@pytest.fixture
def analytics_service(engine):
    return engine.analytics


def build_payment_request(amount=100000, payee_id="seller-1", **overrides):
    """Build an InitializePayment with test defaults."""
    fields = {
        "amount": amount,
        "currency": "NGN",
        "payment_method": "card",
        "payer_id": "buyer-1",
        "category": Category.SERVICES,
        "payee_id": payee_id,
    }
    fields.update(overrides)
    return InitializePayment(**fields)


@pytest.fixture
def payment_request():
    """Builder for InitializePayment requests with test defaults."""
    return build_payment_request


@pytest.fixture
def completed_payment(transaction_service):
    """Factory for payments that are initialized and verified as completed."""

    def make(amount=100000, payee_id="seller-1", **overrides):
        transaction = transaction_service.initialize(build_payment_request(amount, payee_id, **overrides))
        return transaction_service.verify(transaction.reference)

    return make


@pytest.fixture
def payout_account(payout_service):
    """Bank transfer payout account for seller-1 in NGN."""
    return payout_service.save_account(
        PayoutAccount(
            seller_id="seller-1",
            currency="NGN",
            method="bank_transfer",
            details={"bank_code": "058", "account_number": "0123456789"},
        )
    )


@pytest.fixture
def payout_request(payout_account):
    """Factory for payout requests against seller-1's account."""

    def make(amount=None, **overrides):
        return CreatePayout(
            seller_id="seller-1", currency="NGN", account=payout_account, amount=amount, **overrides
        )

    return make


@pytest.fixture
def cli_runner():
    """Create a Click CLI test runner."""
    from click.testing import CliRunner

    return CliRunner()
