"""Tests for payment analytics."""

from datetime import timedelta
from decimal import Decimal

import pytest

from settleit.domain.clock import utcnow
from settleit.domain.entities import Category, ProviderStatus, RequestRefund
from settleit.domain.errors import ValidationError


@pytest.fixture
def period():
    now = utcnow()
    return now - timedelta(days=1), now + timedelta(days=1)


@pytest.fixture
def marketplace(completed_payment, payment_provider, refund_service):
    """Two card payments, one declined card payment and one bank transfer."""
    first = completed_payment()
    completed_payment(payee_id="seller-2")
    payment_provider.queue("verify", ProviderStatus.FAILED)
    completed_payment()
    completed_payment(amount=200000, payment_method="bank_transfer")
    refund_service.request_refund(
        RequestRefund(transaction_reference=first.reference, reason="Damaged", amount=50000)
    )


def test_totals(analytics_service, marketplace, period):
    analytics = analytics_service.get_analytics(*period)

    assert analytics.total_transactions == 4
    assert analytics.successful_transactions == 3
    assert analytics.failed_transactions == 1
    assert analytics.success_rate == Decimal("75.00")
    assert analytics.total_revenue == 400000
    assert analytics.platform_revenue == 10000
    assert analytics.seller_revenue == 390000
    assert analytics.average_transaction_value == 133333
    assert analytics.total_refunds == 50000
    assert analytics.refund_rate == Decimal("12.50")


def test_payment_method_breakdown(analytics_service, marketplace, period):
    breakdown = analytics_service.get_analytics(*period).payment_method_breakdown

    assert sorted(breakdown) == ["bank_transfer", "card"]
    card = breakdown["card"]
    assert card.transactions == 3
    assert card.revenue == 200000
    assert card.average_value == 100000
    assert card.success_rate == Decimal("66.67")
    assert card.fees == 3200
    assert breakdown["bank_transfer"].fees == 6000


def test_seller_filter(analytics_service, marketplace, period):
    analytics = analytics_service.get_analytics(*period, seller_id="seller-2")

    assert analytics.total_transactions == 1
    assert analytics.total_revenue == 100000
    assert analytics.total_refunds == 0


def test_currency_filter_sums_in_that_currency(analytics_service, completed_payment, period):
    completed_payment(amount=5000, currency="USD", category=Category.PRODUCTS)
    completed_payment()

    in_usd = analytics_service.get_analytics(*period, currency="usd")
    in_base = analytics_service.get_analytics(*period)

    assert in_usd.currency == "USD"
    assert in_usd.total_revenue == 5000
    assert in_base.total_revenue == 8000000 + 100000


def test_period_excludes_other_payments(analytics_service, marketplace, period):
    start, _ = period
    analytics = analytics_service.get_analytics(start - timedelta(days=10), start)

    assert analytics.total_transactions == 0
    assert analytics.success_rate == Decimal("0.00")
    assert analytics.average_transaction_value == 0
    assert analytics.payment_method_breakdown == {}


def test_end_must_follow_start(analytics_service, period):
    start, end = period
    with pytest.raises(ValidationError):
        analytics_service.get_analytics(end, start)


def test_platform_revenue_ledger(analytics_service, marketplace):
    # 2,500 + 2,500 + 5,000 commission less 1,250 reversed by the refund
    assert analytics_service.platform_revenue_total() == {"NGN": 8750}
    assert analytics_service.platform_revenue_total(currency="USD") == {}
