"""Tests for the settlement ledger."""

from settleit.domain.entities import LedgerEntryType, RequestRefund, RevenueType
from settleit.domain.ledger import seller_of


def test_settlement_is_applied_once(transaction_service, completed_payment, payout_service, temp_db):
    transaction = completed_payment()

    assert transaction_service.ledger.settle_payment(transaction) is False

    assert payout_service.get_balance("seller-1", "NGN") == 97500
    credit = temp_db.get_settlement_entry(transaction.id)
    assert credit.entry_type == LedgerEntryType.SETTLEMENT
    assert credit.amount == 97500
    assert credit.remaining == 97500
    revenue = temp_db.list_platform_revenue()
    assert [(r.revenue_type, r.amount) for r in revenue] == [(RevenueType.COMMISSION, 2500)]


def test_seller_of(completed_payment):
    assert seller_of(completed_payment()) == "seller-1"
    assert seller_of(completed_payment(payee_id=None)) is None


def test_open_credits_shrink_as_they_are_swept(payout_service, completed_payment, payout_request, temp_db):
    first = completed_payment()
    second = completed_payment()

    payout_service.create_payout(payout_request(amount=100000))

    credits = temp_db.list_open_credits("seller-1", "NGN")
    assert [(c.transaction_id, c.remaining) for c in credits] == [(second.id, 95000)]
    assert temp_db.get_settlement_entry(first.id).swept_amount == 97500


def test_ledger_matches_balance(payout_service, completed_payment, payout_request, refund_service):
    transaction = completed_payment()
    completed_payment(amount=40000)
    payout_service.create_payout(payout_request(amount=30000))
    refund_service.request_refund(
        RequestRefund(transaction_reference=transaction.reference, reason="Late", amount=10000)
    )

    entries = payout_service.list_ledger("seller-1", "NGN")
    balance = payout_service.get_seller_balance("seller-1", "NGN")
    # Entries net to what is available plus what is still in flight
    assert sum(e.amount for e in entries) == balance.available_balance + balance.pending_balance
