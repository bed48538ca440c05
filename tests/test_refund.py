"""Tests for refund processing."""

import threading

import pytest

from settleit.domain.entities import (
    LedgerEntryType,
    ProviderStatus,
    RefundStatus,
    RequestRefund,
    TransactionType,
)
from settleit.domain.errors import (
    InvalidTransactionState,
    NotFoundError,
    ProviderRejected,
    ProviderTimeout,
    RefundExceedsOriginal,
    ValidationError,
)


def _refund(refund_service, transaction, amount=None, reason="Item not delivered"):
    return refund_service.request_refund(
        RequestRefund(transaction_reference=transaction.reference, reason=reason, amount=amount)
    )


def test_full_refund_reverses_split(refund_service, completed_payment, payout_service, analytics_service, notifier):
    transaction = completed_payment()

    refund = _refund(refund_service, transaction)

    assert refund.status == RefundStatus.COMPLETED
    assert refund.amount == 100000
    assert refund.reference_number.startswith("REF")
    assert refund.seller_reversal == 97500
    assert refund.commission_reversal == 2500
    assert payout_service.get_balance("seller-1", "NGN") == 0
    assert analytics_service.platform_revenue_total() == {"NGN": 0}
    assert notifier.statuses("refund") == ["completed"]


def test_completed_refund_is_recorded_as_transaction(refund_service, completed_payment, transaction_service):
    transaction = completed_payment()
    refund = _refund(refund_service, transaction, amount=40000)

    mirrored = transaction_service.list_transactions(transaction_type=TransactionType.REFUND)

    assert len(mirrored) == 1
    assert mirrored[0].reference == refund.reference_number
    assert mirrored[0].parent_reference == transaction.reference
    assert mirrored[0].amount == 40000
    assert mirrored[0].payer_id == "seller-1"
    assert mirrored[0].payee_id == "buyer-1"


def test_partial_refunds_add_up_to_original_split(refund_service, completed_payment, payout_service):
    transaction = completed_payment()

    refunds = [
        _refund(refund_service, transaction, amount=33333),
        _refund(refund_service, transaction, amount=33333),
        _refund(refund_service, transaction),
    ]

    assert [r.amount for r in refunds] == [33333, 33333, 33334]
    assert sum(r.seller_reversal for r in refunds) == 97500
    assert sum(r.commission_reversal for r in refunds) == 2500
    assert payout_service.get_balance("seller-1", "NGN") == 0


def test_half_refund_consumes_own_credit(refund_service, completed_payment, temp_db):
    transaction = completed_payment()

    _refund(refund_service, transaction, amount=50000)

    credit = temp_db.get_settlement_entry(transaction.id)
    assert credit.reversed_amount == 48750
    assert credit.remaining == 48750


def test_refund_cannot_exceed_original(refund_service, completed_payment):
    transaction = completed_payment()

    with pytest.raises(RefundExceedsOriginal):
        _refund(refund_service, transaction, amount=100001)

    _refund(refund_service, transaction, amount=60000)
    with pytest.raises(RefundExceedsOriginal, match="refundable amount 40000"):
        _refund(refund_service, transaction, amount=50000)

    _refund(refund_service, transaction)
    with pytest.raises(RefundExceedsOriginal):
        _refund(refund_service, transaction)


def test_concurrent_refunds_stay_within_original(refund_service, completed_payment, payout_service):
    transaction = completed_payment()
    barrier = threading.Barrier(5)
    refunds, errors = [], []

    def refund():
        barrier.wait()
        try:
            refunds.append(_refund(refund_service, transaction, amount=30000))
        except RefundExceedsOriginal as e:
            errors.append(e)

    threads = [threading.Thread(target=refund) for _ in range(5)]
    for thread in threads:
        thread.start()
    for thread in threads:
        thread.join()

    assert len(refunds) == 3
    assert len(errors) == 2
    assert all(r.status == RefundStatus.COMPLETED for r in refunds)
    assert sum(r.amount for r in refunds) == 90000
    assert sum(r.seller_reversal for r in refunds) == 87750
    assert payout_service.get_balance("seller-1", "NGN") == 9750


def test_refund_requires_reason_and_positive_amount(refund_service, completed_payment):
    transaction = completed_payment()

    with pytest.raises(ValidationError, match="reason"):
        _refund(refund_service, transaction, reason="   ")
    with pytest.raises(ValidationError, match="greater than zero"):
        _refund(refund_service, transaction, amount=0)


def test_only_completed_payments_can_be_refunded(refund_service, transaction_service, payment_request):
    transaction = transaction_service.initialize(payment_request())

    with pytest.raises(InvalidTransactionState):
        _refund(refund_service, transaction)
    with pytest.raises(NotFoundError):
        refund_service.request_refund(RequestRefund(transaction_reference="PAY-missing", reason="x"))


def test_refund_after_payout_records_clawback(refund_service, completed_payment, payout_service, payout_request):
    transaction = completed_payment()
    payout_service.create_payout(payout_request(amount=50000))

    refund = _refund(refund_service, transaction)

    assert refund.status == RefundStatus.COMPLETED
    assert payout_service.get_balance("seller-1", "NGN") == 0
    entries = {e.entry_type: e.amount for e in payout_service.list_ledger("seller-1", "NGN")}
    assert entries[LedgerEntryType.REFUND_REVERSAL] == -47500
    assert entries[LedgerEntryType.CLAWBACK] == -50000


def test_failed_refund_leaves_balances_alone(refund_service, completed_payment, payment_provider, payout_service):
    transaction = completed_payment()
    payment_provider.queue("refund", ProviderRejected("account closed"))

    refund = _refund(refund_service, transaction)

    assert refund.status == RefundStatus.FAILED
    assert "account closed" in refund.failure_reason
    assert payout_service.get_balance("seller-1", "NGN") == 97500
    assert refund_service.refundable_amount(transaction) == 100000


def test_asynchronous_refund_completes_on_verify(refund_service, completed_payment, payment_provider, payout_service):
    transaction = completed_payment()
    payment_provider.queue("refund", ProviderStatus.PROCESSING)

    refund = _refund(refund_service, transaction, amount=20000)

    assert refund.status == RefundStatus.PROCESSING
    assert payout_service.get_balance("seller-1", "NGN") == 97500
    assert refund_service.refundable_amount(transaction) == 80000

    verified = refund_service.verify_refund(refund.id)

    assert verified.status == RefundStatus.COMPLETED
    assert verified.seller_reversal == 19500
    assert payout_service.get_balance("seller-1", "NGN") == 78000
    assert refund_service.verify_refund(refund.id) == verified


def test_refund_timeout_is_resolved_later(refund_service, completed_payment, payment_provider):
    transaction = completed_payment()
    payment_provider.queue("refund", ProviderTimeout("no answer"))
    payment_provider.queue("verify_refund", ProviderStatus.FAILED)

    refund = _refund(refund_service, transaction)
    assert refund.status == RefundStatus.PROCESSING
    assert refund.external_reference is None

    failed = refund_service.verify_refund(refund.id)
    assert failed.status == RefundStatus.FAILED
    assert failed.failure_reason == "Refund declined by sandbox"


def test_list_refunds(refund_service, completed_payment):
    first = completed_payment()
    second = completed_payment()
    _refund(refund_service, first, amount=1000)
    _refund(refund_service, second, amount=2000)

    assert len(refund_service.list_refunds()) == 2
    assert [r.amount for r in refund_service.list_refunds(transaction_reference=second.reference)] == [2000]
    assert len(refund_service.list_refunds(status=RefundStatus.COMPLETED)) == 2
    with pytest.raises(NotFoundError):
        refund_service.get_refund(999)
