"""Seller balance and platform revenue bookkeeping.

Every change to a seller balance is paired with an append-only ledger entry
whose dedupe key makes the change happen at most once. Callers hold the
seller's balance lock and run inside a unit of work.
"""

from typing import Callable, Optional

from settleit.database.base import Database
from settleit.domain.clock import utcnow
from settleit.domain.currency import CurrencyNormalizer
from settleit.domain.entities import (
    LedgerEntryType,
    Payout,
    Refund,
    RevenueType,
    Transaction,
    TransactionStatus,
    TransactionType,
)
from settleit.logging_config import get_logger

logger = get_logger("ledger")


def seller_of(transaction: Transaction) -> Optional[str]:
    """Seller credited for a payment, if any."""
    split = transaction.revenue_split
    if split is None:
        return None
    return split.seller_payout.recipient_id


class SettlementLedger:
    """Applies settlement, refund and payout effects to the books."""

    def __init__(self, db: Database, currency: CurrencyNormalizer, clock: Callable = utcnow):
        self.db = db
        self.currency = currency
        self.clock = clock

    def settle_payment(self, transaction: Transaction) -> bool:
        """Record commission and credit the seller for a completed payment.

        Returns:
            True if the seller credit was applied now, False if it already existed
            or there is no seller to credit
        """
        split = transaction.revenue_split
        if split is None:
            return False

        commission = split.platform_commission.amount
        if commission > 0:
            self.db.add_platform_revenue(
                transaction_id=transaction.id,
                revenue_type=RevenueType.COMMISSION,
                amount=commission,
                currency=transaction.currency,
                dedupe_key=f"commission:{transaction.id}",
            )

        seller_id = split.seller_payout.recipient_id
        amount = split.seller_payout.amount
        if seller_id is None or amount <= 0:
            return False

        entry_id = self.db.add_balance_entry(
            seller_id=seller_id,
            currency=transaction.currency,
            entry_type=LedgerEntryType.SETTLEMENT,
            amount=amount,
            dedupe_key=f"settlement:{transaction.id}",
            transaction_id=transaction.id,
        )
        if entry_id is None:
            return False

        self.db.adjust_balance(seller_id, transaction.currency, available_delta=amount)
        logger.info(
            "seller_credited",
            extra={
                "seller_id": seller_id,
                "amount": amount,
                "currency": transaction.currency,
                "reference": transaction.reference,
            },
        )
        return True

    def reverse_refund(
        self,
        refund: Refund,
        transaction: Transaction,
        seller_reversal: int,
        commission_reversal: int,
    ) -> int:
        """Reverse seller payout and commission for a completed refund.

        The seller is debited at most their available balance; the rest is
        recorded as a clawback entry.

        Returns:
            Clawback amount in minor units
        """
        if commission_reversal > 0:
            self.db.add_platform_revenue(
                transaction_id=transaction.id,
                revenue_type=RevenueType.COMMISSION_REVERSAL,
                amount=-commission_reversal,
                currency=transaction.currency,
                dedupe_key=f"commission_reversal:{refund.id}",
                refund_id=refund.id,
            )

        seller_id = seller_of(transaction)
        if seller_id is None or seller_reversal <= 0:
            return 0

        currency = transaction.currency
        balance = self.db.get_balance(seller_id, currency)
        available = balance.available_balance if balance is not None else 0
        debit = min(seller_reversal, available)
        clawback = seller_reversal - debit

        entry_id = self.db.add_balance_entry(
            seller_id=seller_id,
            currency=currency,
            entry_type=LedgerEntryType.REFUND_REVERSAL,
            amount=-debit,
            dedupe_key=f"refund_reversal:{refund.id}",
            transaction_id=transaction.id,
            refund_id=refund.id,
        )
        if entry_id is None:
            return 0

        if debit > 0:
            self.db.adjust_balance(seller_id, currency, available_delta=-debit)
            self._consume_credits(seller_id, currency, transaction.id, debit)

        if clawback > 0:
            self.db.add_balance_entry(
                seller_id=seller_id,
                currency=currency,
                entry_type=LedgerEntryType.CLAWBACK,
                amount=-clawback,
                dedupe_key=f"clawback:{refund.id}",
                transaction_id=transaction.id,
                refund_id=refund.id,
            )
            logger.warning(
                "refund_clawback_recorded",
                extra={"seller_id": seller_id, "amount": clawback, "currency": currency, "refund_id": refund.id},
            )
        return clawback

    def _consume_credits(self, seller_id: str, currency: str, transaction_id: int, amount: int) -> None:
        """Mark ``amount`` of open settlement credits as reversed.

        The refunded transaction's own credit goes first, then the oldest others.
        """
        credits = self.db.list_open_credits(seller_id, currency)
        credits.sort(key=lambda entry: entry.transaction_id != transaction_id)
        left = amount
        for entry in credits:
            if left == 0:
                break
            take = min(entry.remaining, left)
            self.db.reverse_balance_entry(entry.id, take)
            left -= take

    def mirror_refund(self, refund: Refund, transaction: Transaction) -> None:
        """Record a completed refund as a refund transaction."""
        now = self.clock()
        self._mirror(
            {
                "reference": refund.reference_number,
                "type": TransactionType.REFUND,
                "amount": refund.amount,
                "currency": refund.currency,
                "payment_method": transaction.payment_method,
                "provider": transaction.provider,
                "category": transaction.category,
                "payer_id": transaction.payee_id,
                "payee_id": transaction.payer_id,
                "order_id": refund.order_id,
                "description": refund.reason,
                "external_reference": refund.external_reference,
                "parent_reference": transaction.reference,
                "initiated_at": refund.requested_at,
                "completed_at": now,
                "settled_at": now,
            }
        )

    def mirror_payout(self, payout: Payout) -> None:
        """Record a completed payout as a payout transaction."""
        now = self.clock()
        self._mirror(
            {
                "reference": payout.reference_number,
                "type": TransactionType.PAYOUT,
                "amount": payout.total_amount,
                "currency": payout.currency,
                "payment_method": payout.method,
                "processing_fee": payout.fees,
                "payee_id": payout.seller_id,
                "description": payout.notes,
                "external_reference": payout.external_reference,
                "initiated_at": payout.created_at,
                "completed_at": now,
                "settled_at": now,
            }
        )

    def _mirror(self, fields: dict) -> None:
        if self.db.get_transaction(fields["reference"]) is not None:
            return
        fields.update(
            status=TransactionStatus.COMPLETED,
            amount_in_base_currency=self.currency.to_base(fields["amount"], fields["currency"]),
            total_amount=fields["amount"],
        )
        self.db.create_transaction(fields)
