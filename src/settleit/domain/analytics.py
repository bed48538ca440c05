"""Payment analytics service.

Aggregates are computed from stored transactions only. Amounts are summed
in base currency unless a currency filter is given, in which case they are
summed in that currency.
"""

from collections import defaultdict
from datetime import datetime
from typing import Optional

from settleit.database.base import Database
from settleit.domain.entities import (
    PaymentAnalytics,
    PaymentMethodMetrics,
    Transaction,
    TransactionStatus,
    TransactionType,
)
from settleit.domain.errors import ValidationError
from settleit.utils.money import percentage, prorate


class AnalyticsService:
    """Service for read-only payment reporting."""

    def __init__(self, db: Database):
        """Initialize analytics service.

        Args:
            db: Database instance
        """
        self.db = db

    def get_analytics(
        self,
        start_date: datetime,
        end_date: datetime,
        seller_id: Optional[str] = None,
        currency: Optional[str] = None,
    ) -> PaymentAnalytics:
        """Aggregate payments initiated in ``[start_date, end_date)``.

        Args:
            start_date: Inclusive start
            end_date: Exclusive end
            seller_id: Only payments to this seller
            currency: Only payments in this currency, summed in that currency

        Returns:
            PaymentAnalytics for the period
        """
        if end_date <= start_date:
            raise ValidationError("End date must be after start date")
        currency = currency.upper() if currency else None

        payments = self.db.list_transactions(
            transaction_type=TransactionType.PAYMENT,
            payee_id=seller_id,
            currency=currency,
            start_date=start_date,
            end_date=end_date,
        )
        refunds = self.db.list_transactions(
            transaction_type=TransactionType.REFUND,
            payer_id=seller_id,
            currency=currency,
            start_date=start_date,
            end_date=end_date,
        )

        value = self._value if currency is None else (lambda txn, amount: amount)
        completed = [t for t in payments if t.status == TransactionStatus.COMPLETED]
        failed = [t for t in payments if t.status == TransactionStatus.FAILED]

        total_revenue = sum(value(t, t.amount) for t in completed)
        platform_revenue = sum(value(t, t.fees.platform_fee) for t in completed)
        total_refunds = sum(value(t, t.amount) for t in refunds)

        return PaymentAnalytics(
            start_date=start_date,
            end_date=end_date,
            currency=currency,
            total_transactions=len(payments),
            successful_transactions=len(completed),
            failed_transactions=len(failed),
            success_rate=percentage(len(completed), len(payments)),
            total_revenue=total_revenue,
            platform_revenue=platform_revenue,
            seller_revenue=total_revenue - platform_revenue,
            average_transaction_value=total_revenue // len(completed) if completed else 0,
            total_refunds=total_refunds,
            refund_rate=percentage(total_refunds, total_revenue),
            payment_method_breakdown=self._breakdown(payments, value),
        )

    @staticmethod
    def _value(transaction: Transaction, amount: int) -> int:
        """Convert an amount of the transaction's currency at its recorded base rate."""
        if amount == transaction.amount:
            return transaction.amount_in_base_currency
        return prorate(transaction.amount_in_base_currency, amount, transaction.amount)

    def _breakdown(self, payments: list[Transaction], value) -> dict[str, PaymentMethodMetrics]:
        by_method: dict[str, list[Transaction]] = defaultdict(list)
        for transaction in payments:
            by_method[transaction.payment_method or "unknown"].append(transaction)

        breakdown = {}
        for method, transactions in sorted(by_method.items()):
            completed = [t for t in transactions if t.status == TransactionStatus.COMPLETED]
            revenue = sum(value(t, t.amount) for t in completed)
            breakdown[method] = PaymentMethodMetrics(
                transactions=len(transactions),
                revenue=revenue,
                average_value=revenue // len(completed) if completed else 0,
                success_rate=percentage(len(completed), len(transactions)),
                fees=sum(value(t, t.fees.provider_fee + t.fees.processing_fee) for t in completed),
            )
        return breakdown

    def platform_revenue_total(
        self,
        start_date: Optional[datetime] = None,
        end_date: Optional[datetime] = None,
        currency: Optional[str] = None,
    ) -> dict[str, int]:
        """Net platform revenue ledger totals per currency."""
        totals: dict[str, int] = defaultdict(int)
        for row in self.db.list_platform_revenue(start_date, end_date, currency):
            totals[row.currency] += row.amount
        return dict(totals)
