"""Refund processing service."""

import time
from datetime import datetime
from typing import Callable, Optional

from settleit.config import EngineConfig
from settleit.database.base import Database
from settleit.domain.clock import utcnow
from settleit.domain.currency import CurrencyNormalizer
from settleit.domain.entities import (
    NotificationEvent,
    ProviderStatus,
    Refund,
    RefundStatus,
    RequestRefund,
    Transaction,
    TransactionStatus,
    TransactionType,
)
from settleit.domain.errors import (
    InvalidTransactionState,
    NotFoundError,
    ProviderRejected,
    ProviderTimeout,
    ProviderUnavailable,
    RefundExceedsOriginal,
    ValidationError,
    invalid_state,
    refund_exceeds_original,
    refund_not_found,
    transaction_not_found,
)
from settleit.domain.ledger import SettlementLedger, seller_of
from settleit.domain.locking import EntityLocks
from settleit.domain.notifications import LoggingNotifier, Notifier, emit
from settleit.domain.references import refund_reference
from settleit.domain.split import reversal_amounts
from settleit.logging_config import get_logger
from settleit.providers.base import PaymentProvider, ProviderCaller, ProviderStatusResult

logger = get_logger("refund")

# Refunds that count against the refundable amount
ACTIVE_REFUND_STATUSES = (RefundStatus.PENDING, RefundStatus.PROCESSING, RefundStatus.COMPLETED)


class RefundService:
    """Service for refunding completed payments.

    A completed refund reverses the seller payout and platform commission
    pro rata to the refunded fraction of the original amount.
    """

    def __init__(
        self,
        db: Database,
        config: EngineConfig,
        payment_provider: PaymentProvider,
        locks: Optional[EntityLocks] = None,
        notifier: Optional[Notifier] = None,
        clock: Callable[[], datetime] = utcnow,
        sleep: Callable[[float], None] = time.sleep,
    ):
        self.db = db
        self.provider = payment_provider
        self.currency = CurrencyNormalizer(config.base_currency, config.currency_rates)
        self.locks = locks or EntityLocks()
        self.notifier = notifier or LoggingNotifier()
        self.clock = clock
        self.ledger = SettlementLedger(db, self.currency, clock)
        settings = config.providers
        self.call_provider = ProviderCaller(
            settings.timeout_seconds, settings.max_retries, settings.retry_backoff_seconds, sleep
        )

    def refundable_amount(self, transaction: Transaction) -> int:
        """Original amount less refunds that are pending, processing or completed."""
        return transaction.amount - self.db.sum_refunds(transaction.id, ACTIVE_REFUND_STATUSES)

    def request_refund(self, request: RequestRefund) -> Refund:
        """Refund all or part of a completed payment.

        Without an amount the whole refundable remainder is refunded.

        Args:
            request: Refund details

        Returns:
            The refund after the provider call

        Raises:
            NotFoundError: If the transaction does not exist
            InvalidTransactionState: If the transaction is not a completed payment
            RefundExceedsOriginal: If refunds would exceed the original amount
            ValidationError: If the amount or reason is invalid
        """
        reason = request.reason.strip()
        if not reason:
            raise ValidationError("Refund reason is required")

        reference = request.transaction_reference
        with self.locks.transaction(reference):
            transaction = self._require_transaction(reference)
            if transaction.type != TransactionType.PAYMENT or transaction.status != TransactionStatus.COMPLETED:
                raise InvalidTransactionState(
                    invalid_state("transaction", reference, transaction.status.value, "refund")
                )

            remaining = self.refundable_amount(transaction)
            amount = remaining if request.amount is None else request.amount
            if request.amount is not None and amount <= 0:
                raise ValidationError("Refund amount must be greater than zero")
            if amount <= 0 or amount > remaining:
                raise RefundExceedsOriginal(refund_exceeds_original(reference, amount, remaining))

            refund_id = self.db.create_refund(
                {
                    "transaction_id": transaction.id,
                    "order_id": transaction.order_id,
                    "amount": amount,
                    "currency": transaction.currency,
                    "reason": reason,
                    "status": RefundStatus.PENDING,
                    "method": request.method,
                    "reference_number": refund_reference(),
                    "requested_at": self.clock(),
                }
            )
            refund = self._require(refund_id)
            logger.info(
                "refund_requested",
                extra={"refund_id": refund_id, "reference": reference, "amount": amount},
            )

            try:
                result = self.call_provider(lambda: self.provider.refund(refund, transaction))
            except ProviderTimeout as e:
                logger.warning("provider_refund_timeout", extra={"refund_id": refund_id, "error": str(e)})
                self.db.update_refund(refund_id, status=RefundStatus.PROCESSING, processed_at=self.clock())
                return self._notify(self._require(refund_id))
            except (ProviderRejected, ProviderUnavailable) as e:
                return self._fail(refund, f"Refund provider error: {e}")

            self.db.update_refund(
                refund_id,
                status=RefundStatus.PROCESSING,
                external_reference=result.external_reference,
                processed_at=self.clock(),
            )
            refund = self._require(refund_id)
            return self._apply_status(refund, transaction, ProviderStatusResult(status=result.status))

    def verify_refund(self, refund_id: int) -> Refund:
        """Resolve a refund whose provider outcome was unknown.

        Raises:
            NotFoundError: If the refund does not exist
        """
        refund = self._require(refund_id)
        with self.locks.transaction(refund.transaction_reference):
            refund = self._require(refund_id)
            if refund.status in (RefundStatus.COMPLETED, RefundStatus.FAILED):
                return refund
            transaction = self._require_transaction(refund.transaction_reference)

            try:
                result = self.call_provider(lambda: self.provider.verify_refund(refund))
            except (ProviderTimeout, ProviderUnavailable) as e:
                logger.warning("provider_refund_unresolved", extra={"refund_id": refund_id, "error": str(e)})
                return refund
            except ProviderRejected as e:
                return self._fail(refund, f"Refund provider error: {e}")

            return self._apply_status(refund, transaction, result)

    def _apply_status(self, refund: Refund, transaction: Transaction, result: ProviderStatusResult) -> Refund:
        if result.status == ProviderStatus.COMPLETED:
            return self._complete(refund, transaction)
        if result.status == ProviderStatus.FAILED:
            return self._fail(refund, result.failure_reason or "Refund failed at provider")
        return self._notify(refund)

    def _complete(self, refund: Refund, transaction: Transaction) -> Refund:
        seller_reversal, commission_reversal = 0, 0
        if transaction.revenue_split is not None:
            refunded_before = self.db.sum_refunds(transaction.id, (RefundStatus.COMPLETED,))
            seller_reversal, commission_reversal = reversal_amounts(
                transaction.revenue_split, transaction.amount, refunded_before, refund.amount
            )

        seller_id = seller_of(transaction)
        with self.locks.balance(seller_id, transaction.currency):
            with self.db.unit_of_work():
                self.db.update_refund(
                    refund.id,
                    status=RefundStatus.COMPLETED,
                    completed_at=self.clock(),
                    seller_reversal=seller_reversal,
                    commission_reversal=commission_reversal,
                )
                completed = self._require(refund.id)
                clawback = self.ledger.reverse_refund(completed, transaction, seller_reversal, commission_reversal)
                self.ledger.mirror_refund(completed, transaction)

        logger.info(
            "refund_completed",
            extra={
                "refund_id": refund.id,
                "amount": refund.amount,
                "seller_reversal": seller_reversal,
                "commission_reversal": commission_reversal,
                "clawback": clawback,
            },
        )
        return self._notify(completed)

    def _fail(self, refund: Refund, reason: str) -> Refund:
        self.db.update_refund(refund.id, status=RefundStatus.FAILED, failure_reason=reason)
        logger.warning("refund_failed", extra={"refund_id": refund.id, "reason": reason})
        return self._notify(self._require(refund.id))

    def get_refund(self, refund_id: int) -> Refund:
        """Get refund by ID.

        Raises:
            NotFoundError: If the refund does not exist
        """
        return self._require(refund_id)

    def list_refunds(
        self, transaction_reference: Optional[str] = None, status: Optional[RefundStatus] = None
    ) -> list[Refund]:
        transaction_id = None
        if transaction_reference is not None:
            transaction_id = self._require_transaction(transaction_reference).id
        return self.db.list_refunds(transaction_id=transaction_id, status=status)

    def _require(self, refund_id: int) -> Refund:
        refund = self.db.get_refund(refund_id)
        if refund is None:
            raise NotFoundError(refund_not_found(refund_id))
        return refund

    def _require_transaction(self, reference: str) -> Transaction:
        transaction = self.db.get_transaction(reference)
        if transaction is None:
            raise NotFoundError(transaction_not_found(reference))
        return transaction

    def _notify(self, refund: Refund) -> Refund:
        emit(
            self.notifier,
            NotificationEvent(
                entity_type="refund",
                entity_id=refund.reference_number,
                status=refund.status.value,
                amount=refund.amount,
                currency=refund.currency,
            ),
        )
        return refund
