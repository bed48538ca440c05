"""Transaction lifecycle service."""

import time
from datetime import datetime, timedelta
from typing import Any, Callable, Optional

from settleit.config import EngineConfig
from settleit.database.base import Database
from settleit.domain.clock import utcnow
from settleit.domain.currency import CurrencyNormalizer
from settleit.domain.entities import (
    FeeBreakdown,
    InitializePayment,
    NotificationEvent,
    ProviderStatus,
    Quote,
    SellerContext,
    Transaction,
    TransactionStatus,
    TransactionType,
)
from settleit.domain.errors import (
    InvalidTransactionState,
    NotFoundError,
    ProviderError,
    ProviderRejected,
    ProviderTimeout,
    ProviderUnavailable,
    ValidationError,
    invalid_state,
    transaction_not_found,
)
from settleit.domain.ledger import SettlementLedger, seller_of
from settleit.domain.locking import EntityLocks
from settleit.domain.notifications import LoggingNotifier, Notifier, emit
from settleit.domain.references import payment_reference
from settleit.domain.revenue_config import RevenueShareService
from settleit.domain.rules import ChargeContext, FeeRuleEngine, coerce_category
from settleit.domain.split import RevenueSplitCalculator
from settleit.logging_config import get_logger
from settleit.providers.base import PaymentProvider, ProviderCaller, ProviderStatusResult

logger = get_logger("transaction")

# Gateway webhook events and the status they report
PROVIDER_EVENTS = {
    "charge.success": ProviderStatus.COMPLETED,
    "charge.failed": ProviderStatus.FAILED,
    "charge.pending": ProviderStatus.PROCESSING,
}


class TransactionService:
    """Service for pricing, initializing and settling payments."""

    def __init__(
        self,
        db: Database,
        config: EngineConfig,
        payment_provider: PaymentProvider,
        revenue: Optional[RevenueShareService] = None,
        locks: Optional[EntityLocks] = None,
        notifier: Optional[Notifier] = None,
        clock: Callable[[], datetime] = utcnow,
        sleep: Callable[[float], None] = time.sleep,
    ):
        """Initialize transaction service.

        Args:
            db: Database instance
            config: Engine configuration
            payment_provider: Payment gateway adapter
            revenue: Revenue share configuration service
            locks: Lock registry shared with the other services
            notifier: Receiver of status change events
            clock: Source of the current time
            sleep: Sleep used between provider retries
        """
        self.db = db
        self.config = config
        self.provider = payment_provider
        self.currency = CurrencyNormalizer(config.base_currency, config.currency_rates)
        self.rules = FeeRuleEngine(config.tax_rules, config.payment_methods)
        self.splitter = RevenueSplitCalculator()
        self.revenue = revenue or RevenueShareService(db, config.revenue_share)
        self.locks = locks or EntityLocks()
        self.notifier = notifier or LoggingNotifier()
        self.clock = clock
        self.ledger = SettlementLedger(db, self.currency, clock)
        settings = config.providers
        self.call_provider = ProviderCaller(
            settings.timeout_seconds, settings.max_retries, settings.retry_backoff_seconds, sleep
        )

    def quote(self, request: InitializePayment) -> Quote:
        """Price a payment without persisting anything.

        Raises:
            ValidationError: If amount, category or payer are invalid
            UnsupportedCurrency: If the currency is not in the rate table
            UnsupportedPaymentMethod: If the method is unavailable in the currency
            InvalidSplitConfiguration: If commission would exceed the amount
        """
        if request.amount <= 0:
            raise ValidationError("Amount must be greater than zero")
        currency = self.currency.require_supported(request.currency)
        category = coerce_category(request.category)
        if category not in self.config.categories:
            raise ValidationError(f"Category '{category.value}' is not enabled")
        method = self.rules.payment_method_config(request.payment_method, currency)

        amount_in_base = self.currency.to_base(request.amount, currency)
        charges = self.rules.evaluate(
            request.amount, category, ChargeContext(currency=currency, payment_method=method.method)
        )
        revenue_config = self.revenue.resolve(request.revenue_config_id)
        split = self.splitter.split(
            request.amount,
            category,
            SellerContext(seller_id=request.payee_id, user_type=request.seller_user_type),
            revenue_config,
        )

        method_line = f"method:{method.method}"
        provider_fee = sum(line.amount for line in charges.fees if line.rule_id == method_line)
        fees = FeeBreakdown(
            provider_fee=provider_fee,
            platform_fee=split.platform_commission.amount,
            processing_fee=charges.total_fees - provider_fee,
        )
        return Quote(
            amount=request.amount,
            currency=currency,
            amount_in_base_currency=amount_in_base,
            charges=charges,
            fees=fees,
            split=split,
            provider=method.provider,
        )

    def initialize(self, request: InitializePayment) -> Transaction:
        """Create a payment and register it with the payment provider.

        The priced record is stored as ``pending`` before the provider is
        called. Provider rejection, or unavailability after retries, marks it
        ``failed``; a timeout leaves it ``processing`` for a later verify.

        Args:
            request: Payment details

        Returns:
            The stored transaction after the provider call

        Raises:
            ValidationError: If the payment cannot be priced (see ``quote``)
        """
        if not request.payer_id:
            raise ValidationError("Payer is required")
        quote = self.quote(request)
        now = self.clock()
        reference = payment_reference()

        self.db.create_transaction(
            {
                "reference": reference,
                "type": TransactionType.PAYMENT,
                "status": TransactionStatus.PENDING,
                "amount": quote.amount,
                "currency": quote.currency,
                "amount_in_base_currency": quote.amount_in_base_currency,
                "payment_method": request.payment_method,
                "provider": quote.provider,
                "category": coerce_category(request.category),
                "provider_fee": quote.fees.provider_fee,
                "platform_fee": quote.fees.platform_fee,
                "processing_fee": quote.fees.processing_fee,
                "tax_amount": quote.charges.total_taxes,
                "total_amount": quote.payer_total,
                "charges": quote.charges.to_dict(),
                "payer_id": request.payer_id,
                "payee_id": request.payee_id,
                "order_id": request.order_id,
                "revenue_split": quote.split.to_dict(),
                "description": request.description,
                "metadata": dict(request.metadata),
                "notes": [],
                "initiated_at": now,
                "expires_at": now + timedelta(minutes=self.config.transaction_expiry_minutes),
            }
        )
        logger.info(
            "transaction_initialized",
            extra={"reference": reference, "amount": quote.amount, "currency": quote.currency},
        )

        with self.locks.transaction(reference):
            transaction = self._require(reference)
            try:
                result = self.call_provider(lambda: self.provider.initialize(transaction))
            except ProviderTimeout as e:
                logger.warning("provider_initialize_timeout", extra={"reference": reference, "error": str(e)})
                self.db.update_transaction(reference, status=TransactionStatus.PROCESSING)
                return self._require(reference)
            except (ProviderRejected, ProviderUnavailable) as e:
                return self._fail(reference, f"Provider initialization failed: {e}")

            metadata = dict(transaction.metadata)
            if result.authorization_url:
                metadata["authorization_url"] = result.authorization_url
            self.db.update_transaction(
                reference,
                status=TransactionStatus.PROCESSING,
                external_reference=result.external_reference,
                provider_transaction_id=result.provider_transaction_id,
                metadata=metadata,
            )
        return self._require(reference)

    def verify(self, reference: str) -> Transaction:
        """Reconcile a payment with the provider.

        Completed and other terminal transactions are returned unchanged, so
        the seller credit is applied at most once however often this runs.
        Provider timeouts and outages leave the transaction as it was.

        Raises:
            NotFoundError: If the transaction does not exist
            InvalidTransactionState: If the transaction is not a payment
        """
        with self.locks.transaction(reference):
            transaction = self._require(reference)
            if transaction.type != TransactionType.PAYMENT:
                raise InvalidTransactionState(
                    invalid_state("transaction", reference, transaction.type.value, "verify")
                )
            if transaction.is_terminal:
                return transaction

            try:
                result = self.call_provider(lambda: self.provider.verify(transaction))
            except (ProviderTimeout, ProviderUnavailable) as e:
                logger.warning("provider_verify_unresolved", extra={"reference": reference, "error": str(e)})
                return transaction
            except ProviderRejected as e:
                result = ProviderStatusResult(status=ProviderStatus.FAILED, failure_reason=str(e))

            return self._apply_status(transaction, result)

    def handle_provider_event(self, reference: str, event: str, data: Optional[dict[str, Any]] = None) -> Transaction:
        """Apply a gateway callback through the same path as ``verify``.

        Args:
            reference: Transaction reference or provider reference
            event: Event name, e.g. ``charge.success``
            data: Event payload; ``gateway_response`` is used as failure reason

        Raises:
            ValidationError: If the event is not recognised
            NotFoundError: If no transaction matches the reference
        """
        if event not in PROVIDER_EVENTS:
            raise ValidationError(f"Unknown provider event '{event}'")
        data = data or {}

        transaction = self.db.get_transaction(reference) or self.db.get_transaction_by_external_reference(reference)
        if transaction is None:
            raise NotFoundError(transaction_not_found(reference))

        result = ProviderStatusResult(
            status=PROVIDER_EVENTS[event],
            failure_reason=data.get("gateway_response") or data.get("failure_reason"),
        )
        with self.locks.transaction(transaction.reference):
            transaction = self._require(transaction.reference)
            if transaction.is_terminal:
                return transaction
            return self._apply_status(transaction, result)

    def _apply_status(self, transaction: Transaction, result: ProviderStatusResult) -> Transaction:
        if result.status == ProviderStatus.COMPLETED:
            return self._complete(transaction)
        if result.status == ProviderStatus.FAILED:
            return self._fail(transaction.reference, result.failure_reason or "Payment failed at provider")
        if transaction.status == TransactionStatus.PENDING:
            self.db.update_transaction(transaction.reference, status=TransactionStatus.PROCESSING)
            return self._require(transaction.reference)
        return transaction

    def _complete(self, transaction: Transaction) -> Transaction:
        now = self.clock()
        seller_id = seller_of(transaction)
        # Lock order: balance lock, then the database write
        with self.locks.balance(seller_id, transaction.currency):
            with self.db.unit_of_work():
                self.db.update_transaction(
                    transaction.reference,
                    status=TransactionStatus.COMPLETED,
                    completed_at=now,
                    settled_at=now,
                )
                self.ledger.settle_payment(transaction)

        completed = self._require(transaction.reference)
        logger.info(
            "transaction_completed",
            extra={"reference": completed.reference, "amount": completed.amount, "currency": completed.currency},
        )
        self._notify(completed)
        return completed

    def _fail(self, reference: str, reason: str) -> Transaction:
        self.db.update_transaction(
            reference, status=TransactionStatus.FAILED, failure_reason=reason, failed_at=self.clock()
        )
        failed = self._require(reference)
        logger.warning("transaction_failed", extra={"reference": reference, "reason": reason})
        self._notify(failed)
        return failed

    def cancel(self, reference: str, reason: Optional[str] = None) -> Transaction:
        """Cancel a pending transaction.

        Raises:
            NotFoundError: If the transaction does not exist
            InvalidTransactionState: If the transaction is not pending
        """
        with self.locks.transaction(reference):
            transaction = self._require(reference)
            if transaction.status != TransactionStatus.PENDING:
                raise InvalidTransactionState(
                    invalid_state("transaction", reference, transaction.status.value, "cancel")
                )
            self.db.update_transaction(
                reference,
                status=TransactionStatus.CANCELLED,
                failure_reason=reason or "Cancelled",
            )
            cancelled = self._require(reference)
        logger.info("transaction_cancelled", extra={"reference": reference})
        self._notify(cancelled)
        return cancelled

    def expire_stale(self, now: Optional[datetime] = None) -> list[Transaction]:
        """Expire payments left unresolved past their expiry time.

        Pending payments expire directly. Processing payments are verified
        first and expire only if the provider still reports them unpaid; if
        the provider cannot be reached they stay processing.

        Returns:
            Transactions that were expired
        """
        now = now or self.clock()
        expired = []
        for stale in self.db.list_expired_transactions(now):
            with self.locks.transaction(stale.reference):
                transaction = self._require(stale.reference)
                if transaction.is_terminal:
                    continue

                if transaction.status == TransactionStatus.PROCESSING:
                    try:
                        result = self.call_provider(lambda: self.provider.verify(transaction))
                    except ProviderError as e:
                        logger.warning(
                            "expiry_verify_unresolved", extra={"reference": transaction.reference, "error": str(e)}
                        )
                        continue
                    if result.status in (ProviderStatus.COMPLETED, ProviderStatus.FAILED):
                        self._apply_status(transaction, result)
                        continue

                self.db.update_transaction(
                    transaction.reference,
                    status=TransactionStatus.EXPIRED,
                    failure_reason="Expired before payment was confirmed",
                    failed_at=now,
                )
                expired_txn = self._require(transaction.reference)
            logger.info("transaction_expired", extra={"reference": expired_txn.reference})
            self._notify(expired_txn)
            expired.append(expired_txn)
        return expired

    def add_note(self, reference: str, note: str) -> Transaction:
        """Append a note to a transaction. Notes are never edited or removed."""
        note = note.strip()
        if not note:
            raise ValidationError("Note must not be empty")
        with self.locks.transaction(reference):
            transaction = self._require(reference)
            stamped = f"[{self.clock().isoformat(timespec='seconds')}] {note}"
            self.db.update_transaction(reference, notes=[*transaction.notes, stamped])
            return self._require(reference)

    def get_transaction(self, reference: str) -> Transaction:
        """Get transaction by reference.

        Raises:
            NotFoundError: If the transaction does not exist
        """
        return self._require(reference)

    def list_transactions(
        self,
        transaction_type: Optional[TransactionType] = TransactionType.PAYMENT,
        status: Optional[TransactionStatus] = None,
        payer_id: Optional[str] = None,
        payee_id: Optional[str] = None,
        start_date: Optional[datetime] = None,
        end_date: Optional[datetime] = None,
        limit: Optional[int] = None,
    ) -> list[Transaction]:
        """List transactions, newest first."""
        return self.db.list_transactions(
            transaction_type=transaction_type,
            status=status,
            payer_id=payer_id,
            payee_id=payee_id,
            start_date=start_date,
            end_date=end_date,
            limit=limit,
        )

    def _require(self, reference: str) -> Transaction:
        transaction = self.db.get_transaction(reference)
        if transaction is None:
            raise NotFoundError(transaction_not_found(reference))
        return transaction

    def _notify(self, transaction: Transaction) -> None:
        emit(
            self.notifier,
            NotificationEvent(
                entity_type=transaction.type.value,
                entity_id=transaction.reference,
                status=transaction.status.value,
                amount=transaction.amount,
                currency=transaction.currency,
            ),
        )
