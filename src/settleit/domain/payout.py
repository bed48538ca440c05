"""Payout batching and scheduling service."""

import time
from datetime import datetime, timedelta
from typing import Callable, Optional

from settleit.config import EngineConfig
from settleit.database.base import Database
from settleit.domain.calendar import is_payout_day
from settleit.domain.clock import utcnow
from settleit.domain.currency import CurrencyNormalizer
from settleit.domain.entities import (
    BalanceEntry,
    CreatePayout,
    LedgerEntryType,
    NotificationEvent,
    Payout,
    PayoutAccount,
    PayoutStatus,
    ProviderStatus,
    SellerBalance,
)
from settleit.domain.errors import (
    InsufficientBalance,
    InvalidTransactionState,
    NotFoundError,
    ProviderRejected,
    ProviderTimeout,
    ProviderUnavailable,
    ValidationError,
    insufficient_balance,
    invalid_state,
    payout_not_found,
)
from settleit.domain.ledger import SettlementLedger
from settleit.domain.locking import EntityLocks
from settleit.domain.notifications import LoggingNotifier, Notifier, emit
from settleit.domain.references import batch_id as new_batch_id
from settleit.domain.references import payout_reference
from settleit.logging_config import get_logger
from settleit.providers.base import PayoutProvider, ProviderCaller
from settleit.utils.money import apportion, percent_of

logger = get_logger("payout")


class PayoutService:
    """Service for moving seller balances out through the payout rail.

    Creating a payout reserves the amount immediately: it leaves the
    available balance and sits in the pending balance until the rail
    confirms. A failed or cancelled payout moves it back.
    """

    def __init__(
        self,
        db: Database,
        config: EngineConfig,
        payout_provider: PayoutProvider,
        locks: Optional[EntityLocks] = None,
        notifier: Optional[Notifier] = None,
        clock: Callable[[], datetime] = utcnow,
        sleep: Callable[[float], None] = time.sleep,
    ):
        """Initialize payout service.

        Args:
            db: Database instance
            config: Engine configuration
            payout_provider: Payout rail adapter
            locks: Lock registry shared with the other services
            notifier: Receiver of status change events
            clock: Source of the current time
            sleep: Sleep used between provider retries
        """
        self.db = db
        self.config = config
        self.policy = config.payout_policy
        self.provider = payout_provider
        self.currency = CurrencyNormalizer(config.base_currency, config.currency_rates)
        self.locks = locks or EntityLocks()
        self.notifier = notifier or LoggingNotifier()
        self.clock = clock
        self.ledger = SettlementLedger(db, self.currency, clock)
        settings = config.providers
        self.call_provider = ProviderCaller(
            settings.timeout_seconds, self.policy.max_retries, settings.retry_backoff_seconds, sleep
        )

    # Balances and accounts
    def get_seller_balance(self, seller_id: str, currency: str) -> SellerBalance:
        """Last committed balance; a seller with no history has zero balances."""
        currency = self.currency.require_supported(currency)
        balance = self.db.get_balance(seller_id, currency)
        if balance is None:
            return SellerBalance(
                seller_id=seller_id, currency=currency, available_balance=0, pending_balance=0, updated_at=None
            )
        return balance

    def get_balance(self, seller_id: str, currency: str) -> int:
        """Available balance of a seller in one currency."""
        return self.get_seller_balance(seller_id, currency).available_balance

    def list_balances(self, seller_id: Optional[str] = None) -> list[SellerBalance]:
        return self.db.list_balances(seller_id)

    def list_ledger(self, seller_id: str, currency: Optional[str] = None) -> list[BalanceEntry]:
        return self.db.list_balance_entries(seller_id, currency)

    def save_account(self, account: PayoutAccount) -> PayoutAccount:
        """Register or replace a seller's payout account for a currency.

        Raises:
            UnsupportedCurrency: If the currency is not in the rate table
            ValidationError: If the payout method has no fee schedule
        """
        currency = self.currency.require_supported(account.currency)
        self._require_method(account.method)
        account = PayoutAccount(
            seller_id=account.seller_id, currency=currency, method=account.method, details=dict(account.details)
        )
        self.db.save_payout_account(account)
        logger.info(
            "payout_account_saved",
            extra={"seller_id": account.seller_id, "currency": currency, "method": account.method},
        )
        return account

    def get_account(self, seller_id: str, currency: str) -> Optional[PayoutAccount]:
        return self.db.get_payout_account(seller_id, currency)

    def _require_method(self, method: str) -> None:
        if method not in self.config.payout_fees:
            allowed = ", ".join(sorted(self.config.payout_fees))
            raise ValidationError(f"Unknown payout method '{method}' (allowed: {allowed})")

    def payout_fee(self, amount: int, method: str) -> int:
        """Rail fee for paying out ``amount`` by ``method``.

        Raises:
            ValidationError: If the method is unknown or the fee consumes the amount
        """
        self._require_method(method)
        schedule = self.config.payout_fees[method]
        fee = percent_of(amount, schedule.percentage) + schedule.fixed
        if fee >= amount:
            raise ValidationError(f"Payout of {amount} does not cover the {method} fee of {fee}")
        return fee

    # Payout creation and execution
    def create_payout(self, request: CreatePayout, batch_id: Optional[str] = None) -> Payout:
        """Reserve a seller balance into a payout and send it.

        Without an amount the full available balance is paid out. A payout
        with ``scheduled_for`` stays pending until ``process_due_payouts``.

        Args:
            request: Payout details
            batch_id: Batch to file the payout under; a new batch by default

        Returns:
            The payout after the provider call, or the pending scheduled payout

        Raises:
            InsufficientBalance: If the amount exceeds the available balance
            ValidationError: If the amount or method is invalid
            UnsupportedCurrency: If the currency is not in the rate table
        """
        currency = self.currency.require_supported(request.currency)
        method = request.account.method
        self._require_method(method)
        seller_id = request.seller_id

        with self.locks.balance(seller_id, currency):
            available = self.get_balance(seller_id, currency)
            amount = available if request.amount is None else request.amount
            if request.amount is not None and amount <= 0:
                raise ValidationError("Payout amount must be greater than zero")
            if amount <= 0 or amount > available:
                raise InsufficientBalance(insufficient_balance(seller_id, currency, amount, available))

            fees = self.payout_fee(amount, method)
            sweeps, items = self._plan_items(seller_id, currency, amount, fees)
            now = self.clock()

            with self.db.unit_of_work():
                self.db.adjust_balance(seller_id, currency, available_delta=-amount, pending_delta=amount)
                for entry_id, take in sweeps:
                    self.db.sweep_balance_entry(entry_id, take)
                payout_id = self.db.create_payout(
                    {
                        "seller_id": seller_id,
                        "batch_id": batch_id or new_batch_id(),
                        "total_amount": amount,
                        "currency": currency,
                        "fees": fees,
                        "net_amount": amount - fees,
                        "status": PayoutStatus.PENDING,
                        "method": method,
                        "account": {"method": method, **request.account.details},
                        "reference_number": payout_reference(),
                        "scheduled_for": request.scheduled_for,
                        "retry_count": 0,
                        "max_retries": self.policy.max_retries,
                        "notes": request.notes,
                        "created_at": now,
                    },
                    items,
                )
                self.db.add_balance_entry(
                    seller_id=seller_id,
                    currency=currency,
                    entry_type=LedgerEntryType.PAYOUT_DEBIT,
                    amount=-amount,
                    dedupe_key=f"payout_debit:{payout_id}",
                    payout_id=payout_id,
                )

        payout = self._require(payout_id)
        logger.info(
            "payout_created",
            extra={
                "payout_id": payout_id,
                "seller_id": seller_id,
                "amount": amount,
                "fees": fees,
                "currency": currency,
                "scheduled_for": request.scheduled_for,
            },
        )
        self._notify(payout)

        if request.scheduled_for is not None:
            return payout
        return self.execute(payout_id)

    def _plan_items(
        self, seller_id: str, currency: str, amount: int, fees: int
    ) -> tuple[list[tuple[int, int]], list[dict]]:
        """Sweep open settlement credits oldest first into payout items.

        Returns:
            Tuple of (credit sweeps as (entry_id, amount), payout item fields)
        """
        sweeps = []
        portions = []
        left = amount
        for credit in self.db.list_open_credits(seller_id, currency):
            if left == 0:
                break
            take = min(credit.remaining, left)
            sweeps.append((credit.id, take))
            portions.append((credit.transaction_id, credit.id, take))
            left -= take
        if left > 0:
            portions.append((None, None, left))

        item_fees = apportion(fees, [take for _, _, take in portions])
        items = [
            {
                "transaction_id": transaction_id,
                "balance_entry_id": entry_id,
                "amount": take,
                "fee": fee,
                "net_amount": take - fee,
            }
            for (transaction_id, entry_id, take), fee in zip(portions, item_fees)
        ]
        return sweeps, items

    def execute(self, payout_id: int) -> Payout:
        """Send a pending payout through the payout rail.

        Transient failures are retried up to the payout's ``max_retries``.
        Rejection or exhausted retries fail the payout and return the amount
        to the available balance; a timeout leaves it processing.

        Raises:
            NotFoundError: If the payout does not exist
            InvalidTransactionState: If the payout is not pending
        """
        with self.locks.payout(payout_id):
            payout = self._require(payout_id)
            if payout.status != PayoutStatus.PENDING:
                raise InvalidTransactionState(invalid_state("payout", payout_id, payout.status.value, "execute"))

            self.db.update_payout(payout_id, status=PayoutStatus.PROCESSING, processed_at=self.clock())
            payout = self._require(payout_id)
            attempts = 0

            def send():
                nonlocal attempts
                attempts += 1
                return self.provider.execute(payout)

            try:
                result = self.call_provider(send, max_retries=payout.max_retries)
            except ProviderTimeout as e:
                self.db.update_payout(payout_id, retry_count=max(attempts - 1, 0))
                logger.warning("payout_execute_timeout", extra={"payout_id": payout_id, "error": str(e)})
                processing = self._require(payout_id)
                self._notify(processing)
                return processing
            except (ProviderRejected, ProviderUnavailable) as e:
                return self._fail(payout, f"Payout provider error: {e}", retry_count=max(attempts - 1, 0))

            self.db.update_payout(
                payout_id, external_reference=result.external_reference, retry_count=attempts - 1
            )
            payout = self._require(payout_id)
            if result.status == ProviderStatus.COMPLETED:
                return self._complete(payout)
            if result.status == ProviderStatus.FAILED:
                return self._fail(payout, "Payout rejected by provider", retry_count=payout.retry_count)
            self._notify(payout)
            return payout

    def verify_payout(self, payout_id: int) -> Payout:
        """Resolve a processing payout with the payout rail.

        Raises:
            NotFoundError: If the payout does not exist
            InvalidTransactionState: If the payout has not been sent yet
        """
        with self.locks.payout(payout_id):
            payout = self._require(payout_id)
            if payout.status == PayoutStatus.PENDING:
                raise InvalidTransactionState(invalid_state("payout", payout_id, payout.status.value, "verify"))
            if payout.status != PayoutStatus.PROCESSING:
                return payout

            try:
                result = self.call_provider(lambda: self.provider.verify(payout))
            except (ProviderTimeout, ProviderUnavailable) as e:
                logger.warning("payout_verify_unresolved", extra={"payout_id": payout_id, "error": str(e)})
                return payout
            except ProviderRejected as e:
                return self._fail(payout, f"Payout provider error: {e}", retry_count=payout.retry_count)

            if result.status == ProviderStatus.COMPLETED:
                return self._complete(payout)
            if result.status == ProviderStatus.FAILED:
                return self._fail(
                    payout, result.failure_reason or "Payout failed at provider", retry_count=payout.retry_count
                )
            return payout

    def cancel_payout(self, payout_id: int, reason: Optional[str] = None) -> Payout:
        """Cancel a pending payout and return its amount to the available balance.

        Raises:
            NotFoundError: If the payout does not exist
            InvalidTransactionState: If the payout is not pending
        """
        with self.locks.payout(payout_id):
            payout = self._require(payout_id)
            if payout.status != PayoutStatus.PENDING:
                raise InvalidTransactionState(invalid_state("payout", payout_id, payout.status.value, "cancel"))
            with self.locks.balance(payout.seller_id, payout.currency):
                with self.db.unit_of_work():
                    self._compensate(payout)
                    self.db.update_payout(
                        payout_id,
                        status=PayoutStatus.CANCELLED,
                        cancelled_at=self.clock(),
                        failure_reason=reason or "Cancelled",
                    )
            cancelled = self._require(payout_id)
        logger.info("payout_cancelled", extra={"payout_id": payout_id})
        self._notify(cancelled)
        return cancelled

    def _complete(self, payout: Payout) -> Payout:
        now = self.clock()
        with self.locks.balance(payout.seller_id, payout.currency):
            with self.db.unit_of_work():
                self.db.adjust_balance(payout.seller_id, payout.currency, pending_delta=-payout.total_amount)
                self.db.update_payout(payout.id, status=PayoutStatus.COMPLETED, settled_at=now)
                self.ledger.mirror_payout(self._require(payout.id))
        completed = self._require(payout.id)
        logger.info(
            "payout_completed",
            extra={"payout_id": payout.id, "amount": payout.total_amount, "currency": payout.currency},
        )
        self._notify(completed)
        return completed

    def _fail(self, payout: Payout, reason: str, retry_count: int) -> Payout:
        with self.locks.balance(payout.seller_id, payout.currency):
            with self.db.unit_of_work():
                self._compensate(payout)
                self.db.update_payout(
                    payout.id,
                    status=PayoutStatus.FAILED,
                    failure_reason=reason,
                    failed_at=self.clock(),
                    retry_count=retry_count,
                )
        failed = self._require(payout.id)
        logger.warning("payout_failed", extra={"payout_id": payout.id, "reason": reason})
        self._notify(failed)
        return failed

    def _compensate(self, payout: Payout) -> None:
        """Move a reserved payout amount back to the available balance."""
        entry_id = self.db.add_balance_entry(
            seller_id=payout.seller_id,
            currency=payout.currency,
            entry_type=LedgerEntryType.PAYOUT_COMPENSATION,
            amount=payout.total_amount,
            dedupe_key=f"payout_compensation:{payout.id}",
            payout_id=payout.id,
        )
        if entry_id is None:
            return
        self.db.adjust_balance(
            payout.seller_id,
            payout.currency,
            available_delta=payout.total_amount,
            pending_delta=-payout.total_amount,
        )
        for item in payout.items:
            if item.balance_entry_id is not None:
                self.db.sweep_balance_entry(item.balance_entry_id, -item.amount)

    # Scheduling
    def eligible_amount(self, seller_id: str, currency: str, now: datetime) -> int:
        """Amount an automatic payout may take: aged credits, capped by policy and balance."""
        cutoff = now - timedelta(days=self.policy.holding_period_days)
        aged = sum(
            credit.remaining
            for credit in self.db.list_open_credits(seller_id, currency)
            if credit.created_at <= cutoff
        )
        amount = min(aged, self.get_balance(seller_id, currency))
        if self.policy.maximum_amount is not None:
            amount = min(amount, self.policy.maximum_amount)
        return amount

    def schedule_automatic_payouts(self, now: Optional[datetime] = None) -> list[Payout]:
        """Create scheduled payouts for every seller with a payout account.

        Does nothing unless automatic payouts are enabled and ``now`` falls
        on a payout day. Sellers with a payout already in flight are skipped.

        Returns:
            The scheduled payouts
        """
        now = now or self.clock()
        if not self.policy.auto_payout_enabled:
            return []
        if not is_payout_day(now.date(), self.policy.payout_frequency, self.policy.payout_day):
            return []

        batch = new_batch_id()
        scheduled = []
        for account in self.db.list_payout_accounts():
            if self.db.has_open_payout(account.seller_id, account.currency):
                continue
            with self.locks.balance(account.seller_id, account.currency):
                amount = self.eligible_amount(account.seller_id, account.currency, now)
                if amount <= 0 or amount < self.policy.minimum_amount:
                    continue
                try:
                    payout = self.create_payout(
                        CreatePayout(
                            seller_id=account.seller_id,
                            currency=account.currency,
                            account=account,
                            amount=amount,
                            notes="Automatic payout",
                            scheduled_for=now,
                        ),
                        batch_id=batch,
                    )
                except ValidationError as e:
                    logger.warning(
                        "automatic_payout_skipped",
                        extra={"seller_id": account.seller_id, "currency": account.currency, "error": str(e)},
                    )
                    continue
            scheduled.append(payout)

        logger.info("automatic_payouts_scheduled", extra={"batch_id": batch, "count": len(scheduled)})
        return scheduled

    def process_due_payouts(self, now: Optional[datetime] = None) -> list[Payout]:
        """Execute pending payouts scheduled at or before ``now``."""
        now = now or self.clock()
        processed = []
        for due in self.db.list_due_payouts(now):
            try:
                processed.append(self.execute(due.id))
            except InvalidTransactionState:
                # Executed or cancelled since it was listed
                continue
        return processed

    # Queries
    def get_payout(self, payout_id: int) -> Payout:
        """Get payout by ID.

        Raises:
            NotFoundError: If the payout does not exist
        """
        return self._require(payout_id)

    def list_payouts(self, seller_id: Optional[str] = None, status: Optional[PayoutStatus] = None) -> list[Payout]:
        return self.db.list_payouts(seller_id=seller_id, status=status)

    def _require(self, payout_id: int) -> Payout:
        payout = self.db.get_payout(payout_id)
        if payout is None:
            raise NotFoundError(payout_not_found(payout_id))
        return payout

    def _notify(self, payout: Payout) -> None:
        emit(
            self.notifier,
            NotificationEvent(
                entity_type="payout",
                entity_id=payout.reference_number,
                status=payout.status.value,
                amount=payout.total_amount,
                currency=payout.currency,
            ),
        )
