"""Deterministic in-memory provider adapters.

Outcomes are scripted per operation: queue a ``ProviderStatus`` to have the
next call report it, or an exception instance to have the next call raise it.
Unscripted calls succeed.
"""

import threading
import uuid
from collections import defaultdict, deque
from typing import Union

from settleit.domain.entities import Payout, ProviderStatus, Refund, Transaction
from settleit.providers.base import (
    PaymentProvider,
    PayoutProvider,
    ProviderInitResult,
    ProviderPayoutResult,
    ProviderRefundResult,
    ProviderStatusResult,
)

Outcome = Union[ProviderStatus, Exception]


class _Script:
    """Per-operation queues of scripted outcomes plus a call log."""

    def __init__(self):
        self._lock = threading.Lock()
        self._queues: dict[str, deque[Outcome]] = defaultdict(deque)
        self._statuses: dict[str, ProviderStatus] = {}
        self.calls: list[tuple[str, str]] = []

    def queue(self, operation: str, *outcomes: Outcome) -> None:
        with self._lock:
            self._queues[operation].extend(outcomes)

    def set_status(self, reference: str, status: ProviderStatus) -> None:
        """Fix the status reported for ``reference`` once queues are empty."""
        with self._lock:
            self._statuses[reference] = status

    def calls_for(self, operation: str) -> list[str]:
        with self._lock:
            return [ref for op, ref in self.calls if op == operation]

    def _next(self, operation: str, reference: str, default: ProviderStatus) -> ProviderStatus:
        with self._lock:
            self.calls.append((operation, reference))
            queue = self._queues[operation]
            outcome = queue.popleft() if queue else self._statuses.get(reference, default)
        if isinstance(outcome, Exception):
            raise outcome
        return outcome


class SandboxPaymentProvider(_Script, PaymentProvider):
    """Payment gateway stand-in for tests and local runs."""

    name = "sandbox"

    def initialize(self, transaction: Transaction) -> ProviderInitResult:
        self._next("initialize", transaction.reference, ProviderStatus.PENDING)
        return ProviderInitResult(
            external_reference=f"sbx_{transaction.reference}",
            provider_transaction_id=uuid.uuid4().hex[:16],
            authorization_url=f"https://sandbox.invalid/pay/{transaction.reference}",
        )

    def verify(self, transaction: Transaction) -> ProviderStatusResult:
        status = self._next("verify", transaction.reference, ProviderStatus.COMPLETED)
        reason = "Declined by sandbox" if status == ProviderStatus.FAILED else None
        return ProviderStatusResult(status=status, failure_reason=reason)

    def refund(self, refund: Refund, transaction: Transaction) -> ProviderRefundResult:
        status = self._next("refund", refund.reference_number, ProviderStatus.COMPLETED)
        return ProviderRefundResult(external_reference=f"sbx_{refund.reference_number}", status=status)

    def verify_refund(self, refund: Refund) -> ProviderStatusResult:
        status = self._next("verify_refund", refund.reference_number, ProviderStatus.COMPLETED)
        reason = "Refund declined by sandbox" if status == ProviderStatus.FAILED else None
        return ProviderStatusResult(status=status, failure_reason=reason)


class SandboxPayoutProvider(_Script, PayoutProvider):
    """Payout rail stand-in for tests and local runs."""

    name = "sandbox"

    def execute(self, payout: Payout) -> ProviderPayoutResult:
        status = self._next("execute", payout.reference_number, ProviderStatus.COMPLETED)
        return ProviderPayoutResult(external_reference=f"sbx_{payout.reference_number}", status=status)

    def verify(self, payout: Payout) -> ProviderStatusResult:
        status = self._next("verify", payout.reference_number, ProviderStatus.COMPLETED)
        reason = "Transfer reversed by sandbox" if status == ProviderStatus.FAILED else None
        return ProviderStatusResult(status=status, failure_reason=reason)
