"""Provider adapter interfaces and call helpers.

Payment gateways and payout rails sit behind these interfaces. Adapters
report transient failures as ``ProviderUnavailable``, refusals as
``ProviderRejected`` and unanswered calls as ``ProviderTimeout``.
"""

import time
from abc import ABC, abstractmethod
from concurrent.futures import ThreadPoolExecutor
from concurrent.futures import TimeoutError as FutureTimeout
from dataclasses import dataclass
from typing import Callable, Optional, TypeVar

from settleit.domain.entities import Payout, ProviderStatus, Refund, Transaction
from settleit.domain.errors import ProviderTimeout, ProviderUnavailable
from settleit.logging_config import get_logger

logger = get_logger("providers")

T = TypeVar("T")


@dataclass(frozen=True)
class ProviderInitResult:
    external_reference: str
    provider_transaction_id: Optional[str] = None
    authorization_url: Optional[str] = None


@dataclass(frozen=True)
class ProviderStatusResult:
    status: ProviderStatus
    failure_reason: Optional[str] = None


@dataclass(frozen=True)
class ProviderRefundResult:
    external_reference: str
    status: ProviderStatus


@dataclass(frozen=True)
class ProviderPayoutResult:
    external_reference: str
    status: ProviderStatus


class PaymentProvider(ABC):
    """Payment gateway used to collect and refund payments."""

    name = "payment"

    @abstractmethod
    def initialize(self, transaction: Transaction) -> ProviderInitResult:
        """Register a payment with the gateway."""
        pass

    @abstractmethod
    def verify(self, transaction: Transaction) -> ProviderStatusResult:
        """Ask the gateway for the payment outcome."""
        pass

    @abstractmethod
    def refund(self, refund: Refund, transaction: Transaction) -> ProviderRefundResult:
        """Return money to the payer."""
        pass

    @abstractmethod
    def verify_refund(self, refund: Refund) -> ProviderStatusResult:
        """Ask the gateway for a refund outcome."""
        pass


class PayoutProvider(ABC):
    """Payout rail used to send money to sellers."""

    name = "payout"

    @abstractmethod
    def execute(self, payout: Payout) -> ProviderPayoutResult:
        """Send a payout. Asynchronous rails answer ``processing``."""
        pass

    @abstractmethod
    def verify(self, payout: Payout) -> ProviderStatusResult:
        """Ask the rail for a payout outcome."""
        pass


def call_with_timeout(fn: Callable[[], T], timeout: Optional[float]) -> T:
    """Run a provider call, raising ProviderTimeout if it does not return in time.

    The worker thread is abandoned on timeout; its eventual result is ignored.
    """
    if timeout is None:
        return fn()

    executor = ThreadPoolExecutor(max_workers=1)
    future = executor.submit(fn)
    try:
        return future.result(timeout=timeout)
    except FutureTimeout as e:
        raise ProviderTimeout(f"Provider call did not complete within {timeout}s") from e
    finally:
        executor.shutdown(wait=False)


def with_retries(
    fn: Callable[[], T],
    max_retries: int,
    backoff: float,
    sleep: Callable[[float], None] = time.sleep,
) -> T:
    """Call ``fn``, retrying ProviderUnavailable with exponential backoff.

    Args:
        fn: Zero-argument provider call
        max_retries: Retries after the first attempt
        backoff: Base delay in seconds; attempt ``n`` waits ``backoff * 2**n``
        sleep: Sleep function, replaceable in tests

    Raises:
        ProviderUnavailable: When every attempt failed
        ProviderRejected, ProviderTimeout: Immediately, without retrying
    """
    attempt = 0
    while True:
        try:
            return fn()
        except ProviderUnavailable as e:
            if attempt >= max_retries:
                raise
            delay = backoff * (2 ** attempt)
            logger.warning(
                "provider_retry",
                extra={"attempt": attempt + 1, "delay_seconds": delay, "error": str(e)},
            )
            sleep(delay)
            attempt += 1


class ProviderCaller:
    """Applies the configured timeout and retry policy to provider calls."""

    def __init__(
        self,
        timeout: Optional[float],
        max_retries: int,
        backoff: float,
        sleep: Callable[[float], None] = time.sleep,
    ):
        self.timeout = timeout
        self.max_retries = max_retries
        self.backoff = backoff
        self.sleep = sleep

    def __call__(self, fn: Callable[[], T], max_retries: Optional[int] = None) -> T:
        retries = self.max_retries if max_retries is None else max_retries
        return with_retries(
            lambda: call_with_timeout(fn, self.timeout),
            max_retries=retries,
            backoff=self.backoff,
            sleep=self.sleep,
        )
