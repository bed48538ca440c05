"""External provider adapters."""

from settleit.providers.base import (
    PaymentProvider,
    PayoutProvider,
    ProviderCaller,
    ProviderInitResult,
    ProviderPayoutResult,
    ProviderRefundResult,
    ProviderStatusResult,
    call_with_timeout,
    with_retries,
)
from settleit.providers.http import HTTPPaymentProvider, HTTPPayoutProvider
from settleit.providers.sandbox import SandboxPaymentProvider, SandboxPayoutProvider

__all__ = [
    "PaymentProvider",
    "PayoutProvider",
    "ProviderCaller",
    "ProviderInitResult",
    "ProviderPayoutResult",
    "ProviderRefundResult",
    "ProviderStatusResult",
    "call_with_timeout",
    "with_retries",
    "HTTPPaymentProvider",
    "HTTPPayoutProvider",
    "SandboxPaymentProvider",
    "SandboxPayoutProvider",
]
