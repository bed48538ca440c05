"""JSON-over-HTTP provider adapters."""

from typing import Any, Optional

import requests

from settleit.domain.entities import Payout, ProviderStatus, Refund, Transaction
from settleit.domain.errors import ProviderRejected, ProviderTimeout, ProviderUnavailable
from settleit.providers.base import (
    PaymentProvider,
    PayoutProvider,
    ProviderInitResult,
    ProviderPayoutResult,
    ProviderRefundResult,
    ProviderStatusResult,
)

# Gateway status strings seen in the wild, mapped onto provider outcomes
_STATUS_MAP = {
    "success": ProviderStatus.COMPLETED,
    "successful": ProviderStatus.COMPLETED,
    "completed": ProviderStatus.COMPLETED,
    "processed": ProviderStatus.COMPLETED,
    "failed": ProviderStatus.FAILED,
    "reversed": ProviderStatus.FAILED,
    "abandoned": ProviderStatus.FAILED,
    "declined": ProviderStatus.FAILED,
    "pending": ProviderStatus.PENDING,
    "ongoing": ProviderStatus.PROCESSING,
    "processing": ProviderStatus.PROCESSING,
    "queued": ProviderStatus.PROCESSING,
}


def parse_status(value: Any) -> ProviderStatus:
    # Envelopes may carry a boolean "status" meaning "request accepted", not an outcome
    if not isinstance(value, str):
        return ProviderStatus.PROCESSING
    return _STATUS_MAP.get(value.lower(), ProviderStatus.PROCESSING)


class _HTTPClient:
    def __init__(
        self,
        base_url: str,
        api_key: Optional[str] = None,
        timeout: Optional[float] = None,
        session: Optional[requests.Session] = None,
    ):
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self.session = session or requests.Session()
        self.session.headers.update({"Content-Type": "application/json"})
        if api_key:
            self.session.headers.update({"Authorization": f"Bearer {api_key}"})

    def request(self, method: str, path: str, payload: Optional[dict[str, Any]] = None) -> dict[str, Any]:
        url = f"{self.base_url}{path}"
        try:
            response = self.session.request(method, url, json=payload, timeout=self.timeout)
        except requests.Timeout as e:
            raise ProviderTimeout(f"{method} {url} timed out") from e
        except requests.ConnectionError as e:
            raise ProviderUnavailable(f"{method} {url} failed: {e}") from e

        if response.status_code >= 500:
            raise ProviderUnavailable(f"{method} {url} returned {response.status_code}")
        if response.status_code >= 400:
            raise ProviderRejected(f"{method} {url} returned {response.status_code}: {response.text}")

        try:
            data = response.json()
        except ValueError as e:
            raise ProviderUnavailable(f"{method} {url} returned a non-JSON body") from e
        if not isinstance(data, dict):
            raise ProviderUnavailable(f"{method} {url} returned {type(data).__name__}, expected an object")

        # Paystack-style envelopes wrap the payload in "data"
        if isinstance(data.get("data"), dict):
            return data["data"]
        return data


class HTTPPaymentProvider(PaymentProvider):
    """Payment gateway reached over a JSON API."""

    name = "http"

    def __init__(self, base_url: str, api_key: Optional[str] = None, timeout: Optional[float] = None,
                 session: Optional[requests.Session] = None):
        self.client = _HTTPClient(base_url, api_key, timeout, session)

    def initialize(self, transaction: Transaction) -> ProviderInitResult:
        data = self.client.request(
            "POST",
            "/payments/initialize",
            {
                "reference": transaction.reference,
                "amount": transaction.total_amount,
                "currency": transaction.currency,
                "payment_method": transaction.payment_method,
                "payer_id": transaction.payer_id,
                "metadata": transaction.metadata,
            },
        )
        return ProviderInitResult(
            external_reference=data.get("external_reference") or data.get("reference") or transaction.reference,
            provider_transaction_id=data.get("id") and str(data["id"]),
            authorization_url=data.get("authorization_url"),
        )

    def verify(self, transaction: Transaction) -> ProviderStatusResult:
        reference = transaction.external_reference or transaction.reference
        data = self.client.request("GET", f"/payments/{reference}/verify")
        return ProviderStatusResult(
            status=parse_status(data.get("status")),
            failure_reason=data.get("gateway_response") or data.get("failure_reason"),
        )

    def refund(self, refund: Refund, transaction: Transaction) -> ProviderRefundResult:
        data = self.client.request(
            "POST",
            "/refunds",
            {
                "transaction": transaction.external_reference or transaction.reference,
                "reference": refund.reference_number,
                "amount": refund.amount,
                "currency": refund.currency,
                "reason": refund.reason,
            },
        )
        return ProviderRefundResult(
            external_reference=data.get("external_reference") or refund.reference_number,
            status=parse_status(data.get("status")),
        )

    def verify_refund(self, refund: Refund) -> ProviderStatusResult:
        reference = refund.external_reference or refund.reference_number
        data = self.client.request("GET", f"/refunds/{reference}/verify")
        return ProviderStatusResult(
            status=parse_status(data.get("status")), failure_reason=data.get("failure_reason")
        )


class HTTPPayoutProvider(PayoutProvider):
    """Payout rail reached over a JSON API."""

    name = "http"

    def __init__(self, base_url: str, api_key: Optional[str] = None, timeout: Optional[float] = None,
                 session: Optional[requests.Session] = None):
        self.client = _HTTPClient(base_url, api_key, timeout, session)

    def execute(self, payout: Payout) -> ProviderPayoutResult:
        data = self.client.request(
            "POST",
            "/payouts",
            {
                "reference": payout.reference_number,
                "amount": payout.net_amount,
                "currency": payout.currency,
                "method": payout.method,
                "recipient": payout.account,
            },
        )
        return ProviderPayoutResult(
            external_reference=data.get("external_reference") or data.get("transfer_code") or payout.reference_number,
            status=parse_status(data.get("status")),
        )

    def verify(self, payout: Payout) -> ProviderStatusResult:
        reference = payout.external_reference or payout.reference_number
        data = self.client.request("GET", f"/payouts/{reference}/verify")
        return ProviderStatusResult(
            status=parse_status(data.get("status")), failure_reason=data.get("failure_reason")
        )
