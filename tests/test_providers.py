"""Tests for provider adapters and the retry/timeout helpers."""

import threading
from types import SimpleNamespace

import pytest
import requests

from settleit.domain.entities import ProviderStatus, TransactionStatus
from settleit.domain.errors import ProviderRejected, ProviderTimeout, ProviderUnavailable
from settleit.engine import SettlementEngine
from settleit.providers.base import ProviderCaller, call_with_timeout, with_retries
from settleit.providers.http import HTTPPaymentProvider, HTTPPayoutProvider, parse_status
from settleit.providers.sandbox import SandboxPaymentProvider, SandboxPayoutProvider


class FlakyCall:
    """Raises the given errors in turn, then returns ``result``."""

    def __init__(self, *errors, result="ok"):
        self.errors = list(errors)
        self.result = result
        self.calls = 0

    def __call__(self):
        self.calls += 1
        if self.errors:
            raise self.errors.pop(0)
        return self.result


class FakeResponse:
    def __init__(self, status_code=200, data=None, body=None):
        self.status_code = status_code
        self._data = data if data is not None else {}
        self._body = body
        self.text = body if body is not None else str(self._data)

    def json(self):
        if self._body is not None:
            raise requests.JSONDecodeError("Expecting value", self._body, 0)
        return self._data


class FakeSession:
    """Records requests and replays canned responses or errors."""

    def __init__(self, *responses):
        self.headers = {}
        self.responses = list(responses)
        self.requests = []

    def request(self, method, url, json=None, timeout=None):
        self.requests.append((method, url, json, timeout))
        response = self.responses.pop(0)
        if isinstance(response, Exception):
            raise response
        return response


def _transaction(**overrides):
    fields = dict(
        reference="TXN-1",
        external_reference=None,
        total_amount=114100,
        currency="NGN",
        payment_method="card",
        payer_id="buyer-1",
        metadata={},
    )
    fields.update(overrides)
    return SimpleNamespace(**fields)


class TestWithRetries:
    def test_retries_unavailable_with_exponential_backoff(self):
        sleeps = []
        call = FlakyCall(ProviderUnavailable("503"), ProviderUnavailable("503"))

        assert with_retries(call, max_retries=3, backoff=0.5, sleep=sleeps.append) == "ok"
        assert call.calls == 3
        assert sleeps == [0.5, 1.0]

    def test_gives_up_after_max_retries(self):
        sleeps = []
        call = FlakyCall(*[ProviderUnavailable("down")] * 5)

        with pytest.raises(ProviderUnavailable):
            with_retries(call, max_retries=2, backoff=1, sleep=sleeps.append)
        assert call.calls == 3
        assert sleeps == [1, 2]

    @pytest.mark.parametrize("error", [ProviderRejected("no"), ProviderTimeout("slow")])
    def test_does_not_retry_other_errors(self, error):
        sleeps = []
        call = FlakyCall(error)

        with pytest.raises(type(error)):
            with_retries(call, max_retries=3, backoff=1, sleep=sleeps.append)
        assert call.calls == 1
        assert sleeps == []


def test_call_with_timeout_raises_provider_timeout():
    release = threading.Event()
    try:
        with pytest.raises(ProviderTimeout):
            call_with_timeout(lambda: release.wait(5), timeout=0.05)
    finally:
        release.set()


def test_call_with_timeout_returns_result():
    assert call_with_timeout(lambda: 42, timeout=1) == 42
    assert call_with_timeout(lambda: 7, timeout=None) == 7


def test_provider_caller_retry_override():
    sleeps = []
    caller = ProviderCaller(timeout=None, max_retries=0, backoff=0.25, sleep=sleeps.append)
    call = FlakyCall(ProviderUnavailable("503"))

    with pytest.raises(ProviderUnavailable):
        caller(call)

    call = FlakyCall(ProviderUnavailable("503"))
    assert caller(call, max_retries=1) == "ok"
    assert sleeps == [0.25]


class TestSandbox:
    def test_unscripted_calls_succeed(self):
        provider = SandboxPaymentProvider()
        transaction = _transaction()

        result = provider.initialize(transaction)
        assert result.external_reference == "sbx_TXN-1"
        assert provider.verify(transaction).status == ProviderStatus.COMPLETED
        assert provider.calls_for("verify") == ["TXN-1"]

    def test_queued_outcomes_are_consumed_in_order(self):
        provider = SandboxPaymentProvider()
        transaction = _transaction()
        provider.queue("verify", ProviderStatus.PROCESSING, ProviderStatus.FAILED)

        assert provider.verify(transaction).status == ProviderStatus.PROCESSING
        failed = provider.verify(transaction)
        assert failed.status == ProviderStatus.FAILED
        assert failed.failure_reason == "Declined by sandbox"
        assert provider.verify(transaction).status == ProviderStatus.COMPLETED

    def test_queued_exception_is_raised(self):
        provider = SandboxPayoutProvider()
        provider.queue("execute", ProviderUnavailable("rail down"))

        with pytest.raises(ProviderUnavailable):
            provider.execute(SimpleNamespace(reference_number="PO-1"))
        assert provider.execute(SimpleNamespace(reference_number="PO-1")).status == ProviderStatus.COMPLETED

    def test_fixed_status_per_reference(self):
        provider = SandboxPayoutProvider()
        provider.set_status("PO-2", ProviderStatus.PROCESSING)

        assert provider.verify(SimpleNamespace(reference_number="PO-2")).status == ProviderStatus.PROCESSING
        assert provider.verify(SimpleNamespace(reference_number="PO-3")).status == ProviderStatus.COMPLETED


class TestHTTPProviders:
    def test_initialize_unwraps_data_envelope(self):
        session = FakeSession(
            FakeResponse(
                data={
                    "status": True,
                    "data": {"reference": "ps_123", "id": 99, "authorization_url": "https://pay.example/x"},
                }
            )
        )
        provider = HTTPPaymentProvider("https://gateway.example/", api_key="sk_test", timeout=5, session=session)

        result = provider.initialize(_transaction())

        assert result.external_reference == "ps_123"
        assert result.provider_transaction_id == "99"
        assert result.authorization_url == "https://pay.example/x"
        method, url, payload, timeout = session.requests[0]
        assert (method, url, timeout) == ("POST", "https://gateway.example/payments/initialize", 5)
        assert payload["amount"] == 114100
        assert session.headers["Authorization"] == "Bearer sk_test"

    def test_verify_maps_gateway_status(self):
        session = FakeSession(FakeResponse(data={"status": "abandoned", "gateway_response": "Customer left"}))
        provider = HTTPPaymentProvider("https://gateway.example", session=session)

        result = provider.verify(_transaction(external_reference="ps_123"))

        assert result.status == ProviderStatus.FAILED
        assert result.failure_reason == "Customer left"
        assert session.requests[0][1] == "https://gateway.example/payments/ps_123/verify"

    def test_server_error_is_unavailable(self):
        provider = HTTPPaymentProvider("https://gateway.example", session=FakeSession(FakeResponse(503)))
        with pytest.raises(ProviderUnavailable):
            provider.verify(_transaction())

    def test_client_error_is_rejected(self):
        provider = HTTPPaymentProvider("https://gateway.example", session=FakeSession(FakeResponse(400)))
        with pytest.raises(ProviderRejected):
            provider.verify(_transaction())

    def test_transport_errors(self):
        provider = HTTPPaymentProvider(
            "https://gateway.example",
            session=FakeSession(requests.Timeout("read timeout"), requests.ConnectionError("refused")),
        )
        with pytest.raises(ProviderTimeout):
            provider.verify(_transaction())
        with pytest.raises(ProviderUnavailable):
            provider.verify(_transaction())

    def test_payout_sends_net_amount(self):
        session = FakeSession(FakeResponse(data={"data": {"transfer_code": "TRF_1", "status": "pending"}}))
        provider = HTTPPayoutProvider("https://rail.example", session=session)
        payout = SimpleNamespace(
            reference_number="PO-1", net_amount=96500, currency="NGN", method="bank_transfer", account={}
        )

        result = provider.execute(payout)

        assert result.external_reference == "TRF_1"
        assert result.status == ProviderStatus.PENDING
        assert session.requests[0][2]["amount"] == 96500

    def test_non_json_body_is_unavailable(self):
        session = FakeSession(FakeResponse(body="<html>Scheduled maintenance</html>"))
        provider = HTTPPaymentProvider("https://gateway.example", session=session)

        with pytest.raises(ProviderUnavailable, match="non-JSON"):
            provider.initialize(_transaction())

    def test_non_object_body_is_unavailable(self):
        provider = HTTPPayoutProvider("https://rail.example", session=FakeSession(FakeResponse(data=["ok"])))
        with pytest.raises(ProviderUnavailable, match="expected an object"):
            provider.verify(SimpleNamespace(external_reference=None, reference_number="PO-1"))

    def test_boolean_status_is_not_an_outcome(self):
        session = FakeSession(FakeResponse(data={"status": True, "message": "Verification queued"}))
        provider = HTTPPaymentProvider("https://gateway.example", session=session)

        assert provider.verify(_transaction()).status == ProviderStatus.PROCESSING


@pytest.mark.parametrize(
    "value,expected",
    [
        ("success", ProviderStatus.COMPLETED),
        ("SUCCESSFUL", ProviderStatus.COMPLETED),
        ("reversed", ProviderStatus.FAILED),
        ("pending", ProviderStatus.PENDING),
        ("queued", ProviderStatus.PROCESSING),
        ("something-new", ProviderStatus.PROCESSING),
        (None, ProviderStatus.PROCESSING),
        (True, ProviderStatus.PROCESSING),
        (200, ProviderStatus.PROCESSING),
    ],
)
def test_parse_status(value, expected):
    assert parse_status(value) == expected


def test_unreadable_gateway_reply_fails_payment(temp_db, engine_config, payment_request):
    """A payment whose gateway keeps answering with HTML is failed, not left pending."""
    session = FakeSession(*[FakeResponse(body="<html>Bad gateway</html>") for _ in range(3)])
    engine = SettlementEngine(
        temp_db,
        engine_config,
        payment_provider=HTTPPaymentProvider("https://gateway.example", session=session),
        sleep=lambda seconds: None,
    )

    transaction = engine.transactions.initialize(payment_request())

    assert transaction.status == TransactionStatus.FAILED
    assert "non-JSON" in transaction.failure_reason
    assert len(session.requests) == 3
