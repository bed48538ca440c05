"""Reference numbers for payments, refunds, payouts and batches."""

import secrets
import string
import time

_ALPHABET = string.ascii_uppercase + string.digits


def _random_suffix(length: int) -> str:
    return "".join(secrets.choice(_ALPHABET) for _ in range(length))


def _millis() -> str:
    return str(time.time_ns() // 1_000_000)


def payment_reference() -> str:
    return f"PAY{_millis()}{_random_suffix(6)}"


def refund_reference() -> str:
    return f"REF{_millis()[-10:]}{_random_suffix(4)}"


def payout_reference() -> str:
    return f"PO{_millis()[-10:]}{_random_suffix(4)}"


def batch_id() -> str:
    return f"BATCH{_millis()[-10:]}{_random_suffix(4)}"
