"""Per-entity mutual exclusion."""

import threading
from contextlib import contextmanager, nullcontext
from typing import Iterator, Optional


class EntityLocks:
    """Registry of re-entrant locks keyed by entity.

    Services sharing one registry serialize work on the same transaction,
    payout or seller balance. Locks are always taken in the order
    transaction/payout first, balance second.
    """

    def __init__(self):
        self._guard = threading.Lock()
        self._locks: dict[str, threading.RLock] = {}

    def _lock_for(self, key: str) -> threading.RLock:
        with self._guard:
            lock = self._locks.get(key)
            if lock is None:
                lock = threading.RLock()
                self._locks[key] = lock
            return lock

    @contextmanager
    def hold(self, key: str) -> Iterator[None]:
        lock = self._lock_for(key)
        with lock:
            yield

    def transaction(self, reference: str):
        return self.hold(f"transaction:{reference}")

    def payout(self, payout_id: int):
        return self.hold(f"payout:{payout_id}")

    def balance(self, seller_id: Optional[str], currency: str):
        """Lock a seller balance; payments without a seller need no lock."""
        if seller_id is None:
            return nullcontext()
        return self.hold(f"balance:{seller_id}:{currency.upper()}")
