"""Per-basket mutual exclusion with a bounded wait."""

import threading
from contextlib import contextmanager
from typing import Dict, Iterator

from core.errors import BasketBusyError


class BasketLockManager:
    def __init__(self, timeout_seconds: float) -> None:
        self._timeout = timeout_seconds
        self._locks: Dict[int, threading.Lock] = {}
        self._guard = threading.Lock()

    @contextmanager
    def lease(self, basket_id: int) -> Iterator[None]:
        lock = self._lock_for(basket_id)
        if self._timeout > 0:
            acquired = lock.acquire(timeout=self._timeout)
        else:
            acquired = lock.acquire(blocking=False)
        if not acquired:
            raise BasketBusyError(f"Basket {basket_id} is being evaluated elsewhere.")
        try:
            yield
        finally:
            lock.release()

    def _lock_for(self, basket_id: int) -> threading.Lock:
        with self._guard:
            lock = self._locks.get(basket_id)
            if lock is None:
                lock = threading.Lock()
                self._locks[basket_id] = lock
            return lock
