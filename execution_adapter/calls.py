"""Bounded adapter calls: every call runs on a worker thread with a deadline."""

from concurrent.futures import Executor
from concurrent.futures import TimeoutError as FutureTimeoutError
from typing import Callable, TypeVar

from core.errors import AdapterTimeoutError
from core.logger import get_logger

T = TypeVar("T")

log = get_logger(__name__)


def call_with_timeout(
    executor: Executor,
    fn: Callable[..., T],
    *args: object,
    timeout: float,
    retries: int = 0,
    label: str = "adapter call",
) -> T:
    """Run ``fn(*args)`` with a deadline, retrying only on timeout.

    A call that is still queued when its deadline passes is withdrawn and
    submitted again. A call that already started keeps its worker, so a retry
    waits on that same call instead of stacking another one behind it.
    Adapter errors raised by ``fn`` propagate unchanged. After ``retries``
    further timeouts an ``AdapterTimeoutError`` is raised.
    """

    attempts = retries + 1
    future = executor.submit(fn, *args)
    for attempt in range(1, attempts + 1):
        try:
            return future.result(timeout=timeout)
        except FutureTimeoutError:
            log.warning("%s timed out after %.3fs (attempt %s/%s)", label, timeout, attempt, attempts)
            if attempt < attempts and future.cancel():
                future = executor.submit(fn, *args)
    future.cancel()
    raise AdapterTimeoutError(f"{label} timed out after {attempts} attempt(s).")
