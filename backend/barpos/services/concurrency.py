# Overview: Retry, busy-gate and cancellation primitives shared by the terminal services.

from __future__ import annotations

import threading
import time

from ..validation import NetworkError, OperationCancelledError


def run_with_retry(func, *, attempts: int = 3, backoff_base: float = 0.1, sleep=time.sleep):
    """
    Execute a repository operation with retry on transient failures.

    Retries NetworkError raised with transient=True (lock timeouts,
    optimistic locking conflicts). Every attempt runs inside its own unit
    of work, so a failed attempt leaves nothing behind to undo here.
    """
    last_exc = None
    for attempt in range(attempts):
        try:
            return func()
        except NetworkError as exc:
            if not exc.details.get("transient"):
                raise
            last_exc = exc
            if attempt >= attempts - 1:
                raise
            sleep(backoff_base * (2 ** attempt))
    if last_exc:
        raise last_exc


class BusyGate:
    """
    Session-wide busy flag.

    Gates save/pay/void so a double tap cannot submit twice. acquire() never
    blocks: a second caller is told the terminal is busy.
    """

    def __init__(self):
        self._lock = threading.Lock()

    @property
    def busy(self) -> bool:
        return self._lock.locked()

    def acquire(self) -> bool:
        return self._lock.acquire(blocking=False)

    def release(self) -> None:
        if self._lock.locked():
            self._lock.release()


class CancellationToken:
    """Cooperative cancellation for multi-step operations."""

    def __init__(self):
        self._event = threading.Event()

    def cancel(self) -> None:
        self._event.set()

    @property
    def cancelled(self) -> bool:
        return self._event.is_set()

    def raise_if_cancelled(self) -> None:
        if self._event.is_set():
            raise OperationCancelledError("Operation cancelled")


def check_cancelled(token: CancellationToken | None) -> None:
    if token is not None:
        token.raise_if_cancelled()
