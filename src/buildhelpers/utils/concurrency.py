"""Thread-based concurrency primitives shared by the parallel runner and the CLI."""

from __future__ import annotations

import threading
from contextlib import contextmanager
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from collections.abc import Iterator


class CancelledError(RuntimeError):
    """Raised by :meth:`CancellationToken.raise_if_cancelled`."""


class CancellationToken:
    """Cooperative cancellation token backed by ``threading.Event``."""

    def __init__(self) -> None:
        self._event = threading.Event()

    def cancel(self) -> None:
        self._event.set()

    @property
    def is_cancelled(self) -> bool:
        return self._event.is_set()

    def wait(self, timeout: float | None = None) -> bool:
        """Block until cancelled or ``timeout`` elapses; return the cancelled state."""
        return self._event.wait(timeout)

    def raise_if_cancelled(self) -> None:
        if self._event.is_set():
            raise CancelledError("operation cancelled")


class _BackgroundToken(CancellationToken):
    """Token that can never be cancelled."""

    def cancel(self) -> None:
        raise RuntimeError("the background token cannot be cancelled")


def background_token() -> CancellationToken:
    """Return a token that is never cancelled, for callers without one."""
    return _BackgroundToken()


class BoundedSemaphore:
    """Small wrapper over ``threading.Semaphore`` with usage diagnostics."""

    def __init__(self, limit: int) -> None:
        if limit <= 0:
            raise ValueError("limit must be > 0")
        self._limit = limit
        self._semaphore = threading.Semaphore(limit)
        self._lock = threading.Lock()
        self._in_use = 0
        self._peak_in_use = 0

    @property
    def limit(self) -> int:
        return self._limit

    @property
    def in_use(self) -> int:
        with self._lock:
            return self._in_use

    @property
    def available(self) -> int:
        with self._lock:
            return self._limit - self._in_use

    @property
    def peak_in_use(self) -> int:
        """Highest number of permits held at once since construction."""
        with self._lock:
            return self._peak_in_use

    def acquire(self) -> None:
        self._semaphore.acquire()
        with self._lock:
            self._in_use += 1
            self._peak_in_use = max(self._peak_in_use, self._in_use)

    def release(self) -> None:
        with self._lock:
            if self._in_use <= 0:
                raise RuntimeError("release called more times than acquire")
            self._in_use -= 1
        self._semaphore.release()

    @contextmanager
    def permit(self) -> Iterator[None]:
        self.acquire()
        try:
            yield
        finally:
            self.release()

    def snapshot(self) -> dict[str, int]:
        with self._lock:
            return {
                "limit": self._limit,
                "in_use": self._in_use,
                "available": self._limit - self._in_use,
                "peak_in_use": self._peak_in_use,
            }


__all__ = [
    "BoundedSemaphore",
    "CancellationToken",
    "CancelledError",
    "background_token",
]
