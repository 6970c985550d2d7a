"""Tests for thread-based concurrency primitives."""

from __future__ import annotations

import threading
import time

import pytest

from buildhelpers.utils.concurrency import (
    BoundedSemaphore,
    CancellationToken,
    CancelledError,
    background_token,
)


def test_semaphore_rejects_non_positive_limit() -> None:
    with pytest.raises(ValueError, match="limit must be > 0"):
        BoundedSemaphore(0)


def test_semaphore_tracks_usage_and_peak() -> None:
    limiter = BoundedSemaphore(2)

    limiter.acquire()
    limiter.acquire()
    assert limiter.snapshot() == {"limit": 2, "in_use": 2, "available": 0, "peak_in_use": 2}

    limiter.release()
    limiter.release()
    assert limiter.in_use == 0
    assert limiter.available == 2
    assert limiter.peak_in_use == 2


def test_semaphore_release_without_acquire_raises() -> None:
    limiter = BoundedSemaphore(1)

    with pytest.raises(RuntimeError, match="more times than acquire"):
        limiter.release()


def test_permit_is_released_when_body_raises() -> None:
    limiter = BoundedSemaphore(1)

    with pytest.raises(KeyError), limiter.permit():
        assert limiter.in_use == 1
        raise KeyError("boom")

    assert limiter.in_use == 0


def test_acquire_blocks_until_a_permit_is_released() -> None:
    limiter = BoundedSemaphore(1)
    limiter.acquire()
    acquired = threading.Event()

    def waiter() -> None:
        with limiter.permit():
            acquired.set()

    thread = threading.Thread(target=waiter)
    thread.start()
    time.sleep(0.05)
    assert not acquired.is_set()

    limiter.release()
    thread.join(timeout=2.0)
    assert acquired.is_set()
    assert limiter.peak_in_use == 1


def test_cancellation_token_lifecycle() -> None:
    token = CancellationToken()
    assert not token.is_cancelled
    assert token.wait(0.001) is False
    token.raise_if_cancelled()

    token.cancel()

    assert token.is_cancelled
    assert token.wait(0.001) is True
    with pytest.raises(CancelledError, match="operation cancelled"):
        token.raise_if_cancelled()


def test_background_token_cannot_be_cancelled() -> None:
    token = background_token()

    with pytest.raises(RuntimeError):
        token.cancel()
    assert not token.is_cancelled
