from __future__ import annotations

import threading
import time

import pytest

from dynaload.cancel import CancelToken
from dynaload.errors import OperationCancelledError


def test_fresh_token_is_not_cancelled() -> None:
    token = CancelToken()

    assert not token.cancelled
    assert token.remaining() is None
    token.raise_if_cancelled()


def test_cancel_sets_flag() -> None:
    token = CancelToken()
    token.cancel()

    assert token.cancelled
    with pytest.raises(OperationCancelledError, match="cancelled"):
        token.raise_if_cancelled()


def test_expired_deadline_counts_as_cancelled() -> None:
    token = CancelToken(deadline=time.monotonic() - 1)

    assert token.cancelled
    assert token.remaining() == 0.0
    with pytest.raises(OperationCancelledError, match="deadline"):
        token.raise_if_cancelled()


def test_wait_returns_after_delay() -> None:
    CancelToken().wait(0.01)


def test_wait_raises_when_already_cancelled() -> None:
    token = CancelToken()
    token.cancel()

    start = time.monotonic()
    with pytest.raises(OperationCancelledError):
        token.wait(5)
    assert time.monotonic() - start < 1


def test_wait_wakes_on_cancel_from_another_thread() -> None:
    """Test that a retry wait is interrupted promptly by cancel()."""
    token = CancelToken()
    timer = threading.Timer(0.05, token.cancel)
    timer.start()

    start = time.monotonic()
    try:
        with pytest.raises(OperationCancelledError):
            token.wait(5)
    finally:
        timer.cancel()
    assert time.monotonic() - start < 2


def test_wait_stops_at_deadline() -> None:
    """Test that a wait longer than the remaining deadline raises at the deadline."""
    token = CancelToken.with_timeout(0.05)

    start = time.monotonic()
    with pytest.raises(OperationCancelledError, match="deadline"):
        token.wait(5)
    assert time.monotonic() - start < 2
