from __future__ import annotations

import threading
import time

from .errors import OperationCancelledError


class CancelToken:
    """
    Cooperative cancellation with an optional deadline.

    Checked before a connection is opened, before each statement, and used
    as the interruptible wait between retry attempts.

    Usage:
        token = CancelToken.with_timeout(30)
        executor.execute_transaction(statements, cancel=token)

        # from another thread
        token.cancel()
    """

    def __init__(self, deadline: float | None = None) -> None:
        self._event = threading.Event()
        self._deadline = deadline

    @classmethod
    def with_timeout(cls, seconds: float) -> "CancelToken":
        return cls(deadline=time.monotonic() + seconds)

    def cancel(self) -> None:
        self._event.set()

    @property
    def cancelled(self) -> bool:
        if self._event.is_set():
            return True
        return self._deadline is not None and time.monotonic() >= self._deadline

    def remaining(self) -> float | None:
        """Seconds until the deadline, or None when there is no deadline."""
        if self._deadline is None:
            return None
        return max(0.0, self._deadline - time.monotonic())

    def raise_if_cancelled(self) -> None:
        if self._event.is_set():
            raise OperationCancelledError("Operation cancelled")
        if self._deadline is not None and time.monotonic() >= self._deadline:
            raise OperationCancelledError("Operation deadline exceeded")

    def wait(self, seconds: float) -> None:
        """
        Sleep for up to `seconds`, waking early on cancel.

        Raises:
            OperationCancelledError: If cancelled or the deadline passes during the wait
        """
        remaining = self.remaining()
        if remaining is not None and remaining < seconds:
            if self._event.wait(remaining):
                raise OperationCancelledError("Operation cancelled")
            raise OperationCancelledError("Operation deadline exceeded")
        if self._event.wait(seconds):
            raise OperationCancelledError("Operation cancelled")
