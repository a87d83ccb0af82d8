"""Caller-supplied cancellation for client calls.

A :class:`Context` is handed to every network operation. It may be cancelled
from any thread, and may carry a deadline. Once done it stays done, and
:meth:`Context.error` returns the :class:`CancellationError` that operations
raise in place of whatever the transport reported.
"""

from __future__ import annotations
import threading
import time
from typing import Callable

from .model import CancellationError

CANCELED = "context canceled"
DEADLINE_EXCEEDED = "context deadline exceeded"


class Context:
    def __init__(self, deadline: float | None = None):
        self.deadline = deadline        # time.monotonic() value, or None
        self._lock = threading.Lock()
        self._reason: str | None = None
        self._callbacks: list[Callable[[], None]] = []

    @classmethod
    def with_timeout(cls, seconds: float) -> Context:
        return cls(deadline=time.monotonic() + seconds)

    def remaining(self) -> float | None:
        """Seconds left before the deadline, or ``None`` without one."""
        if self.deadline is None:
            return None
        return max(0.0, self.deadline - time.monotonic())

    def cancel(self, reason: str = CANCELED) -> None:
        with self._lock:
            if self._reason is not None:
                return
            self._reason = reason
            callbacks, self._callbacks = self._callbacks, []
        for callback in callbacks:
            callback()

    def error(self) -> CancellationError | None:
        if self._reason is not None:
            return CancellationError(self._reason)
        if self.deadline is not None and time.monotonic() >= self.deadline:
            return CancellationError(DEADLINE_EXCEEDED)
        return None

    def done(self) -> bool:
        return self.error() is not None

    def on_cancel(self, callback: Callable[[], None]) -> Callable[[], None]:
        """Run ``callback`` when cancelled; returns a function that unregisters it.

        Deadlines do not fire callbacks, use :meth:`remaining` to wait on them.
        """
        with self._lock:
            if self._reason is None:
                self._callbacks.append(callback)
                return lambda: self._discard(callback)
        callback()
        return lambda: None

    def _discard(self, callback: Callable[[], None]) -> None:
        with self._lock:
            if callback in self._callbacks:
                self._callbacks.remove(callback)
