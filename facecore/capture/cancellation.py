"""Cooperative cancellation for capture loops."""
from __future__ import annotations

import threading


class CaptureCancelled(RuntimeError):
    """Raised by ``raise_if_cancelled`` once cancellation was requested."""


class CancellationToken:
    """Checked at the top of every attempt and used for every inter-attempt wait.

    ``wait`` doubles as the loop's sleep: it returns early (with True) as
    soon as ``cancel`` is called from another thread.
    """

    def __init__(self) -> None:
        self._event = threading.Event()

    def cancel(self) -> None:
        self._event.set()

    @property
    def cancelled(self) -> bool:
        return self._event.is_set()

    def wait(self, seconds: float) -> bool:
        if seconds <= 0:
            return self._event.is_set()
        return self._event.wait(seconds)

    def raise_if_cancelled(self) -> None:
        if self._event.is_set():
            raise CaptureCancelled("Capture cancelled")
