"""Cooperative cancellation for ingestion runs."""

from __future__ import annotations

import threading


class FetchCancelled(Exception):
    """Raised inside the fetch loop when its token has been cancelled."""


class CancellationToken:
    """Thread-safe cancellation flag with interruptible waits."""

    def __init__(self) -> None:
        self._event = threading.Event()

    @property
    def cancelled(self) -> bool:
        return self._event.is_set()

    def cancel(self) -> None:
        """Signal cancellation to the running fetch loop."""
        self._event.set()

    def wait(self, seconds: float) -> bool:
        """Sleep up to ``seconds``, waking early on cancellation.

        Returns:
            True when the token was cancelled before or during the wait.
        """
        if seconds <= 0:
            return self._event.is_set()
        return self._event.wait(seconds)

    def raise_if_cancelled(self) -> None:
        if self._event.is_set():
            raise FetchCancelled()
