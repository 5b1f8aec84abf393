"""Run-wide deadline and cancellation signal threaded through registry calls."""
from __future__ import annotations

import threading
import time
from typing import Optional


class DeadlineExceeded(Exception):
    """Raised when the run deadline passed or the run was cancelled."""


class Deadline:
    """Overall deadline with an explicit cancel switch.

    A Deadline without ``seconds`` never expires on its own but can still be
    cancelled.
    """

    def __init__(self, seconds: Optional[float] = None):
        self._expires_at = time.monotonic() + seconds if seconds else None
        self._cancelled = threading.Event()

    def cancel(self) -> None:
        self._cancelled.set()

    @property
    def cancelled(self) -> bool:
        return self._cancelled.is_set()

    def remaining(self) -> Optional[float]:
        """Seconds left, or None when unbounded."""
        if self._expires_at is None:
            return None
        return max(0.0, self._expires_at - time.monotonic())

    def expired(self) -> bool:
        if self.cancelled:
            return True
        remaining = self.remaining()
        return remaining is not None and remaining <= 0

    def check(self, context: str = "") -> None:
        """Raise DeadlineExceeded when the run must stop."""
        if self.cancelled:
            raise DeadlineExceeded(f"run cancelled{': ' + context if context else ''}")
        if self.expired():
            raise DeadlineExceeded(f"deadline exceeded{': ' + context if context else ''}")

    def timeout_for(self, default: float) -> float:
        """Clip a per-request timeout to the time left."""
        remaining = self.remaining()
        if remaining is None:
            return default
        return max(0.001, min(default, remaining))

    def sleep(self, seconds: float) -> None:
        """Sleep for backoff, waking early on cancel; never sleeps past expiry."""
        remaining = self.remaining()
        if remaining is not None:
            seconds = min(seconds, remaining)
        if seconds > 0:
            self._cancelled.wait(seconds)
