"""
Cooperative cancellation.

A CancelToken is passed explicitly into every blocking call (settle delay,
read attempt, permit wait, inbox wait, pacing delay). Tokens can carry a
deadline and a parent: a child is cancelled when its parent is.
"""

from __future__ import annotations

import threading
import time
from typing import Optional

from .errors import Cancelled


# Granularity of sleeps that must notice cancellation of a parent token
POLL_INTERVAL = 0.02


class CancelToken:
    """Cancellation flag with optional deadline and parent."""

    def __init__(self, parent: Optional[CancelToken] = None, timeout: Optional[float] = None):
        self._event = threading.Event()
        self._parent = parent
        self._deadline = time.monotonic() + timeout if timeout is not None else None

    @classmethod
    def linked(cls, parent: Optional[CancelToken], timeout: Optional[float]) -> CancelToken:
        """Child token that fires on parent cancel or after timeout seconds."""
        return cls(parent=parent, timeout=timeout)

    def cancel(self) -> None:
        self._event.set()

    @property
    def is_cancelled(self) -> bool:
        if self._event.is_set():
            return True
        if self._deadline is not None and time.monotonic() >= self._deadline:
            return True
        return self._parent is not None and self._parent.is_cancelled

    @property
    def deadline_passed(self) -> bool:
        """True when the token fired because of its own deadline."""
        return (
            not self._event.is_set()
            and self._deadline is not None
            and time.monotonic() >= self._deadline
        )

    def remaining(self) -> Optional[float]:
        """Seconds left before the nearest deadline in the chain, or None."""
        deadlines = []
        token: Optional[CancelToken] = self
        while token is not None:
            if token._deadline is not None:
                deadlines.append(token._deadline)
            token = token._parent
        if not deadlines:
            return None
        return max(0.0, min(deadlines) - time.monotonic())

    def raise_if_cancelled(self) -> None:
        if self.is_cancelled:
            raise Cancelled("Operation cancelled")

    def wait(self, seconds: float) -> bool:
        """
        Sleep up to `seconds`, waking early on cancellation.

        Returns True if the token was cancelled.
        """
        end = time.monotonic() + max(0.0, seconds)
        while not self.is_cancelled:
            left = end - time.monotonic()
            if left <= 0:
                return False
            # Own event wakes immediately; parents and deadlines are polled
            self._event.wait(min(left, POLL_INTERVAL))
        return True
