"""
Inbox - received lines waiting for a consumer.

One producer (ReaderLoop), any number of consumers. wait_for_line() hands
out at most one line per call; two waiters racing for the same line is
expected and unordered, so callers must tolerate a None.
"""

from __future__ import annotations

import threading
from collections import deque
from typing import Optional

from .cancellation import CancelToken, POLL_INTERVAL


DEFAULT_CAPACITY = 500


class Inbox:
    """Bounded FIFO of lines plus a counting signal (the condition)."""

    def __init__(self, capacity: int = DEFAULT_CAPACITY):
        self.capacity = capacity
        self._lines: deque[str] = deque()
        self._cond = threading.Condition()
        self.dropped = 0

    def put(self, line: str) -> None:
        """Enqueue a line, trimming the oldest when full."""
        with self._cond:
            self._lines.append(line)
            while len(self._lines) > self.capacity:
                self._lines.popleft()
                self.dropped += 1
            self._cond.notify()

    def wait_for_line(self, timeout: float,
                      cancel: Optional[CancelToken] = None) -> Optional[str]:
        """
        Wait up to `timeout` seconds for a line and consume exactly one.

        Returns None on timeout, on cancellation, or when another consumer
        took the line first.
        """
        token = CancelToken.linked(cancel, timeout)
        with self._cond:
            while not self._lines:
                if token.is_cancelled:
                    return None
                remaining = token.remaining()
                self._cond.wait(min(remaining, POLL_INTERVAL) if remaining is not None else POLL_INTERVAL)
            return self._lines.popleft()

    def drain(self) -> list[str]:
        """Remove and return everything queued."""
        with self._cond:
            lines = list(self._lines)
            self._lines.clear()
            return lines

    def __len__(self) -> int:
        with self._cond:
            return len(self._lines)
