"""
Log Sink - Single responsibility: keep the user-visible session log

Every sent command ('> ...'), received line ('< ...'), status note ('> ...')
and failure ('! ...') lands here. Bounded so a chatty board cannot grow
memory without limit.
"""

import threading
from collections import deque
from typing import Optional

from .logger import log_serial, log_critical, log_info


DEFAULT_MAX_LINES = 500


class LogSink:
    """Thread-safe bounded log. publish() never blocks on consumers."""

    def __init__(self, max_lines: int = DEFAULT_MAX_LINES):
        self._lines: deque[str] = deque(maxlen=max_lines)
        self._lock = threading.Lock()

    def publish(self, text: str) -> None:
        with self._lock:
            self._lines.append(text)

    # Formatted entry points, mirrored to the console log

    def sent(self, command: str) -> None:
        self.publish(f"> {command}")
        log_serial(">>>", command)

    def received(self, line: str) -> None:
        self.publish(f"< {line}")
        log_serial("<<<", line)

    def note(self, message: str) -> None:
        self.publish(f"> {message}")
        log_info(message)

    def error(self, message: str) -> None:
        self.publish(f"! {message}")
        log_critical(message)

    def lines(self, limit: Optional[int] = None) -> list[str]:
        """Snapshot of the log, oldest first."""
        with self._lock:
            snapshot = list(self._lines)
        if limit is None:
            return snapshot
        return snapshot[-limit:] if limit > 0 else []

    def __len__(self) -> int:
        with self._lock:
            return len(self._lines)
