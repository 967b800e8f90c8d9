"""
Reader Loop - background listener for one session.

Pulls lines off the transport and hands them to the log sink and the inbox.
"""

from __future__ import annotations

import threading
from typing import TYPE_CHECKING

from .cancellation import CancelToken
from .errors import Cancelled, FrameTooLong, NotConnected, SoftTimeout
from .inbox import Inbox
from .log_sink import LogSink

if TYPE_CHECKING:
    from .transport import Transport


class ReaderLoop(threading.Thread):
    """Background serial reader.

    Runs until its token is cancelled or the session goes away. Blank lines
    are dropped before publication. Unexpected errors are logged and end the
    loop; they never reach the caller that started it.
    """

    def __init__(self, transport: "Transport", inbox: Inbox, log: LogSink):
        super().__init__(name="reader-loop", daemon=True)
        self.transport = transport
        self.inbox = inbox
        self.log = log
        self.token = CancelToken()

    @property
    def is_live(self) -> bool:
        """Running and not asked to stop."""
        return self.is_alive() and not self.token.is_cancelled

    def cancel(self) -> None:
        self.token.cancel()

    def run(self):
        """Thread entry point. Reads lines until cancelled."""
        try:
            self._pump()
        except Exception as e:
            self.log.error(f"Reader error: {e}")

    def _pump(self) -> None:
        while not self.token.is_cancelled and self.transport.is_open:
            try:
                line = self.transport.read_line(self.token)
            except SoftTimeout:
                continue
            except (Cancelled, NotConnected):
                return
            except FrameTooLong as e:
                self.log.error(f"Frame too long: {e}")
                continue

            text = line.strip()
            if text:
                self.log.received(text)
                self.inbox.put(text)
