"""
Send Gate - Single responsibility: one writer at a time

Every write to the transport goes through here. Commands issued while the
link is shutting down are dropped without complaint.
"""

from __future__ import annotations

import threading
from typing import Optional, TYPE_CHECKING

from .cancellation import CancelToken, POLL_INTERVAL
from .errors import Cancelled, NotConnected
from .log_sink import LogSink

if TYPE_CHECKING:
    from .transport import Transport


class SendGate:
    """
    Serializes writes across the API threadpool, the pacer and diagnostics.

    The permit is held for exactly one payload+terminator write.
    """

    def __init__(self, log: LogSink):
        self._log = log
        self._lock = threading.Lock()
        self._transport: Optional["Transport"] = None

    def attach(self, transport: Optional["Transport"]) -> None:
        """Bind the gate to a session (None detaches)."""
        self._transport = transport

    @property
    def session(self) -> Optional["Transport"]:
        """The transport currently attached, if any."""
        return self._transport

    @property
    def is_open(self) -> bool:
        transport = self._transport
        return transport is not None and transport.is_open

    def send(self, cmd: str, cancel: Optional[CancelToken] = None,
             timeout: Optional[float] = None,
             session: Optional["Transport"] = None) -> bool:
        """
        Write one command line. Returns True if it was written.

        With `session` given, the line is only written while that transport
        is still the attached one.

        Not connected, cancelled or session replaced: returns False silently.
        Encoding or I/O failure: logged as '! Send failed', returns False.
        """
        token = CancelToken.linked(cancel, timeout)
        if not self.is_open or token.is_cancelled:
            return False
        if not self._acquire(token):
            return False
        try:
            transport = self._transport
            if transport is None or not transport.is_open or token.is_cancelled:
                return False
            if session is not None and transport is not session:
                return False
            self._log.sent(cmd)
            transport.write_line(cmd)
            return True
        except (Cancelled, NotConnected):
            return False
        except Exception as e:
            self._log.error(f"Send failed: {e}")
            return False
        finally:
            self._lock.release()

    def send_raw(self, data: bytes, cancel: Optional[CancelToken] = None) -> bool:
        """Write unframed bytes under the same permit (diagnostics)."""
        token = cancel or CancelToken()
        if not self.is_open or not self._acquire(token):
            return False
        try:
            transport = self._transport
            if transport is None or not transport.is_open:
                return False
            transport.write_raw(data)
            return True
        except NotConnected:
            return False
        except Exception as e:
            self._log.error(f"Raw send failed: {e}")
            return False
        finally:
            self._lock.release()

    def close_session(self) -> None:
        """Close and detach the transport once no write is in flight."""
        with self._lock:
            transport, self._transport = self._transport, None
            if transport is not None:
                transport.close()

    def _acquire(self, token: CancelToken) -> bool:
        while not self._lock.acquire(timeout=POLL_INTERVAL):
            if token.is_cancelled:
                return False
        return True
