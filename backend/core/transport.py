"""
Transport layer - line-oriented link to the motor driver board.

Provides:
- Transport protocol (interface)
- LoopbackChannel: in-memory stand-in for a pyserial port
- MockFirmwareChannel: loopback that answers like firmware, used for port "mock"
- (SerialTransport in separate file for production)
"""

from __future__ import annotations

import threading
from typing import Protocol, List, Optional, TYPE_CHECKING

import serial

if TYPE_CHECKING:
    from .cancellation import CancelToken
    from .serial_transport import SerialConfig


class Transport(Protocol):
    """Protocol for board communication."""

    def open(self, cancel: Optional["CancelToken"] = None) -> None:
        """Open the channel. Raises ConnectFailure."""
        ...

    def close(self) -> None:
        """Close the channel. Idempotent."""
        ...

    def write_line(self, text: str) -> None:
        """Write one LF-terminated ASCII line. No-op when closed."""
        ...

    def read_line(self, cancel: Optional["CancelToken"] = None,
                  timeout: Optional[float] = None) -> str:
        """Block for the next LF-terminated line (CR stripped)."""
        ...

    def write_raw(self, data: bytes) -> None:
        """Write bytes with no framing (diagnostics only)."""
        ...

    def read_raw(self, max_bytes: int = 256) -> bytes:
        """Read whatever bytes are available (diagnostics only)."""
        ...

    @property
    def is_open(self) -> bool:
        """Check if a session is open."""
        ...


class LoopbackChannel:
    """
    In-memory channel with the subset of the pyserial Serial API we use.

    Written bytes are recorded per write() call; with echo=True they are
    also queued for reading, so a line written comes back as a line read.
    Tests inject inbound bytes with feed().
    """

    def __init__(self, port: str = "loop", timeout: float = 0.05, echo: bool = True):
        self.port = port
        self.timeout = timeout
        self.echo = echo
        self.dtr = False
        self.rts = False
        self.is_open = True
        self.writes: List[bytes] = []
        self.input_resets = 0
        self.output_resets = 0
        self._rx = bytearray()
        self._cond = threading.Condition()

    @classmethod
    def open_for(cls, port: str, config: "SerialConfig") -> "LoopbackChannel":
        """Channel factory matching SerialTransport's signature."""
        channel = cls(port=port, timeout=config.read_timeout)
        channel.dtr = config.dtr
        channel.rts = config.rts
        return channel

    @property
    def written(self) -> bytes:
        """Everything written so far, concatenated."""
        return b"".join(self.writes)

    @property
    def in_waiting(self) -> int:
        with self._cond:
            return len(self._rx)

    def feed(self, data: bytes) -> None:
        """Queue inbound bytes as if the board had sent them."""
        with self._cond:
            self._rx.extend(data)
            self._cond.notify_all()

    def write(self, data: bytes) -> int:
        if not self.is_open:
            raise serial.PortNotOpenError()
        self.writes.append(bytes(data))
        if self.echo:
            self.feed(data)
        self._on_write(bytes(data))
        return len(data)

    def read(self, size: int = 1) -> bytes:
        if not self.is_open:
            raise serial.PortNotOpenError()
        with self._cond:
            if not self._rx:
                self._cond.wait(self.timeout)
            chunk = bytes(self._rx[:size])
            del self._rx[:size]
            return chunk

    def flush(self) -> None:
        pass

    def reset_input_buffer(self) -> None:
        with self._cond:
            self._rx.clear()
        self.input_resets += 1

    def reset_output_buffer(self) -> None:
        self.output_resets += 1

    def close(self) -> None:
        self.is_open = False
        with self._cond:
            self._cond.notify_all()

    def _on_write(self, data: bytes) -> None:
        """Hook for subclasses that react to outbound bytes."""
        pass


class MockFirmwareChannel(LoopbackChannel):
    """
    Loopback that behaves like a G-code firmware.

    Collects outbound bytes into lines and answers every non-empty
    LF-terminated line with 'ok'. M115 also gets a firmware banner.
    Lines ending in a bare CR are never answered.
    """

    FIRMWARE_BANNER = "FIRMWARE_NAME: MockFirmware FIRMWARE_VERSION: 1.0"

    def __init__(self, port: str = "mock", timeout: float = 0.05):
        super().__init__(port=port, timeout=timeout, echo=False)
        self.sent_commands: List[str] = []
        self._line = bytearray()

    def _on_write(self, data: bytes) -> None:
        for byte in data:
            if byte == 0x0A:
                line = self._line.decode("ascii", errors="replace").strip()
                self._line.clear()
                if line:
                    self.sent_commands.append(line)
                    self.feed(self._respond(line))
            else:
                self._line.append(byte)

    def _respond(self, line: str) -> bytes:
        if line.upper() == "M115":
            return f"{self.FIRMWARE_BANNER}\r\nok\r\n".encode("ascii")
        return b"ok\r\n"

    def clear_history(self) -> None:
        """Clear sent commands history."""
        self.sent_commands.clear()
