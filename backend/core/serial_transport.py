"""
Serial Transport - Single responsibility: line framing over a serial port

Outbound: ASCII payload + LF as two writes. Inbound: bytes accumulated until
LF, CR dropped. Per-attempt read timeouts and I/O aborts are "no data yet";
only cancellation, a caller deadline, or a closed port end a read.
"""

import time
from dataclasses import dataclass
from typing import Callable, Optional, Protocol

import serial
import serial.tools.list_ports

from .cancellation import CancelToken, POLL_INTERVAL
from .errors import (
    Cancelled,
    ConnectFailure,
    EncodingFailure,
    FrameTooLong,
    NotConnected,
    ReadFailure,
    SoftTimeout,
    WriteFailure,
)
from .logger import log_ok, log_warn


BAUD_RATE = 115200
READ_TIMEOUT = 0.5
WRITE_TIMEOUT = 1.0
SETTLE_DELAY = 0.075
MAX_LINE_LENGTH = 4096

LF = 0x0A
CR = 0x0D


class SerialChannel(Protocol):
    """The part of pyserial's Serial API the transport relies on"""

    is_open: bool
    @property
    def in_waiting(self) -> int: ...
    def read(self, size: int = 1) -> bytes: ...
    def write(self, data: bytes) -> Optional[int]: ...
    def reset_input_buffer(self) -> None: ...
    def reset_output_buffer(self) -> None: ...
    def close(self) -> None: ...


@dataclass
class SerialConfig:
    baud_rate: int = BAUD_RATE
    read_timeout: float = READ_TIMEOUT
    write_timeout: float = WRITE_TIMEOUT
    settle_delay: float = SETTLE_DELAY
    # Many boards stay silent until DTR/RTS are asserted
    dtr: bool = True
    rts: bool = True
    max_line_length: int = MAX_LINE_LENGTH
    read_chunk: int = 256


ChannelFactory = Callable[[str, SerialConfig], SerialChannel]


def open_serial_port(port: str, config: SerialConfig) -> serial.Serial:
    """Open a real port with fixed 8N1 framing and no handshake."""
    ser = serial.Serial()
    ser.port = port
    ser.baudrate = config.baud_rate
    ser.bytesize = serial.EIGHTBITS
    ser.parity = serial.PARITY_NONE
    ser.stopbits = serial.STOPBITS_ONE
    ser.xonxoff = False
    ser.rtscts = False
    ser.dsrdtr = False
    ser.timeout = config.read_timeout
    ser.write_timeout = config.write_timeout
    ser.dtr = config.dtr
    ser.rts = config.rts
    ser.open()
    return ser


class SerialTransport:
    """
    One session with the board.

    Not thread-safe on its own: writes are serialized by SendGate and reads
    belong to a single ReaderLoop.
    """

    def __init__(
        self,
        port: str,
        config: Optional[SerialConfig] = None,
        channel_factory: Optional[ChannelFactory] = None,
    ):
        self.port = port
        self.config = config or SerialConfig()
        self._open_channel = channel_factory or open_serial_port
        self._channel: Optional[SerialChannel] = None
        self._pending = bytearray()
        self.last_error: Optional[str] = None

    @staticmethod
    def list_ports() -> list[str]:
        """List available serial ports"""
        ports = serial.tools.list_ports.comports()
        return sorted(port.device for port in ports)

    @property
    def is_open(self) -> bool:
        return self._channel is not None and bool(self._channel.is_open)

    # =========================================================================
    # Session lifecycle
    # =========================================================================

    def open(self, cancel: Optional[CancelToken] = None) -> None:
        """
        Open the port and prepare the firmware to listen.

        Settle, drop stale bytes from a previous session, then send one
        throwaway LF: some firmware ignores the first write after open.
        The channel is only committed once every step succeeded.
        """
        if self.is_open:
            return

        cancel = cancel or CancelToken()
        try:
            channel = self._open_channel(self.port, self.config)
        except Exception as e:
            self.last_error = str(e)
            raise ConnectFailure(f"Failed to open {self.port}: {e}") from e

        try:
            if cancel.wait(self.config.settle_delay):
                raise Cancelled("Connect cancelled")
            self._discard_stale(channel)
            try:
                channel.write(b"\n")
            except serial.SerialException as e:
                log_warn(f"Wake byte not written on {self.port}: {e}")
        except Exception as e:
            self._release(channel)
            self.last_error = str(e)
            if isinstance(e, Cancelled):
                raise
            raise ConnectFailure(f"Failed to prepare {self.port}: {e}") from e

        self._channel = channel
        self._pending.clear()
        self.last_error = None
        log_ok(f"Opened {self.port}", {"baud": self.config.baud_rate})

    def close(self) -> None:
        """Close the port if open. Safe to call any number of times."""
        channel, self._channel = self._channel, None
        self._pending.clear()
        if channel is not None:
            self._release(channel)

    def _discard_stale(self, channel: SerialChannel) -> None:
        for reset in (channel.reset_input_buffer, channel.reset_output_buffer):
            try:
                reset()
            except serial.SerialException as e:
                log_warn(f"Could not discard stale bytes: {e}")

    def _release(self, channel: SerialChannel) -> None:
        try:
            channel.close()
        except (OSError, serial.SerialException) as e:
            log_warn(f"Error closing {self.port}: {e}")

    # =========================================================================
    # Line I/O
    # =========================================================================

    def write_line(self, text: str) -> None:
        """
        Write `text` followed by LF.

        Payload and terminator go out as two writes; callers must not assume
        a single frame. Silently does nothing when the port is closed.
        """
        if not self.is_open:
            return
        try:
            payload = text.encode("ascii")
        except UnicodeEncodeError as e:
            raise EncodingFailure(f"Command is not ASCII: {text!r}") from e

        self._write(payload)
        self._write(b"\n")
        # Let the USB stack flush before the next operation starts
        time.sleep(0)

    def read_line(self, cancel: Optional[CancelToken] = None,
                  timeout: Optional[float] = None) -> str:
        """
        Block until a full line arrives.

        Raises Cancelled, SoftTimeout (caller deadline), NotConnected or
        FrameTooLong. Per-attempt timeouts never surface.
        """
        if not self.is_open:
            raise NotConnected("Port not open")

        token = CancelToken.linked(cancel, timeout)
        while True:
            line = self._take_line()
            if line is not None:
                return line

            if token.is_cancelled:
                if token.deadline_passed:
                    raise SoftTimeout("No line before deadline")
                raise Cancelled("Read cancelled")

            channel = self._channel
            if channel is None or not channel.is_open:
                raise NotConnected("Port closed during read")

            try:
                size = max(1, min(channel.in_waiting, self.config.read_chunk))
                chunk = channel.read(size)
            except (serial.SerialTimeoutException, TimeoutError):
                continue
            except OSError:
                # Some stacks abort the read instead of timing out
                if not self.is_open:
                    raise NotConnected("Port closed during read")
                token.wait(POLL_INTERVAL)
                continue

            if chunk:
                self._pending.extend(chunk)

    def _take_line(self) -> Optional[str]:
        """Pop one complete line from the pending bytes, if there is one."""
        end = self._pending.find(LF)
        if end < 0:
            if len(self._pending) > self.config.max_line_length:
                self._pending.clear()
                raise FrameTooLong(self.config.max_line_length)
            return None

        frame = self._pending[:end]
        del self._pending[:end + 1]
        if len(frame) > self.config.max_line_length:
            raise FrameTooLong(self.config.max_line_length)
        return "".join(chr(b) for b in frame if b != CR)

    # =========================================================================
    # Raw diagnostics
    # =========================================================================

    def write_raw(self, data: bytes) -> None:
        """Write bytes exactly as given, no terminator added"""
        if not self.is_open:
            raise NotConnected("Port not open")
        self._write(bytes(data))
        flush = getattr(self._channel, "flush", None)
        if flush is not None:
            flush()

    def read_raw(self, max_bytes: int = 256) -> bytes:
        """Return buffered bytes, or whatever one read attempt yields"""
        if not self.is_open:
            raise NotConnected("Port not open")
        if self._pending:
            chunk = bytes(self._pending[:max_bytes])
            del self._pending[:max_bytes]
            return chunk
        channel = self._channel
        try:
            available = channel.in_waiting
            if available <= 0:
                return b""
            return channel.read(min(max_bytes, available))
        except (OSError, serial.SerialException) as e:
            self.last_error = str(e)
            raise ReadFailure(f"Raw read aborted: {e}") from e

    def _write(self, data: bytes) -> None:
        channel = self._channel
        if channel is None:
            raise NotConnected("Port closed during write")
        try:
            channel.write(data)
        except (OSError, serial.SerialException) as e:
            self.last_error = str(e)
            raise WriteFailure(f"Write aborted: {e}") from e
