"""
Stepper Controller - Main facade for the system.

Owns everything that belongs to one connection: the session (transport),
the send gate, the inbox, the reader loop, the motion pacer and the log
sink. Every public lifecycle operation goes through here.
"""

from __future__ import annotations

import threading
from contextlib import contextmanager
from dataclasses import dataclass
from typing import Any, Dict, Iterator, List, Optional

from core.cancellation import CancelToken
from core.errors import ConnectFailure, Cancelled, NotConnected
from core.inbox import Inbox, DEFAULT_CAPACITY
from core.log_sink import LogSink, DEFAULT_MAX_LINES
from core.logger import log_ok, log_warn
from core.pacer import MotionPacer, PacerSettings
from core.reader import ReaderLoop
from core.send_gate import SendGate
from core.serial_transport import ChannelFactory, SerialConfig, SerialTransport
from core.types import MotorsCommand, RelativeMoveCommand


@dataclass
class ControllerSettings:
    """Controller-level settings"""
    inbox_capacity: int = DEFAULT_CAPACITY
    log_lines: int = DEFAULT_MAX_LINES
    jog_distance_mm: float = 10.0
    reader_join_timeout: float = 2.0


class StepperController:
    """
    Connection owner for the motor driver board.

    Shutdown order is fixed: reader loop stopped, pacer stopped and joined,
    then the port is closed under the send permit.
    """

    def __init__(
        self,
        serial_config: Optional[SerialConfig] = None,
        pacer_settings: Optional[PacerSettings] = None,
        settings: Optional[ControllerSettings] = None,
        channel_factory: Optional[ChannelFactory] = None,
    ):
        self.settings = settings or ControllerSettings()
        self.serial_config = serial_config or SerialConfig()
        self._channel_factory = channel_factory

        self.log = LogSink(self.settings.log_lines)
        self.inbox = Inbox(self.settings.inbox_capacity)
        self.gate = SendGate(self.log)
        self.pacer = MotionPacer(self.gate, self.log, pacer_settings)

        self._transport: Optional[SerialTransport] = None
        self._reader: Optional[ReaderLoop] = None
        self._lifecycle = threading.RLock()

    # =========================================================================
    # Properties
    # =========================================================================

    @property
    def is_connected(self) -> bool:
        transport = self._transport
        return transport is not None and transport.is_open

    @property
    def port(self) -> Optional[str]:
        return self._transport.port if self._transport else None

    @property
    def transport(self) -> Optional[SerialTransport]:
        return self._transport

    @property
    def reader_running(self) -> bool:
        reader = self._reader
        return reader is not None and reader.is_live

    # =========================================================================
    # Connection
    # =========================================================================

    def connect(self, port: str, channel_factory: Optional[ChannelFactory] = None) -> bool:
        """
        Open a session on `port` and start listening.

        Returns False (and logs why) when already connected or when the port
        cannot be opened. A failed attempt leaves no session behind.
        """
        with self._lifecycle:
            if self._transport is not None:
                self.log.note(f"Already connected to {self._transport.port}")
                return False
            if not port or not port.strip():
                self.log.note("Select a port first.")
                return False

            transport = SerialTransport(
                port,
                self.serial_config,
                channel_factory or self._channel_factory,
            )
            try:
                transport.open()
            except (ConnectFailure, Cancelled) as e:
                self.log.error(f"Connect failed: {e}")
                return False

            stale = self.inbox.drain()
            if stale:
                log_warn(f"Dropped {len(stale)} unread line(s) from the previous session")

            self._transport = transport
            self.gate.attach(transport)
            self.log.note(f"Connected {port}")
            self.start_reader_if_needed()
            return True

    def disconnect(self) -> None:
        """Stop the reader, stop the pacer, then close the port."""
        with self._lifecycle:
            if self._transport is None:
                return
            self._stop_reader()
            self.pacer.stop()
            self.gate.close_session()
            self._transport = None
            self.log.note("Disconnected")
            log_ok("Session closed")

    # =========================================================================
    # Reader
    # =========================================================================

    def start_reader_if_needed(self) -> bool:
        """Start a reader loop unless a live one already exists."""
        with self._lifecycle:
            if self.reader_running:
                return False
            if not self.is_connected:
                return False
            reader = ReaderLoop(self._transport, self.inbox, self.log)
            self._reader = reader
            reader.start()
            return True

    def _stop_reader(self) -> None:
        reader, self._reader = self._reader, None
        if reader is None:
            return
        reader.cancel()
        if reader is not threading.current_thread():
            reader.join(self.settings.reader_join_timeout)
            if reader.is_alive():
                log_warn("Reader loop did not stop in time")

    @contextmanager
    def raw_access(self) -> Iterator[SerialTransport]:
        """
        Pause the reader loop and hand out the transport for raw byte I/O.

        Line-mode consumers see nothing while this is held; the reader is
        restarted afterwards.
        """
        with self._lifecycle:
            if not self.is_connected:
                raise NotConnected("Not connected")
            self._stop_reader()
            try:
                yield self._transport
            finally:
                self.start_reader_if_needed()

    # =========================================================================
    # Commands
    # =========================================================================

    def send(self, cmd: str, cancel: Optional[CancelToken] = None,
             timeout: Optional[float] = None) -> bool:
        return self.gate.send(cmd, cancel, timeout)

    def send_raw(self, data: bytes, description: str) -> bool:
        hex_bytes = " ".join(f"{b:02X}" for b in data)
        self.log.note(f"Sending {description}: [{hex_bytes}]")
        return self.gate.send_raw(data)

    def wait_for_line(self, timeout: float, cancel: Optional[CancelToken] = None) -> Optional[str]:
        return self.inbox.wait_for_line(timeout, cancel)

    def enable_motors(self) -> bool:
        return self.send(MotorsCommand(enable=True).to_gcode())

    def disable_motors(self) -> bool:
        return self.send(MotorsCommand(enable=False).to_gcode())

    def jog(self, direction: int, feedrate: int) -> bool:
        """Single relative-distance X move in the sign of `direction`."""
        distance = self.settings.jog_distance_mm if direction >= 0 else -self.settings.jog_distance_mm
        return self.send(RelativeMoveCommand(distance, feedrate).to_gcode())

    # =========================================================================
    # Pacer
    # =========================================================================

    def start_pacer(self) -> bool:
        """Start the jog loop. Waits out a connect or disconnect in progress."""
        with self._lifecycle:
            return self.pacer.start()

    def stop_pacer(self) -> None:
        with self._lifecycle:
            self.pacer.stop()

    def adjust_feed(self, step: int) -> int:
        return self.pacer.adjust_feed(step)

    def speed_up(self) -> int:
        return self.pacer.speed_up()

    def speed_down(self) -> int:
        return self.pacer.speed_down()

    # =========================================================================
    # Status & Log
    # =========================================================================

    def get_status(self) -> Dict[str, Any]:
        transport = self._transport
        return {
            "connected": self.is_connected,
            "port": self.port,
            "reader_running": self.reader_running,
            "inbox_size": len(self.inbox),
            "last_error": transport.last_error if transport else None,
            "pacer": self.pacer.get_status(),
        }

    def log_lines(self, limit: Optional[int] = None) -> List[str]:
        return self.log.lines(limit)
