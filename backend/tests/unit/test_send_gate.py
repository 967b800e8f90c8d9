"""
Unit tests for the Send Gate.
"""

import threading
import time

import serial

from core.cancellation import CancelToken
from core.log_sink import LogSink
from core.send_gate import SendGate
from core.serial_transport import SerialConfig, SerialTransport
from core.transport import LoopbackChannel


class InterleaveDetectingChannel(LoopbackChannel):
    """Counts writes that start while another write is still in progress."""

    def __init__(self):
        super().__init__(echo=False, timeout=0.02)
        self.active = 0
        self.overlaps = 0
        self._guard = threading.Lock()

    def write(self, data):
        with self._guard:
            self.active += 1
            if self.active > 1:
                self.overlaps += 1
        time.sleep(0.001)
        try:
            return super().write(data)
        finally:
            with self._guard:
                self.active -= 1


def make_gate(channel):
    log = LogSink()
    transport = SerialTransport("loop", SerialConfig(settle_delay=0.0), lambda p, c: channel)
    transport.open()
    gate = SendGate(log)
    gate.attach(transport)
    return gate, transport, log


class TestSend:
    """Tests for single sends."""

    def test_send_writes_and_logs(self):
        channel = LoopbackChannel(echo=False)
        gate, _, log = make_gate(channel)
        channel.writes.clear()

        assert gate.send("M17") is True

        assert channel.written == b"M17\n"
        assert log.lines() == ["> M17"]

    def test_send_without_session_is_silent(self):
        log = LogSink()
        gate = SendGate(log)

        assert gate.send("M17") is False
        assert log.lines() == []

    def test_send_after_close_is_silent(self):
        channel = LoopbackChannel(echo=False)
        gate, _, log = make_gate(channel)
        gate.close_session()

        assert gate.send("M17") is False
        assert log.lines() == []

    def test_cancelled_send_is_dropped(self):
        channel = LoopbackChannel(echo=False)
        gate, _, log = make_gate(channel)
        channel.writes.clear()
        token = CancelToken()
        token.cancel()

        assert gate.send("G1 X20 F3000", token) is False
        assert channel.writes == []

    def test_non_ascii_is_reported(self):
        channel = LoopbackChannel(echo=False)
        gate, _, log = make_gate(channel)

        assert gate.send("G1 X10 µ") is False
        assert log.lines()[-1].startswith("! Send failed")

    def test_write_failure_is_reported_and_permit_released(self):
        channel = LoopbackChannel(echo=False)
        gate, _, log = make_gate(channel)

        def aborting_write(data):
            raise serial.SerialException("I/O operation aborted")

        channel.write = aborting_write
        assert gate.send("M17") is False
        assert log.lines()[-1].startswith("! Send failed")

        del channel.write
        assert gate.send("M18") is True

    def test_send_pinned_to_replaced_session_is_dropped(self):
        channel = LoopbackChannel(echo=False)
        gate, old_transport, log = make_gate(channel)
        replacement = LoopbackChannel(echo=False)
        _, new_transport, _ = make_gate(replacement)
        gate.attach(new_transport)
        replacement.writes.clear()

        assert gate.send("G1 X20 F3000", session=old_transport) is False
        assert gate.send("G1 X20 F3000", session=new_transport) is True

        assert replacement.written == b"G1 X20 F3000\n"
        assert log.lines() == ["> G1 X20 F3000"]

    def test_permit_wait_gives_up_on_deadline(self):
        channel = LoopbackChannel(echo=False)
        gate, _, _ = make_gate(channel)

        gate._lock.acquire()
        try:
            started = time.monotonic()
            assert gate.send("M17", timeout=0.1) is False
            assert time.monotonic() - started < 1.0
        finally:
            gate._lock.release()


class TestConcurrency:
    """Concurrent senders never interleave on the wire."""

    def test_no_interleaved_writes(self):
        channel = InterleaveDetectingChannel()
        gate, _, _ = make_gate(channel)
        channel.writes.clear()
        commands = [f"G1 X{i} F3000" for i in range(40)]

        threads = [threading.Thread(target=gate.send, args=(cmd,)) for cmd in commands]
        for t in threads:
            t.start()
        for t in threads:
            t.join()

        assert channel.overlaps == 0
        lines = channel.written.decode("ascii").split("\n")[:-1]
        assert sorted(lines) == sorted(commands)

    def test_close_waits_for_in_flight_write(self):
        channel = InterleaveDetectingChannel()
        gate, transport, _ = make_gate(channel)
        closed_during_write = []
        real_close = channel.close

        def recording_close():
            closed_during_write.append(channel.active > 0)
            real_close()

        channel.close = recording_close
        sender = threading.Thread(target=gate.send, args=("G1 X20 F3000",))
        sender.start()
        gate.close_session()
        sender.join()

        assert closed_during_write == [False]
        assert not transport.is_open
