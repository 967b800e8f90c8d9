"""
Listen test - find out whether a silent board hears us at all.

1. Listen for startup chatter.
2. Send M115 with LF, CRLF and CR terminators.
3. Send a bare LF.
4. Pause the reader and dump raw bytes as hex and escaped ASCII.
"""

from __future__ import annotations

import time
from dataclasses import dataclass, field
from typing import Dict, List, TYPE_CHECKING

from .cancellation import CancelToken
from .errors import LinkError, ReadFailure
from .logger import log_diag
from .types import FirmwareInfoCommand

if TYPE_CHECKING:
    from controller import StepperController


_M115 = FirmwareInfoCommand().to_gcode().encode("ascii")

LINE_ENDING_CHECKS = [
    (_M115 + b"\n", "M115 with LF"),
    (_M115 + b"\r\n", "M115 with CRLF"),
    (_M115 + b"\r", "M115 with CR"),
    (b"\n", "Empty LF"),
]


@dataclass
class DiagnosticTiming:
    startup_s: float = 3.0
    settle_s: float = 0.5
    response_s: float = 1.0
    raw_s: float = 2.0
    raw_poll_s: float = 0.05


@dataclass
class DiagnosticReport:
    startup_lines: List[str] = field(default_factory=list)
    responses: Dict[str, List[str]] = field(default_factory=dict)
    raw_bytes: int = 0
    completed: bool = False
    error: str | None = None

    def to_dict(self) -> dict:
        return {
            "startup_lines": self.startup_lines,
            "responses": self.responses,
            "raw_bytes": self.raw_bytes,
            "completed": self.completed,
            "error": self.error,
        }


def run_listen_test(ctrl: "StepperController",
                    timing: DiagnosticTiming | None = None) -> DiagnosticReport:
    """Run all checks against a connected controller."""
    timing = timing or DiagnosticTiming()
    report = DiagnosticReport()

    if not ctrl.is_connected:
        ctrl.log.error("Not connected")
        report.error = "Not connected"
        return report

    ctrl.start_reader_if_needed()
    try:
        ctrl.log.note("=== DIAGNOSTIC TEST START ===")

        ctrl.log.note(f"Test 1: Listening for {timing.startup_s:.0f} seconds for any startup messages...")
        started = time.monotonic()
        report.startup_lines = _collect(ctrl, timing.startup_s, "STARTUP")
        ctrl.log.note(f"Waited {time.monotonic() - started:.1f}s for startup")

        ctrl.log.note("Test 2: Sending M115 with different line endings...")
        for data, description in LINE_ENDING_CHECKS:
            if data == b"\n":
                ctrl.log.note("Test 3: Sending empty line (should get 'ok' or error)...")
            ctrl.send_raw(data, description)
            time.sleep(timing.settle_s)
            report.responses[description] = _check_for_response(ctrl, timing.response_s)

        ctrl.log.note(f"Test 4: Reading raw bytes for {timing.raw_s:.0f} seconds...")
        report.raw_bytes = _inspect_raw_bytes(ctrl, timing)

        ctrl.log.note("=== DIAGNOSTIC TEST COMPLETE ===")
        report.completed = True
    except LinkError as e:
        ctrl.log.error(f"Diagnostic error: {e}")
        report.error = str(e)

    return report


def _collect(ctrl: "StepperController", seconds: float, label: str) -> List[str]:
    lines = []
    window = CancelToken(timeout=seconds)
    while not window.is_cancelled:
        line = ctrl.wait_for_line(window.remaining() or 0.0, window)
        if line is not None:
            ctrl.log.publish(f"< {label}: {line}")
            lines.append(line)
    return lines


def _check_for_response(ctrl: "StepperController", seconds: float) -> List[str]:
    lines = _collect(ctrl, seconds, "RESPONSE")
    if lines:
        ctrl.log.publish(f"  ✓ Received {len(lines)} response(s)")
    else:
        ctrl.log.publish("  ! No response received")
    return lines


def _inspect_raw_bytes(ctrl: "StepperController", timing: DiagnosticTiming) -> int:
    total = 0
    with ctrl.raw_access() as transport:
        window = CancelToken(timeout=timing.raw_s)
        while not window.is_cancelled:
            try:
                chunk = transport.read_raw(256)
            except ReadFailure as e:
                ctrl.log.error(f"Raw read error: {e}")
                break
            if chunk:
                total += len(chunk)
                hex_bytes = " ".join(f"{b:02X}" for b in chunk)
                ascii_text = (chunk.decode("ascii", errors="replace")
                              .replace("\r", "\\r").replace("\n", "\\n"))
                ctrl.log.publish(f"< RAW [{len(chunk)} bytes]: {hex_bytes}")
                ctrl.log.publish(f"  ASCII: {ascii_text}")
                log_diag(f"RAW {hex_bytes}")
            window.wait(timing.raw_poll_s)

    if total == 0:
        ctrl.log.publish("  ! No bytes received at all - board might not be responding")
    else:
        ctrl.log.publish(f"  Total: {total} bytes received")
    return total
