"""
Motion Pacer - oscillating jog loop paced from physical motion time.

The host never sends the next move before the previous one (plus its dwell)
could have finished on the machine. Timing comes from distance and feed:

    move_ms  = max(50, ceil(|d| / f * 60000) + buffer)    (f > 0)
             = 200 + buffer                               (f <= 0)
    dwell_ms = move_ms
    pace_ms  = max(25, move_ms + dwell_ms + 10)

Under-pacing overflows the firmware's command buffer; over-pacing only costs
throughput.
"""

from __future__ import annotations

import math
import threading
import time
from dataclasses import dataclass
from enum import Enum, auto
from typing import Optional, TYPE_CHECKING

from .cancellation import CancelToken, POLL_INTERVAL
from .log_sink import LogSink
from .logger import log_pace
from .send_gate import SendGate
from .types import (
    AllowUnhomedMovesCommand,
    DwellCommand,
    MotorsCommand,
    PositioningModeCommand,
    RelativeMoveCommand,
)

if TYPE_CHECKING:
    from .transport import Transport


DEFAULT_BUFFER_MS = 50
MIN_MOVE_MS = 50
MIN_PACE_MS = 25
FALLBACK_MOVE_MS = 200


def estimate_move_ms(distance_mm: float, feed_mm_per_min: float,
                     buffer_ms: int = DEFAULT_BUFFER_MS) -> int:
    """Estimated time for one move in ms, including the safety buffer."""
    if feed_mm_per_min <= 0:
        return FALLBACK_MOVE_MS + buffer_ms
    ms = math.ceil(abs(distance_mm) / feed_mm_per_min * 60_000.0)
    return max(MIN_MOVE_MS, ms + buffer_ms)


@dataclass(frozen=True)
class PacerTiming:
    """Derived timing for one half cycle (move, dwell, host delay)."""
    move_ms: int
    dwell_ms: int
    pace_ms: int

    @classmethod
    def for_motion(cls, distance_mm: float, feed_mm_per_min: float,
                   buffer_ms: int = DEFAULT_BUFFER_MS) -> PacerTiming:
        move_ms = estimate_move_ms(distance_mm, feed_mm_per_min, buffer_ms)
        dwell_ms = move_ms
        pace_ms = max(MIN_PACE_MS, move_ms + dwell_ms + 10)
        return cls(move_ms=move_ms, dwell_ms=dwell_ms, pace_ms=pace_ms)

    def to_dict(self) -> dict:
        return {"move_ms": self.move_ms, "dwell_ms": self.dwell_ms, "pace_ms": self.pace_ms}


class PacerStatus(Enum):
    IDLE = auto()
    RUNNING = auto()


@dataclass
class PacerSettings:
    """Pacer tuning"""
    distance_mm: float = 20.0
    feedrate: int = 3000          # mm/min
    feed_step: int = 500
    feed_min: int = 100
    feed_max: int = 60000
    buffer_ms: int = DEFAULT_BUFFER_MS
    gap_ms: int = 15              # between a move and its dwell
    setup_pause_ms: int = 50


@dataclass
class PacerState:
    """Lives from start() until the loop thread has been joined."""
    distance_mm: float
    token: CancelToken
    timing: PacerTiming
    session: Optional["Transport"] = None
    thread: Optional[threading.Thread] = None
    half_cycles: int = 0
    finished: bool = False


class MotionPacer:
    """
    Idle/Running state machine around the jog loop thread.

    start() is rejected while running or disconnected. stop() is idempotent
    and does not return until the loop thread has finished, so the session
    can be closed safely right after it.

    The loop is bound to the session it was started on. It ends by itself
    when that session closes or is replaced, and the pacer is Idle again.
    """

    def __init__(self, gate: SendGate, log: LogSink, settings: Optional[PacerSettings] = None):
        self._gate = gate
        self._log = log
        self.settings = settings or PacerSettings()
        self._state: Optional[PacerState] = None
        self._control = threading.Lock()   # start/stop
        self._feed_lock = threading.Lock()

    # =========================================================================
    # Properties
    # =========================================================================

    @property
    def status(self) -> PacerStatus:
        return PacerStatus.RUNNING if self.is_running else PacerStatus.IDLE

    @property
    def is_running(self) -> bool:
        state = self._state
        return state is not None and not state.finished

    @property
    def is_loop_alive(self) -> bool:
        state = self._state
        return state is not None and state.thread is not None and state.thread.is_alive()

    @property
    def feedrate(self) -> int:
        with self._feed_lock:
            return self.settings.feedrate

    @property
    def timing(self) -> PacerTiming:
        """Timing of the current half cycle, or what the next start would use."""
        state = self._state
        if state is not None and not state.finished:
            return state.timing
        return PacerTiming.for_motion(self.settings.distance_mm, self.feedrate, self.settings.buffer_ms)

    def get_status(self) -> dict:
        state = self._state
        return {
            "state": self.status.name.lower(),
            "feedrate": self.feedrate,
            "distance_mm": self.settings.distance_mm,
            "timing": self.timing.to_dict(),
            "half_cycles": state.half_cycles if state else 0,
        }

    # =========================================================================
    # Transitions
    # =========================================================================

    def start(self) -> bool:
        """Idle -> Running. Returns False when rejected."""
        with self._control:
            previous = self._state
            if previous is not None:
                if not previous.finished:
                    self._log.note("Loop already running")
                    return False
                self._reap_locked(previous)

            session = self._gate.session
            if session is None or not session.is_open:
                self._log.error("Not connected")
                return False

            state = PacerState(
                distance_mm=self.settings.distance_mm,
                token=CancelToken(),
                timing=self.timing,
                session=session,
            )
            self._state = state
            try:
                self._setup(state)
                thread = threading.Thread(
                    target=self._run, args=(state,), name="motion-pacer", daemon=True
                )
                state.thread = thread
                thread.start()
            except Exception as e:
                self._log.error(f"Start loop failed: {e}")
                self._stop_locked()
                return False

        log_pace("Loop started", {"feedrate": self.feedrate, **state.timing.to_dict()})
        return True

    def stop(self) -> None:
        """Running -> Idle. Waits for the loop thread; no-op when idle."""
        with self._control:
            self._stop_locked()

    def _stop_locked(self) -> None:
        state = self._state
        if state is None:
            return

        state.token.cancel()
        self._reap_locked(state)

        # Back to absolute positioning if the board is still there
        self._gate.send(PositioningModeCommand(relative=False).to_gcode(), session=state.session)
        self._log.note("Loop stopped")

    def _reap_locked(self, state: PacerState) -> None:
        thread = state.thread
        if thread is not None and thread is not threading.current_thread():
            thread.join()
        if self._state is state:
            self._state = None

    def _loop_finished(self, state: PacerState) -> None:
        """Called from the loop thread as it exits."""
        state.finished = True
        # stop() or start() holding the lock will reap the state themselves
        if not self._control.acquire(blocking=False):
            return
        try:
            if self._state is state:
                self._state = None
                if not state.token.is_cancelled:
                    self._log.note("Loop ended")
        finally:
            self._control.release()

    def adjust_feed(self, step: int) -> int:
        """Change feed by `step` mm/min, clamped. Allowed in either state."""
        with self._feed_lock:
            feed = self.settings.feedrate + step
            feed = max(self.settings.feed_min, min(self.settings.feed_max, feed))
            self.settings.feedrate = feed
        log_pace(f"Feed {feed} mm/min")
        return feed

    def speed_up(self) -> int:
        return self.adjust_feed(self.settings.feed_step)

    def speed_down(self) -> int:
        return self.adjust_feed(-self.settings.feed_step)

    # =========================================================================
    # Loop
    # =========================================================================

    def _session_alive(self, state: PacerState) -> bool:
        session = state.session
        return (
            not state.token.is_cancelled
            and session is not None
            and session.is_open
            and self._gate.session is session
        )

    def _send(self, state: PacerState, gcode: str) -> bool:
        return self._gate.send(gcode, state.token, session=state.session)

    def _pause(self, state: PacerState, ms: float) -> bool:
        """Sleep `ms`. False as soon as the loop's session is gone or cancelled."""
        end = time.monotonic() + ms / 1000
        while self._session_alive(state):
            left = end - time.monotonic()
            if left <= 0:
                return True
            state.token.wait(min(left, POLL_INTERVAL))
        return False

    def _setup(self, state: PacerState) -> None:
        """Enable motors, allow unhomed moves, switch to relative mode."""
        for command in (
            MotorsCommand(enable=True),
            AllowUnhomedMovesCommand(),
            PositioningModeCommand(relative=True),
        ):
            self._send(state, command.to_gcode())
        self._pause(state, self.settings.setup_pause_ms)

    def _run(self, state: PacerState) -> None:
        try:
            forward = True
            while self._half_cycle(state, forward):
                forward = not forward
        except Exception as e:
            self._log.error(f"Loop error: {e}")
        finally:
            self._loop_finished(state)

    def _half_cycle(self, state: PacerState, forward: bool) -> bool:
        """Move, gap, dwell, host delay. Returns False once the loop must end."""
        if not self._session_alive(state):
            return False

        # Re-derived each time so a feed change never outruns the pacing
        feed = self.feedrate
        move = RelativeMoveCommand(state.distance_mm, feed)
        if not forward:
            move = move.reversed()
        timing = PacerTiming.for_motion(move.x, feed, self.settings.buffer_ms)
        state.timing = timing

        self._send(state, move.to_gcode())
        if not self._pause(state, self.settings.gap_ms):
            return False
        self._send(state, DwellCommand(timing.dwell_ms).to_gcode())
        if not self._pause(state, timing.pace_ms):
            return False

        state.half_cycles += 1
        return True
