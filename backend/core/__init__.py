"""Core link layer - serial framing, send gate, inbox, reader, pacer"""

from .serial_transport import SerialTransport, SerialConfig
from .send_gate import SendGate
from .inbox import Inbox
from .reader import ReaderLoop
from .pacer import MotionPacer, PacerSettings, PacerTiming, estimate_move_ms
from .log_sink import LogSink

__all__ = [
    'SerialTransport', 'SerialConfig', 'SendGate', 'Inbox', 'ReaderLoop',
    'MotionPacer', 'PacerSettings', 'PacerTiming', 'estimate_move_ms', 'LogSink',
]
