"""
Structured console logging for stepper-link.

Prefixes:
  ⚡ CRITICAL - Errors, failures
  ⚠️  WARN     - Warnings, unexpected behavior
  ✓  OK       - Success confirmations
  ⬡  SERIAL   - Line I/O
  ⏱  PACE     - Pacer loop timing and state
  🔍 DIAG     - Listen test output
"""

from enum import Enum
from typing import Optional
from datetime import datetime


class LogLevel(Enum):
    CRITICAL = "⚡ CRITICAL"
    WARN = "⚠️  WARN    "
    OK = "✓  OK      "
    SERIAL = "⬡  SERIAL  "
    PACE = "⏱  PACE    "
    INFO = "ℹ  INFO    "
    DIAG = "🔍 DIAG    "


def log(level: LogLevel, message: str, data: Optional[dict] = None):
    """Log a message with structured prefix."""
    timestamp = datetime.now().strftime("%H:%M:%S.%f")[:-3]
    prefix = level.value

    line = f"[{timestamp}] {prefix} | {message}"
    if data:
        line += f" | {data}"

    print(line, flush=True)


# Convenience functions
def log_critical(msg: str, data: Optional[dict] = None):
    log(LogLevel.CRITICAL, msg, data)

def log_warn(msg: str, data: Optional[dict] = None):
    log(LogLevel.WARN, msg, data)

def log_ok(msg: str, data: Optional[dict] = None):
    log(LogLevel.OK, msg, data)

def log_serial(direction: str, data: str):
    """Log line I/O. direction is '>>>' (send) or '<<<' (recv)"""
    log(LogLevel.SERIAL, f"{direction} {data}")

def log_pace(msg: str, data: Optional[dict] = None):
    log(LogLevel.PACE, msg, data)

def log_info(msg: str, data: Optional[dict] = None):
    log(LogLevel.INFO, msg, data)

def log_diag(msg: str, data: Optional[dict] = None):
    log(LogLevel.DIAG, msg, data)
