"""
Core immutable command types.

All types are frozen dataclasses rendering one G-code/M-code line each, so
the sequences the pacer and the API send are deterministic and testable.
The firmware's replies are opaque text and are not modelled here.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Protocol


def format_number(value: float) -> str:
    """Render a number the way it is typed in G-code: 20.0 -> '20', 2.5 -> '2.5'."""
    if float(value).is_integer():
        return str(int(value))
    return f"{value:g}"


# =============================================================================
# Command Protocol & Types
# =============================================================================


class Command(Protocol):
    """Protocol for all G-code commands."""

    def to_gcode(self) -> str:
        """Convert to G-code string."""
        ...


@dataclass(frozen=True)
class RelativeMoveCommand:
    """
    Linear move on X (G1), interpreted relative after G91.

    Example: RelativeMoveCommand(20, 3000) -> "G1 X20 F3000"
    """
    x: float
    feedrate: int

    def to_gcode(self) -> str:
        return f"G1 X{format_number(self.x)} F{self.feedrate}"

    def reversed(self) -> RelativeMoveCommand:
        """The mirrored move back to where this one started."""
        return RelativeMoveCommand(-self.x, self.feedrate)


@dataclass(frozen=True)
class DwellCommand:
    """Firmware-side dwell (G4 P<ms>)."""
    milliseconds: int

    def __post_init__(self):
        if self.milliseconds < 0:
            raise ValueError("DwellCommand requires a non-negative duration")

    def to_gcode(self) -> str:
        return f"G4 P{self.milliseconds}"


@dataclass(frozen=True)
class MotorsCommand:
    """Enable (M17) or disable (M18) the steppers."""
    enable: bool

    def to_gcode(self) -> str:
        return "M17" if self.enable else "M18"


@dataclass(frozen=True)
class AllowUnhomedMovesCommand:
    """M564 S0 - permit motion before the axes are homed."""

    def to_gcode(self) -> str:
        return "M564 S0"


@dataclass(frozen=True)
class PositioningModeCommand:
    """Switch between relative (G91) and absolute (G90) positioning."""
    relative: bool

    def to_gcode(self) -> str:
        return "G91" if self.relative else "G90"


@dataclass(frozen=True)
class FirmwareInfoCommand:
    """M115 - ask the firmware to identify itself."""

    def to_gcode(self) -> str:
        return "M115"
