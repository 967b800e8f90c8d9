"""
Unit tests for core command types.
"""

import pytest
from core.types import (
    format_number,
    RelativeMoveCommand,
    DwellCommand,
    MotorsCommand,
    AllowUnhomedMovesCommand,
    PositioningModeCommand,
    FirmwareInfoCommand,
)


class TestFormatNumber:
    """Numbers render the way they are typed."""

    def test_integral_float(self):
        assert format_number(20.0) == "20"

    def test_negative(self):
        assert format_number(-20.0) == "-20"

    def test_fraction(self):
        assert format_number(2.5) == "2.5"

    def test_int(self):
        assert format_number(10) == "10"


class TestRelativeMoveCommand:
    """Tests for the G1 move."""

    def test_immutable(self):
        cmd = RelativeMoveCommand(x=20, feedrate=3000)
        with pytest.raises(AttributeError):
            cmd.x = 10  # type: ignore

    def test_to_gcode(self):
        assert RelativeMoveCommand(20.0, 3000).to_gcode() == "G1 X20 F3000"

    def test_reversed(self):
        cmd = RelativeMoveCommand(20.0, 3000)
        assert cmd.reversed() == RelativeMoveCommand(-20.0, 3000)
        assert cmd.reversed().to_gcode() == "G1 X-20 F3000"
        assert cmd.reversed().reversed() == cmd


class TestDwellCommand:
    """Tests for G4."""

    def test_to_gcode(self):
        assert DwellCommand(450).to_gcode() == "G4 P450"

    def test_negative_rejected(self):
        with pytest.raises(ValueError):
            DwellCommand(-1)


class TestSetupCommands:
    """Fixed single-word commands."""

    def test_motors(self):
        assert MotorsCommand(True).to_gcode() == "M17"
        assert MotorsCommand(False).to_gcode() == "M18"

    def test_allow_unhomed(self):
        assert AllowUnhomedMovesCommand().to_gcode() == "M564 S0"

    def test_positioning(self):
        assert PositioningModeCommand(relative=True).to_gcode() == "G91"
        assert PositioningModeCommand(relative=False).to_gcode() == "G90"

    def test_firmware_info(self):
        assert FirmwareInfoCommand().to_gcode() == "M115"
