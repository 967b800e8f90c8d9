"""Pytest configuration and shared fixtures."""

import sys
from pathlib import Path

import pytest

# Add backend to path
sys.path.insert(0, str(Path(__file__).parent.parent))

from core.serial_transport import SerialConfig
from core.transport import LoopbackChannel, MockFirmwareChannel


@pytest.fixture
def fast_config() -> SerialConfig:
    """Serial config with short per-attempt timeouts for tests."""
    return SerialConfig(read_timeout=0.02, settle_delay=0.0)


@pytest.fixture
def loopback():
    """A loopback channel and a factory that hands it out."""
    channel = LoopbackChannel(timeout=0.02)

    def factory(port, config):
        return channel

    return channel, factory


@pytest.fixture
def firmware():
    """A mock firmware channel and a factory that hands it out."""
    channel = MockFirmwareChannel(timeout=0.02)

    def factory(port, config):
        return channel

    return channel, factory


@pytest.fixture
def default_feedrate() -> int:
    """Standard feedrate in mm/min."""
    return 3000
