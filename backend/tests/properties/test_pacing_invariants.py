"""
Property-Based Tests for pacing and framing invariants.

These verify the timing formula and the line codec for ANY valid input,
not just hand-picked examples.
"""

import math

from hypothesis import given, settings, HealthCheck
from hypothesis import strategies as st

from core.pacer import PacerTiming, estimate_move_ms
from core.serial_transport import SerialConfig, SerialTransport
from core.transport import LoopbackChannel


distance_strategy = st.floats(min_value=-500.0, max_value=500.0, allow_nan=False)
positive_feed_strategy = st.integers(min_value=1, max_value=60000)
non_positive_feed_strategy = st.integers(min_value=-60000, max_value=0)


# =============================================================================
# Move estimate
# =============================================================================


class TestMoveEstimate:
    """move_ms = max(50, ceil(|d|/f*60000) + 50) for f > 0, else 250."""

    @given(distance=distance_strategy, feed=positive_feed_strategy)
    def test_formula_positive_feed(self, distance: float, feed: int):
        expected = max(50, math.ceil(abs(distance) / feed * 60000.0) + 50)
        assert estimate_move_ms(distance, feed) == expected

    @given(distance=distance_strategy, feed=non_positive_feed_strategy)
    def test_fallback_non_positive_feed(self, distance: float, feed: int):
        assert estimate_move_ms(distance, feed) == 250

    @given(distance=distance_strategy, feed=positive_feed_strategy)
    def test_direction_does_not_matter(self, distance: float, feed: int):
        assert estimate_move_ms(distance, feed) == estimate_move_ms(-distance, feed)

    @given(distance=distance_strategy, feed=positive_feed_strategy)
    def test_never_shorter_than_physical_motion(self, distance: float, feed: int):
        physical_ms = abs(distance) / feed * 60000.0
        assert estimate_move_ms(distance, feed) >= physical_ms


# =============================================================================
# Pace interval
# =============================================================================


class TestPaceInterval:
    """pace_ms = max(25, 2*move_ms + 10) with dwell = move."""

    @given(distance=distance_strategy, feed=st.integers(min_value=-100, max_value=60000))
    def test_pace_formula(self, distance: float, feed: int):
        timing = PacerTiming.for_motion(distance, feed)
        assert timing.dwell_ms == timing.move_ms
        assert timing.pace_ms == max(25, 2 * timing.move_ms + 10)

    @given(distance=distance_strategy, feed=positive_feed_strategy)
    def test_host_waits_longer_than_move_plus_dwell(self, distance: float, feed: int):
        timing = PacerTiming.for_motion(distance, feed)
        assert timing.pace_ms > timing.move_ms + timing.dwell_ms

    def test_example_20mm_at_3000(self):
        timing = PacerTiming.for_motion(20, 3000)
        assert timing.move_ms == 450
        assert timing.pace_ms == 910

    def test_example_20mm_at_zero_feed(self):
        timing = PacerTiming.for_motion(20, 0)
        assert timing.move_ms == 250
        assert timing.pace_ms == 510

    def test_tiny_move_is_floored(self):
        assert estimate_move_ms(0, 3000) == 50


# =============================================================================
# Line framing
# =============================================================================


line_text = st.text(
    alphabet=st.characters(min_codepoint=0x00, max_codepoint=0x7F, exclude_characters="\n\r"),
    max_size=200,
)


class TestFramingRoundTrip:
    """Text without LF comes back identical after write + read."""

    @given(text=line_text)
    @settings(max_examples=100, suppress_health_check=[HealthCheck.too_slow])
    def test_round_trip(self, text: str):
        channel = LoopbackChannel(timeout=0.01)
        transport = SerialTransport("loop", SerialConfig(settle_delay=0.0), lambda p, c: channel)
        transport.open()
        transport.read_line(timeout=1.0)  # wake byte

        transport.write_line(text)

        assert transport.read_line(timeout=1.0) == text

    @given(text=line_text)
    @settings(max_examples=100, suppress_health_check=[HealthCheck.too_slow])
    def test_cr_stripped_on_read(self, text: str):
        channel = LoopbackChannel(timeout=0.01, echo=False)
        transport = SerialTransport("loop", SerialConfig(settle_delay=0.0), lambda p, c: channel)
        transport.open()

        channel.feed(text.encode("ascii") + b"\r\n")

        assert transport.read_line(timeout=1.0) == text
