"""
Tests for the celestial clock: day fraction, sky gradient and body arc.
"""

import os
import sys
from datetime import datetime

import pytest

# Add parent directory to path for imports
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from weather_tui.celestial import (
    BODY_HEIGHT,
    BODY_WIDTH,
    CelestialClock,
    arc_progress,
    body_position,
    day_fraction,
    is_sun_up,
    sky_gradient,
)
from weather_tui.colors import Colors
from weather_tui.models import GridSize


def at(hour, minute=0):
    return datetime(2024, 6, 1, hour, minute)


class TestDayFraction:
    @pytest.mark.parametrize("when,expected", [
        (at(0), 0.0),
        (at(6), 0.25),
        (at(12), 0.5),
        (at(18), 0.75),
        (at(23, 59), 1439 / 1440),
    ])
    def test_fraction(self, when, expected):
        assert day_fraction(when) == pytest.approx(expected)

    @pytest.mark.parametrize("fraction,up", [
        (0.0, False), (0.24, False), (0.25, True), (0.5, True), (0.749, True), (0.75, False),
    ])
    def test_sun_up(self, fraction, up):
        assert is_sun_up(fraction) is up


class TestSkyGradient:
    @pytest.mark.parametrize("fraction,segment", [
        (0.1, "night"), (0.26, "dawn"), (0.5, "day"), (0.74, "dusk"), (0.9, "night"),
    ])
    def test_segments(self, fraction, segment):
        _, name = sky_gradient(fraction)
        assert name == segment

    def test_keyframes_are_exact(self):
        stops, _ = sky_gradient(0.5)
        assert stops == Colors.DAY_SKY
        stops, _ = sky_gradient(0.0)
        assert stops == Colors.NIGHT_SKY

    def test_gradient_is_continuous(self):
        """One minute never moves a color channel by more than a few steps."""
        previous, _ = sky_gradient(0.0)
        for minute in range(1, 1440):
            stops, _ = sky_gradient(minute / 1440)
            for old, new in zip(previous, stops):
                assert max(abs(a - b) for a, b in zip(old, new)) <= 8
            previous = stops

    def test_wraps_past_midnight(self):
        assert sky_gradient(1.25) == sky_gradient(0.25)


class TestArc:
    def test_sun_arc(self):
        assert arc_progress(0.25) == ("sun", 0.0)
        body, progress = arc_progress(0.5)
        assert body == "sun"
        assert progress == pytest.approx(0.5)

    def test_moon_arc_crosses_midnight(self):
        body, progress = arc_progress(0.0)
        assert body == "moon"
        assert progress == pytest.approx(0.5)
        assert arc_progress(0.75) == ("moon", 0.0)

    def test_highest_at_middle(self):
        grid = GridSize(80, 40)
        rows = [body_position(p / 10, grid)[0] for p in range(11)]
        assert rows[5] == min(rows)
        assert rows[0] > rows[5]
        assert rows[10] > rows[5]

    def test_moves_left_to_right(self):
        grid = GridSize(100, 30)
        cols = [body_position(p / 10, grid)[1] for p in range(11)]
        assert cols == sorted(cols)

    @pytest.mark.parametrize("width,height", [(80, 24), (12, 6), (5, 3), (1, 1), (300, 90)])
    def test_body_fits_grid(self, width, height):
        for p in range(21):
            row, col = body_position(p / 20, GridSize(width, height))
            assert 0 <= row < height
            assert 0 <= col < width
            if width > BODY_WIDTH:
                assert col - BODY_WIDTH // 2 >= 0
                assert col + BODY_WIDTH // 2 < width
            if height > BODY_HEIGHT:
                assert row - BODY_HEIGHT // 2 >= 0
                assert row + BODY_HEIGHT // 2 < height


class TestCelestialClock:
    def test_phase_from_clock(self):
        clock = CelestialClock(clock=lambda: at(12))
        phase = clock.phase()
        assert phase.body == "sun"
        assert phase.segment == "day"
        assert phase.day_fraction == pytest.approx(0.5)

    def test_night_override_pins_midnight(self):
        clock = CelestialClock(clock=lambda: at(12))
        phase = clock.phase(is_night_override=True)
        assert phase.body == "moon"
        assert phase.segment == "night"
        assert phase.day_fraction == 0.0

    def test_day_override_pins_noon(self):
        clock = CelestialClock(clock=lambda: at(2))
        phase = clock.phase(is_night_override=False)
        assert phase.body == "sun"
        assert phase.day_fraction == 0.5

    def test_is_night(self):
        assert CelestialClock(clock=lambda: at(23)).is_night()
        assert not CelestialClock(clock=lambda: at(9)).is_night()

    def test_explicit_time_wins(self):
        clock = CelestialClock(clock=lambda: at(12))
        assert clock.phase(now=at(0)).body == "moon"
