"""
Celestial clock - sun/moon position and sky color from the time of day.

The body travels a parabolic arc across the upper part of the grid (high in
the middle, lower at the edges). Sky colors are interpolated between
keyframes so segment boundaries never pop.
"""

import logging
from datetime import datetime
from typing import Callable, List, Optional, Tuple

from .colors import Colors, RGB
from .models import CelestialPhase, GridSize

logger = logging.getLogger(__name__)

SECONDS_PER_DAY = 86400.0

SUNRISE_FRACTION = 0.25
SUNSET_FRACTION = 0.75

# (day fraction, segment name, gradient stops top -> bottom)
SKY_KEYFRAMES: List[Tuple[float, str, List[RGB]]] = [
    (0.00, "night", Colors.NIGHT_SKY),
    (0.20, "night", Colors.NIGHT_SKY),
    (0.26, "dawn", Colors.DAWN_SKY),
    (0.32, "day", Colors.DAY_SKY),
    (0.68, "day", Colors.DAY_SKY),
    (0.74, "dusk", Colors.DUSK_SKY),
    (0.80, "night", Colors.NIGHT_SKY),
    (1.00, "night", Colors.NIGHT_SKY),
]

# Size of the sun/moon art, used to keep the body on screen
BODY_WIDTH = 11
BODY_HEIGHT = 5


def day_fraction(now: datetime) -> float:
    """Seconds since local midnight divided by the length of a day."""
    seconds = now.hour * 3600 + now.minute * 60 + now.second + now.microsecond / 1e6
    return (seconds / SECONDS_PER_DAY) % 1.0


def is_sun_up(fraction: float) -> bool:
    return SUNRISE_FRACTION <= fraction < SUNSET_FRACTION


def sky_gradient(fraction: float) -> Tuple[List[RGB], str]:
    """
    Gradient stops and segment name for a day fraction.

    Stops are linearly interpolated between the two surrounding keyframes;
    the segment name switches at the midpoint between them.
    """
    fraction = fraction % 1.0
    for (f0, seg0, stops0), (f1, seg1, stops1) in zip(SKY_KEYFRAMES, SKY_KEYFRAMES[1:]):
        if f0 <= fraction < f1:
            t = (fraction - f0) / (f1 - f0) if f1 > f0 else 0.0
            stops = [Colors.blend(a, b, t) for a, b in zip(stops0, stops1)]
            return stops, (seg0 if t < 0.5 else seg1)
    return list(SKY_KEYFRAMES[0][2]), SKY_KEYFRAMES[0][1]


def arc_progress(fraction: float) -> Tuple[str, float]:
    """Which body is up and how far along its arc it is (0 = rising edge)."""
    if is_sun_up(fraction):
        return "sun", (fraction - SUNRISE_FRACTION) / (SUNSET_FRACTION - SUNRISE_FRACTION)
    return "moon", ((fraction - SUNSET_FRACTION) % 1.0) / (1.0 - (SUNSET_FRACTION - SUNRISE_FRACTION))


def body_position(progress: float, grid_size: GridSize) -> Tuple[int, int]:
    """
    Center cell of the body for an arc progress in [0, 1].

    Parabola y = min_y + arc_height * 4 * (x - 0.5)^2, so the body is
    highest at the middle of the arc. The result is clamped so the art
    stays inside the grid.
    """
    width, height = GridSize.normalized(*grid_size)
    progress = min(1.0, max(0.0, progress))

    min_y = 2
    max_y = max(min_y, height // 3)
    arc_height = max_y - min_y
    row = int(min_y + arc_height * 4 * (progress - 0.5) ** 2)
    col = int(progress * (width - 1))

    half_w, half_h = BODY_WIDTH // 2, BODY_HEIGHT // 2
    if width > BODY_WIDTH:
        col = min(max(col, half_w), width - 1 - half_w)
    else:
        col = width // 2
    if height > BODY_HEIGHT:
        row = min(max(row, half_h), height - 1 - half_h)
    else:
        row = height // 2
    return row, col


class CelestialClock:
    """Derives the celestial phase from wall-clock time."""

    def __init__(self, clock: Callable[[], datetime] = datetime.now):
        self._clock = clock

    def fraction_at(self, now: Optional[datetime] = None,
                    is_night_override: Optional[bool] = None) -> float:
        if is_night_override is True:
            return 0.0
        if is_night_override is False:
            return 0.5
        return day_fraction(now if now is not None else self._clock())

    def is_night(self, now: Optional[datetime] = None) -> bool:
        return not is_sun_up(self.fraction_at(now))

    def phase(self, now: Optional[datetime] = None,
              is_night_override: Optional[bool] = None,
              grid_size: GridSize = GridSize(80, 24)) -> CelestialPhase:
        """
        Celestial phase for a moment in time.

        Args:
            now: Wall-clock time (defaults to the clock given at construction)
            is_night_override: True pins the phase to midnight, False to noon,
                without consulting the clock
            grid_size: Grid the body position is clamped to
        """
        fraction = self.fraction_at(now, is_night_override)
        body, progress = arc_progress(fraction)
        stops, segment = sky_gradient(fraction)
        return CelestialPhase(
            body=body,
            position=body_position(progress, grid_size),
            sky_gradient=stops,
            day_fraction=fraction,
            segment=segment,
        )
