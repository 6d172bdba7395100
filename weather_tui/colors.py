"""
TUI Color Definitions - RGB palette and curses color pair management.

Scene code works in RGB; ColorPairCache turns (fg, bg) pairs into curses
attributes, allocating pairs lazily and mapping each RGB value to the
nearest color the terminal offers (xterm-256 or the 8 basic colors).
"""

import logging
from typing import Dict, List, Optional, Tuple

# Handle curses import for Windows compatibility
try:
    import curses
    CURSES_AVAILABLE = True
except ImportError:
    curses = None
    CURSES_AVAILABLE = False

logger = logging.getLogger(__name__)

RGB = Tuple[int, int, int]


class Colors:
    """Named RGB colors used by the scene."""
    # Sky gradient stops (top, middle, bottom)
    NIGHT_SKY = [(4, 6, 24), (10, 14, 40), (22, 26, 58)]
    DAWN_SKY = [(40, 60, 120), (190, 110, 120), (250, 170, 90)]
    DAY_SKY = [(40, 110, 210), (90, 160, 230), (160, 205, 245)]
    DUSK_SKY = [(30, 40, 100), (170, 80, 100), (240, 120, 60)]
    OVERCAST_GREY = (120, 124, 132)
    # Bodies
    SUN = (255, 215, 0)
    MOON = (235, 235, 215)
    STAR = (255, 255, 240)
    # Clouds and haze
    CLOUD = (225, 225, 232)
    CLOUD_DARK = (115, 115, 125)
    FOG = (170, 170, 175)
    # Precipitation
    RAIN = (90, 150, 255)
    DRIZZLE = (150, 185, 230)
    FREEZING_RAIN = (175, 225, 255)
    SNOW = (245, 245, 255)
    HAIL = (205, 235, 255)
    LEAF = (210, 120, 40)
    # Lightning
    LIGHTNING = (255, 255, 200)
    FLASH = (235, 235, 255)
    # Sprites
    AIRPLANE = (225, 225, 225)
    BIRD = (50, 50, 60)
    FIREFLY = (215, 255, 90)
    # HUD
    HUD = (0, 205, 205)
    HUD_MUTED = (140, 140, 140)
    HUD_WARN = (255, 190, 0)

    # curses basic colors 0-7 in RGB, for nearest-color lookup
    BASIC_PALETTE: List[RGB] = [
        (0, 0, 0),        # black
        (205, 0, 0),      # red
        (0, 205, 0),      # green
        (205, 205, 0),    # yellow
        (0, 0, 238),      # blue
        (205, 0, 205),    # magenta
        (0, 205, 205),    # cyan
        (229, 229, 229),  # white
    ]

    @staticmethod
    def init_colors() -> bool:
        """Initialize curses colors. Returns False when the terminal has none."""
        if not CURSES_AVAILABLE or curses is None:
            return False
        try:
            if not curses.has_colors():
                return False
            curses.start_color()
            curses.use_default_colors()
            return True
        except curses.error as e:
            logger.warning(f"Could not initialize colors: {e}")
            return False

    @staticmethod
    def blend(a: RGB, b: RGB, t: float) -> RGB:
        """Linear interpolation from a to b, t in [0, 1]."""
        t = min(1.0, max(0.0, t))
        return (
            int(round(a[0] + (b[0] - a[0]) * t)),
            int(round(a[1] + (b[1] - a[1]) * t)),
            int(round(a[2] + (b[2] - a[2]) * t)),
        )

    @staticmethod
    def scale(color: RGB, factor: float) -> RGB:
        """Brighten or darken a color, clamped to 0-255."""
        return tuple(min(255, max(0, int(round(c * factor)))) for c in color)

    @staticmethod
    def nearest_basic(color: RGB) -> int:
        """Index of the closest of the 8 basic curses colors."""
        best, best_dist = 0, None
        for idx, ref in enumerate(Colors.BASIC_PALETTE):
            dist = sum((c - r) ** 2 for c, r in zip(color, ref))
            if best_dist is None or dist < best_dist:
                best, best_dist = idx, dist
        return best

    @staticmethod
    def nearest_xterm256(color: RGB) -> int:
        """Index of the closest color in the xterm 6x6x6 cube or grey ramp."""
        levels = [0, 95, 135, 175, 215, 255]

        def cube_index(v):
            return min(range(6), key=lambda i: abs(levels[i] - v))

        r, g, b = (cube_index(c) for c in color)
        cube_rgb = (levels[r], levels[g], levels[b])
        cube_idx = 16 + 36 * r + 6 * g + b

        grey_avg = sum(color) // 3
        grey_step = min(23, max(0, (grey_avg - 8) // 10))
        grey_val = 8 + grey_step * 10
        grey_idx = 232 + grey_step

        cube_dist = sum((c - v) ** 2 for c, v in zip(color, cube_rgb))
        grey_dist = sum((c - grey_val) ** 2 for c in color)
        return grey_idx if grey_dist < cube_dist else cube_idx


class ColorPairCache:
    """
    Lazily allocated curses color pairs keyed by (fg, bg) RGB.

    When the terminal runs out of pairs, further combinations render with
    the default pair rather than failing.
    """

    def __init__(self, num_colors: int = 8, max_pairs: int = 64):
        self.num_colors = num_colors
        self.max_pairs = max_pairs
        self._pairs: Dict[Tuple[int, int], int] = {}
        self._next_pair = 1
        self._exhausted_logged = False

    def color_index(self, color: Optional[RGB]) -> int:
        """Terminal color number for an RGB value, -1 for the default."""
        if color is None:
            return -1
        if self.num_colors >= 256:
            return Colors.nearest_xterm256(color)
        return Colors.nearest_basic(color)

    def pair_number(self, fg: Optional[RGB], bg: Optional[RGB]) -> int:
        key = (self.color_index(fg), self.color_index(bg))
        if key == (-1, -1):
            return 0
        pair = self._pairs.get(key)
        if pair is not None:
            return pair
        if self._next_pair >= self.max_pairs:
            if not self._exhausted_logged:
                logger.warning(f"Color pairs exhausted ({self.max_pairs}), using default colors")
                self._exhausted_logged = True
            return 0
        pair = self._next_pair
        try:
            curses.init_pair(pair, key[0], key[1])
        except curses.error as e:
            logger.debug(f"init_pair({pair}, {key[0]}, {key[1]}) failed: {e}")
            return 0
        self._pairs[key] = pair
        self._next_pair += 1
        return pair

    def attr(self, fg: Optional[RGB], bg: Optional[RGB], bold: bool = False) -> int:
        """Curses attribute for a cell."""
        attr = curses.color_pair(self.pair_number(fg, bg))
        if bold:
            attr |= curses.A_BOLD
        return attr

    def __len__(self):
        return len(self._pairs)
