"""
Sky backdrop - gradient sky, drifting clouds, twinkling stars, fog wisps.

The sky layer spec says how much cloud, haze and how many stars there
should be; SkyBackdrop keeps the live decoration state and paints it as the
bottom layer of each frame.
"""

import logging
import math
import random
from typing import Dict, List, Optional, Tuple

from .colors import Colors, RGB
from .models import CelestialPhase, EffectHints, GridSize, LayerSpec

logger = logging.getLogger(__name__)


class SkyBackdrop:
    """
    Live sky decorations.

    Clouds, stars and wisps are plain dicts, updated in place each tick.
    Row colors are cached until the gradient, the sky layer or the grid
    height changes.
    """

    STAR_CHARS = ".+*+"
    WISP_CHARS = "~-=~."

    # One star per this many cells of the upper two thirds
    STAR_SPACING = 45

    def __init__(self, width: int, height: int, rng: Optional[random.Random] = None):
        self.width, self.height = GridSize.normalized(width, height)
        self.rng = rng if rng is not None else random.Random()
        self.clouds: List[Dict] = []
        self.stars: List[Dict] = []
        self.wisps: List[Dict] = []
        self._sky: Optional[LayerSpec] = None
        self._row_colors: List[RGB] = []
        self._color_key: Optional[Tuple] = None

    def resize(self, width: int, height: int):
        self.width, self.height = GridSize.normalized(width, height)
        self.stars = []
        self.wisps = []
        top = max(1, self.height // 3)
        for cloud in self.clouds:
            cloud['y'] = min(cloud['y'], top - 1)
            cloud['x'] = min(cloud['x'], float(self.width - 1))
        self._color_key = None

    # ------------------------------------------------------------------
    # Update
    # ------------------------------------------------------------------

    def update(self, dt: float, sky: Optional[LayerSpec], phase: CelestialPhase):
        """Advance decorations and refresh the cached row colors."""
        self._sky = sky
        if sky is None:
            self.clouds, self.stars, self.wisps = [], [], []
            return

        self._refresh_row_colors(sky, phase)
        self._update_clouds(dt, sky)
        self._update_stars(dt, sky)
        self._update_wisps(dt, sky)

    def _refresh_row_colors(self, sky: LayerSpec, phase: CelestialPhase):
        key = (tuple(phase.sky_gradient), sky.intensity, sky.cloud_cover, sky.haze, self.height)
        if key == self._color_key:
            return
        self._color_key = key
        self._row_colors = [
            self._sky_color(row, phase.sky_gradient, sky) for row in range(self.height)
        ]

    def _sky_color(self, row: int, stops: List[RGB], sky: LayerSpec) -> RGB:
        t = row / (self.height - 1) if self.height > 1 else 0.0
        # Piecewise linear over the stops, top to bottom
        segment = t * (len(stops) - 1)
        idx = min(int(segment), len(stops) - 2)
        color = Colors.blend(stops[idx], stops[idx + 1], segment - idx)
        # Cloud cover greys the sky out, haze thickens towards the ground
        color = Colors.blend(color, Colors.OVERCAST_GREY, sky.cloud_cover * 0.5)
        if sky.haze > 0:
            color = Colors.blend(color, Colors.FOG, sky.haze * t)
        return Colors.scale(color, sky.intensity)

    def row_color(self, row: int) -> Optional[RGB]:
        if 0 <= row < len(self._row_colors):
            return self._row_colors[row]
        return None

    def _update_clouds(self, dt: float, sky: LayerSpec):
        shapes = [s.split("\n") for s in sky.glyphs] or [["(__)"]]
        if sky.cloud_cover <= 0:
            target = 0
        else:
            target = max(1, int(round(self.width / 20 * sky.cloud_cover * 2)))

        while len(self.clouds) > target:
            self.clouds.pop()
        while len(self.clouds) < target:
            self.clouds.append(self._new_cloud(shapes, anywhere=True))

        drift = sky.motion[1]
        for cloud in self.clouds:
            cloud['x'] += cloud['speed'] * drift * dt
            if cloud['x'] > self.width:
                cloud.update(self._new_cloud(shapes, anywhere=False))

    def _new_cloud(self, shapes: List[List[str]], anywhere: bool) -> Dict:
        rng = self.rng
        shape = rng.choice(shapes)
        shape_width = max(len(line) for line in shape)
        top = max(1, self.height // 3)
        return {
            'x': rng.uniform(-shape_width, self.width - 1) if anywhere else float(-shape_width),
            'y': rng.randint(0, max(0, top - len(shape))),
            'speed': rng.uniform(0.5, 1.5),
            'shape': shape,
        }

    def _update_stars(self, dt: float, sky: LayerSpec):
        if not sky.stars:
            self.stars = []
            return
        if not self.stars:
            rng = self.rng
            rows = max(1, (self.height * 2) // 3)
            count = max(1, (self.width * rows) // self.STAR_SPACING)
            self.stars = [
                {
                    'y': rng.randint(0, rows - 1),
                    'x': rng.randint(0, self.width - 1),
                    'phase': rng.uniform(0, 2 * math.pi),
                    'rate': rng.uniform(0.5, 2.0),
                }
                for _ in range(count)
            ]
        for star in self.stars:
            star['phase'] += star['rate'] * dt

    def _update_wisps(self, dt: float, sky: LayerSpec):
        target = int(self.width * sky.haze * 0.4)
        while len(self.wisps) > target:
            self.wisps.pop()
        while len(self.wisps) < target:
            self.wisps.append(self._new_wisp())
        for wisp in self.wisps:
            wisp['x'] += wisp['speed'] * dt
            wisp['life'] -= dt
            if wisp['life'] <= 0 or wisp['x'] < -len(wisp['text']) or wisp['x'] >= self.width:
                wisp.update(self._new_wisp())

    def _new_wisp(self) -> Dict:
        rng = self.rng
        length = rng.randint(3, 8)
        return {
            'x': rng.uniform(0, self.width - 1),
            'y': rng.randint(self.height // 2, self.height - 1),
            'speed': rng.uniform(0.2, 0.8) * rng.choice((-1, 1)),
            'text': ''.join(rng.choice(self.WISP_CHARS) for _ in range(length)),
            'life': rng.uniform(4.0, 10.0),
        }

    # ------------------------------------------------------------------
    # Paint
    # ------------------------------------------------------------------

    def paint(self, frame, hints: Optional[EffectHints] = None):
        """Paint sky, stars, clouds and wisps onto a frame."""
        sky = self._sky
        if sky is None:
            return

        flash = hints is not None and hints.flash
        for row in range(min(frame.height, len(self._row_colors))):
            bg = self._row_colors[row]
            if flash:
                bg = Colors.blend(bg, Colors.FLASH, hints.flash_intensity)
            frame.fill_row(row, bg)

        if not flash:
            for star in self.stars:
                glow = (math.sin(star['phase']) + 1.0) / 2.0
                char = self.STAR_CHARS[min(len(self.STAR_CHARS) - 1, int(glow * len(self.STAR_CHARS)))]
                frame.put(star['y'], star['x'], char, fg=Colors.STAR)

        for cloud in self.clouds:
            x = int(cloud['x'])
            for dy, line in enumerate(cloud['shape']):
                frame.put_text(cloud['y'] + dy, x, line, fg=sky.color, skip_spaces=True)

        for wisp in self.wisps:
            frame.put_text(wisp['y'], int(wisp['x']), wisp['text'], fg=Colors.FOG)
