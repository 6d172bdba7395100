"""
Scene composer - maps a weather condition to a list of visual layers.

The mapping is a fixed table with one SceneTemplate per condition. The
table is checked for completeness when this module is imported, so adding
a condition without a template fails loudly rather than rendering an
empty sky.

Layer order is always: sky, celestial, precipitation, effects, sprites.
"""

import logging
import math
from dataclasses import dataclass, replace
from typing import Dict, List, Optional

from .colors import Colors
from .models import GridSize, LayerKind, LayerSpec, WeatherCondition

logger = logging.getLogger(__name__)


# Sun animation frames (5 rows, 11 columns, centered on the body position)
SUN_FRAMES = (
    "\n".join([
        "  \\  |  /  ",
        "   .---.   ",
        "--(     )--",
        "   '---'   ",
        "  /  |  \\  ",
    ]),
    "\n".join([
        "   \\ | /   ",
        "  .-----.  ",
        "-(       )-",
        "  '-----'  ",
        "   / | \\   ",
    ]),
)

MOON_ART = "\n".join([
    " @@@ ",
    "@@@@@",
    "@@@@ ",
    "@@@@@",
    " @@@ ",
])

# Cloud shapes drawn by the sky backdrop
CLOUD_SHAPES = (
    "\n".join([
        "   .--.    ",
        ".-(    ).  ",
        "(___.__)__)",
    ]),
    "\n".join([
        "  .-~~-.    ",
        " (      )_  ",
        "(__________)",
    ]),
    "\n".join([
        " .--. ",
        "(____)",
    ]),
)


# -- Precipitation layers ------------------------------------------------

RAIN = LayerSpec(
    kind=LayerKind.PRECIPITATION, name="rain", density=0.5,
    glyphs=("|", "|", "!", "'"), color=Colors.RAIN, motion=(28.0, 0.8), jitter=0.05,
)
RAIN_SHOWERS = replace(RAIN, density=0.7, motion=(32.0, 1.2))
STORM_RAIN = replace(RAIN, density=0.9, motion=(36.0, 2.5), jitter=0.08)
DRIZZLE = LayerSpec(
    kind=LayerKind.PRECIPITATION, name="drizzle", density=0.25,
    glyphs=(".", ",", "'"), color=Colors.DRIZZLE, motion=(14.0, 0.4), jitter=0.04,
)
FREEZING_RAIN = LayerSpec(
    kind=LayerKind.PRECIPITATION, name="freezing-rain", density=0.45,
    glyphs=("|", "'", "*"), color=Colors.FREEZING_RAIN, motion=(22.0, 0.6), jitter=0.05,
)
SNOW = LayerSpec(
    kind=LayerKind.PRECIPITATION, name="snow", density=0.3,
    glyphs=("*", ".", "+", "*"), color=Colors.SNOW, motion=(4.0, 0.4), jitter=1.2,
)
SNOW_GRAINS = replace(SNOW, density=0.2, glyphs=(".", ","), motion=(5.0, 0.2), jitter=0.5)
SNOW_SHOWERS = replace(SNOW, density=0.5, motion=(5.0, 0.8))
HAIL = LayerSpec(
    kind=LayerKind.PRECIPITATION, name="hail", density=0.4,
    glyphs=("o", ".", "o"), color=Colors.HAIL, motion=(34.0, 0.6), jitter=0.04,
)
LEAVES = LayerSpec(
    kind=LayerKind.PRECIPITATION, name="leaves", density=0.02,
    glyphs=("*", "&", "~"), color=Colors.LEAF, motion=(1.5, 2.5), jitter=2.0,
)

# -- Lightning -------------------------------------------------------------

LIGHTNING = LayerSpec(
    kind=LayerKind.EFFECT, name="lightning", color=Colors.LIGHTNING,
    glyphs=("/", "\\", "|", "/"),
    min_interval=4.0, max_interval=12.0, flash_ticks=4, intensity=0.8,
)
HAIL_LIGHTNING = replace(LIGHTNING, min_interval=1.5, max_interval=5.0, flash_ticks=6, intensity=1.0)

# -- Sprites ---------------------------------------------------------------

AIRPLANE = LayerSpec(
    kind=LayerKind.SPRITE, name="airplane", density=0.03,
    glyphs=("-=>", "<=-"), color=Colors.AIRPLANE, motion=(0.0, 8.0),
)
BIRDS = LayerSpec(
    kind=LayerKind.SPRITE, name="birds", density=0.15,
    glyphs=("v", "^"), color=Colors.BIRD, motion=(0.0, 4.0),
)
FIREFLIES = LayerSpec(
    kind=LayerKind.SPRITE, name="fireflies", density=2.0,
    glyphs=("*", "+", ".", " "), color=Colors.FIREFLY, motion=(0.4, 0.8),
)

# Grids narrower than this get no flying sprites
MIN_SPRITE_WIDTH = 20


@dataclass(frozen=True)
class SceneTemplate:
    """How one weather condition looks."""
    cloud_cover: float = 0.0
    haze: float = 0.0
    brightness: float = 1.0
    precipitation: Optional[LayerSpec] = None
    lightning: Optional[LayerSpec] = None
    dark_clouds: bool = False
    leaves_allowed: bool = False
    sprites_allowed: bool = False
    fireflies_allowed: bool = False


CONDITION_TABLE: Dict[WeatherCondition, SceneTemplate] = {
    WeatherCondition.CLEAR: SceneTemplate(
        cloud_cover=0.0, leaves_allowed=True, sprites_allowed=True, fireflies_allowed=True,
    ),
    WeatherCondition.PARTLY_CLOUDY: SceneTemplate(
        cloud_cover=0.35, leaves_allowed=True, sprites_allowed=True, fireflies_allowed=True,
    ),
    WeatherCondition.CLOUDY: SceneTemplate(
        cloud_cover=0.65, brightness=0.85, sprites_allowed=True,
    ),
    WeatherCondition.OVERCAST: SceneTemplate(
        cloud_cover=1.0, brightness=0.7, dark_clouds=True,
    ),
    WeatherCondition.FOG: SceneTemplate(
        cloud_cover=0.5, haze=0.8, brightness=0.75,
    ),
    WeatherCondition.DRIZZLE: SceneTemplate(
        cloud_cover=0.8, haze=0.2, brightness=0.8, precipitation=DRIZZLE,
    ),
    WeatherCondition.RAIN: SceneTemplate(
        cloud_cover=0.9, brightness=0.7, precipitation=RAIN, dark_clouds=True,
    ),
    WeatherCondition.FREEZING_RAIN: SceneTemplate(
        cloud_cover=0.9, haze=0.1, brightness=0.7, precipitation=FREEZING_RAIN, dark_clouds=True,
    ),
    WeatherCondition.RAIN_SHOWERS: SceneTemplate(
        cloud_cover=0.7, brightness=0.75, precipitation=RAIN_SHOWERS, dark_clouds=True,
    ),
    WeatherCondition.SNOW: SceneTemplate(
        cloud_cover=0.85, brightness=0.85, precipitation=SNOW,
    ),
    WeatherCondition.SNOW_GRAINS: SceneTemplate(
        cloud_cover=0.8, haze=0.15, brightness=0.85, precipitation=SNOW_GRAINS,
    ),
    WeatherCondition.SNOW_SHOWERS: SceneTemplate(
        cloud_cover=0.7, brightness=0.8, precipitation=SNOW_SHOWERS,
    ),
    WeatherCondition.THUNDERSTORM: SceneTemplate(
        cloud_cover=1.0, brightness=0.5, precipitation=STORM_RAIN,
        lightning=LIGHTNING, dark_clouds=True,
    ),
    WeatherCondition.THUNDERSTORM_HAIL: SceneTemplate(
        cloud_cover=1.0, brightness=0.45, precipitation=HAIL,
        lightning=HAIL_LIGHTNING, dark_clouds=True,
    ),
}


def validate_condition_table(table: Optional[Dict[WeatherCondition, SceneTemplate]] = None):
    """
    Check that every condition has a well-formed template.

    Raises:
        ValueError: When a condition is missing or a template is malformed
    """
    table = CONDITION_TABLE if table is None else table
    missing = [c.value for c in WeatherCondition if c not in table]
    if missing:
        raise ValueError(f"Scene templates missing for: {', '.join(missing)}")

    for condition, template in table.items():
        if template.precipitation is not None and template.precipitation.kind != LayerKind.PRECIPITATION:
            raise ValueError(f"{condition.value}: precipitation layer has kind {template.precipitation.kind}")
        if template.lightning is not None:
            spec = template.lightning
            if spec.kind != LayerKind.EFFECT or spec.max_interval < spec.min_interval or spec.flash_ticks < 1:
                raise ValueError(f"{condition.value}: invalid lightning layer")
        if not 0.0 <= template.cloud_cover <= 1.0 or not 0.0 <= template.haze <= 1.0:
            raise ValueError(f"{condition.value}: cloud cover and haze must be within [0, 1]")


validate_condition_table()


def scale_density(density: float, intensity: Optional[float]) -> float:
    """
    Precipitation density for a given intensity.

    Linear: half the template density at intensity 0, the full density at
    intensity 1. None leaves the template density alone.
    """
    if intensity is None:
        return density
    intensity = min(1.0, max(0.0, intensity))
    return density * (0.5 + 0.5 * intensity)


# Columns per second of sideways drift for each km/h of wind
WIND_DRIFT_PER_KMH = 0.04
MAX_WIND_DRIFT = 3.0


def wind_drift(speed_kmh: float, direction_deg: float) -> float:
    """
    Sideways push of the wind on falling particles, in columns per second.

    direction_deg is where the wind blows from, so a westerly (270) pushes
    to the right and an easterly (90) to the left.
    """
    if not speed_kmh > 0:
        return 0.0
    drift = -math.sin(math.radians(direction_deg)) * speed_kmh * WIND_DRIFT_PER_KMH
    return max(-MAX_WIND_DRIFT, min(MAX_WIND_DRIFT, drift))


class SceneComposer:
    """Turns (condition, time of day) into an ordered list of LayerSpecs."""

    def __init__(self, table: Optional[Dict[WeatherCondition, SceneTemplate]] = None):
        self.table = CONDITION_TABLE if table is None else table

    def compose(self, condition, is_night: bool, grid_size: GridSize, *,
                intensity: Optional[float] = None, show_leaves: bool = False,
                warm: bool = False, wind_speed: float = 0.0,
                wind_direction: float = 0.0) -> List[LayerSpec]:
        """
        Build the layer list for a scene.

        Args:
            condition: WeatherCondition (or anything WeatherCondition.parse
                accepts; unknown values render as clear)
            is_night: Moon instead of sun, darker sky
            grid_size: Grid the scene will be drawn on
            intensity: Precipitation intensity in [0, 1], None for the
                template density
            show_leaves: Falling leaves on clear and partly cloudy skies
            warm: Warm night, fireflies come out on clear nights
            wind_speed: Wind speed in km/h, slants the precipitation
            wind_direction: Direction the wind blows from, in degrees

        Returns:
            Layers in paint order
        """
        condition = WeatherCondition.parse(condition)
        template = self.table.get(condition) or self.table[WeatherCondition.CLEAR]
        width, _ = GridSize.normalized(*grid_size)

        layers = [self._sky_layer(template, is_night), self._celestial_layer(template, is_night)]

        precipitation = template.precipitation
        if precipitation is None and show_leaves and template.leaves_allowed:
            precipitation = LEAVES
        if precipitation is not None:
            if precipitation.name != "leaves":
                precipitation = replace(
                    precipitation, density=scale_density(precipitation.density, intensity)
                )
            drift = wind_drift(wind_speed, wind_direction)
            if drift:
                fall, base_drift = precipitation.motion
                precipitation = replace(precipitation, motion=(fall, base_drift + drift))
            layers.append(precipitation)

        if template.lightning is not None:
            layers.append(template.lightning)

        if width >= MIN_SPRITE_WIDTH:
            if not is_night and template.sprites_allowed:
                layers.append(AIRPLANE)
                layers.append(BIRDS)
            elif is_night and warm and template.fireflies_allowed:
                layers.append(FIREFLIES)

        return layers

    def _sky_layer(self, template: SceneTemplate, is_night: bool) -> LayerSpec:
        brightness = template.brightness * (0.55 if is_night else 1.0)
        cloud_color = Colors.CLOUD_DARK if (template.dark_clouds or is_night) else Colors.CLOUD
        return LayerSpec(
            kind=LayerKind.SKY,
            name="night" if is_night else "day",
            glyphs=CLOUD_SHAPES,
            color=cloud_color,
            motion=(0.0, 1.0),
            cloud_cover=template.cloud_cover,
            haze=template.haze,
            stars=is_night and template.cloud_cover < 0.6 and template.haze < 0.5,
            intensity=brightness,
        )

    def _celestial_layer(self, template: SceneTemplate, is_night: bool) -> LayerSpec:
        # Heavy cloud dims the body
        dim = template.cloud_cover * 0.5
        if is_night:
            return LayerSpec(
                kind=LayerKind.CELESTIAL, name="moon", glyphs=(MOON_ART,),
                color=Colors.blend(Colors.MOON, Colors.CLOUD_DARK, dim),
            )
        return LayerSpec(
            kind=LayerKind.CELESTIAL, name="sun", glyphs=SUN_FRAMES,
            color=Colors.blend(Colors.SUN, Colors.CLOUD, dim),
        )
