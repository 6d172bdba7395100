"""
Scene Data Models - Data classes shared by the feed and the animation engine.

WeatherState is the only type that crosses threads (through WeatherCell);
everything else is owned by the animation loop.
"""

import time
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, NamedTuple, Optional, Tuple

from .errors import ErrorCategory, handle_error

RGB = Tuple[int, int, int]


class WeatherCondition(Enum):
    """Weather conditions the scene knows how to draw."""
    CLEAR = "clear"
    PARTLY_CLOUDY = "partly-cloudy"
    CLOUDY = "cloudy"
    OVERCAST = "overcast"
    FOG = "fog"
    DRIZZLE = "drizzle"
    RAIN = "rain"
    FREEZING_RAIN = "freezing-rain"
    RAIN_SHOWERS = "rain-showers"
    SNOW = "snow"
    SNOW_GRAINS = "snow-grains"
    SNOW_SHOWERS = "snow-showers"
    THUNDERSTORM = "thunderstorm"
    THUNDERSTORM_HAIL = "thunderstorm-hail"

    @property
    def display_name(self) -> str:
        """Get display name for the condition."""
        return {
            WeatherCondition.CLEAR: "Clear",
            WeatherCondition.PARTLY_CLOUDY: "Partly Cloudy",
            WeatherCondition.CLOUDY: "Cloudy",
            WeatherCondition.OVERCAST: "Overcast",
            WeatherCondition.FOG: "Fog",
            WeatherCondition.DRIZZLE: "Drizzle",
            WeatherCondition.RAIN: "Rain",
            WeatherCondition.FREEZING_RAIN: "Freezing Rain",
            WeatherCondition.RAIN_SHOWERS: "Rain Showers",
            WeatherCondition.SNOW: "Snow",
            WeatherCondition.SNOW_GRAINS: "Snow Grains",
            WeatherCondition.SNOW_SHOWERS: "Snow Showers",
            WeatherCondition.THUNDERSTORM: "Thunderstorm",
            WeatherCondition.THUNDERSTORM_HAIL: "Thunderstorm with Hail",
        }.get(self, self.value.title())

    @property
    def is_raining(self) -> bool:
        return self in (
            WeatherCondition.DRIZZLE,
            WeatherCondition.RAIN,
            WeatherCondition.FREEZING_RAIN,
            WeatherCondition.RAIN_SHOWERS,
            WeatherCondition.THUNDERSTORM,
            WeatherCondition.THUNDERSTORM_HAIL,
        )

    @property
    def is_snowing(self) -> bool:
        return self in (
            WeatherCondition.SNOW,
            WeatherCondition.SNOW_GRAINS,
            WeatherCondition.SNOW_SHOWERS,
        )

    @property
    def is_thunderstorm(self) -> bool:
        return self in (WeatherCondition.THUNDERSTORM, WeatherCondition.THUNDERSTORM_HAIL)

    @property
    def is_cloudy(self) -> bool:
        return self in (
            WeatherCondition.PARTLY_CLOUDY,
            WeatherCondition.CLOUDY,
            WeatherCondition.OVERCAST,
        )

    @property
    def is_foggy(self) -> bool:
        return self is WeatherCondition.FOG

    @property
    def wmo_code(self) -> int:
        """Representative WMO code, used when simulating a reading."""
        return _CONDITION_WMO[self]

    @classmethod
    def parse(cls, value: Any) -> 'WeatherCondition':
        """
        Parse a condition from user or provider input.

        Accepts members, CLI spellings ("partly-cloudy"), snake_case and
        spaced names. Anything unrecognised falls back to CLEAR.
        """
        if isinstance(value, cls):
            return value
        if value is not None:
            key = str(value).strip().lower().replace('_', '-').replace(' ', '-')
            for condition in cls:
                if condition.value == key:
                    return condition
        handle_error(ValueError(f"Unknown weather condition {value!r}, falling back to clear"),
                     "condition parse", ErrorCategory.INPUT)
        return cls.CLEAR

    @classmethod
    def from_wmo_code(cls, code: int) -> 'WeatherCondition':
        """Map a WMO weather interpretation code to a condition."""
        return _WMO_CONDITIONS.get(code, cls.CLEAR)


_WMO_CONDITIONS: Dict[int, WeatherCondition] = {
    0: WeatherCondition.CLEAR,
    1: WeatherCondition.PARTLY_CLOUDY,
    2: WeatherCondition.CLOUDY,
    3: WeatherCondition.OVERCAST,
    45: WeatherCondition.FOG,
    48: WeatherCondition.FOG,
    51: WeatherCondition.DRIZZLE,
    53: WeatherCondition.DRIZZLE,
    55: WeatherCondition.DRIZZLE,
    56: WeatherCondition.FREEZING_RAIN,
    57: WeatherCondition.FREEZING_RAIN,
    61: WeatherCondition.RAIN,
    63: WeatherCondition.RAIN,
    65: WeatherCondition.RAIN,
    66: WeatherCondition.FREEZING_RAIN,
    67: WeatherCondition.FREEZING_RAIN,
    71: WeatherCondition.SNOW,
    73: WeatherCondition.SNOW,
    75: WeatherCondition.SNOW,
    77: WeatherCondition.SNOW_GRAINS,
    80: WeatherCondition.RAIN_SHOWERS,
    81: WeatherCondition.RAIN_SHOWERS,
    82: WeatherCondition.RAIN_SHOWERS,
    85: WeatherCondition.SNOW_SHOWERS,
    86: WeatherCondition.SNOW_SHOWERS,
    95: WeatherCondition.THUNDERSTORM,
    96: WeatherCondition.THUNDERSTORM_HAIL,
    99: WeatherCondition.THUNDERSTORM_HAIL,
}

_CONDITION_WMO: Dict[WeatherCondition, int] = {
    WeatherCondition.CLEAR: 0,
    WeatherCondition.PARTLY_CLOUDY: 1,
    WeatherCondition.CLOUDY: 2,
    WeatherCondition.OVERCAST: 3,
    WeatherCondition.FOG: 45,
    WeatherCondition.DRIZZLE: 51,
    WeatherCondition.RAIN: 61,
    WeatherCondition.FREEZING_RAIN: 66,
    WeatherCondition.RAIN_SHOWERS: 80,
    WeatherCondition.SNOW: 71,
    WeatherCondition.SNOW_GRAINS: 77,
    WeatherCondition.SNOW_SHOWERS: 85,
    WeatherCondition.THUNDERSTORM: 95,
    WeatherCondition.THUNDERSTORM_HAIL: 96,
}


@dataclass(frozen=True)
class Location:
    """A point on the globe the feed is asked about."""
    latitude: float
    longitude: float
    city: Optional[str] = None

    def describe(self) -> str:
        """Short human readable form, e.g. '52.52°N, 13.41°E'."""
        lat_dir = 'N' if self.latitude >= 0 else 'S'
        lon_dir = 'E' if self.longitude >= 0 else 'W'
        return f"{abs(self.latitude):.2f}°{lat_dir}, {abs(self.longitude):.2f}°{lon_dir}"


@dataclass(frozen=True)
class WeatherState:
    """
    A normalized weather reading.

    Units are metric (°C, km/h, mm); conversion to the user's preferred
    units happens only when the HUD formats the values.
    """
    condition: WeatherCondition = WeatherCondition.CLEAR
    temperature: float = 15.0
    wind_speed: float = 0.0
    wind_direction: float = 0.0
    precipitation: float = 0.0
    precipitation_intensity: float = 0.0
    is_night: bool = False
    observed_at: float = field(default_factory=time.time)
    humidity: Optional[float] = None
    cloud_cover: Optional[float] = None
    offline: bool = False
    location: Optional[Location] = None

    def __post_init__(self):
        intensity = self.precipitation_intensity
        if intensity != intensity:  # NaN
            intensity = 0.0
        # frozen dataclass, so go through object.__setattr__
        object.__setattr__(self, 'precipitation_intensity', min(1.0, max(0.0, float(intensity))))
        if not isinstance(self.condition, WeatherCondition):
            object.__setattr__(self, 'condition', WeatherCondition.parse(self.condition))

    @classmethod
    def default(cls) -> 'WeatherState':
        """The state the scene starts on before any reading arrives."""
        return cls(condition=WeatherCondition.CLEAR, is_night=False)

    @property
    def is_warm(self) -> bool:
        return self.temperature > 15.0


class GridSize(NamedTuple):
    """Terminal grid dimensions in character cells."""
    width: int
    height: int

    @classmethod
    def normalized(cls, width: int, height: int) -> 'GridSize':
        """Clamp to at least a 1x1 grid."""
        return cls(max(1, int(width)), max(1, int(height)))


class LayerKind(Enum):
    """Kinds of scene layers, in paint order."""
    SKY = "sky"
    CELESTIAL = "celestial"
    PRECIPITATION = "precipitation"
    EFFECT = "effect"
    SPRITE = "sprite"

    @property
    def order(self) -> int:
        return _LAYER_ORDER.index(self)


_LAYER_ORDER: List[LayerKind] = [
    LayerKind.SKY,
    LayerKind.CELESTIAL,
    LayerKind.PRECIPITATION,
    LayerKind.EFFECT,
    LayerKind.SPRITE,
]


@dataclass(frozen=True)
class LayerSpec:
    """
    Declarative description of one visual layer.

    Pure data: the composer builds these, the particle system, effect
    scheduler and renderer interpret them. Fields that do not apply to a
    kind keep their defaults.
    """
    kind: LayerKind
    name: str
    density: float = 0.0
    glyphs: Tuple[str, ...] = ()
    color: Optional[RGB] = None
    motion: Tuple[float, float] = (0.0, 0.0)  # (row, col) cells per second
    jitter: float = 0.0
    # Sky
    cloud_cover: float = 0.0
    haze: float = 0.0
    stars: bool = False
    # Lightning
    min_interval: float = 0.0
    max_interval: float = 0.0
    flash_ticks: int = 0
    # Lightning flash strength, or sky brightness for the sky layer
    intensity: float = 1.0


class Particle:
    """
    One slot in the particle arena.

    Slots are reused; `alive` says whether the slot currently holds a
    particle.
    """

    __slots__ = (
        'slot', 'row', 'col', 'vrow', 'vcol', 'glyph', 'ttl',
        'layer', 'color', 'phase', 'bounced', 'alive',
    )

    def __init__(self, slot: int = 0):
        self.slot = slot
        self.reset()

    def reset(self):
        self.row = 0.0
        self.col = 0.0
        self.vrow = 0.0
        self.vcol = 0.0
        self.glyph = ''
        self.ttl = 0.0
        self.layer = ''
        self.color: Optional[RGB] = None
        self.phase = 0.0
        self.bounced = False
        self.alive = False

    @property
    def cell(self) -> Tuple[int, int]:
        return int(self.row), int(self.col)

    def __repr__(self):
        return (f"Particle(layer={self.layer!r}, row={self.row:.2f}, "
                f"col={self.col:.2f}, alive={self.alive})")


class LightningState(Enum):
    """Lightning effect states."""
    IDLE = "idle"
    CHARGING = "charging"
    FLASH = "flash"
    COOLDOWN = "cooldown"


@dataclass
class EffectHints:
    """What the effect scheduler wants the renderer to show this tick."""
    flash: bool = False
    flash_intensity: float = 0.0
    bolt: List[Tuple[int, int]] = field(default_factory=list)  # (row, col)
    lightning_state: LightningState = LightningState.IDLE


@dataclass
class CelestialPhase:
    """Where the sun or moon is and what the sky looks like."""
    body: str  # "sun" or "moon"
    position: Tuple[int, int]  # (row, col) of the body's center
    sky_gradient: List[RGB]  # top -> bottom
    day_fraction: float
    segment: str  # night / dawn / day / dusk


class Cell(NamedTuple):
    """One character cell of a frame."""
    glyph: str = ' '
    fg: Optional[RGB] = None
    bg: Optional[RGB] = None
    bold: bool = False


BLANK_CELL = Cell()


class CellWrite(NamedTuple):
    """A changed cell the terminal must draw."""
    row: int
    col: int
    cell: Cell


@dataclass
class Scene:
    """Everything the renderer needs for one frame. Never persisted."""
    layers: List[LayerSpec]
    particles: List[Particle]
    celestial: CelestialPhase
    effects: EffectHints
    backdrop: Any = None
    tick: int = 0
