"""
Configuration - TOML file plus defaults.

Looked up at $XDG_CONFIG_HOME/weather-tui/config.toml (or
~/.config/weather-tui/config.toml). A missing file means defaults.

Example:

    hide_hud = false
    show_leaves = true
    fps = 30

    [location]
    latitude = 52.52
    longitude = 13.41
    auto = false
    hide = false

    [weather]
    provider = "open_meteo"
    refresh_interval = 300

    [units]
    temperature = "celsius"
    wind_speed = "kmh"
    precipitation = "mm"
"""

import logging
import os
import tomllib
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, Optional

from .errors import ConfigurationError
from .models import Location, WeatherCondition
from .units import PrecipitationUnit, TemperatureUnit, Units, WindSpeedUnit

logger = logging.getLogger(__name__)

DEFAULT_FPS = 30
MIN_FPS = 1
MAX_FPS = 120
MIN_REFRESH_INTERVAL = 60.0


@dataclass
class LocationConfig:
    latitude: float = 52.52
    longitude: float = 13.41
    auto: bool = False
    hide: bool = False

    def to_location(self) -> Location:
        return Location(self.latitude, self.longitude)


@dataclass
class WeatherConfig:
    provider: str = "open_meteo"
    api_key: Optional[str] = None
    refresh_interval: float = 300.0


@dataclass
class Config:
    """Everything read from the config file."""
    location: LocationConfig = field(default_factory=LocationConfig)
    weather: WeatherConfig = field(default_factory=WeatherConfig)
    units: Units = field(default_factory=Units)
    hide_hud: bool = False
    show_leaves: bool = False
    fps: int = DEFAULT_FPS


@dataclass(frozen=True)
class EngineConfig:
    """The part of the configuration the animation engine sees."""
    condition_override: Optional[WeatherCondition] = None
    night_override: Optional[bool] = None
    hide_hud: bool = False
    color_enabled: bool = True
    show_leaves: bool = False
    fps: int = DEFAULT_FPS

    @property
    def tick_interval(self) -> float:
        return 1.0 / max(MIN_FPS, self.fps)


def default_config_path() -> Path:
    base = os.environ.get('XDG_CONFIG_HOME') or str(Path.home() / '.config')
    return Path(base) / 'weather-tui' / 'config.toml'


def _section(data: Dict[str, Any], name: str) -> Dict[str, Any]:
    section = data.get(name, {})
    if not isinstance(section, dict):
        raise ConfigurationError(f"[{name}] must be a table")
    return section


def _number(section: Dict[str, Any], key: str, default: float, where: str) -> float:
    value = section.get(key, default)
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        raise ConfigurationError(f"{where}.{key} must be a number, got {value!r}")
    return float(value)


def _flag(section: Dict[str, Any], key: str, default: bool, where: str) -> bool:
    value = section.get(key, default)
    if not isinstance(value, bool):
        raise ConfigurationError(f"{where}.{key} must be true or false, got {value!r}")
    return value


def _enum(enum_cls, value, where: str):
    try:
        return enum_cls(str(value).lower())
    except ValueError:
        choices = ', '.join(member.value for member in enum_cls)
        raise ConfigurationError(f"{where} must be one of: {choices} (got {value!r})") from None


def parse_config(data: Dict[str, Any]) -> Config:
    """
    Validate a decoded TOML document.

    Raises:
        ConfigurationError: Wrong types or out-of-range values
    """
    loc = _section(data, 'location')
    latitude = _number(loc, 'latitude', 52.52, 'location')
    longitude = _number(loc, 'longitude', 13.41, 'location')
    if not -90.0 <= latitude <= 90.0:
        raise ConfigurationError(f"location.latitude must be within [-90, 90], got {latitude}")
    if not -180.0 <= longitude <= 180.0:
        raise ConfigurationError(f"location.longitude must be within [-180, 180], got {longitude}")
    location = LocationConfig(
        latitude=latitude,
        longitude=longitude,
        auto=_flag(loc, 'auto', False, 'location'),
        hide=_flag(loc, 'hide', False, 'location'),
    )

    wx = _section(data, 'weather')
    provider = wx.get('provider', 'open_meteo')
    if not isinstance(provider, str):
        raise ConfigurationError(f"weather.provider must be a string, got {provider!r}")
    api_key = wx.get('api_key')
    if api_key is not None and not isinstance(api_key, str):
        raise ConfigurationError("weather.api_key must be a string")
    refresh = _number(wx, 'refresh_interval', 300.0, 'weather')
    if refresh < MIN_REFRESH_INTERVAL:
        logger.warning(f"weather.refresh_interval {refresh}s too short, using {MIN_REFRESH_INTERVAL}s")
        refresh = MIN_REFRESH_INTERVAL
    weather = WeatherConfig(provider=provider, api_key=api_key or None, refresh_interval=refresh)

    un = _section(data, 'units')
    units = Units(
        temperature=_enum(TemperatureUnit, un.get('temperature', 'celsius'), 'units.temperature'),
        wind_speed=_enum(WindSpeedUnit, un.get('wind_speed', 'kmh'), 'units.wind_speed'),
        precipitation=_enum(PrecipitationUnit, un.get('precipitation', 'mm'), 'units.precipitation'),
    )

    fps = data.get('fps', DEFAULT_FPS)
    if isinstance(fps, bool) or not isinstance(fps, int) or not MIN_FPS <= fps <= MAX_FPS:
        raise ConfigurationError(f"fps must be an integer between {MIN_FPS} and {MAX_FPS}, got {fps!r}")

    return Config(
        location=location,
        weather=weather,
        units=units,
        hide_hud=_flag(data, 'hide_hud', False, 'config'),
        show_leaves=_flag(data, 'show_leaves', False, 'config'),
        fps=fps,
    )


def load_config(path: Optional[Path] = None) -> Config:
    """
    Load the config file, or defaults when there is none.

    Raises:
        ConfigurationError: Unreadable file, invalid TOML or invalid values
    """
    explicit = path is not None
    path = Path(path) if explicit else default_config_path()

    try:
        with open(path, 'rb') as f:
            data = tomllib.load(f)
    except FileNotFoundError:
        if explicit:
            raise ConfigurationError(f"Config file not found: {path}") from None
        logger.debug(f"No config file at {path}, using defaults")
        return Config()
    except tomllib.TOMLDecodeError as e:
        raise ConfigurationError(f"Invalid TOML in {path}: {e}") from e
    except OSError as e:
        raise ConfigurationError(f"Cannot read config file {path}: {e}") from e

    logger.info(f"Loaded config from {path}")
    return parse_config(data)
