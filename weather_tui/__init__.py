"""
weather-tui - Live ASCII Weather Scene for the Terminal

An animated terminal scene (rain, snow, hail, lightning, sun and moon,
clouds, stars, birds and fireflies) driven by live weather data.

Basic Usage:
    weather-tui
    weather-tui --simulate thunderstorm --night

Embedding the engine:
    from weather_tui import AnimationLoop, EngineConfig, NullTerminal, WeatherCell

    loop = AnimationLoop(NullTerminal(80, 24), EngineConfig(), WeatherCell())
    writes = loop.tick()
"""

__version__ = "1.0.0"

# Data models
from .models import (
    WeatherCondition,
    WeatherState,
    Location,
    GridSize,
    LayerKind,
    LayerSpec,
    LightningState,
    Scene,
)

# Engine
from .scene import SceneComposer
from .particles import ParticleSystem
from .effects import EffectScheduler
from .celestial import CelestialClock
from .backdrop import SkyBackdrop
from .renderer import TerminalRenderer
from .hud import HUDRenderer
from .loop import AnimationLoop
from .terminal import CursesTerminal, NullTerminal
from .colors import Colors

# Weather feed
from .protocol import WeatherProvider, SimulatedProvider
from .client import WeatherCell, WeatherClient, WeatherPoller
from .config import Config, EngineConfig, load_config

__all__ = [
    # Version
    "__version__",
    # Models
    "WeatherCondition",
    "WeatherState",
    "Location",
    "GridSize",
    "LayerKind",
    "LayerSpec",
    "LightningState",
    "Scene",
    # Engine
    "SceneComposer",
    "ParticleSystem",
    "EffectScheduler",
    "CelestialClock",
    "SkyBackdrop",
    "TerminalRenderer",
    "HUDRenderer",
    "AnimationLoop",
    "CursesTerminal",
    "NullTerminal",
    "Colors",
    # Feed
    "WeatherProvider",
    "SimulatedProvider",
    "WeatherCell",
    "WeatherClient",
    "WeatherPoller",
    "Config",
    "EngineConfig",
    "load_config",
]
