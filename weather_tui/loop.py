"""
Animation loop - the fixed-tick scheduler that drives the scene.

Each tick, in order:
    1. take the newest WeatherState from the cell, if any
    2. apply a pending terminal resize
    3. recompose the layer list, only if something it depends on changed
    4. advance particles, effects, the celestial clock and the sky backdrop
    5. render and flush the changed cells
    6. poll one key (q / Q / Ctrl-C quit, h toggles the HUD)

The loop sleeps on the shared stop event between ticks, so setting the
event from anywhere ends it within one tick interval.
"""

import logging
import random
import threading
import time
from datetime import datetime
from typing import Callable, List, Optional, Tuple

from .backdrop import SkyBackdrop
from .celestial import CelestialClock
from .client import WeatherCell
from .config import EngineConfig
from .effects import EffectScheduler
from .hud import HUDRenderer
from .models import CellWrite, GridSize, LayerKind, LayerSpec, Scene, WeatherState
from .particles import ParticleSystem
from .renderer import TerminalRenderer
from .scene import SceneComposer

logger = logging.getLogger(__name__)

QUIT_KEYS = (ord('q'), ord('Q'), 3)  # 3 = Ctrl-C in cbreak mode
HUD_TOGGLE_KEYS = (ord('h'), ord('H'))


class AnimationLoop:
    """
    Owns every piece of engine state and advances it one tick at a time.

    Args:
        terminal: CursesTerminal or NullTerminal
        config: Engine settings (overrides, HUD, color, leaves, fps)
        cell: Where the poller publishes weather
        stop_event: Shared shutdown flag
        hud: HUD builder (a default one is created when omitted)
        seed: Seed for particle/effect randomness
        clock: Wall-clock source for the celestial clock
    """

    def __init__(self, terminal, config: EngineConfig, cell: WeatherCell,
                 stop_event: Optional[threading.Event] = None,
                 hud: Optional[HUDRenderer] = None, seed: Optional[int] = None,
                 clock: Callable[[], datetime] = datetime.now):
        self.terminal = terminal
        self.config = config
        self.cell = cell
        self.stop_event = stop_event or threading.Event()
        self.hud = hud or HUDRenderer()
        self._clock = clock

        grid = GridSize.normalized(*terminal.size())
        self.grid_size = grid
        rng = random.Random(seed)
        self.composer = SceneComposer()
        self.particles = ParticleSystem(grid.width, grid.height, rng=random.Random(rng.random()))
        self.effects = EffectScheduler(grid, rng=random.Random(rng.random()))
        self.celestial = CelestialClock(clock)
        self.backdrop = SkyBackdrop(grid.width, grid.height, rng=random.Random(rng.random()))
        self.renderer = TerminalRenderer(grid.width, grid.height,
                                         color_enabled=config.color_enabled,
                                         hide_hud=config.hide_hud)

        self.state: WeatherState = WeatherState.default()
        self.has_weather = False
        self.weather_version = 0
        self.layers: List[LayerSpec] = []
        self.scene: Optional[Scene] = None
        self._scene_key: Optional[Tuple] = None
        self.compose_count = 0
        self.tick_count = 0
        self.last_writes: List[CellWrite] = []

    # ------------------------------------------------------------------
    # Running
    # ------------------------------------------------------------------

    def run(self):
        """Tick at config.fps until the stop event is set."""
        interval = self.config.tick_interval
        logger.info(f"Animation loop starting at {self.config.fps} fps, "
                    f"grid {self.grid_size.width}x{self.grid_size.height}")
        next_tick = time.monotonic()
        try:
            while not self.stop_event.is_set():
                self.tick(interval)
                next_tick += interval
                now = time.monotonic()
                if next_tick < now:
                    # Running behind; don't try to catch up
                    next_tick = now
                if self.stop_event.wait(next_tick - now):
                    break
        except KeyboardInterrupt:
            self.stop_event.set()
        logger.info(f"Animation loop stopped after {self.tick_count} ticks, "
                    f"{self.compose_count} compositions")

    def stop(self):
        self.stop_event.set()

    def tick(self, dt: Optional[float] = None) -> List[CellWrite]:
        """Run one tick and return the cell writes it produced."""
        if dt is None:
            dt = self.config.tick_interval

        self._drain_weather()
        self._apply_resize()

        is_night = self.effective_night
        self._recompose_if_needed(is_night)

        particles = self.particles.tick(dt, self.layers)
        hints = self.effects.tick(dt, self.layers)
        phase = self.celestial.phase(
            is_night_override=self._celestial_override(is_night),
            grid_size=self.grid_size,
        )
        sky = next((layer for layer in self.layers if layer.kind == LayerKind.SKY), None)
        self.backdrop.update(dt, sky, phase)

        self.scene = Scene(
            layers=self.layers,
            particles=particles,
            celestial=phase,
            effects=hints,
            backdrop=self.backdrop,
            tick=self.tick_count,
        )
        overlay = self.hud.render(
            self.state if self.has_weather else None,
            self.grid_size,
            tick=self.tick_count,
            condition_label=self.condition_label,
        )
        writes = self.renderer.render(self.scene, overlay)
        self.renderer.flush(writes, self.terminal)
        self.last_writes = writes

        self._handle_key(self.terminal.poll_key())
        self.tick_count += 1
        return writes

    # ------------------------------------------------------------------
    # Tick steps
    # ------------------------------------------------------------------

    def _drain_weather(self):
        latest = self.cell.latest(self.weather_version)
        if latest is None:
            return
        self.weather_version, self.state = latest
        self.has_weather = True
        logger.debug(f"New weather v{self.weather_version}: {self.state.condition.value}"
                     f"{' (offline)' if self.state.offline else ''}")

    def _apply_resize(self):
        new_size = self.terminal.take_resize()
        if new_size is None:
            return
        grid = GridSize.normalized(*new_size)
        if grid == self.grid_size:
            return
        self.grid_size = grid
        self.renderer.resize(grid.width, grid.height)
        self.particles.resize(grid.width, grid.height)
        self.effects.resize(grid.width, grid.height)
        self.backdrop.resize(grid.width, grid.height)

    @property
    def effective_condition(self):
        return self.config.condition_override or self.state.condition

    @property
    def effective_night(self) -> bool:
        if self.config.night_override is not None:
            return self.config.night_override
        return self.state.is_night

    @property
    def condition_label(self) -> Optional[str]:
        if self.config.condition_override is not None:
            return self.config.condition_override.display_name
        return None

    def _celestial_override(self, is_night: bool) -> Optional[bool]:
        """Pin the clock when it disagrees with the weather's day/night flag."""
        if self.config.night_override is not None:
            return self.config.night_override
        if self.celestial.is_night() != is_night:
            return is_night
        return None

    def _recompose_if_needed(self, is_night: bool):
        intensity = self.state.precipitation_intensity if self.has_weather else None
        wind = (self.state.wind_speed, self.state.wind_direction) if self.has_weather else (0.0, 0.0)
        key = (
            self.effective_condition,
            is_night,
            self.config.show_leaves,
            intensity,
            wind,
            self.state.is_warm,
            self.grid_size,
        )
        if key == self._scene_key:
            return
        self._scene_key = key
        self.layers = self.composer.compose(
            self.effective_condition,
            is_night,
            self.grid_size,
            intensity=intensity,
            show_leaves=self.config.show_leaves,
            warm=self.state.is_warm,
            wind_speed=wind[0],
            wind_direction=wind[1],
        )
        self.compose_count += 1
        logger.info(f"Scene composed: {self.effective_condition.value}, "
                    f"{'night' if is_night else 'day'}, "
                    f"layers={[layer.name for layer in self.layers]}")

    def _handle_key(self, key: Optional[int]):
        if key is None:
            return
        if key in QUIT_KEYS:
            logger.info("Quit requested")
            self.stop_event.set()
        elif key in HUD_TOGGLE_KEYS:
            hidden = self.renderer.toggle_hud()
            logger.debug(f"HUD {'hidden' if hidden else 'shown'}")
