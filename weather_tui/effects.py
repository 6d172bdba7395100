"""
Effect scheduler - lightning for thunderstorm scenes.

Lightning is a small state machine driven one tick at a time:

    IDLE -> CHARGING -> FLASH -> COOLDOWN -> IDLE

The idle wait is drawn from the layer's [min_interval, max_interval]
seconds, the flash lasts flash_ticks ticks and flickers between full and
half intensity. No rendering happens here; the scheduler only produces
EffectHints.
"""

import logging
import random
from dataclasses import dataclass
from typing import Dict, List, Optional, Sequence, Tuple

from .models import EffectHints, GridSize, LayerKind, LayerSpec, LightningState

logger = logging.getLogger(__name__)


TRANSITIONS: Dict[LightningState, LightningState] = {
    LightningState.IDLE: LightningState.CHARGING,
    LightningState.CHARGING: LightningState.FLASH,
    LightningState.FLASH: LightningState.COOLDOWN,
    LightningState.COOLDOWN: LightningState.IDLE,
}


def seconds_to_ticks(seconds: float, dt: float) -> int:
    """Whole number of ticks covering `seconds`, at least one."""
    if dt <= 0:
        return 1
    return max(1, int(round(seconds / dt)))


@dataclass(frozen=True)
class LightningConfig:
    """Timing for one lightning layer."""
    min_interval: float = 4.0
    max_interval: float = 12.0
    flash_ticks: int = 4
    intensity: float = 0.8
    charge_ticks: int = 3
    cooldown_ticks: int = 6

    @classmethod
    def from_spec(cls, spec: LayerSpec) -> 'LightningConfig':
        low = max(0.0, spec.min_interval)
        high = max(low, spec.max_interval)
        return cls(
            min_interval=low,
            max_interval=high,
            flash_ticks=max(1, spec.flash_ticks),
            intensity=min(1.0, max(0.0, spec.intensity)),
        )


class LightningBolt:
    """Jagged bolt path from the top of the grid downwards."""

    @staticmethod
    def generate(grid_size: GridSize, rng: random.Random) -> List[Tuple[int, int]]:
        """Generate a list of (row, col) cells for a new bolt."""
        width, height = GridSize.normalized(*grid_size)
        path: List[Tuple[int, int]] = []
        if width < 3:
            return [(row, 0) for row in range(height)]

        col = rng.randint(width // 4, max(width // 4, 3 * width // 4))
        row = 0
        # Bolts stop around two thirds down, above the ground haze
        bottom = max(1, (height * 2) // 3)

        while row < bottom:
            path.append((row, col))
            row += rng.randint(1, 2)
            col = max(1, min(width - 2, col + rng.choice([-2, -1, -1, 0, 1, 1, 2])))

            # Occasionally fork
            if rng.random() < 0.15 and len(path) > 3:
                branch_col = col + rng.choice([-3, -2, 2, 3])
                branch_row = row
                for _ in range(rng.randint(2, 4)):
                    if 0 <= branch_col < width and branch_row < bottom:
                        path.append((branch_row, branch_col))
                    branch_row += 1
                    branch_col += rng.choice([-1, 0, 1])
        return path


class LightningEffect:
    """
    Lightning state machine for one layer.

    `remaining_ticks` counts down in the current state; when it reaches
    zero the machine moves to the next state in TRANSITIONS.
    """

    def __init__(self, config: LightningConfig, rng: random.Random, dt: float):
        self.config = config
        self.rng = rng
        self.dt = dt
        self.state = LightningState.IDLE
        self.flash_tick = 0
        self.flash_count = 0
        self.remaining_ticks = self._duration(LightningState.IDLE)

    def _duration(self, state: LightningState) -> int:
        if state == LightningState.IDLE:
            low = seconds_to_ticks(self.config.min_interval, self.dt)
            high = seconds_to_ticks(self.config.max_interval, self.dt)
            return self.rng.randint(low, max(low, high))
        if state == LightningState.CHARGING:
            return max(1, self.config.charge_ticks)
        if state == LightningState.FLASH:
            return max(1, self.config.flash_ticks)
        return max(1, self.config.cooldown_ticks)

    def step(self, dt: Optional[float] = None) -> LightningState:
        """Advance one tick and return the state for this tick."""
        if dt is not None and dt > 0:
            self.dt = dt
        if self.state == LightningState.FLASH:
            self.flash_tick += 1
        self.remaining_ticks -= 1
        if self.remaining_ticks <= 0:
            self._enter(TRANSITIONS[self.state])
        return self.state

    def _enter(self, state: LightningState):
        logger.debug(f"Lightning {self.state.value} -> {state.value}")
        self.state = state
        self.remaining_ticks = self._duration(state)
        if state == LightningState.FLASH:
            self.flash_tick = 0
            self.flash_count += 1

    @property
    def flash_intensity(self) -> float:
        """Flicker: full on even flash ticks, half on odd ones."""
        if self.state != LightningState.FLASH:
            return 0.0
        level = 1.0 if self.flash_tick % 2 == 0 else 0.5
        return level * self.config.intensity


class EffectScheduler:
    """Runs the lightning effect for whichever layer list is active."""

    def __init__(self, grid_size: GridSize = GridSize(80, 24),
                 rng: Optional[random.Random] = None, seed: Optional[int] = None):
        self.grid_size = GridSize.normalized(*grid_size)
        self.rng = rng if rng is not None else random.Random(seed)
        self.lightning: Optional[LightningEffect] = None
        self._lightning_spec: Optional[LayerSpec] = None
        self._bolt: List[Tuple[int, int]] = []

    def resize(self, width: int, height: int):
        self.grid_size = GridSize.normalized(width, height)
        self._bolt = []

    def reset(self):
        self.lightning = None
        self._lightning_spec = None
        self._bolt = []

    def tick(self, dt: float, active_effect_specs: Sequence[LayerSpec]) -> EffectHints:
        """
        Advance effects one tick.

        Only the first lightning layer is honoured, so at most one flash
        is ever in progress.
        """
        spec = next(
            (s for s in active_effect_specs
             if s.kind == LayerKind.EFFECT and s.name == "lightning"),
            None,
        )
        if spec is None:
            if self.lightning is not None:
                self.reset()
            return EffectHints()

        if self.lightning is None or spec != self._lightning_spec:
            self.lightning = LightningEffect(LightningConfig.from_spec(spec), self.rng, dt)
            self._lightning_spec = spec
            self._bolt = []

        previous = self.lightning.state
        state = self.lightning.step(dt)

        if state != LightningState.FLASH:
            return EffectHints(lightning_state=state)

        if previous != LightningState.FLASH or not self._bolt:
            self._bolt = LightningBolt.generate(self.grid_size, self.rng)
        return EffectHints(
            flash=True,
            flash_intensity=self.lightning.flash_intensity,
            bolt=list(self._bolt),
            lightning_state=state,
        )
