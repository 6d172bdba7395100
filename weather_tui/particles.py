"""
Particle system - precipitation and flying sprites.

Particles live in a fixed-capacity arena. Slots are handed out from a free
list and returned to it when a particle dies, so a long-running scene never
grows its allocation. Motion is per particle type:

- rain, drizzle, freezing rain: fast near-vertical fall, horizontal wrap
- snow: slow fall with a sinusoidal sway, horizontal wrap
- hail: fast fall, one bounce off the bottom row
- leaves: slow tumbling descent, gone once off-grid
- airplane / birds / fireflies: sprites that cross or wander the sky
"""

import logging
import math
import random
from typing import Dict, Iterator, List, Optional, Sequence

from .models import GridSize, LayerKind, LayerSpec, Particle

logger = logging.getLogger(__name__)

RAIN_TYPES = frozenset(("rain", "drizzle", "freezing-rain"))

# Snow sway angular speed (radians per second)
SWAY_SPEED = 1.8
# Downward acceleration for hail after its bounce (cells per second^2)
HAIL_GRAVITY = 40.0
# Fraction of fall speed kept by a bouncing hailstone
HAIL_RESTITUTION = 0.3


class ParticlePool:
    """Fixed arena of particle slots with a free list."""

    def __init__(self, capacity: int):
        self.capacity = max(0, int(capacity))
        self._slots = [Particle(i) for i in range(self.capacity)]
        # Pop from the end, so lowest slots are handed out first
        self._free: List[int] = list(range(self.capacity - 1, -1, -1))
        self._active: List[int] = []

    def acquire(self) -> Optional[Particle]:
        """Take a free slot, or None when the arena is full."""
        if not self._free:
            return None
        idx = self._free.pop()
        particle = self._slots[idx]
        particle.reset()
        particle.alive = True
        self._active.append(idx)
        return particle

    def compact(self):
        """Return slots of dead particles to the free list."""
        still_active = []
        for idx in self._active:
            if self._slots[idx].alive:
                still_active.append(idx)
            else:
                self._free.append(idx)
        self._active = still_active

    @property
    def free_count(self) -> int:
        return len(self._free)

    def __len__(self):
        return len(self._active)

    def __iter__(self) -> Iterator[Particle]:
        for idx in self._active:
            particle = self._slots[idx]
            if particle.alive:
                yield particle


class ParticleSystem:
    """
    Advances particles for the active precipitation and sprite layers.

    Spawning is driven by an accumulator per layer: a precipitation layer
    spawns density * width particles per second, carried across ticks, so
    over N ticks exactly floor(N * dt * density * width) particles are
    spawned while the arena has room.
    """

    DEFAULT_CAPACITY = 1024

    # Maximum live sprites per layer
    SPRITE_LIMITS = {
        "airplane": 1,
        "birds": 5,
        "fireflies": 12,
    }

    def __init__(self, width: int, height: int, max_particles: int = DEFAULT_CAPACITY,
                 seed: Optional[int] = None, rng: Optional[random.Random] = None):
        self.width, self.height = GridSize.normalized(width, height)
        self.pool = ParticlePool(max_particles)
        self.rng = rng if rng is not None else random.Random(seed)
        self._accumulators: Dict[str, float] = {}
        self.spawn_counts: Dict[str, int] = {}
        self.dropped = 0

    @property
    def max_particles(self) -> int:
        return self.pool.capacity

    @property
    def particles(self) -> List[Particle]:
        return list(self.pool)

    def resize(self, width: int, height: int):
        """Adopt a new grid size and pull every live particle inside it."""
        self.width, self.height = GridSize.normalized(width, height)
        max_row = float(self.height - 1)
        max_col = float(self.width - 1)
        for p in self.pool:
            p.row = min(max(p.row, 0.0), max_row)
            p.col = min(max(p.col, 0.0), max_col)

    def clear(self):
        for p in self.pool:
            p.alive = False
        self.pool.compact()
        self._accumulators.clear()

    def tick(self, dt: float, active_specs: Sequence[LayerSpec]) -> List[Particle]:
        """
        Advance one tick.

        Args:
            dt: Seconds since the previous tick
            active_specs: Current layer list; only precipitation and
                sprite layers are used

        Returns:
            The live particles after this tick
        """
        specs = {
            spec.name: spec for spec in active_specs
            if spec.kind in (LayerKind.PRECIPITATION, LayerKind.SPRITE)
        }

        # Retire particles of layers that went away
        for p in self.pool:
            if p.layer not in specs:
                p.alive = False
        for name in list(self._accumulators):
            if name not in specs:
                del self._accumulators[name]

        if dt > 0:
            for p in self.pool:
                self._advance(p, specs[p.layer], dt)
        self.pool.compact()

        if dt > 0:
            for spec in specs.values():
                if spec.kind == LayerKind.PRECIPITATION:
                    self._spawn_precipitation(spec, dt)
                else:
                    self._spawn_sprite(spec, dt)

        return list(self.pool)

    # ------------------------------------------------------------------
    # Spawning
    # ------------------------------------------------------------------

    def _spawn_precipitation(self, spec: LayerSpec, dt: float):
        if spec.density <= 0:
            return
        acc = self._accumulators.get(spec.name, 0.0) + spec.density * self.width * dt
        count = int(acc)
        self._accumulators[spec.name] = acc - count

        for _ in range(count):
            p = self.pool.acquire()
            if p is None:
                self.dropped += count
                logger.debug(f"Particle arena full ({self.max_particles}), dropping {spec.name} spawns")
                break
            self._init_precipitation(p, spec)
            self.spawn_counts[spec.name] = self.spawn_counts.get(spec.name, 0) + 1
            count -= 1

    def _init_precipitation(self, p: Particle, spec: LayerSpec):
        rng = self.rng
        fall, drift = spec.motion
        p.layer = spec.name
        p.color = spec.color
        p.glyph = rng.choice(spec.glyphs) if spec.glyphs else '.'
        p.row = 0.0
        p.col = rng.uniform(0, self.width - 1)
        p.phase = rng.uniform(0, 2 * math.pi)

        if spec.name in RAIN_TYPES or spec.name == "hail":
            p.vrow = fall * rng.uniform(0.85, 1.15)
            p.vcol = drift + rng.uniform(-spec.jitter, spec.jitter) * p.vrow
        elif spec.name == "snow":
            p.vrow = fall * rng.uniform(0.6, 1.4)
            p.vcol = drift
        elif spec.name == "leaves":
            p.row = rng.uniform(0, max(0, self.height // 3))
            p.vrow = fall * rng.uniform(0.7, 1.3)
            p.vcol = drift * rng.uniform(0.5, 1.5)
        else:
            p.vrow = fall
            p.vcol = drift

        # Long enough to cross the grid; removal by row usually wins
        p.ttl = self.height / max(p.vrow, 0.1) + 2.0

    def _spawn_sprite(self, spec: LayerSpec, dt: float):
        limit = self.SPRITE_LIMITS.get(spec.name, 1)
        live = sum(1 for p in self.pool if p.layer == spec.name)
        if live >= limit or spec.density <= 0:
            return
        if self.rng.random() >= spec.density * dt:
            return
        p = self.pool.acquire()
        if p is None:
            return
        self._init_sprite(p, spec)
        self.spawn_counts[spec.name] = self.spawn_counts.get(spec.name, 0) + 1

    def _init_sprite(self, p: Particle, spec: LayerSpec):
        rng = self.rng
        fall, speed = spec.motion
        p.layer = spec.name
        p.color = spec.color
        p.phase = rng.uniform(0, 2 * math.pi)
        top_third = max(1, self.height // 3)

        if spec.name == "fireflies":
            p.row = rng.uniform(self.height / 2, self.height - 1)
            p.col = rng.uniform(0, self.width - 1)
            p.vrow = rng.uniform(-fall, fall)
            p.vcol = rng.uniform(-speed, speed)
            p.glyph = spec.glyphs[0] if spec.glyphs else '*'
            p.ttl = rng.uniform(15.0, 40.0)
            return

        # Airplane and birds cross the upper sky left to right or back
        rightward = rng.random() < 0.5
        if spec.name == "airplane":
            p.row = float(rng.randint(1, max(1, self.height // 4)))
            glyphs = spec.glyphs or ("->", "<-")
            p.glyph = glyphs[0] if rightward else glyphs[-1]
            p.vcol = speed if rightward else -speed
        else:
            p.row = rng.uniform(1, top_third)
            p.glyph = spec.glyphs[0] if spec.glyphs else 'v'
            p.vcol = speed * rng.uniform(0.7, 1.3) * (1 if rightward else -1)
        span = max(0, self.width - len(p.glyph))
        p.col = 0.0 if rightward else float(span)
        p.vrow = 0.0
        p.ttl = (self.width + len(p.glyph)) / max(abs(p.vcol), 0.1) + 1.0

    # ------------------------------------------------------------------
    # Motion
    # ------------------------------------------------------------------

    def _advance(self, p: Particle, spec: LayerSpec, dt: float):
        p.ttl -= dt
        name = p.layer

        if name in RAIN_TYPES:
            p.row += p.vrow * dt
            p.col = (p.col + p.vcol * dt) % self.width
        elif name == "snow":
            p.phase += SWAY_SPEED * dt
            p.row += p.vrow * dt
            sway = spec.jitter * math.sin(p.phase)
            p.col = (p.col + (p.vcol + sway) * dt) % self.width
        elif name == "hail":
            self._advance_hail(p, dt)
        elif name == "leaves":
            p.phase += SWAY_SPEED * 1.5 * dt
            p.row += p.vrow * dt
            p.col += (p.vcol + spec.jitter * math.sin(p.phase)) * dt
            if spec.glyphs:
                p.glyph = spec.glyphs[int(p.phase) % len(spec.glyphs)]
            if p.col < 0 or p.col >= self.width:
                p.alive = False
        elif name == "fireflies":
            self._advance_firefly(p, spec, dt)
        else:
            self._advance_flyer(p, spec, dt)

        if p.row >= self.height or p.ttl <= 0:
            p.alive = False

    def _advance_hail(self, p: Particle, dt: float):
        if p.bounced:
            p.vrow += HAIL_GRAVITY * dt
        p.row += p.vrow * dt
        p.col = (p.col + p.vcol * dt) % self.width
        floor = self.height - 1
        if not p.bounced and p.row >= floor:
            p.row = float(floor)
            p.vrow = -p.vrow * HAIL_RESTITUTION
            p.bounced = True

    def _advance_flyer(self, p: Particle, spec: LayerSpec, dt: float):
        p.col += p.vcol * dt
        if p.layer == "birds":
            # Wing beat and a gentle bob
            p.phase += 6.0 * dt
            if spec.glyphs:
                p.glyph = spec.glyphs[int(p.phase) % len(spec.glyphs)]
            p.row = max(0.0, p.row + 0.3 * math.sin(p.phase) * dt)
        if p.col < 0 or p.col + len(p.glyph) > self.width:
            p.alive = False

    def _advance_firefly(self, p: Particle, spec: LayerSpec, dt: float):
        rng = self.rng
        fall, speed = spec.motion
        # Random walk: nudge the heading now and then
        if rng.random() < 2.0 * dt:
            p.vrow = rng.uniform(-fall, fall)
            p.vcol = rng.uniform(-speed, speed)
        p.row += p.vrow * dt
        p.col += p.vcol * dt
        # Stay in the lower half
        low = self.height / 2
        if p.row < low or p.row > self.height - 1:
            p.vrow = -p.vrow
            p.row = min(max(p.row, low), self.height - 1)
        p.col %= self.width
        # Glow: bright, dim, dark, dim
        p.phase += 3.0 * dt
        if spec.glyphs:
            glow = (math.sin(p.phase) + 1.0) / 2.0
            idx = min(len(spec.glyphs) - 1, int((1.0 - glow) * len(spec.glyphs)))
            p.glyph = spec.glyphs[idx]
