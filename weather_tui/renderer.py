"""
Terminal renderer - composites a Scene into a cell grid and diffs frames.

Two frames are kept: the one currently on the terminal and the one being
drawn. Only cells that differ are returned as writes, so a still scene
costs nothing to redraw. A resize, or a failed write, makes the next frame
a full redraw.
"""

import logging
from typing import Dict, List, Optional

# Handle curses import for Windows compatibility
try:
    import curses
    CURSES_AVAILABLE = True
except ImportError:
    curses = None
    CURSES_AVAILABLE = False

from .colors import Colors, RGB
from .errors import ErrorCategory, ErrorSeverity, handle_error
from .models import BLANK_CELL, Cell, CellWrite, GridSize, LayerKind, LayerSpec, Particle, Scene

logger = logging.getLogger(__name__)

# Terminal write failures we recover from with a full redraw
if CURSES_AVAILABLE:
    WRITE_ERRORS = (curses.error, OSError)
else:
    WRITE_ERRORS = (OSError,)

# Sun frames switch every half second at 30 fps
SUN_FRAME_TICKS = 15


class Frame:
    """A width x height grid of Cells."""

    def __init__(self, width: int, height: int, color_enabled: bool = True):
        self.width, self.height = GridSize.normalized(width, height)
        self.color_enabled = color_enabled
        self.cells: List[Cell] = [BLANK_CELL] * (self.width * self.height)

    def clear(self):
        self.cells[:] = [BLANK_CELL] * len(self.cells)

    def get(self, row: int, col: int) -> Cell:
        return self.cells[row * self.width + col]

    def put(self, row: int, col: int, glyph: str, fg: Optional[RGB] = None,
            bg: Optional[RGB] = None, bold: bool = False):
        """Draw one glyph. Keeps the cell's background when bg is None."""
        if not (0 <= row < self.height and 0 <= col < self.width):
            return
        idx = row * self.width + col
        if not self.color_enabled:
            self.cells[idx] = Cell(glyph)
            return
        if bg is None:
            bg = self.cells[idx].bg
        self.cells[idx] = Cell(glyph, fg, bg, bold)

    def put_text(self, row: int, col: int, text: str, fg: Optional[RGB] = None,
                 bg: Optional[RGB] = None, bold: bool = False, skip_spaces: bool = False):
        if not 0 <= row < self.height:
            return
        for offset, char in enumerate(text):
            if skip_spaces and char == ' ':
                continue
            self.put(row, col + offset, char, fg, bg, bold)

    def fill_row(self, row: int, bg: Optional[RGB]):
        if not 0 <= row < self.height:
            return
        cell = Cell(' ', None, bg if self.color_enabled else None, False)
        start = row * self.width
        self.cells[start:start + self.width] = [cell] * self.width

    def lines(self) -> List[str]:
        """Glyphs only, one string per row."""
        return [
            ''.join(cell.glyph for cell in self.cells[r * self.width:(r + 1) * self.width])
            for r in range(self.height)
        ]


class TerminalRenderer:
    """
    Paints scenes and produces the cell writes needed to show them.

    Args:
        width, height: Grid size
        color_enabled: False strips every color, glyph placement unchanged
        hide_hud: Skip the HUD overlay
    """

    def __init__(self, width: int, height: int, color_enabled: bool = True,
                 hide_hud: bool = False):
        self.color_enabled = color_enabled
        self.hide_hud = hide_hud
        self.full_redraw_count = 0
        self.resize(width, height)

    @property
    def grid_size(self) -> GridSize:
        return GridSize(self._current.width, self._current.height)

    @property
    def previous_frame(self) -> Frame:
        """The frame most recently handed to the terminal."""
        return self._previous

    def resize(self, width: int, height: int):
        self._current = Frame(width, height, self.color_enabled)
        self._previous = Frame(width, height, self.color_enabled)
        self._full_redraw = True

    def force_full_redraw(self):
        self._full_redraw = True

    @property
    def needs_full_redraw(self) -> bool:
        return self._full_redraw

    def toggle_hud(self) -> bool:
        self.hide_hud = not self.hide_hud
        return self.hide_hud

    def render(self, scene: Scene, hud=None) -> List[CellWrite]:
        """
        Draw a scene and return the cells that changed since the last frame.

        Args:
            scene: What to draw
            hud: Optional HudOverlay painted on top of everything

        Returns:
            CellWrites; every cell of the grid after a resize
        """
        frame = self._current
        frame.clear()

        by_layer: Dict[str, List[Particle]] = {}
        for p in scene.particles:
            by_layer.setdefault(p.layer, []).append(p)

        for layer in sorted(scene.layers, key=lambda spec: spec.kind.order):
            if layer.kind == LayerKind.SKY:
                self._paint_sky(frame, scene)
            elif layer.kind == LayerKind.CELESTIAL:
                self._paint_celestial(frame, layer, scene)
            elif layer.kind == LayerKind.EFFECT:
                self._paint_lightning(frame, layer, scene)
            else:
                self._paint_particles(frame, by_layer.get(layer.name, ()))

        if hud is not None and not self.hide_hud:
            hud.paint(frame)

        writes = self._diff(frame)
        self._previous, self._current = self._current, self._previous
        return writes

    def _diff(self, frame: Frame) -> List[CellWrite]:
        width = frame.width
        if self._full_redraw:
            self._full_redraw = False
            self.full_redraw_count += 1
            return [CellWrite(i // width, i % width, cell) for i, cell in enumerate(frame.cells)]
        return [
            CellWrite(i // width, i % width, cell)
            for i, (cell, old) in enumerate(zip(frame.cells, self._previous.cells))
            if cell != old
        ]

    def flush(self, writes: List[CellWrite], terminal) -> bool:
        """
        Send writes to the terminal.

        Returns False when a write failed; the next frame will then be
        drawn in full.
        """
        try:
            for write in writes:
                terminal.write_cell(write.row, write.col, write.cell)
            terminal.refresh()
        except WRITE_ERRORS as e:
            handle_error(e, "terminal write", ErrorCategory.RESOURCE, ErrorSeverity.WARNING,
                         additional_context={'writes': len(writes), 'recovery': 'full redraw'})
            self._full_redraw = True
            return False
        return True

    # ------------------------------------------------------------------
    # Layer painters
    # ------------------------------------------------------------------

    def _paint_sky(self, frame: Frame, scene: Scene):
        if scene.backdrop is not None:
            scene.backdrop.paint(frame, scene.effects)

    def _paint_celestial(self, frame: Frame, layer: LayerSpec, scene: Scene):
        if not layer.glyphs:
            return
        if len(layer.glyphs) > 1:
            art = layer.glyphs[(scene.tick // SUN_FRAME_TICKS) % len(layer.glyphs)]
        else:
            art = layer.glyphs[0]
        lines = art.split("\n")
        center_row, center_col = scene.celestial.position
        top = center_row - len(lines) // 2
        for dy, line in enumerate(lines):
            left = center_col - len(line) // 2
            frame.put_text(top + dy, left, line, fg=layer.color, bold=True, skip_spaces=True)

    def _paint_lightning(self, frame: Frame, layer: LayerSpec, scene: Scene):
        hints = scene.effects
        if not hints.flash or hints.flash_intensity < 0.3:
            return
        glyphs = layer.glyphs or ("|",)
        color = layer.color or Colors.LIGHTNING
        previous_col = None
        for row, col in hints.bolt:
            # Slant follows the direction the bolt moved
            if previous_col is None or col == previous_col:
                char = glyphs[(row + col) % len(glyphs)]
            else:
                char = '/' if col < previous_col else '\\'
            frame.put(row, col, char, fg=color, bold=True)
            previous_col = col

    def _paint_particles(self, frame: Frame, particles):
        for p in particles:
            if not p.glyph:
                continue
            row, col = int(p.row), int(p.col)
            if len(p.glyph) == 1:
                frame.put(row, col, p.glyph, fg=p.color)
            else:
                frame.put_text(row, col, p.glyph, fg=p.color, skip_spaces=True)
