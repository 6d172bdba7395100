"""
Terminal adapters.

CursesTerminal is the only place the engine touches curses: grid size,
cell writes, key polling and the resize flag. NullTerminal implements the
same surface in memory for tests and headless runs.
"""

import logging
import shutil
import signal
from collections import deque
from typing import Deque, Dict, List, Optional, Tuple

# Handle curses import for Windows compatibility
try:
    import curses
    CURSES_AVAILABLE = True
except ImportError:
    curses = None
    CURSES_AVAILABLE = False

from .colors import ColorPairCache, Colors
from .models import BLANK_CELL, Cell, GridSize

logger = logging.getLogger(__name__)

KEY_CTRL_C = 3


class CursesTerminal:
    """Curses screen wrapper used by the animation loop."""

    def __init__(self, screen, color_enabled: bool = True):
        self.screen = screen
        self.color_enabled = color_enabled
        self.pairs: Optional[ColorPairCache] = None
        self._resize_pending = False
        self._previous_sigwinch = None
        self._size = GridSize.normalized(*self._screen_size())

    def setup(self):
        """Prepare the screen: hidden cursor, non-blocking input, colors."""
        try:
            curses.curs_set(0)
        except curses.error:
            pass  # Some terminals can't hide the cursor
        self.screen.nodelay(True)
        self.screen.keypad(True)

        if self.color_enabled and Colors.init_colors():
            self.pairs = ColorPairCache(getattr(curses, 'COLORS', 8), getattr(curses, 'COLOR_PAIRS', 64))
            logger.info(f"Colors enabled: {curses.COLORS} colors, {curses.COLOR_PAIRS} pairs")
        else:
            self.color_enabled = False
            logger.info("Colors disabled")

        # Handle terminal resize (Unix only - Windows doesn't have SIGWINCH)
        if hasattr(signal, 'SIGWINCH'):
            # A handler installed outside Python reads back as None
            previous = signal.signal(signal.SIGWINCH, lambda *_: self.notify_resize())
            self._previous_sigwinch = previous if previous is not None else signal.SIG_DFL

    def teardown(self):
        """Put back the SIGWINCH handler that was active before setup."""
        if self._previous_sigwinch is not None:
            signal.signal(signal.SIGWINCH, self._previous_sigwinch)
            self._previous_sigwinch = None

    def notify_resize(self):
        """Mark the terminal as resized. Safe to call from a signal handler."""
        self._resize_pending = True

    def _screen_size(self) -> Tuple[int, int]:
        height, width = self.screen.getmaxyx()
        return width, height

    def size(self) -> GridSize:
        return self._size

    def take_resize(self) -> Optional[GridSize]:
        """New grid size if the terminal changed since the last call."""
        if self._resize_pending:
            self._resize_pending = False
            columns, lines = shutil.get_terminal_size()
            try:
                curses.resizeterm(lines, columns)
            except curses.error as e:
                logger.debug(f"resizeterm failed: {e}")
            self.screen.clear()

        new_size = GridSize.normalized(*self._screen_size())
        if new_size != self._size:
            logger.info(f"Terminal resized {self._size.width}x{self._size.height} "
                        f"-> {new_size.width}x{new_size.height}")
            self._size = new_size
            return new_size
        return None

    def write_cell(self, row: int, col: int, cell: Cell):
        attr = 0
        if self.color_enabled and self.pairs is not None:
            attr = self.pairs.attr(cell.fg, cell.bg, cell.bold)
        if row == self._size.height - 1 and col == self._size.width - 1:
            # addstr in the bottom-right cell fails after drawing because the
            # cursor cannot advance; insstr does not move the cursor
            self.screen.insstr(row, col, cell.glyph, attr)
        else:
            self.screen.addstr(row, col, cell.glyph, attr)

    def refresh(self):
        self.screen.noutrefresh()
        curses.doupdate()

    def poll_key(self) -> Optional[int]:
        """One pending key code, or None."""
        try:
            key = self.screen.getch()
        except curses.error:
            return None
        if key == -1:
            return None
        if key == curses.KEY_RESIZE:
            self.notify_resize()
            return None
        return key


class NullTerminal:
    """In-memory terminal that records writes."""

    def __init__(self, width: int = 80, height: int = 24, keys=None):
        self._size = GridSize.normalized(width, height)
        self._pending_size: Optional[GridSize] = None
        self.cells: Dict[Tuple[int, int], Cell] = {}
        self.writes: List[Tuple[int, int, Cell]] = []
        self.keys: Deque[int] = deque(keys or [])
        self.refresh_count = 0
        self.color_enabled = True

    def resize(self, width: int, height: int):
        """Simulate the user resizing the window."""
        self._pending_size = GridSize.normalized(width, height)

    def size(self) -> GridSize:
        return self._size

    def take_resize(self) -> Optional[GridSize]:
        if self._pending_size is None or self._pending_size == self._size:
            self._pending_size = None
            return None
        self._size, self._pending_size = self._pending_size, None
        self.cells = {k: v for k, v in self.cells.items()
                      if k[0] < self._size.height and k[1] < self._size.width}
        return self._size

    def write_cell(self, row: int, col: int, cell: Cell):
        self.writes.append((row, col, cell))
        self.cells[(row, col)] = cell

    def refresh(self):
        self.refresh_count += 1

    def poll_key(self) -> Optional[int]:
        if self.keys:
            return self.keys.popleft()
        return None

    def press(self, key):
        self.keys.append(ord(key) if isinstance(key, str) else key)

    def screen_lines(self) -> List[str]:
        """Glyphs currently on the fake screen."""
        return [
            ''.join(self.cells.get((r, c), BLANK_CELL).glyph for c in range(self._size.width))
            for r in range(self._size.height)
        ]
