"""
Tests for the terminal adapters and curses color pair management.
"""

import os
import signal
import sys
from unittest.mock import MagicMock, call, patch

import pytest

# Add parent directory to path for imports
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from weather_tui.colors import ColorPairCache, Colors
from weather_tui.models import Cell, GridSize
from weather_tui.terminal import CURSES_AVAILABLE, CursesTerminal, NullTerminal

requires_curses = pytest.mark.skipif(not CURSES_AVAILABLE, reason="curses not available")


# ===========================================================================
# NullTerminal
# ===========================================================================

class TestNullTerminal:
    def test_records_writes(self):
        terminal = NullTerminal(5, 2)
        terminal.write_cell(1, 2, Cell('x'))
        terminal.refresh()
        assert terminal.writes == [(1, 2, Cell('x'))]
        assert terminal.screen_lines() == ["     ", "  x  "]
        assert terminal.refresh_count == 1

    def test_keys(self):
        terminal = NullTerminal(keys=[ord('h')])
        terminal.press('q')
        terminal.press(3)
        assert [terminal.poll_key() for _ in range(4)] == [ord('h'), ord('q'), 3, None]

    def test_resize_is_reported_once(self):
        terminal = NullTerminal(80, 24)
        assert terminal.take_resize() is None
        terminal.resize(40, 10)
        assert terminal.size() == GridSize(80, 24)
        assert terminal.take_resize() == GridSize(40, 10)
        assert terminal.take_resize() is None
        assert terminal.size() == GridSize(40, 10)

    def test_resize_to_same_size_is_ignored(self):
        terminal = NullTerminal(80, 24)
        terminal.resize(80, 24)
        assert terminal.take_resize() is None

    def test_resize_drops_offscreen_cells(self):
        terminal = NullTerminal(10, 10)
        terminal.write_cell(8, 8, Cell('x'))
        terminal.resize(5, 5)
        terminal.take_resize()
        assert (8, 8) not in terminal.cells


# ===========================================================================
# CursesTerminal
# ===========================================================================

@requires_curses
class TestCursesTerminal:
    def _screen(self, height=24, width=80):
        screen = MagicMock()
        screen.getmaxyx.return_value = (height, width)
        return screen

    def test_size_from_screen(self):
        terminal = CursesTerminal(self._screen(30, 100))
        assert terminal.size() == GridSize(100, 30)

    def test_bottom_right_cell_uses_insstr(self):
        screen = self._screen()
        terminal = CursesTerminal(screen, color_enabled=False)
        terminal.write_cell(23, 79, Cell('x'))
        terminal.write_cell(0, 0, Cell('y'))
        screen.insstr.assert_called_once_with(23, 79, 'x', 0)
        screen.addstr.assert_called_once_with(0, 0, 'y', 0)

    def test_poll_key(self):
        import curses

        screen = self._screen()
        terminal = CursesTerminal(screen)
        screen.getch.return_value = -1
        assert terminal.poll_key() is None
        screen.getch.return_value = ord('q')
        assert terminal.poll_key() == ord('q')

        screen.getch.return_value = curses.KEY_RESIZE
        assert terminal.poll_key() is None
        screen.getmaxyx.return_value = (10, 40)
        with patch('weather_tui.terminal.curses.resizeterm'), \
             patch('weather_tui.terminal.shutil.get_terminal_size', return_value=(40, 10)):
            assert terminal.take_resize() == GridSize(40, 10)
        screen.clear.assert_called_once()

    def test_take_resize_without_change(self):
        terminal = CursesTerminal(self._screen())
        assert terminal.take_resize() is None

    def test_setup_without_colors(self):
        screen = self._screen()
        terminal = CursesTerminal(screen, color_enabled=True)
        with patch('weather_tui.terminal.curses.curs_set'), \
             patch.object(Colors, 'init_colors', return_value=False), \
             patch('weather_tui.terminal.signal.signal') as mock_signal:
            terminal.setup()
        assert terminal.color_enabled is False
        assert terminal.pairs is None
        screen.nodelay.assert_called_once_with(True)
        if hasattr(signal, 'SIGWINCH'):
            mock_signal.assert_called_once()
            handler = mock_signal.call_args[0][1]
            handler(None, None)
            assert terminal._resize_pending

    @pytest.mark.skipif(not hasattr(signal, 'SIGWINCH'), reason="SIGWINCH is Unix only")
    def test_teardown_restores_previous_resize_handler(self):
        previous = MagicMock()
        terminal = CursesTerminal(self._screen(), color_enabled=False)
        with patch('weather_tui.terminal.curses.curs_set'), \
             patch('weather_tui.terminal.signal.signal', return_value=previous) as mock_signal:
            terminal.setup()
            terminal.teardown()
            terminal.teardown()
        assert mock_signal.call_count == 2
        assert mock_signal.call_args_list[1] == call(signal.SIGWINCH, previous)

    @pytest.mark.skipif(not hasattr(signal, 'SIGWINCH'), reason="SIGWINCH is Unix only")
    def test_teardown_falls_back_to_default_handler(self):
        terminal = CursesTerminal(self._screen(), color_enabled=False)
        with patch('weather_tui.terminal.curses.curs_set'), \
             patch('weather_tui.terminal.signal.signal', return_value=None) as mock_signal:
            terminal.setup()
            terminal.teardown()
        assert mock_signal.call_args == call(signal.SIGWINCH, signal.SIG_DFL)


# ===========================================================================
# Colors
# ===========================================================================

class TestColors:
    @pytest.mark.parametrize("a,b,t,expected", [
        ((0, 0, 0), (100, 200, 50), 0.0, (0, 0, 0)),
        ((0, 0, 0), (100, 200, 50), 1.0, (100, 200, 50)),
        ((0, 0, 0), (100, 200, 50), 0.5, (50, 100, 25)),
        ((0, 0, 0), (100, 200, 50), 7.0, (100, 200, 50)),
    ])
    def test_blend(self, a, b, t, expected):
        assert Colors.blend(a, b, t) == expected

    def test_scale_clamps(self):
        assert Colors.scale((200, 100, 0), 2.0) == (255, 200, 0)

    def test_nearest_basic(self):
        assert Colors.nearest_basic((0, 0, 0)) == 0
        assert Colors.nearest_basic((250, 10, 10)) == 1
        assert Colors.nearest_basic((240, 240, 240)) == 7

    def test_nearest_xterm256(self):
        assert Colors.nearest_xterm256((255, 0, 0)) == 196
        assert Colors.nearest_xterm256((128, 128, 128)) == 244


@requires_curses
class TestColorPairCache:
    def test_pairs_allocated_lazily_and_reused(self):
        cache = ColorPairCache(num_colors=256, max_pairs=16)
        with patch('weather_tui.colors.curses.init_pair') as init_pair:
            first = cache.pair_number(Colors.RAIN, None)
            again = cache.pair_number(Colors.RAIN, None)
            other = cache.pair_number(Colors.SNOW, Colors.NIGHT_SKY[0])
        assert first == again == 1
        assert other == 2
        assert init_pair.call_count == 2
        assert len(cache) == 2

    def test_default_colors_use_pair_zero(self):
        cache = ColorPairCache()
        assert cache.pair_number(None, None) == 0

    def test_exhausted_pairs_fall_back_to_default(self):
        cache = ColorPairCache(num_colors=256, max_pairs=2)
        with patch('weather_tui.colors.curses.init_pair'):
            assert cache.pair_number((255, 0, 0), None) == 1
            assert cache.pair_number((0, 255, 0), None) == 0
            assert cache.pair_number((0, 0, 255), None) == 0
