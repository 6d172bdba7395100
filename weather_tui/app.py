"""
weather-tui command line entry point.

Parses arguments, sets up logging, starts the weather poller and runs the
animation loop inside curses.wrapper so the terminal is restored on every
exit path.
"""

import argparse
import logging
import os
import sys
import threading
from dataclasses import replace
from pathlib import Path
from typing import List, Optional

# Handle curses import for Windows compatibility
try:
    import curses
    CURSES_AVAILABLE = True
except ImportError:
    curses = None
    CURSES_AVAILABLE = False

from . import __version__
from .client import WeatherCell, WeatherClient, WeatherPoller, normalize_reading
from .config import Config, EngineConfig, MAX_FPS, MIN_FPS, load_config
from .errors import ConfigurationError, get_error_aggregator
from .geolocation import default_cache_dir, detect_location
from .hud import HUDRenderer
from .loop import AnimationLoop
from .models import WeatherCondition
from .protocol import SimulatedProvider
from .providers import create_provider
from .terminal import CursesTerminal
from .units import Units

logger = logging.getLogger(__name__)

LOG_FORMAT = '%(asctime)s - %(name)s - %(levelname)s - %(message)s'

CONDITION_CATALOGUE = """\
Available weather conditions:

  Clear Skies:
    clear              - Clear sunny sky
    partly-cloudy      - Partial cloud coverage
    cloudy             - Cloudy sky
    overcast           - Overcast sky

  Precipitation:
    fog                - Foggy conditions
    drizzle            - Light drizzle
    rain               - Rain
    freezing-rain      - Freezing rain
    rain-showers       - Rain showers

  Snow:
    snow               - Snow
    snow-grains        - Snow grains
    snow-showers       - Snow showers

  Storms:
    thunderstorm       - Thunderstorm
    thunderstorm-hail  - Thunderstorm with hail

Examples:
  weather-tui --simulate rain
  weather-tui --simulate snow --night
  weather-tui -s thunderstorm -n
"""


class WeatherArgumentParser(argparse.ArgumentParser):
    """Prints the condition catalogue when --simulate is given no value."""

    def error(self, message):
        if 'simulate' in message and 'expected one argument' in message:
            self.print_usage(sys.stderr)
            sys.stderr.write(f"{self.prog}: error: {message}\n\n{CONDITION_CATALOGUE}")
            self.exit(2)
        super().error(message)


def condition_arg(value: str) -> WeatherCondition:
    key = value.strip().lower().replace('_', '-').replace(' ', '-')
    for condition in WeatherCondition:
        if condition.value == key:
            return condition
    raise argparse.ArgumentTypeError(
        f"unknown condition {value!r} (run with --simulate and no value for the list)"
    )


def fps_arg(value: str) -> int:
    try:
        fps = int(value)
    except ValueError:
        raise argparse.ArgumentTypeError(f"fps must be an integer, got {value!r}") from None
    if not MIN_FPS <= fps <= MAX_FPS:
        raise argparse.ArgumentTypeError(f"fps must be between {MIN_FPS} and {MAX_FPS}")
    return fps


def build_parser() -> argparse.ArgumentParser:
    parser = WeatherArgumentParser(
        prog="weather-tui",
        description="weather-tui - live ASCII weather scene for the terminal",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
    weather-tui                        # Live weather for the configured location
    weather-tui --auto-location        # Detect location from your IP address
    weather-tui --simulate rain        # Simulated rain
    weather-tui -s snow --night        # Simulated snow at night
    weather-tui --imperial --leaves    # Imperial units, falling leaves

Keyboard Shortcuts:
    q     Quit
    h     Show/hide the status line

Weather providers:
    Open-Meteo.com (default, no API key required)
    OpenWeatherMap (API key required, set in config.toml)
    WeatherAPI.com (API key required, set in config.toml)
        """
    )
    parser.add_argument("--simulate", "-s", type=condition_arg, metavar="CONDITION",
                        help="Simulate a weather condition (clear, rain, snow, ...)")
    parser.add_argument("--night", "-n", action="store_true",
                        help="Simulate night time (moon, stars, fireflies)")
    parser.add_argument("--leaves", "-l", action="store_true",
                        help="Enable falling autumn leaves")
    parser.add_argument("--auto-location", action="store_true",
                        help="Auto-detect location via IP (uses ipinfo.io)")
    parser.add_argument("--hide-location", action="store_true",
                        help="Hide location coordinates in the status line")
    parser.add_argument("--hide-hud", action="store_true",
                        help="Hide the status line")
    units = parser.add_mutually_exclusive_group()
    units.add_argument("--imperial", action="store_true",
                       help="Use imperial units (°F, mph, inch)")
    units.add_argument("--metric", action="store_true",
                       help="Use metric units (°C, km/h, mm)")
    parser.add_argument("--fps", type=fps_arg,
                        help="Animation frames per second (default: 30)")
    parser.add_argument("--config", type=Path,
                        help="Path to config.toml")
    parser.add_argument("--no-color", action="store_true",
                        help="Disable colors (also honours NO_COLOR)")
    parser.add_argument("--silent", action="store_true",
                        help="Only log warnings and errors")
    parser.add_argument("--log-file", type=Path,
                        help="Log file (default: ~/.cache/weather-tui/weather-tui.log)")
    parser.add_argument("--version", action="version", version=f"%(prog)s {__version__}")
    return parser


def _log_locations(explicit: Optional[Path]) -> List[Path]:
    if explicit is not None:
        return [explicit]
    return [
        default_cache_dir() / 'weather-tui.log',
        Path.home() / '.weather-tui' / 'weather-tui.log',
        Path('./weather-tui.log'),
    ]


def setup_logging(log_file: Optional[Path] = None, silent: bool = False) -> Optional[Path]:
    """
    Send log records to a file; curses owns the terminal.

    Returns the file in use, or None when no location was writable.
    """
    root = logging.getLogger()
    root.setLevel(logging.WARNING if silent else logging.INFO)

    for log_path in _log_locations(log_file):
        try:
            log_path.parent.mkdir(parents=True, exist_ok=True)
            handler = logging.FileHandler(log_path, encoding='utf-8')
        except OSError:
            continue
        handler.setFormatter(logging.Formatter(LOG_FORMAT))
        root.addHandler(handler)
        return log_path

    root.addHandler(logging.NullHandler())
    return None


def resolve_color(no_color_flag: bool, environ=None) -> bool:
    """Whether to ask the terminal for colors at all."""
    environ = os.environ if environ is None else environ
    if no_color_flag:
        return False
    # https://no-color.org: any non-empty value disables color
    return not environ.get('NO_COLOR')


def resolve_units(args, config: Config) -> Units:
    if args.imperial:
        return Units.imperial()
    if args.metric:
        return Units.metric()
    return config.units


def build_engine_config(args, config: Config, color_enabled: bool) -> EngineConfig:
    night_override = None
    if args.simulate is not None:
        night_override = bool(args.night)
    elif args.night:
        night_override = True
    return EngineConfig(
        condition_override=args.simulate,
        night_override=night_override,
        hide_hud=args.hide_hud or config.hide_hud,
        color_enabled=color_enabled,
        show_leaves=args.leaves or config.show_leaves,
        fps=args.fps or config.fps,
    )


def run(args) -> int:
    try:
        config = load_config(args.config)
    except ConfigurationError as e:
        print(f"weather-tui: {e}", file=sys.stderr)
        return 2

    color_enabled = resolve_color(args.no_color)
    engine_config = build_engine_config(args, config, color_enabled)
    location = config.location.to_location()
    cell = WeatherCell()
    stop_event = threading.Event()
    poller = None

    if args.simulate is not None:
        provider = SimulatedProvider(args.simulate, night=bool(args.night))
        cell.publish(normalize_reading(provider.get_current(location), location))
        logger.info(f"Simulating {args.simulate.value}{' at night' if args.night else ''}")
    else:
        try:
            provider = create_provider(config.weather.provider, config.weather.api_key)
        except ConfigurationError as e:
            print(f"weather-tui: {e}", file=sys.stderr)
            return 2
        client = WeatherClient(provider, location, cache_duration=config.weather.refresh_interval)
        locate = None
        if args.auto_location or config.location.auto:
            locate = detect_location
        poller = WeatherPoller(client, cell, stop_event,
                               interval=config.weather.refresh_interval, locate=locate)

    hud = HUDRenderer(
        units=resolve_units(args, config),
        provider_name=provider.name,
        location=location,
        hide_location=args.hide_location or config.location.hide,
    )

    def _main(screen):
        terminal = CursesTerminal(screen, color_enabled=engine_config.color_enabled)
        terminal.setup()
        # Terminals without color support turn color off here
        loop = AnimationLoop(terminal, replace(engine_config, color_enabled=terminal.color_enabled),
                             cell, stop_event, hud=hud)
        if poller is not None:
            poller.start()
        try:
            loop.run()
        finally:
            terminal.teardown()

    try:
        curses.wrapper(_main)
    except KeyboardInterrupt:
        pass
    finally:
        stop_event.set()
        summary = get_error_aggregator().get_error_summary()
        if summary['total_errors']:
            logger.info(f"Errors this session: {summary['by_category']}")
    return 0


def main(argv=None):
    """CLI entry point for the weather-tui command."""
    parser = build_parser()
    args = parser.parse_args(argv)

    log_path = setup_logging(args.log_file, args.silent)
    if log_path is not None and not args.silent:
        print(f"Logging to {log_path}")

    if not CURSES_AVAILABLE:
        if sys.platform == 'win32':
            print("Error: curses library not available on Windows.")
            print("")
            print("Try: pip install windows-curses")
        else:
            print("Error: curses library not available.")
        sys.exit(1)

    sys.exit(run(args))


if __name__ == "__main__":
    main()
