"""
HUD overlay - weather status line and data attribution.
"""

import logging
from dataclasses import dataclass, field
from typing import List, Optional

from .colors import Colors, RGB
from .models import GridSize, Location, WeatherState
from .units import Units

logger = logging.getLogger(__name__)

SPINNER = "|/-\\"

# Spinner advances every 3 ticks (10 times a second at 30 fps)
SPINNER_TICKS = 3


@dataclass
class HudLine:
    row: int
    col: int
    text: str
    color: Optional[RGB] = None
    bold: bool = False


@dataclass
class HudOverlay:
    """Text to draw on top of the scene."""
    lines: List[HudLine] = field(default_factory=list)

    def paint(self, frame):
        for line in self.lines:
            text = line.text[:max(0, frame.width - line.col)]
            frame.put_text(line.row, line.col, text, fg=line.color, bold=line.bold)

    @property
    def text(self) -> str:
        return "\n".join(line.text for line in self.lines)


class HUDRenderer:
    """
    Builds the HUD overlay for a frame.

    Args:
        units: Display units for temperature, wind and precipitation
        provider_name: Shown in the attribution line
        location: Configured location, shown unless hide_location is set
        hide_location: Leave coordinates out of the status line
    """

    def __init__(self, units: Optional[Units] = None, provider_name: str = "Open-Meteo.com",
                 location: Optional[Location] = None, hide_location: bool = False):
        self.units = units or Units.metric()
        self.provider_name = provider_name
        self.location = location
        self.hide_location = hide_location

    def status_line(self, state: Optional[WeatherState], tick: int = 0,
                    condition_label: Optional[str] = None) -> str:
        """The status text; a spinner while no reading has arrived."""
        if state is None:
            return f"Weather: Loading... {SPINNER[(tick // SPINNER_TICKS) % len(SPINNER)]}"

        parts = [
            f"Weather: {condition_label or state.condition.display_name}",
            f"Temp: {self.units.format_temperature(state.temperature)}",
            f"Wind: {self.units.format_wind(state.wind_speed)}",
            f"Precip: {self.units.format_precipitation(state.precipitation)}",
        ]
        if state.offline:
            parts.append("OFFLINE")
        location = state.location or self.location
        if location is not None and not self.hide_location:
            parts.append(f"Location: {location.describe()}")
        parts.append("Press 'q' to quit")
        return " | ".join(parts)

    def attribution(self) -> str:
        return f"Weather data by {self.provider_name}"

    def render(self, state: Optional[WeatherState], grid_size: GridSize, tick: int = 0,
               condition_label: Optional[str] = None) -> HudOverlay:
        """Overlay for the current state and grid."""
        width, height = GridSize.normalized(*grid_size)
        color = Colors.HUD_WARN if state is not None and state.offline else Colors.HUD
        lines = [HudLine(min(1, height - 1), min(2, width - 1),
                         self.status_line(state, tick, condition_label), color, True)]

        attribution = self.attribution()
        if height > 2 and width > len(attribution) + 1:
            lines.append(HudLine(height - 1, width - len(attribution) - 1,
                                 attribution, Colors.HUD_MUTED))
        return HudOverlay(lines)
