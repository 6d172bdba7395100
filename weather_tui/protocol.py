"""
Weather Provider Interface

Defines the abstract interface that any weather source must follow to feed
the scene.

Usage:
    from weather_tui.protocol import WeatherProvider, ProviderReading

    class MyProvider(WeatherProvider):
        name = "My Station"

        def get_current(self, location):
            return ProviderReading(weather_code=61, temperature=12.0, ...)
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass
from datetime import datetime
from typing import Optional

from .models import Location, WeatherCondition


@dataclass
class ProviderReading:
    """
    A raw reading as a provider reports it.

    Values are metric: °C, km/h, mm, hPa, metres. weather_code is a WMO
    weather interpretation code.
    """
    weather_code: int
    temperature: float
    is_day: bool = True
    apparent_temperature: Optional[float] = None
    humidity: Optional[float] = None
    precipitation: float = 0.0
    wind_speed: float = 0.0
    wind_direction: float = 0.0
    cloud_cover: Optional[float] = None
    pressure: Optional[float] = None
    visibility: Optional[float] = None
    timestamp: str = ""


class WeatherProvider(ABC):
    """
    Abstract interface for weather sources.

    Implementations raise NetworkError when the service cannot be reached
    and ProviderError when its answer cannot be used.
    """

    name: str = "unknown"

    @abstractmethod
    def get_current(self, location: Location) -> ProviderReading:
        """Current conditions at a location."""
        pass


class SimulatedProvider(WeatherProvider):
    """
    Fixed-condition provider for --simulate.

    Reports 20 °C, 2.5 mm of precipitation when the condition is wet and
    storm-force wind for thunderstorms.
    """

    name = "Simulation"

    def __init__(self, condition: WeatherCondition, night: bool = False):
        self.condition = WeatherCondition.parse(condition)
        self.night = night

    def get_current(self, location: Location) -> ProviderReading:
        wet = self.condition.is_raining or self.condition.is_snowing
        return ProviderReading(
            weather_code=self.condition.wmo_code,
            temperature=20.0,
            apparent_temperature=20.0,
            humidity=50.0,
            precipitation=2.5 if wet else 0.0,
            wind_speed=45.0 if self.condition.is_thunderstorm else 10.0,
            wind_direction=225.0,
            cloud_cover=50.0,
            pressure=1013.0,
            visibility=10000.0,
            is_day=not self.night,
            timestamp=datetime.now().strftime("%Y-%m-%dT%H:%M:%S"),
        )
