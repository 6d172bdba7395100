"""
Unit conversion for the HUD.

Readings are stored in metric units; these helpers convert to whatever the
user asked for and back again.
"""

from dataclasses import dataclass
from enum import Enum


class TemperatureUnit(Enum):
    CELSIUS = "celsius"
    FAHRENHEIT = "fahrenheit"

    @property
    def symbol(self) -> str:
        return "°C" if self is TemperatureUnit.CELSIUS else "°F"


class WindSpeedUnit(Enum):
    KMH = "kmh"
    MS = "ms"
    MPH = "mph"
    KNOTS = "kn"

    @property
    def symbol(self) -> str:
        return {
            WindSpeedUnit.KMH: "km/h",
            WindSpeedUnit.MS: "m/s",
            WindSpeedUnit.MPH: "mph",
            WindSpeedUnit.KNOTS: "kn",
        }[self]


class PrecipitationUnit(Enum):
    MM = "mm"
    INCH = "inch"

    @property
    def symbol(self) -> str:
        return "mm" if self is PrecipitationUnit.MM else "in"


# km/h per unit
_KMH_FACTORS = {
    WindSpeedUnit.KMH: 1.0,
    WindSpeedUnit.MS: 3.6,
    WindSpeedUnit.MPH: 1.609344,
    WindSpeedUnit.KNOTS: 1.852,
}

MM_PER_INCH = 25.4


def celsius_to(value: float, unit: TemperatureUnit) -> float:
    if unit is TemperatureUnit.FAHRENHEIT:
        return value * 9.0 / 5.0 + 32.0
    return value


def to_celsius(value: float, unit: TemperatureUnit) -> float:
    if unit is TemperatureUnit.FAHRENHEIT:
        return (value - 32.0) * 5.0 / 9.0
    return value


def kmh_to(value: float, unit: WindSpeedUnit) -> float:
    return value / _KMH_FACTORS[unit]


def to_kmh(value: float, unit: WindSpeedUnit) -> float:
    return value * _KMH_FACTORS[unit]


def mm_to(value: float, unit: PrecipitationUnit) -> float:
    if unit is PrecipitationUnit.INCH:
        return value / MM_PER_INCH
    return value


def to_mm(value: float, unit: PrecipitationUnit) -> float:
    if unit is PrecipitationUnit.INCH:
        return value * MM_PER_INCH
    return value


@dataclass(frozen=True)
class Units:
    """The unit preferences used when formatting a reading."""
    temperature: TemperatureUnit = TemperatureUnit.CELSIUS
    wind_speed: WindSpeedUnit = WindSpeedUnit.KMH
    precipitation: PrecipitationUnit = PrecipitationUnit.MM

    @classmethod
    def metric(cls) -> 'Units':
        return cls()

    @classmethod
    def imperial(cls) -> 'Units':
        return cls(TemperatureUnit.FAHRENHEIT, WindSpeedUnit.MPH, PrecipitationUnit.INCH)

    def format_temperature(self, celsius: float) -> str:
        return f"{celsius_to(celsius, self.temperature):.1f}{self.temperature.symbol}"

    def format_wind(self, kmh: float) -> str:
        return f"{kmh_to(kmh, self.wind_speed):.1f}{self.wind_speed.symbol}"

    def format_precipitation(self, mm: float) -> str:
        return f"{mm_to(mm, self.precipitation):.1f}{self.precipitation.symbol}"
