"""
Tests for the data models and unit conversion.
"""

import math
import os
import sys

import pytest

# Add parent directory to path for imports
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from weather_tui.models import (
    GridSize,
    LayerKind,
    Location,
    WeatherCondition,
    WeatherState,
)
from weather_tui.units import (
    PrecipitationUnit,
    TemperatureUnit,
    Units,
    WindSpeedUnit,
    celsius_to,
    kmh_to,
    mm_to,
    to_celsius,
    to_kmh,
    to_mm,
)
from weather_tui.errors import ErrorCategory, get_error_aggregator


@pytest.fixture(autouse=True)
def clear_aggregator():
    get_error_aggregator().clear()
    yield
    get_error_aggregator().clear()


# ===========================================================================
# WeatherCondition
# ===========================================================================

class TestWeatherConditionParse:
    @pytest.mark.parametrize("value,expected", [
        ("rain", WeatherCondition.RAIN),
        ("partly-cloudy", WeatherCondition.PARTLY_CLOUDY),
        ("partly_cloudy", WeatherCondition.PARTLY_CLOUDY),
        ("Partly Cloudy", WeatherCondition.PARTLY_CLOUDY),
        ("  THUNDERSTORM-HAIL ", WeatherCondition.THUNDERSTORM_HAIL),
        (WeatherCondition.SNOW, WeatherCondition.SNOW),
    ])
    def test_known_spellings(self, value, expected):
        assert WeatherCondition.parse(value) is expected

    @pytest.mark.parametrize("value", ["tornado", "", None, 42])
    def test_unknown_falls_back_to_clear(self, value):
        assert WeatherCondition.parse(value) is WeatherCondition.CLEAR

    def test_unknown_is_reported_as_input_error(self, caplog):
        with caplog.at_level("WARNING"):
            WeatherCondition.parse("sharknado")
        assert "sharknado" in caplog.text
        assert "in condition parse" in caplog.text
        summary = get_error_aggregator().get_error_summary()
        assert summary['by_category'] == {ErrorCategory.INPUT.value: 1}

    def test_every_condition_has_display_name(self):
        for condition in WeatherCondition:
            assert condition.display_name
            assert condition.display_name != condition.value


class TestWmoMapping:
    @pytest.mark.parametrize("code,expected", [
        (0, WeatherCondition.CLEAR),
        (1, WeatherCondition.PARTLY_CLOUDY),
        (2, WeatherCondition.CLOUDY),
        (3, WeatherCondition.OVERCAST),
        (45, WeatherCondition.FOG),
        (48, WeatherCondition.FOG),
        (53, WeatherCondition.DRIZZLE),
        (57, WeatherCondition.FREEZING_RAIN),
        (63, WeatherCondition.RAIN),
        (67, WeatherCondition.FREEZING_RAIN),
        (75, WeatherCondition.SNOW),
        (77, WeatherCondition.SNOW_GRAINS),
        (81, WeatherCondition.RAIN_SHOWERS),
        (86, WeatherCondition.SNOW_SHOWERS),
        (95, WeatherCondition.THUNDERSTORM),
        (99, WeatherCondition.THUNDERSTORM_HAIL),
    ])
    def test_codes(self, code, expected):
        assert WeatherCondition.from_wmo_code(code) is expected

    def test_unknown_code_is_clear(self):
        assert WeatherCondition.from_wmo_code(12345) is WeatherCondition.CLEAR

    def test_representative_codes_map_back(self):
        for condition in WeatherCondition:
            assert WeatherCondition.from_wmo_code(condition.wmo_code) is condition

    def test_condition_groups(self):
        assert WeatherCondition.RAIN_SHOWERS.is_raining
        assert WeatherCondition.SNOW_GRAINS.is_snowing
        assert WeatherCondition.THUNDERSTORM_HAIL.is_thunderstorm
        assert WeatherCondition.OVERCAST.is_cloudy
        assert WeatherCondition.FOG.is_foggy
        assert not WeatherCondition.CLEAR.is_raining


# ===========================================================================
# WeatherState / GridSize / LayerKind
# ===========================================================================

class TestWeatherState:
    @pytest.mark.parametrize("given,expected", [
        (-0.5, 0.0),
        (0.3, 0.3),
        (1.7, 1.0),
        (float('nan'), 0.0),
    ])
    def test_intensity_is_clamped(self, given, expected):
        state = WeatherState(precipitation_intensity=given)
        assert state.precipitation_intensity == pytest.approx(expected)

    def test_default_is_clear_day(self):
        state = WeatherState.default()
        assert state.condition is WeatherCondition.CLEAR
        assert state.is_night is False
        assert state.offline is False

    def test_condition_string_is_parsed(self):
        assert WeatherState(condition="snow").condition is WeatherCondition.SNOW

    def test_frozen(self):
        state = WeatherState.default()
        with pytest.raises(Exception):
            state.temperature = 30.0

    def test_warm_threshold(self):
        assert WeatherState(temperature=15.5).is_warm
        assert not WeatherState(temperature=15.0).is_warm


class TestGridSize:
    @pytest.mark.parametrize("width,height,expected", [
        (80, 24, (80, 24)),
        (0, 0, (1, 1)),
        (-5, 10, (1, 10)),
    ])
    def test_normalized(self, width, height, expected):
        assert tuple(GridSize.normalized(width, height)) == expected


class TestLayerKind:
    def test_paint_order(self):
        kinds = sorted(LayerKind, key=lambda kind: kind.order)
        assert kinds == [
            LayerKind.SKY,
            LayerKind.CELESTIAL,
            LayerKind.PRECIPITATION,
            LayerKind.EFFECT,
            LayerKind.SPRITE,
        ]


class TestLocation:
    def test_describe(self):
        assert Location(52.52, 13.41).describe() == "52.52°N, 13.41°E"
        assert Location(-33.87, -70.65).describe() == "33.87°S, 70.65°W"


# ===========================================================================
# Units
# ===========================================================================

class TestUnitConversion:
    @pytest.mark.parametrize("value", [-40.0, 0.0, 21.5, 100.0])
    @pytest.mark.parametrize("unit", list(TemperatureUnit))
    def test_temperature_round_trip(self, value, unit):
        assert to_celsius(celsius_to(value, unit), unit) == pytest.approx(value)

    @pytest.mark.parametrize("value", [0.0, 12.3, 150.0])
    @pytest.mark.parametrize("unit", list(WindSpeedUnit))
    def test_wind_round_trip(self, value, unit):
        assert to_kmh(kmh_to(value, unit), unit) == pytest.approx(value)

    @pytest.mark.parametrize("value", [0.0, 2.5, 80.0])
    @pytest.mark.parametrize("unit", list(PrecipitationUnit))
    def test_precipitation_round_trip(self, value, unit):
        assert to_mm(mm_to(value, unit), unit) == pytest.approx(value)

    def test_known_values(self):
        assert celsius_to(100.0, TemperatureUnit.FAHRENHEIT) == pytest.approx(212.0)
        assert kmh_to(36.0, WindSpeedUnit.MS) == pytest.approx(10.0)
        assert mm_to(25.4, PrecipitationUnit.INCH) == pytest.approx(1.0)
        assert math.isclose(kmh_to(1.852, WindSpeedUnit.KNOTS), 1.0)

    def test_formatting(self):
        metric = Units.metric()
        assert metric.format_temperature(20.0) == "20.0°C"
        assert metric.format_wind(10.0) == "10.0km/h"
        assert metric.format_precipitation(2.5) == "2.5mm"

        imperial = Units.imperial()
        assert imperial.format_temperature(20.0) == "68.0°F"
        assert imperial.format_precipitation(25.4) == "1.0in"
