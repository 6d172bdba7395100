"""
Tests for the scene composer and its condition table.
"""

import os
import sys
from dataclasses import replace

import pytest

# Add parent directory to path for imports
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from weather_tui.models import GridSize, LayerKind, WeatherCondition
from weather_tui.scene import (
    CLOUD_SHAPES,
    CONDITION_TABLE,
    MAX_WIND_DRIFT,
    MOON_ART,
    SceneComposer,
    SceneTemplate,
    SUN_FRAMES,
    scale_density,
    validate_condition_table,
    wind_drift,
)

GRID = GridSize(80, 24)


@pytest.fixture
def composer():
    return SceneComposer()


def kinds(layers):
    return [layer.kind for layer in layers]


def of_kind(layers, kind):
    return [layer for layer in layers if layer.kind == kind]


# ===========================================================================
# Coverage of every condition
# ===========================================================================

class TestComposeCoverage:
    @pytest.mark.parametrize("condition", list(WeatherCondition))
    @pytest.mark.parametrize("is_night", [False, True])
    def test_every_condition_composes(self, composer, condition, is_night):
        layers = composer.compose(condition, is_night, GRID)

        assert len(of_kind(layers, LayerKind.SKY)) == 1
        assert len(of_kind(layers, LayerKind.CELESTIAL)) == 1
        assert len(of_kind(layers, LayerKind.PRECIPITATION)) <= 1

        orders = [kind.order for kind in kinds(layers)]
        assert orders == sorted(orders)

        celestial = of_kind(layers, LayerKind.CELESTIAL)[0]
        assert celestial.name == ("moon" if is_night else "sun")

    @pytest.mark.parametrize("condition", list(WeatherCondition))
    def test_night_keeps_precipitation(self, composer, condition):
        day = of_kind(composer.compose(condition, False, GRID), LayerKind.PRECIPITATION)
        night = of_kind(composer.compose(condition, True, GRID), LayerKind.PRECIPITATION)
        assert day == night

    def test_night_darkens_sky(self, composer):
        day = of_kind(composer.compose(WeatherCondition.CLEAR, False, GRID), LayerKind.SKY)[0]
        night = of_kind(composer.compose(WeatherCondition.CLEAR, True, GRID), LayerKind.SKY)[0]
        assert night.intensity < day.intensity
        assert night.stars and not day.stars

    def test_compose_is_deterministic(self, composer):
        first = composer.compose(WeatherCondition.SNOW, True, GRID, intensity=0.4)
        second = composer.compose(WeatherCondition.SNOW, True, GRID, intensity=0.4)
        assert first == second

    def test_unknown_condition_renders_clear(self, composer):
        assert composer.compose("volcanic-ash", False, GRID) == \
            composer.compose(WeatherCondition.CLEAR, False, GRID)

    def test_degenerate_grid(self, composer):
        layers = composer.compose(WeatherCondition.RAIN, False, GridSize(0, 0))
        assert len(of_kind(layers, LayerKind.CELESTIAL)) == 1
        assert of_kind(layers, LayerKind.SPRITE) == []


# ===========================================================================
# Condition specifics
# ===========================================================================

class TestConditionLayers:
    def test_rain_day(self, composer):
        layers = composer.compose(WeatherCondition.RAIN, False, GRID)
        precip = of_kind(layers, LayerKind.PRECIPITATION)[0]
        assert precip.name == "rain"
        fall, drift = precip.motion
        assert fall > 0
        assert abs(drift) / fall < 0.1

    def test_hailstorm_night(self, composer):
        layers = composer.compose(WeatherCondition.THUNDERSTORM_HAIL, True, GRID)
        assert of_kind(layers, LayerKind.CELESTIAL)[0].name == "moon"
        assert of_kind(layers, LayerKind.PRECIPITATION)[0].name == "hail"
        lightning = of_kind(layers, LayerKind.EFFECT)
        assert [layer.name for layer in lightning] == ["lightning"]

    def test_hail_lightning_is_more_frequent(self, composer):
        storm = of_kind(composer.compose(WeatherCondition.THUNDERSTORM, False, GRID), LayerKind.EFFECT)[0]
        hail = of_kind(composer.compose(WeatherCondition.THUNDERSTORM_HAIL, False, GRID), LayerKind.EFFECT)[0]
        assert hail.max_interval < storm.max_interval
        assert hail.intensity >= storm.intensity

    @pytest.mark.parametrize("condition", [
        WeatherCondition.CLEAR, WeatherCondition.FOG, WeatherCondition.SNOW,
    ])
    def test_no_lightning_outside_storms(self, composer, condition):
        assert of_kind(composer.compose(condition, False, GRID), LayerKind.EFFECT) == []

    def test_leaves_only_when_enabled_on_dry_skies(self, composer):
        plain = composer.compose(WeatherCondition.CLEAR, False, GRID)
        assert of_kind(plain, LayerKind.PRECIPITATION) == []

        leafy = composer.compose(WeatherCondition.CLEAR, False, GRID, show_leaves=True)
        assert of_kind(leafy, LayerKind.PRECIPITATION)[0].name == "leaves"

        rainy = composer.compose(WeatherCondition.RAIN, False, GRID, show_leaves=True)
        assert of_kind(rainy, LayerKind.PRECIPITATION)[0].name == "rain"

    def test_day_sprites(self, composer):
        names = [layer.name for layer in of_kind(
            composer.compose(WeatherCondition.PARTLY_CLOUDY, False, GRID), LayerKind.SPRITE)]
        assert names == ["airplane", "birds"]
        assert of_kind(composer.compose(WeatherCondition.RAIN, False, GRID), LayerKind.SPRITE) == []

    def test_fireflies_on_warm_clear_nights(self, composer):
        warm = composer.compose(WeatherCondition.CLEAR, True, GRID, warm=True)
        assert [layer.name for layer in of_kind(warm, LayerKind.SPRITE)] == ["fireflies"]
        cold = composer.compose(WeatherCondition.CLEAR, True, GRID, warm=False)
        assert of_kind(cold, LayerKind.SPRITE) == []
        overcast = composer.compose(WeatherCondition.OVERCAST, True, GRID, warm=True)
        assert of_kind(overcast, LayerKind.SPRITE) == []


# ===========================================================================
# Intensity curve
# ===========================================================================

class TestIntensity:
    def test_curve_is_monotonic_and_bounded(self):
        values = [scale_density(1.0, i / 10) for i in range(11)]
        assert values == sorted(values)
        assert values[0] == pytest.approx(0.5)
        assert values[-1] == pytest.approx(1.0)

    def test_out_of_range_intensity_is_clamped(self):
        assert scale_density(0.8, -3.0) == pytest.approx(0.4)
        assert scale_density(0.8, 7.0) == pytest.approx(0.8)

    def test_none_keeps_template_density(self):
        assert scale_density(0.6, None) == 0.6

    def test_compose_applies_intensity(self, composer):
        light = of_kind(composer.compose(WeatherCondition.RAIN, False, GRID, intensity=0.0),
                        LayerKind.PRECIPITATION)[0]
        heavy = of_kind(composer.compose(WeatherCondition.RAIN, False, GRID, intensity=1.0),
                        LayerKind.PRECIPITATION)[0]
        assert light.density < heavy.density


# ===========================================================================
# Wind
# ===========================================================================

class TestWind:
    @pytest.mark.parametrize("speed,direction,expected", [
        (0.0, 270.0, 0.0),
        (25.0, 270.0, 1.0),
        (25.0, 90.0, -1.0),
        (25.0, 0.0, 0.0),
        (200.0, 270.0, MAX_WIND_DRIFT),
        (200.0, 90.0, -MAX_WIND_DRIFT),
        (float('nan'), 270.0, 0.0),
    ], ids=["calm", "westerly", "easterly", "northerly", "gale-right", "gale-left", "nan"])
    def test_drift(self, speed, direction, expected):
        assert wind_drift(speed, direction) == pytest.approx(expected, abs=1e-9)

    def test_compose_slants_precipitation(self, composer):
        calm = of_kind(composer.compose(WeatherCondition.SNOW, False, GRID), LayerKind.PRECIPITATION)[0]
        windy = of_kind(composer.compose(WeatherCondition.SNOW, False, GRID,
                                         wind_speed=50.0, wind_direction=270.0),
                        LayerKind.PRECIPITATION)[0]
        assert windy.motion[0] == calm.motion[0]
        assert windy.motion[1] == pytest.approx(calm.motion[1] + 2.0)

    def test_calm_keeps_template(self, composer):
        layers = composer.compose(WeatherCondition.RAIN, False, GRID, wind_speed=0.0, wind_direction=90.0)
        assert of_kind(layers, LayerKind.PRECIPITATION)[0].motion == CONDITION_TABLE[
            WeatherCondition.RAIN].precipitation.motion

    def test_dry_scene_ignores_wind(self, composer):
        assert composer.compose(WeatherCondition.CLEAR, False, GRID, wind_speed=80.0) == \
            composer.compose(WeatherCondition.CLEAR, False, GRID)


# ===========================================================================
# Table validation
# ===========================================================================

class TestConditionTable:
    @pytest.mark.parametrize("art", list(CLOUD_SHAPES) + list(SUN_FRAMES) + [MOON_ART])
    def test_art_is_rectangular(self, art):
        widths = {len(line) for line in art.split("\n")}
        assert len(widths) == 1

    def test_shipped_table_is_complete(self):
        validate_condition_table()
        assert set(CONDITION_TABLE) == set(WeatherCondition)

    def test_missing_condition_is_rejected(self):
        table = dict(CONDITION_TABLE)
        del table[WeatherCondition.FOG]
        with pytest.raises(ValueError, match="fog"):
            validate_condition_table(table)

    def test_malformed_lightning_is_rejected(self):
        table = dict(CONDITION_TABLE)
        storm = table[WeatherCondition.THUNDERSTORM]
        bad = replace(storm.lightning, min_interval=10.0, max_interval=1.0)
        table[WeatherCondition.THUNDERSTORM] = replace(storm, lightning=bad)
        with pytest.raises(ValueError):
            validate_condition_table(table)

    def test_out_of_range_cloud_cover_is_rejected(self):
        table = dict(CONDITION_TABLE)
        table[WeatherCondition.CLEAR] = SceneTemplate(cloud_cover=1.5)
        with pytest.raises(ValueError):
            validate_condition_table(table)
