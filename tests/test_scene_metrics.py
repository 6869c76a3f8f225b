"""Tests for scene metrics, contrast statistics and display helpers."""
import numpy as np
import pytest

from color_space import rgb_to_hsl, to_hex
from extract_palette import PaletteResult, PaletteSwatch
from scene_metrics import (
    METRIC_DESCRIPTIONS, SceneMetrics, RunningStats, get_contrast_metrics,
    get_hue_spread, get_scene_metrics, scene_metrics_for, group_swatches,
    lightness_order, format_signed, map_range, clamp_value,
)


def _swatch(color, percentage, key=0):
    hue, lightness, saturation = rgb_to_hsl(*color)
    return PaletteSwatch(
        key=key,
        color=to_hex(color),
        percentage=percentage,
        lightness=lightness,
        hue=hue,
        saturation=saturation,
        count=percentage,
    )


def _hue_swatch(hue, percentage):
    return PaletteSwatch(key=0, color="#808080", percentage=percentage, lightness=50,
                         hue=hue, saturation=50, count=percentage)


# =============================================================================
# Helpers
# =============================================================================

def test_map_range_and_clamp():
    assert map_range(0, -100, 100, 2000, 10000) == 6000
    assert map_range(5, 1, 1, 7, 9) == 7
    assert clamp_value(150, -100, 100) == 100
    assert clamp_value(-150, -100, 100) == -100


@pytest.mark.parametrize("value,expected", [(12, "+12"), (0, "0"), (-3, "-3")])
def test_format_signed(value, expected):
    assert format_signed(value) == expected


def test_running_stats_batches_match_numpy():
    rng = np.random.default_rng(1)
    values = rng.random(1000) * 255

    batched = RunningStats()
    for start in range(0, 1000, 128):
        batched.update(values[start:start + 128])

    single = RunningStats()
    for value in values[:100]:
        single.push(value)

    assert batched.count == 1000
    assert batched.mean == pytest.approx(values.mean())
    assert batched.variance == pytest.approx(values.var())
    assert single.std == pytest.approx(values[:100].std())


def test_running_stats_empty():
    stats = RunningStats()
    stats.update(np.zeros(0))
    assert stats.variance == 0.0
    assert stats.std == 0.0


# =============================================================================
# Sample Metrics
# =============================================================================

def test_contrast_of_uniform_samples_is_zero():
    samples = np.tile(np.array([30, 120, 200]), (500, 1))
    assert get_contrast_metrics(samples) == (0, 0)


def test_luminance_contrast_black_white():
    samples = np.array([[0, 0, 0]] * 50 + [[255, 255, 255]] * 50)
    assert get_contrast_metrics(samples, chunk_size=7) == (50, 0)


def test_opposite_hues_give_full_color_contrast():
    samples = np.array([[255, 0, 0]] * 10 + [[0, 255, 255]] * 10)
    assert get_contrast_metrics(samples)[1] == 100


def test_contrast_of_no_samples():
    assert get_contrast_metrics(np.zeros((0, 3))) == (0, 0)


def test_chunk_size_does_not_change_result():
    rng = np.random.default_rng(4)
    samples = rng.integers(0, 256, size=(3000, 3))
    assert get_contrast_metrics(samples, chunk_size=100) == get_contrast_metrics(samples, chunk_size=4096)


# =============================================================================
# Swatch Metrics
# =============================================================================

def test_hue_spread_two_hues():
    assert get_hue_spread([_hue_swatch(10, 50), _hue_swatch(170, 50)]) == 160


def test_hue_spread_wraps_around():
    assert get_hue_spread([_hue_swatch(350, 50), _hue_swatch(20, 50)]) == 30


def test_hue_spread_single_hue():
    assert get_hue_spread([_hue_swatch(200, 100)]) == 0
    assert get_hue_spread([]) == 0


def test_red_palette_is_warm():
    metrics = get_scene_metrics([_swatch((255, 0, 0), 100)])
    assert metrics.temperature_kelvin == 10000
    assert metrics.tint == -75


def test_blue_palette_is_cool():
    assert get_scene_metrics([_swatch((0, 0, 255), 100)]).temperature_kelvin == 2000


def test_green_palette_tint():
    metrics = get_scene_metrics([_swatch((0, 255, 0), 100)])
    assert metrics.temperature_kelvin == 6000
    assert metrics.tint == 150


def test_tonal_range_and_dominance():
    swatches = [_swatch((0, 0, 0), 60), _swatch((255, 255, 255), 40, key=1)]
    metrics = get_scene_metrics(swatches, luminance_contrast=50, color_contrast=3)

    assert metrics.tonal_range == 100
    assert metrics.dominance_ratio == pytest.approx(1.5)
    assert metrics.luminance_contrast == 50
    assert metrics.color_contrast == 3


def test_single_swatch_dominance():
    assert get_scene_metrics([_swatch((30, 120, 200), 100)]).dominance_ratio == pytest.approx(100.0)


def test_empty_palette_metrics_are_zero():
    assert get_scene_metrics([]) == SceneMetrics()


def test_scene_metrics_for_carries_contrast():
    result = PaletteResult(colors=[_swatch((0, 0, 0), 100)], luminance_contrast=12, color_contrast=34)
    metrics = scene_metrics_for(result)
    assert (metrics.luminance_contrast, metrics.color_contrast) == (12, 34)


def test_format_metrics():
    metrics = SceneMetrics(tonal_range=42, hue_spread=160, dominance_ratio=1.5,
                           luminance_contrast=30, color_contrast=7,
                           temperature_kelvin=6500, tint=12)
    formatted = metrics.format_metrics()

    assert set(formatted) == set(METRIC_DESCRIPTIONS)
    assert formatted['tonal_range'] == "42L"
    assert formatted['hue_spread'] == "160°"
    assert formatted['coverage_balance'] == "1.5×"
    assert formatted['temperature'] == "6500K"
    assert formatted['tint'] == "+12"


# =============================================================================
# Display Helpers
# =============================================================================

def test_group_swatches_by_family():
    red = _swatch((200, 0, 0), 40)
    near_red = _swatch((205, 0, 0), 30, key=1)
    blue = _swatch((0, 0, 255), 30, key=2)

    groups = group_swatches([red, blue, near_red])
    assert groups == [[red, near_red], [blue]]


def test_group_swatches_dark_colors_share_a_family():
    first = _swatch((10, 0, 0), 50)
    second = _swatch((0, 0, 10), 50, key=1)
    assert group_swatches([first, second]) == [[first, second]]


def test_lightness_order():
    dark = _swatch((20, 20, 20), 30)
    light = _swatch((230, 230, 230), 30, key=1)
    mid = _swatch((120, 120, 120), 40, key=2)
    assert lightness_order([mid, light, dark]) == [dark, mid, light]
