"""
Scene metrics derived from a palette and its source samples.

Swatch-level metrics (tonal range, hue spread, coverage balance,
temperature, tint) read only the final swatches; luminance and color
contrast are computed over every area sample. Also holds the display
helpers: swatch grouping, lightness ordering and metric descriptions.
"""

import math
from dataclasses import dataclass

import numpy as np

from color_space import (
    rgb_to_hsl_array, luminance, round_half_up, hex_to_rgb, hue_distance,
)
from palette_settings import (
    GROUP_HUE_THRESHOLD, GROUP_LIGHTNESS_THRESHOLD,
    GROUP_LOOSE_HUE_THRESHOLD, GROUP_LOOSE_LIGHTNESS_THRESHOLD, DARK_LIGHTNESS,
)


# =============================================================================
# Constants
# =============================================================================

KELVIN_RANGE = (2000, 10000)
TINT_RANGE = (-150, 150)
CONTRAST_CHUNK_SIZE = 4096  # Samples per streaming-variance batch

METRIC_DESCRIPTIONS = {
    'tonal_range': (
        'Tonal range',
        'Difference between maximum and minimum lightness in the palette. '
        'L is a 0–100 lightness scale.',
    ),
    'hue_spread': (
        'Hue spread',
        'Smallest circular hue range that contains the palette hues, weighted by '
        'coverage. Degrees are on a 0–360 hue circle.',
    ),
    'coverage_balance': (
        'Coverage balance',
        'Primary coverage divided by the sum of other coverages. Displayed as a ratio (×).',
    ),
    'luminance_contrast': (
        'Luminance contrast',
        'Brightness spread across the image, scaled to 0–100.',
    ),
    'color_contrast': (
        'Color contrast',
        'Hue variation across the image, scaled to 0–100.',
    ),
    'temperature': (
        'Temperature',
        'Blue–yellow balance mapped to a Kelvin scale (2000–10000K).',
    ),
    'tint': (
        'Tint',
        'Green–magenta balance mapped to a Lightroom-style scale (-150 to 150).',
    ),
}


@dataclass(frozen=True)
class SceneMetrics:
    """Seven read-only scalars describing the scene."""
    tonal_range: int = 0
    hue_spread: int = 0
    dominance_ratio: float = 0.0
    luminance_contrast: int = 0
    color_contrast: int = 0
    temperature_kelvin: int = 0
    tint: int = 0

    def format_metrics(self) -> dict:
        """Display strings keyed like METRIC_DESCRIPTIONS."""
        return {
            'tonal_range': f"{self.tonal_range}L",
            'hue_spread': f"{self.hue_spread}°",
            'coverage_balance': f"{self.dominance_ratio:.1f}×",
            'luminance_contrast': str(self.luminance_contrast),
            'color_contrast': str(self.color_contrast),
            'temperature': f"{self.temperature_kelvin}K",
            'tint': format_signed(self.tint),
        }


# =============================================================================
# Helpers
# =============================================================================

def map_range(value: float, in_min: float, in_max: float,
              out_min: float, out_max: float) -> float:
    if in_max == in_min:
        return out_min
    ratio = (value - in_min) / (in_max - in_min)
    return out_min + ratio * (out_max - out_min)


def clamp_value(value: float, min_value: float, max_value: float) -> float:
    return max(min_value, min(max_value, value))


def format_signed(value: int) -> str:
    return f"+{value}" if value > 0 else f"{value}"


class RunningStats:
    """
    Streaming mean and population variance (Welford).

    Values can be pushed one at a time or in numpy batches; batches are
    folded in with the pairwise update so the result does not depend on
    batch size beyond float rounding.
    """

    def __init__(self):
        self.count = 0
        self.mean = 0.0
        self.m2 = 0.0

    def push(self, value: float):
        self.count += 1
        delta = value - self.mean
        self.mean += delta / self.count
        self.m2 += delta * (value - self.mean)

    def update(self, values: np.ndarray):
        values = np.asarray(values, dtype=np.float64).reshape(-1)
        n_batch = len(values)
        if n_batch == 0:
            return
        batch_mean = float(values.mean())
        batch_m2 = float(((values - batch_mean) ** 2).sum())

        total = self.count + n_batch
        delta = batch_mean - self.mean
        self.mean += delta * n_batch / total
        self.m2 += batch_m2 + delta * delta * self.count * n_batch / total
        self.count = total

    @property
    def variance(self) -> float:
        return self.m2 / self.count if self.count > 0 else 0.0

    @property
    def std(self) -> float:
        return math.sqrt(max(0.0, self.variance))


# =============================================================================
# Sample Metrics
# =============================================================================

def get_contrast_metrics(samples: np.ndarray,
                         chunk_size: int = CONTRAST_CHUNK_SIZE) -> tuple[int, int]:
    """
    Luminance and color contrast over raw samples, both 0-100.

    Luminance contrast is the luminance standard deviation relative to 255.
    Color contrast is one minus the length of the saturation-weighted mean
    hue vector: scattered hues give a short vector and high contrast.
    """
    samples = np.asarray(samples, dtype=np.int64).reshape(-1, 3)
    if len(samples) == 0:
        return 0, 0

    stats = RunningStats()
    for start in range(0, len(samples), chunk_size):
        stats.update(luminance(samples[start:start + chunk_size]))
    luminance_contrast = round_half_up(stats.std / 255 * 100)

    hue, _, saturation = rgb_to_hsl_array(samples)
    weight = saturation / 100
    chromatic = weight > 0
    weight_sum = weight[chromatic].sum()
    if weight_sum == 0:
        return luminance_contrast, 0

    angle = np.radians(hue[chromatic])
    sum_x = (np.cos(angle) * weight[chromatic]).sum()
    sum_y = (np.sin(angle) * weight[chromatic]).sum()
    vector_length = math.sqrt(sum_x * sum_x + sum_y * sum_y) / weight_sum
    color_contrast = round_half_up((1 - vector_length) * 100)

    return luminance_contrast, max(0, color_contrast)


# =============================================================================
# Swatch Metrics
# =============================================================================

def get_hue_spread(swatches: list) -> int:
    """
    Smallest arc (degrees) holding every coverage-weighted hue.

    Each hue is repeated max(1, percentage) times; the spread is 360 minus
    the largest gap between sorted hues, including the wrap-around gap.
    """
    if not swatches:
        return 0
    hues = np.array([swatch.hue for swatch in swatches], dtype=np.float64)
    weights = np.array([max(1, int(swatch.percentage)) for swatch in swatches])
    expanded = np.sort(np.repeat(hues, weights))
    if len(expanded) < 2:
        return 0

    max_gap = float(np.diff(expanded).max())
    wrap_gap = float(expanded[0] + 360 - expanded[-1])
    max_gap = max(max_gap, wrap_gap)

    return round_half_up(360 - max_gap)


def get_scene_metrics(swatches: list, luminance_contrast: int = 0,
                      color_contrast: int = 0) -> SceneMetrics:
    """Compute scene metrics from normalized swatches."""
    if not swatches:
        return SceneMetrics()

    lightness_values = [swatch.lightness for swatch in swatches]
    tonal_range = round_half_up(max(lightness_values) - min(lightness_values))

    total_coverage = sum(swatch.percentage for swatch in swatches)
    primary_coverage = swatches[0].percentage
    other_coverage = max(1, total_coverage - primary_coverage)
    dominance_ratio = round_half_up(primary_coverage / other_coverage * 10) / 10

    weighted = np.zeros(3)
    for swatch in swatches:
        weighted += np.array(hex_to_rgb(swatch.color), dtype=np.float64) * (swatch.percentage / 100)
    avg_r, avg_g, avg_b = weighted

    temperature = round_half_up((avg_r - avg_b) / 255 * 100)
    tint = round_half_up((avg_g - (avg_r + avg_b) / 2) / 255 * 100)

    temperature_kelvin = round_half_up(map_range(clamp_value(temperature, -100, 100), -100, 100, *KELVIN_RANGE))
    tint_lr = round_half_up(map_range(clamp_value(tint, -100, 100), -100, 100, *TINT_RANGE))

    return SceneMetrics(
        tonal_range=tonal_range,
        hue_spread=get_hue_spread(swatches),
        dominance_ratio=dominance_ratio,
        luminance_contrast=luminance_contrast,
        color_contrast=color_contrast,
        temperature_kelvin=temperature_kelvin,
        tint=tint_lr,
    )


def scene_metrics_for(result) -> SceneMetrics:
    """Scene metrics for a PaletteResult, carrying its contrast values."""
    return get_scene_metrics(result.colors, result.luminance_contrast, result.color_contrast)


# =============================================================================
# Display Helpers
# =============================================================================

def get_match_score(anchor, swatch):
    """Grouping distance between a group anchor and a swatch, or None if too far."""
    hue_gap = hue_distance(anchor.hue, swatch.hue, anchor.lightness, swatch.lightness, DARK_LIGHTNESS)
    lightness_gap = abs(anchor.lightness - swatch.lightness)

    is_match = (
        (hue_gap <= GROUP_HUE_THRESHOLD and lightness_gap <= GROUP_LIGHTNESS_THRESHOLD)
        or (hue_gap <= GROUP_LOOSE_HUE_THRESHOLD and lightness_gap <= GROUP_LOOSE_LIGHTNESS_THRESHOLD)
    )
    if not is_match:
        return None
    return hue_gap + lightness_gap * 1.1


def group_swatches(swatches: list) -> list[list]:
    """Group swatches into families by their closeness to each group's first member."""
    groups = []
    for swatch in swatches:
        best_index = None
        best_score = math.inf
        for i, group in enumerate(groups):
            score = get_match_score(group[0], swatch)
            if score is not None and score < best_score:
                best_score = score
                best_index = i

        if best_index is None:
            groups.append([swatch])
        else:
            groups[best_index].append(swatch)
    return groups


def lightness_order(swatches: list) -> list:
    """Swatches from darkest to lightest, for a gradient map."""
    return sorted(swatches, key=lambda swatch: swatch.lightness)
