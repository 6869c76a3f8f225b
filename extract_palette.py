"""
Palette extraction core.

Turns two decoded RGBA buffers of the same photograph into an ordered list
of swatches with integer coverage percentages plus two contrast metrics.
Stages: Area Clustering → Salience → Composition → Final Assignment →
Post-processing. Pure and deterministic; performs no I/O.
"""

import math
from dataclasses import dataclass, field, replace, asdict
from typing import Optional

import numpy as np

from color_space import (
    rgb_to_hsl, to_hex, hue_of, hue_distance, distance_squared,
)
from clustering import (
    QuantizedStats, get_samples, quantize_samples, select_initial_centers, run_kmeans,
    assign_samples_to_centers,
)
from salience import SalienceEntry, analyze_salience
from palette_settings import PaletteSettings, DEFAULT_SETTINGS, DARK_LIGHTNESS
from scene_metrics import get_contrast_metrics


# =============================================================================
# Data Structures
# =============================================================================

@dataclass
class PaletteSwatch:
    """One palette entry: a representative color and its coverage."""
    key: int
    color: str  # '#rrggbb'
    percentage: float  # Raw share until normalized, then an int
    lightness: int
    hue: float
    saturation: int
    count: int
    salience_rank: Optional[int] = None

    @property
    def protected(self) -> bool:
        """Salience-sourced swatches are never merged away."""
        return self.salience_rank is not None


@dataclass
class PaletteResult:
    """Output of the core: swatches (primary first) and image-wide contrast."""
    colors: list = field(default_factory=list)  # List of PaletteSwatch
    luminance_contrast: int = 0
    color_contrast: int = 0

    def to_dict(self) -> dict:
        return {
            'colors': [asdict(swatch) for swatch in self.colors],
            'luminance_contrast': self.luminance_contrast,
            'color_contrast': self.color_contrast,
        }


@dataclass
class ComposedCenters:
    """Final centers and, per position, the salience rank (None for area colors)."""
    centers: list
    salience_ranks: list


@dataclass
class AreaClusters:
    """Area pass output: quantizer stats, k-means seeds and non-empty clusters by count."""
    stats: QuantizedStats
    initial_centers: list
    clusters: list  # List of Cluster, largest first


# =============================================================================
# Stage 1: Area Clustering
# =============================================================================

def cluster_area(samples: np.ndarray,
                 settings: PaletteSettings = DEFAULT_SETTINGS) -> AreaClusters:
    """Quantize, seed and cluster the area samples into at most `area_slots` colors."""
    stats = quantize_samples(samples)
    area_colors = min(settings.area_slots, stats.unique_count)
    initial_centers = select_initial_centers(samples, stats, area_colors, settings)
    clusters = [c for c in run_kmeans(samples, initial_centers, area_colors, settings) if c.count > 0]
    clusters.sort(key=lambda cluster: -cluster.count)
    return AreaClusters(stats=stats, initial_centers=initial_centers, clusters=clusters)


# =============================================================================
# Stage 3: Composition
# =============================================================================

def select_salience_by_hue_diversity(entries: list[SalienceEntry], slot_count: int,
                                     settings: PaletteSettings = DEFAULT_SETTINGS) -> list[SalienceEntry]:
    """
    Pick up to `slot_count` salience entries favoring distinct hues.

    A warm entry (forced-warm first) and the top-scoring entry are taken
    first; the rest are chosen greedily by hue distance from the selection,
    with a bonus once the distance clears the separation threshold.
    """
    if not entries or slot_count <= 0:
        return []

    candidates = entries[:max(settings.salience_candidate_limit, slot_count)]
    hues = [hue_of(entry.center) for entry in candidates]
    selected = []  # Indices into candidates

    warm_index = next((i for i, c in enumerate(candidates) if c.force_warm), None)
    if warm_index is None:
        warm_index = next((i for i, c in enumerate(candidates) if c.is_warm), None)
    if warm_index is not None:
        selected.append(warm_index)

    if len(selected) < slot_count and 0 not in selected:
        selected.append(0)

    while len(selected) < slot_count:
        best_index = None
        best_score = -1.0

        for i, candidate in enumerate(candidates):
            if i in selected:
                continue

            min_distance = min(hue_distance(hues[j], hues[i]) for j in selected)
            if min_distance >= settings.salience_hue_separation:
                score = min_distance * 2 + candidate.score
            else:
                score = min_distance + candidate.score * 0.5

            if score > best_score:
                best_score = score
                best_index = i

        if best_index is None:
            break
        selected.append(best_index)

    return [candidates[i] for i in selected]


def is_distinct_center(candidate: tuple, centers: list,
                       settings: PaletteSettings = DEFAULT_SETTINGS) -> bool:
    """False if any RGB-close center also has a close hue."""
    candidate_hue = hue_of(candidate)
    for center in centers:
        if math.sqrt(distance_squared(candidate, center)) > settings.dedupe_distance:
            continue
        if hue_distance(candidate_hue, hue_of(center)) < settings.dedupe_hue_distance:
            return False
    return True


def compose_centers(area_centers: list, salience_entries: list[SalienceEntry], max_colors: int,
                    settings: PaletteSettings = DEFAULT_SETTINGS) -> ComposedCenters:
    """
    Area centers first, then salience picks that survive deduplication.

    Warm entries that are RGB-close to an existing center are still added
    when their hue sits far enough from every center.
    """
    centers = []
    salience_ranks = []

    selected = select_salience_by_hue_diversity(salience_entries, settings.salience_slots, settings)

    for center in area_centers[:settings.area_slots]:
        centers.append(tuple(center))
        salience_ranks.append(None)

    salience_rank = 0
    for entry in selected:
        if len(centers) >= max_colors or salience_rank >= settings.salience_slots:
            break

        if not is_distinct_center(entry.center, centers, settings):
            if not entry.is_warm:
                continue

            entry_hue = hue_of(entry.center)
            required = (
                settings.warm_force_hue_distance if entry.force_warm
                else settings.dedupe_hue_distance
            )
            if any(hue_distance(hue_of(center), entry_hue) < required for center in centers):
                continue

        centers.append(tuple(entry.center))
        salience_ranks.append(salience_rank)
        salience_rank += 1

    return ComposedCenters(centers=centers, salience_ranks=salience_ranks)


# =============================================================================
# Stage 4: Final Assignment
# =============================================================================

def build_swatches(clusters: list, salience_ranks: list, sample_count: int) -> list[PaletteSwatch]:
    """Turn non-empty clusters into swatches, keeping center order."""
    swatches = []
    for position, cluster in enumerate(clusters):
        if cluster.count <= 0:
            continue

        r, g, b = cluster.center
        hue, lightness, saturation = rgb_to_hsl(r, g, b)
        swatches.append(PaletteSwatch(
            key=len(swatches),
            color=to_hex(cluster.center),
            percentage=cluster.count / sample_count * 100,
            lightness=lightness,
            hue=hue,
            saturation=saturation,
            count=cluster.count,
            salience_rank=salience_ranks[position] if position < len(salience_ranks) else None,
        ))
    return swatches


# =============================================================================
# Stage 5: Post-processing
# =============================================================================

def is_close(first: PaletteSwatch, second: PaletteSwatch, hue_threshold: float,
             lightness_threshold: float, dark_lightness: float = DARK_LIGHTNESS) -> bool:
    """True when two swatches are within both the hue and lightness thresholds."""
    hue_gap = hue_distance(first.hue, second.hue, first.lightness, second.lightness, dark_lightness)
    lightness_gap = abs(first.lightness - second.lightness)
    return hue_gap <= hue_threshold and lightness_gap <= lightness_threshold


def merge_low_coverage_swatches(swatches: list[PaletteSwatch], sample_count: int,
                                settings: PaletteSettings = DEFAULT_SETTINGS) -> list[PaletteSwatch]:
    """
    Fold small unprotected swatches into a similar earlier small swatch.

    The primary is always kept and never absorbs. Merge targets are kept,
    unprotected, below-threshold entries already in the result, tried in the
    order they were added. Everything after the primary is then re-sorted
    by descending count.
    """
    if len(swatches) <= 1:
        return [replace(swatch) for swatch in swatches]

    def coverage(swatch):
        return swatch.count / sample_count * 100

    primary = replace(swatches[0])
    result = [primary]

    for original in swatches[1:]:
        swatch = replace(original)
        if swatch.protected or coverage(swatch) >= settings.merge_coverage_threshold:
            result.append(swatch)
            continue

        target = None
        for candidate in result[1:]:
            if candidate.protected:
                continue
            if coverage(candidate) >= settings.merge_coverage_threshold:
                continue
            if is_close(candidate, swatch, settings.merge_hue_threshold,
                        settings.merge_lightness_threshold, settings.dark_lightness):
                target = candidate
                break

        if target is None:
            result.append(swatch)
        else:
            target.count += swatch.count

    rest = sorted(result[1:], key=lambda swatch: -swatch.count)
    return [primary, *rest]


def normalize_percentages(swatches: list[PaletteSwatch]) -> list[PaletteSwatch]:
    """
    Integer percentages that sum to exactly 100 (largest remainder).

    Leftover points go to the largest fractional parts; earlier swatches
    win ties.
    """
    total = sum(swatch.count for swatch in swatches)
    if total == 0:
        return [replace(swatch, percentage=0) for swatch in swatches]

    raw = [swatch.count / total * 100 for swatch in swatches]
    adjusted = [math.floor(value) for value in raw]
    remainder = 100 - sum(adjusted)

    by_fraction = sorted(range(len(raw)), key=lambda i: -(raw[i] - math.floor(raw[i])))
    step = 0
    while remainder > 0:
        adjusted[by_fraction[step % len(by_fraction)]] += 1
        remainder -= 1
        step += 1

    return [replace(swatch, percentage=value) for swatch, value in zip(swatches, adjusted)]


# =============================================================================
# Main Pipeline
# =============================================================================

def extract_palette(area_pixels, area_width: int, area_height: int,
                    salience_pixels=None, salience_width: Optional[int] = None,
                    salience_height: Optional[int] = None,
                    settings: PaletteSettings = DEFAULT_SETTINGS) -> PaletteResult:
    """
    Extract a palette from a low-res area buffer and a higher-res salience buffer.

    Without a salience buffer the area buffer is used for both passes.

    Returns:
        PaletteResult; empty colors and zero metrics for an empty image.

    Raises:
        ValueError: If a buffer is shorter than width * height * 4 bytes
    """
    if salience_pixels is None:
        salience_pixels, salience_width, salience_height = area_pixels, area_width, area_height

    # Stage 1: Area Clustering
    samples = get_samples(area_pixels, area_width, area_height, settings.stride)
    sample_count = len(samples)
    if sample_count == 0:
        return PaletteResult()

    area = cluster_area(samples, settings)

    # Stage 2: Salience
    salience = analyze_salience(salience_pixels, salience_width, salience_height,
                                area.initial_centers, settings)

    # Stage 3: Composition
    composed = compose_centers(
        [cluster.center for cluster in area.clusters],
        salience.entries,
        settings.max_colors,
        settings,
    )

    # Stage 4: Final Assignment
    final_clusters = assign_samples_to_centers(samples, composed.centers)
    swatches = build_swatches(final_clusters, composed.salience_ranks, sample_count)

    # Stage 5: Post-processing
    merged = merge_low_coverage_swatches(swatches, sample_count, settings)
    colors = normalize_percentages(merged)
    luminance_contrast, color_contrast = get_contrast_metrics(samples)

    return PaletteResult(
        colors=colors,
        luminance_contrast=luminance_contrast,
        color_contrast=color_contrast,
    )


def extract_palette_from_array(area: np.ndarray, salience: Optional[np.ndarray] = None,
                               settings: PaletteSettings = DEFAULT_SETTINGS) -> PaletteResult:
    """Convenience wrapper for (H, W, 3|4) uint8 arrays."""
    area_rgba = _to_rgba(area)
    if salience is None:
        return extract_palette(area_rgba, area_rgba.shape[1], area_rgba.shape[0], settings=settings)
    salience_rgba = _to_rgba(salience)
    return extract_palette(
        area_rgba, area_rgba.shape[1], area_rgba.shape[0],
        salience_rgba, salience_rgba.shape[1], salience_rgba.shape[0],
        settings=settings,
    )


def _to_rgba(array: np.ndarray) -> np.ndarray:
    array = np.asarray(array, dtype=np.uint8)
    if array.ndim != 3 or array.shape[2] not in (3, 4):
        raise ValueError(f"Expected an (H, W, 3) or (H, W, 4) array, got shape {array.shape}")
    if array.shape[2] == 4:
        return np.ascontiguousarray(array)
    alpha = np.full(array.shape[:2] + (1,), 255, dtype=np.uint8)
    return np.concatenate([array, alpha], axis=2)
