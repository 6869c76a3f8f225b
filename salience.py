"""
Salience pass: find visually interesting colors regardless of how much of the
frame they cover.

Per-pixel salience = (saturation / 100) * local luminance contrast, where
contrast is the mean absolute luminance step to the right and bottom
neighbors. The top-scoring pixels are clustered separately from the area
pass, and a dedicated warm-hue search rescues small warm accents that
lose out to larger cool regions.
"""

from dataclasses import dataclass
from typing import Optional

import numpy as np

from color_space import (
    rgb_to_hsl_array, luminance, round_half_up, nearest_center, hue_of,
    hue_distance, is_far_from_centers,
)
from clustering import sample_raster, run_kmeans
from palette_settings import PaletteSettings, DEFAULT_SETTINGS


# =============================================================================
# Data Structures
# =============================================================================

@dataclass
class SalienceField:
    """Per-pixel salience inputs for a sampled raster (flattened, raster order)."""
    samples: np.ndarray  # (N, 3) RGB
    hue: np.ndarray
    saturation: np.ndarray
    contrast: np.ndarray  # 0-1
    valid: np.ndarray  # Has a neighbor and is not both desaturated and flat
    scores: np.ndarray
    shape: tuple  # (rows, cols)


@dataclass
class SalienceCandidates:
    """Top salient pixels, ordered by descending score."""
    samples: np.ndarray
    scores: np.ndarray

    def __len__(self):
        return len(self.scores)


@dataclass
class SalienceEntry:
    """A salience cluster center with its aggregated score."""
    center: tuple
    score: float
    is_warm: bool
    force_warm: bool = False


@dataclass
class SalienceAnalysis:
    """Every intermediate of the salience pass, for composition and debugging."""
    salience_field: SalienceField
    candidates: SalienceCandidates
    centers: list
    ranked: list  # SalienceEntry, by descending score
    warm_candidate: Optional[SalienceEntry]
    entries: list  # ranked plus warm rescue


# =============================================================================
# Salience Field
# =============================================================================

def compute_salience_field(pixels, width: int, height: int,
                           settings: PaletteSettings = DEFAULT_SETTINGS) -> SalienceField:
    """Compute luminance contrast, saturation and salience for every sampled pixel."""
    raster = sample_raster(pixels, width, height, settings.stride)
    rows, cols = raster.shape[:2]
    samples = raster.reshape(-1, 3)

    hue, _, saturation = rgb_to_hsl_array(samples)
    lum = luminance(samples).reshape(rows, cols)

    contrast_sum = np.zeros((rows, cols), dtype=np.float64)
    neighbors = np.zeros((rows, cols), dtype=np.int64)
    if cols > 1:
        contrast_sum[:, :-1] += np.abs(lum[:, :-1] - lum[:, 1:])
        neighbors[:, :-1] += 1
    if rows > 1:
        contrast_sum[:-1, :] += np.abs(lum[:-1, :] - lum[1:, :])
        neighbors[:-1, :] += 1

    contrast_sum = contrast_sum.reshape(-1)
    neighbors = neighbors.reshape(-1)
    has_neighbor = neighbors > 0
    contrast = np.where(has_neighbor, contrast_sum / (np.maximum(neighbors, 1) * 255), 0.0)

    low_saturation = saturation < settings.salience_saturation_min
    low_contrast = contrast < settings.salience_contrast_min
    valid = has_neighbor & ~(low_saturation & low_contrast)
    scores = (saturation / 100) * contrast

    return SalienceField(
        samples=samples,
        hue=hue,
        saturation=saturation,
        contrast=contrast,
        valid=valid,
        scores=scores,
        shape=(rows, cols),
    )


def get_salient_samples(salience: SalienceField,
                        settings: PaletteSettings = DEFAULT_SETTINGS) -> SalienceCandidates:
    """Keep the highest-scoring valid pixels (raster order breaks ties)."""
    indices = np.flatnonzero(salience.valid)
    order = indices[np.argsort(-salience.scores[indices], kind='stable')]
    order = order[:settings.salience_sample_limit]
    return SalienceCandidates(samples=salience.samples[order], scores=salience.scores[order])


# =============================================================================
# Salience Clustering
# =============================================================================

def get_salience_centers(candidates: SalienceCandidates, max_colors: int,
                         fallback_centers: list,
                         settings: PaletteSettings = DEFAULT_SETTINGS) -> list:
    """
    Seed greedily from the top candidates, then cluster the candidates.

    Falls back to the first two area seeds when no candidate can seed.
    """
    if len(candidates) == 0:
        return []

    seeds = []
    for sample in candidates.samples:
        if len(seeds) >= max_colors:
            break
        candidate = tuple(int(v) for v in sample)
        if is_far_from_centers(candidate, seeds, settings.bucket_seed_distance):
            seeds.append(candidate)

    if not seeds:
        return list(fallback_centers[:min(2, len(fallback_centers))])

    clusters = run_kmeans(candidates.samples, seeds, min(max_colors, len(seeds)), settings)
    return [cluster.center for cluster in clusters if cluster.count > 0]


def rank_salience_centers(candidates: SalienceCandidates, centers: list,
                          settings: PaletteSettings = DEFAULT_SETTINGS) -> list[SalienceEntry]:
    """Score each center by the summed salience of its nearest candidates."""
    if not centers:
        return []

    if len(candidates) > 0:
        nearest = nearest_center(candidates.samples, centers)
        scores = np.bincount(nearest, weights=candidates.scores, minlength=len(centers))
    else:
        scores = np.zeros(len(centers))

    entries = [
        SalienceEntry(
            center=tuple(center),
            score=float(score),
            is_warm=settings.is_warm_hue(hue_of(center)),
        )
        for center, score in zip(centers, scores)
    ]
    return sorted(entries, key=lambda entry: -entry.score)


# =============================================================================
# Warm Rescue
# =============================================================================

def get_warm_candidate(salience: SalienceField,
                       settings: PaletteSettings = DEFAULT_SETTINGS) -> Optional[SalienceEntry]:
    """
    Find the most salient warm hue band.

    Warm, salient pixels are binned by hue; the bin with the largest total
    score becomes a forced-warm entry at its mean color.
    """
    warm = (
        salience.valid
        & (salience.hue >= settings.warm_hue_min)
        & (salience.hue <= settings.warm_hue_max)
    )
    indices = np.flatnonzero(warm)
    if len(indices) == 0:
        return None

    bins = np.floor((salience.hue[indices] - settings.warm_hue_min) / settings.warm_bin_size)
    bins = bins.astype(np.int64)
    _, first_index, inverse, counts = np.unique(
        bins, return_index=True, return_inverse=True, return_counts=True
    )
    inverse = inverse.reshape(-1)
    n_bins = len(counts)
    bin_scores = np.bincount(inverse, weights=salience.scores[indices], minlength=n_bins)
    samples = salience.samples[indices]
    bin_sums = np.column_stack([
        np.bincount(inverse, weights=samples[:, c], minlength=n_bins) for c in range(3)
    ])

    # Earliest-seen bin wins ties
    seen_order = np.argsort(first_index)
    best = seen_order[np.argmax(bin_scores[seen_order])]
    center = tuple(int(v) for v in round_half_up(bin_sums[best] / counts[best]))

    return SalienceEntry(center=center, score=float(bin_scores[best]), is_warm=True, force_warm=True)


def merge_warm_candidate(entries: list[SalienceEntry], warm_candidate: Optional[SalienceEntry],
                         settings: PaletteSettings = DEFAULT_SETTINGS) -> list[SalienceEntry]:
    """Put the warm rescue first unless a ranked warm entry already has that hue."""
    if warm_candidate is None:
        return list(entries)

    warm_hue = hue_of(warm_candidate.center)
    for entry in entries:
        if entry.is_warm and hue_distance(hue_of(entry.center), warm_hue) < settings.warm_bin_size:
            return list(entries)

    return [warm_candidate, *entries]


# =============================================================================
# Pipeline
# =============================================================================

def analyze_salience(pixels, width: int, height: int, fallback_centers: list,
                     settings: PaletteSettings = DEFAULT_SETTINGS) -> SalienceAnalysis:
    """Run the full salience pass on the high-resolution buffer."""
    salience = compute_salience_field(pixels, width, height, settings)
    candidates = get_salient_samples(salience, settings)
    centers = get_salience_centers(candidates, settings.salience_slots, fallback_centers, settings)
    ranked = rank_salience_centers(candidates, centers, settings)
    warm_candidate = get_warm_candidate(salience, settings)

    return SalienceAnalysis(
        salience_field=salience,
        candidates=candidates,
        centers=centers,
        ranked=ranked,
        warm_candidate=warm_candidate,
        entries=merge_warm_candidate(ranked, warm_candidate, settings),
    )
