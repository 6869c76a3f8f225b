"""
Area clustering: pixel sampling, coarse quantization, seed selection and
fixed-iteration k-means in RGB space.

Samples are (N, 3) int64 arrays; centers are (r, g, b) int tuples.
"""

from dataclasses import dataclass
from typing import Optional

import numpy as np

from color_space import (
    rgb_to_hsl_array, round_half_up, distances_squared, nearest_center,
    is_far_from_centers,
)
from palette_settings import PaletteSettings, DEFAULT_SETTINGS


# =============================================================================
# Pixel Buffers
# =============================================================================

def as_pixel_array(pixels, width: int, height: int) -> np.ndarray:
    """
    Validate an RGBA buffer and return it as a flat uint8 array.

    Raises:
        ValueError: If dimensions are negative or the buffer is too short
    """
    if width < 0 or height < 0:
        raise ValueError(f"Invalid buffer dimensions {width}x{height}")

    if isinstance(pixels, np.ndarray):
        data = pixels.astype(np.uint8, copy=False).reshape(-1)
    else:
        data = np.frombuffer(bytes(pixels), dtype=np.uint8)

    expected = width * height * 4
    if data.size < expected:
        raise ValueError(
            f"RGBA buffer has {data.size:,} bytes, expected at least {expected:,} "
            f"for {width}x{height}"
        )
    return data[:expected]


def sample_raster(pixels, width: int, height: int, stride: int = 1) -> np.ndarray:
    """Every `stride`-th pixel in both axes as an (rows, cols, 3) int64 raster."""
    stride = max(1, int(stride))
    data = as_pixel_array(pixels, width, height)
    if width == 0 or height == 0:
        return np.zeros((0, 0, 3), dtype=np.int64)
    image = data.reshape(height, width, 4)
    return image[::stride, ::stride, :3].astype(np.int64)


# =============================================================================
# Sampler
# =============================================================================

def get_samples(pixels, width: int, height: int, stride: int = 1) -> np.ndarray:
    """Flat (N, 3) RGB samples in raster order, alpha ignored."""
    return sample_raster(pixels, width, height, stride).reshape(-1, 3)


def saturation_order(samples: np.ndarray) -> np.ndarray:
    """Sample indices by descending HSL saturation (stable)."""
    saturation = rgb_to_hsl_array(samples)[2]
    return np.argsort(-saturation, kind='stable')


# =============================================================================
# Quantizer
# =============================================================================

@dataclass
class Cluster:
    """A k-means center and the number of samples nearest to it."""
    center: tuple
    count: int


@dataclass
class QuantizedStats:
    """Per-bucket counts and RGB sums, in first-occurrence order."""
    keys: np.ndarray
    counts: np.ndarray
    sums: np.ndarray  # (buckets, 3)

    @property
    def unique_count(self) -> int:
        return len(self.keys)

    def order_by_count(self) -> np.ndarray:
        """Bucket indices by descending count; first-seen bucket wins ties."""
        return np.argsort(-self.counts, kind='stable')

    def centroid(self, index: int) -> tuple:
        mean = round_half_up(self.sums[index] / self.counts[index])
        return tuple(int(v) for v in mean)


def bucket_key(r: int, g: int, b: int) -> int:
    """Pack the top 5 bits of each channel into a 15-bit key."""
    return ((r >> 3) << 10) | ((g >> 3) << 5) | (b >> 3)


def quantize_samples(samples: np.ndarray) -> QuantizedStats:
    """Bucket samples into the coarse 5-bit-per-channel grid."""
    samples = np.asarray(samples, dtype=np.int64).reshape(-1, 3)
    if len(samples) == 0:
        return QuantizedStats(
            keys=np.zeros(0, dtype=np.int64),
            counts=np.zeros(0, dtype=np.int64),
            sums=np.zeros((0, 3), dtype=np.float64),
        )

    keys = ((samples[:, 0] >> 3) << 10) | ((samples[:, 1] >> 3) << 5) | (samples[:, 2] >> 3)
    unique_keys, first_index, inverse, counts = np.unique(
        keys, return_index=True, return_inverse=True, return_counts=True
    )
    inverse = inverse.reshape(-1)
    sums = np.column_stack([
        np.bincount(inverse, weights=samples[:, c], minlength=len(unique_keys))
        for c in range(3)
    ])

    # np.unique sorts by key; restore the order buckets were first seen in
    order = np.argsort(first_index)
    return QuantizedStats(keys=unique_keys[order], counts=counts[order], sums=sums[order])


# =============================================================================
# Seed Selection
# =============================================================================

def select_initial_centers(samples: np.ndarray, stats: QuantizedStats, max_colors: int,
                           settings: PaletteSettings = DEFAULT_SETTINGS) -> list:
    """
    Choose up to `max_colors` k-means seeds.

    1. Centroid of the most populous bucket (the dominant color)
    2. Vivid samples far from every chosen seed
    3. Remaining buckets by count, with a looser distance
    """
    if stats.unique_count == 0 or max_colors < 1:
        return []

    samples = np.asarray(samples, dtype=np.int64).reshape(-1, 3)
    bucket_order = stats.order_by_count()
    centers = [stats.centroid(bucket_order[0])]

    saturation = rgb_to_hsl_array(samples)[2]
    vivid = np.argsort(-saturation, kind='stable')[:settings.vivid_candidate_limit]

    for index in vivid:
        if len(centers) >= max_colors:
            break
        if saturation[index] < settings.vivid_saturation_min:
            break
        candidate = tuple(int(v) for v in samples[index])
        if is_far_from_centers(candidate, centers, settings.seed_distance):
            centers.append(candidate)

    for bucket in bucket_order[1:]:
        if len(centers) >= max_colors:
            break
        candidate = stats.centroid(bucket)
        if is_far_from_centers(candidate, centers, settings.bucket_seed_distance):
            centers.append(candidate)

    return centers


# =============================================================================
# K-means
# =============================================================================

def find_fallback_center(samples: np.ndarray, centers: list,
                         settings: PaletteSettings = DEFAULT_SETTINGS,
                         order: Optional[np.ndarray] = None) -> tuple:
    """Most saturated sample away from all centers, else the first center."""
    samples = np.asarray(samples, dtype=np.int64).reshape(-1, 3)
    if len(samples) == 0:
        return centers[0]
    if order is None:
        order = saturation_order(samples)

    threshold_sq = settings.bucket_seed_distance ** 2
    far = (distances_squared(samples, centers) >= threshold_sq).all(axis=1)
    hits = order[far[order]]
    if len(hits) == 0:
        return centers[0]
    return tuple(int(v) for v in samples[hits[0]])


def run_kmeans(samples: np.ndarray, initial_centers: list, max_colors: int,
               settings: PaletteSettings = DEFAULT_SETTINGS) -> list[Cluster]:
    """
    Lloyd's algorithm for a fixed number of iterations.

    Centers that lose every sample are reseeded from the most saturated
    distant sample. Returns one Cluster per center in seed order; counts
    come from the last assignment step and may be zero.
    """
    samples = np.asarray(samples, dtype=np.int64).reshape(-1, 3)
    centers = [tuple(int(v) for v in center) for center in initial_centers[:max_colors]]
    if not centers:
        return []

    k = len(centers)
    assignments = np.zeros(len(samples), dtype=np.int64)
    fallback_order = None

    for _ in range(settings.km_iterations):
        assignments = nearest_center(samples, centers)
        counts = np.bincount(assignments, minlength=k)
        sums = np.column_stack([
            np.bincount(assignments, weights=samples[:, c], minlength=k)
            for c in range(3)
        ])

        # Sequential: a reseeded center must see the centers updated before it
        for j in range(k):
            if counts[j] == 0:
                if fallback_order is None:
                    fallback_order = saturation_order(samples)
                centers[j] = find_fallback_center(samples, centers, settings, fallback_order)
                continue
            centers[j] = tuple(int(v) for v in round_half_up(sums[j] / counts[j]))

    counts = np.bincount(assignments, minlength=k)
    return [Cluster(center=center, count=int(count)) for center, count in zip(centers, counts)]


def assign_samples_to_centers(samples: np.ndarray, centers: list) -> list[Cluster]:
    """Single nearest-center assignment without moving the centers."""
    samples = np.asarray(samples, dtype=np.int64).reshape(-1, 3)
    if not centers:
        return []
    counts = np.bincount(nearest_center(samples, centers), minlength=len(centers))
    return [Cluster(center=tuple(center), count=int(count)) for center, count in zip(centers, counts)]
