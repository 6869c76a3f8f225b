"""Tests for sampling, quantization, seeding and k-means."""
import numpy as np
import pytest

from clustering import (
    as_pixel_array, get_samples, bucket_key, quantize_samples,
    select_initial_centers, run_kmeans, assign_samples_to_centers,
    find_fallback_center,
)
from palette_settings import DEFAULT_SETTINGS, PaletteSettings

from tests.helpers.image_helpers import rgba, solid


def _samples(*groups):
    """Stack (color, count) pairs into an (N, 3) sample array."""
    return np.concatenate([np.tile(np.array(color, dtype=np.int64), (count, 1)) for color, count in groups])


# =============================================================================
# Sampler
# =============================================================================

def test_samples_are_raster_order_and_ignore_alpha():
    pixels = np.array([
        10, 20, 30, 0,
        40, 50, 60, 128,
        70, 80, 90, 255,
        1, 2, 3, 4,
    ], dtype=np.uint8)
    samples = get_samples(pixels, 2, 2)
    assert samples.tolist() == [[10, 20, 30], [40, 50, 60], [70, 80, 90], [1, 2, 3]]


def test_stride_takes_every_nth_pixel_on_both_axes():
    image = np.arange(3 * 3 * 3, dtype=np.uint8).reshape(3, 3, 3)
    samples = get_samples(rgba(image), 3, 3, stride=2)
    expected = [image[0, 0], image[0, 2], image[2, 0], image[2, 2]]
    assert samples.tolist() == [list(map(int, px)) for px in expected]


def test_accepts_bytes():
    pixels = bytes([255, 0, 0, 255, 0, 0, 255, 255])
    assert get_samples(pixels, 2, 1).tolist() == [[255, 0, 0], [0, 0, 255]]


def test_empty_image_has_no_samples():
    assert get_samples(np.zeros(0, dtype=np.uint8), 0, 0).shape == (0, 3)
    assert get_samples(np.zeros(0, dtype=np.uint8), 5, 0).shape == (0, 3)


def test_short_buffer_raises():
    with pytest.raises(ValueError):
        get_samples(np.zeros(15, dtype=np.uint8), 2, 2)


def test_negative_dimensions_raise():
    with pytest.raises(ValueError):
        as_pixel_array(np.zeros(16, dtype=np.uint8), -1, 2)


def test_trailing_bytes_are_ignored():
    data = as_pixel_array(np.zeros(20, dtype=np.uint8), 2, 2)
    assert data.size == 16


# =============================================================================
# Quantizer
# =============================================================================

def test_bucket_key_packs_top_bits():
    assert bucket_key(255, 255, 255) == 32767
    assert bucket_key(8, 0, 0) == 1 << 10
    assert bucket_key(7, 7, 7) == 0


def test_quantize_groups_close_colors():
    stats = quantize_samples(np.array([[0, 0, 0], [1, 1, 1], [255, 0, 0]]))
    assert stats.unique_count == 2
    assert stats.counts.tolist() == [2, 1]
    # 0.5 rounds up
    assert stats.centroid(0) == (1, 1, 1)
    assert stats.centroid(1) == (255, 0, 0)


def test_quantize_keeps_first_occurrence_order():
    stats = quantize_samples(np.array([[255, 0, 0], [0, 0, 0], [0, 0, 0]]))
    assert stats.centroid(0) == (255, 0, 0)
    assert stats.order_by_count().tolist() == [1, 0]


def test_order_by_count_ties_favor_first_seen():
    stats = quantize_samples(np.array([[255, 0, 0], [0, 0, 255]]))
    assert stats.order_by_count().tolist() == [0, 1]


def test_quantize_empty():
    assert quantize_samples(np.zeros((0, 3))).unique_count == 0


# =============================================================================
# Seed Selection
# =============================================================================

def test_dominant_bucket_seeds_first_then_vivid():
    samples = _samples(((0, 0, 0), 90), ((255, 0, 0), 10))
    centers = select_initial_centers(samples, quantize_samples(samples), 2)
    assert centers == [(0, 0, 0), (255, 0, 0)]


def test_achromatic_image_seeds_from_buckets():
    samples = _samples(((0, 0, 0), 60), ((200, 200, 200), 40))
    centers = select_initial_centers(samples, quantize_samples(samples), 2)
    assert centers == [(0, 0, 0), (200, 200, 200)]


def test_close_vivid_colors_do_not_both_seed():
    samples = _samples(((0, 0, 0), 80), ((255, 0, 0), 10), ((250, 10, 10), 10))
    centers = select_initial_centers(samples, quantize_samples(samples), 3)
    assert centers == [(0, 0, 0), (255, 0, 0)]


def test_seed_count_never_exceeds_max_colors():
    rng = np.random.default_rng(5)
    samples = rng.integers(0, 256, size=(400, 3))
    centers = select_initial_centers(samples, quantize_samples(samples), 4)
    assert 1 <= len(centers) <= 4
    assert len(set(centers)) == len(centers)


def test_no_seeds_for_empty_stats():
    samples = np.zeros((0, 3), dtype=np.int64)
    assert select_initial_centers(samples, quantize_samples(samples), 5) == []


# =============================================================================
# K-means
# =============================================================================

def test_kmeans_converges_on_separated_groups():
    samples = _samples(((0, 0, 0), 30), ((255, 255, 255), 20))
    clusters = run_kmeans(samples, [(10, 10, 10), (240, 240, 240)], 2)
    assert [c.center for c in clusters] == [(0, 0, 0), (255, 255, 255)]
    assert [c.count for c in clusters] == [30, 20]


def test_kmeans_mean_rounds_half_up():
    clusters = run_kmeans(np.array([[0, 0, 0], [1, 1, 1]]), [(0, 0, 0)], 1)
    assert clusters[0].center == (1, 1, 1)
    assert clusters[0].count == 2


def test_kmeans_reseeds_empty_centers():
    samples = _samples(((0, 0, 0), 50), ((255, 0, 0), 50))
    clusters = run_kmeans(samples, [(0, 0, 0), (1, 1, 1), (2, 2, 2)], 3)

    # The empty middle seed is moved onto the red samples; the leftover
    # center ends up duplicating black and loses the tie to index 0.
    assert clusters[1].center == (255, 0, 0)
    assert [c.count for c in clusters] == [50, 50, 0]


def test_kmeans_counts_cover_every_sample():
    rng = np.random.default_rng(9)
    samples = rng.integers(0, 256, size=(300, 3))
    initial = select_initial_centers(samples, quantize_samples(samples), 5)
    clusters = run_kmeans(samples, initial, 5)
    assert len(clusters) == len(initial)
    assert sum(c.count for c in clusters) == 300


def test_kmeans_without_seeds():
    assert run_kmeans(np.zeros((4, 3)), [], 3) == []


def test_fallback_center_prefers_saturated_distant_sample():
    samples = _samples(((0, 0, 0), 5), ((120, 120, 120), 5), ((0, 200, 0), 1))
    assert find_fallback_center(samples, [(0, 0, 0)], DEFAULT_SETTINGS) == (0, 200, 0)


def test_fallback_center_defaults_to_first_center():
    samples = _samples(((0, 0, 0), 5))
    assert find_fallback_center(samples, [(3, 3, 3), (9, 9, 9)], DEFAULT_SETTINGS) == (3, 3, 3)


def test_assignment_does_not_move_centers():
    samples = _samples(((0, 0, 0), 3), ((250, 250, 250), 2))
    clusters = assign_samples_to_centers(samples, [(20, 20, 20), (200, 200, 200), (0, 0, 255)])
    assert [c.center for c in clusters] == [(20, 20, 20), (200, 200, 200), (0, 0, 255)]
    assert [c.count for c in clusters] == [3, 2, 0]


def test_iteration_count_is_configurable():
    samples = _samples(((0, 0, 0), 10), ((100, 100, 100), 10))
    clusters = run_kmeans(samples, [(40, 40, 40)], 1, PaletteSettings(km_iterations=1))
    assert clusters[0].center == (50, 50, 50)
    assert clusters[0].count == 20


def test_uniform_buffer_single_bucket():
    samples = get_samples(rgba(solid(4, 3, (30, 120, 200))), 4, 3)
    stats = quantize_samples(samples)
    assert stats.unique_count == 1
    assert stats.centroid(0) == (30, 120, 200)
