"""
RGB color-space helpers shared by every pipeline stage.

Hue is in degrees (0-360, float); lightness and saturation are HSL
percentages rounded half up to integers.
"""

import math

import numpy as np


# =============================================================================
# Rounding
# =============================================================================

def round_half_up(value):
    """Round to the nearest integer with .5 going up (no banker's rounding).

    Accepts a scalar (returns int) or an array (returns int64 array).
    """
    if isinstance(value, np.ndarray):
        return np.floor(value + 0.5).astype(np.int64)
    return int(math.floor(value + 0.5))


# =============================================================================
# Color Conversion
# =============================================================================

def rgb_to_hsl(r: int, g: int, b: int) -> tuple[float, int, int]:
    """Convert one RGB color (0-255) to (hue, lightness, saturation)."""
    r_norm = r / 255
    g_norm = g / 255
    b_norm = b / 255
    max_c = max(r_norm, g_norm, b_norm)
    min_c = min(r_norm, g_norm, b_norm)
    delta = max_c - min_c

    hue = 0.0
    if delta != 0:
        if max_c == r_norm:
            hue = 60 * (((g_norm - b_norm) / delta) % 6)
        elif max_c == g_norm:
            hue = 60 * ((b_norm - r_norm) / delta + 2)
        else:
            hue = 60 * ((r_norm - g_norm) / delta + 4)

    lightness = (max_c + min_c) / 2
    saturation = 0.0 if delta == 0 else delta / (1 - abs(2 * lightness - 1))

    return hue, round_half_up(lightness * 100), round_half_up(saturation * 100)


def rgb_to_hsl_array(rgb: np.ndarray) -> tuple[np.ndarray, np.ndarray, np.ndarray]:
    """Vectorized rgb_to_hsl over an (N, 3) array.

    Returns:
        Tuple of (hue float64, lightness int64, saturation int64) arrays.
    """
    norm = np.asarray(rgb, dtype=np.float64).reshape(-1, 3) / 255
    r, g, b = norm[:, 0], norm[:, 1], norm[:, 2]
    max_c = norm.max(axis=1)
    min_c = norm.min(axis=1)
    delta = max_c - min_c
    has_chroma = delta != 0
    safe_delta = np.where(has_chroma, delta, 1.0)

    # Channel priority r > g > b matches the scalar branch order
    hue = np.select(
        [max_c == r, max_c == g],
        [60 * (((g - b) / safe_delta) % 6), 60 * ((b - r) / safe_delta + 2)],
        default=60 * ((r - g) / safe_delta + 4),
    )
    hue = np.where(has_chroma, hue, 0.0)

    lightness = (max_c + min_c) / 2
    denom = 1 - np.abs(2 * lightness - 1)
    saturation = np.where(has_chroma, delta / np.where(has_chroma, denom, 1.0), 0.0)

    return hue, round_half_up(lightness * 100), round_half_up(saturation * 100)


def luminance(rgb: np.ndarray) -> np.ndarray:
    """Rec. 709 relative luminance (0-255) for an (N, 3) array."""
    rgb = np.asarray(rgb, dtype=np.float64).reshape(-1, 3)
    return 0.2126 * rgb[:, 0] + 0.7152 * rgb[:, 1] + 0.0722 * rgb[:, 2]


def to_hex(rgb) -> str:
    """Convert an RGB triple to a lowercase '#rrggbb' string."""
    return f"#{int(rgb[0]):02x}{int(rgb[1]):02x}{int(rgb[2]):02x}"


def hex_to_rgb(hex_str: str) -> tuple[int, int, int]:
    """Parse '#rrggbb' (either case, '#' optional) into an RGB tuple."""
    normalized = hex_str.strip().lstrip('#')
    if len(normalized) != 6:
        raise ValueError(f"Expected 6 hex digits, got {hex_str!r}")
    return tuple(int(normalized[i:i + 2], 16) for i in (0, 2, 4))


def hue_of(rgb) -> float:
    """Hue angle of a single RGB triple."""
    return rgb_to_hsl(int(rgb[0]), int(rgb[1]), int(rgb[2]))[0]


# =============================================================================
# Distances
# =============================================================================

def circular_hue_distance(hue1: float, hue2: float) -> float:
    """Compute minimum angular distance between two hues (0-180)."""
    diff = abs(hue1 - hue2)
    return min(diff, 360 - diff)


def hue_distance(hue1: float, hue2: float,
                 lightness1: float = 50, lightness2: float = 50,
                 dark_lightness: float = 8) -> float:
    """Circular hue distance that treats two near-black colors as the same hue."""
    if lightness1 < dark_lightness and lightness2 < dark_lightness:
        return 0.0
    return circular_hue_distance(hue1, hue2)


def distance_squared(first, second) -> int:
    """Squared Euclidean distance between two RGB triples."""
    dr = int(first[0]) - int(second[0])
    dg = int(first[1]) - int(second[1])
    db = int(first[2]) - int(second[2])
    return dr * dr + dg * dg + db * db


def distances_squared(samples: np.ndarray, centers: np.ndarray) -> np.ndarray:
    """Squared RGB distances from every sample to every center, shape (N, K)."""
    samples = np.asarray(samples, dtype=np.int64).reshape(-1, 3)
    centers = np.asarray(centers, dtype=np.int64).reshape(-1, 3)
    diff = samples[:, None, :] - centers[None, :, :]
    return np.einsum('nkc,nkc->nk', diff, diff)


def nearest_center(samples: np.ndarray, centers: np.ndarray) -> np.ndarray:
    """Index of the nearest center per sample; the lowest index wins ties."""
    return np.argmin(distances_squared(samples, centers), axis=1)


def is_far_from_centers(color, centers, threshold: float) -> bool:
    """True when color is at least `threshold` away from every center."""
    threshold_sq = threshold * threshold
    return all(distance_squared(color, center) >= threshold_sq for center in centers)
