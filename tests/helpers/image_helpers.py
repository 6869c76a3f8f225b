"""Synthetic RGBA buffers for pipeline tests."""
import numpy as np


def rgba(array: np.ndarray) -> np.ndarray:
    """(H, W, 3) uint8 → flat RGBA buffer with opaque alpha."""
    array = np.asarray(array, dtype=np.uint8)
    alpha = np.full(array.shape[:2] + (1,), 255, dtype=np.uint8)
    return np.concatenate([array, alpha], axis=2).reshape(-1)


def solid(width: int, height: int, color) -> np.ndarray:
    """(H, W, 3) array filled with one color."""
    return np.tile(np.array(color, dtype=np.uint8), (height, width, 1))


def stripe(width: int, height: int, background, color, columns) -> np.ndarray:
    """Solid background with the given columns painted in `color`."""
    image = solid(width, height, background)
    image[:, list(columns)] = color
    return image
