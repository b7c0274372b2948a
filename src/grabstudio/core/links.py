"""Graph-cut edge weights, computed for the diagnostic views."""

import math
from typing import Tuple

import numpy as np

from grabstudio.models.color import distance2_array

# Half of the 8-neighbourhood (left, up-left, up, up-right); every
# undirected neighbour edge is visited exactly once.
NEIGHBOR_OFFSETS: Tuple[Tuple[int, int], ...] = ((0, -1), (-1, -1), (-1, 0), (-1, 1))


def _pair_slices(dy: int, dx: int) -> Tuple[tuple, tuple]:
    """Slices selecting each pixel and its neighbour at (dy, dx)."""
    def axis(d):
        if d < 0:
            return slice(-d, None), slice(None, d)
        if d > 0:
            return slice(None, -d), slice(d, None)
        return slice(None), slice(None)

    py, ny = axis(dy)
    px, nx = axis(dx)
    return (py, px), (ny, nx)


def neighbor_distance2(image: np.ndarray, dy: int, dx: int) -> np.ndarray:
    """Squared color distance between each pixel and its (dy, dx) neighbour."""
    pix, nbr = _pair_slices(dy, dx)
    return distance2_array(image[pix], image[nbr])


def compute_beta(image: np.ndarray) -> float:
    """
    Contrast normalisation: 1 / (2 * mean squared neighbour difference).

    Returns 0 for a flat image.
    """
    total = 0.0
    count = 0
    for dy, dx in NEIGHBOR_OFFSETS:
        d2 = neighbor_distance2(image, dy, dx)
        total += float(d2.sum())
        count += d2.size
    if count == 0 or total <= 0:
        return 0.0
    return 1.0 / (2.0 * total / count)


def nlink_image(image: np.ndarray, gamma: float, beta: float = None) -> np.ndarray:
    """
    Per-pixel sum of smoothness weights to all 8 neighbours, scaled to [0, 1].

    Each edge weighs gamma / dist * exp(-beta * distance2).
    """
    h, w = image.shape[:2]
    if beta is None:
        beta = compute_beta(image)

    acc = np.zeros((h, w), dtype=np.float64)
    for dy, dx in NEIGHBOR_OFFSETS:
        pix, nbr = _pair_slices(dy, dx)
        dist = math.hypot(dy, dx)
        weights = gamma / dist * np.exp(-beta * neighbor_distance2(image, dy, dx))
        acc[pix] += weights
        acc[nbr] += weights

    peak = acc.max() if acc.size else 0.0
    if peak > 0:
        acc /= peak
    return acc


def tlink_image(fore: np.ndarray, back: np.ndarray) -> np.ndarray:
    """
    Color image (fore, back, 0) of terminal weights, each scaled to [0, 1].

    Args:
        fore: (H, W) weights to the foreground terminal
        back: (H, W) weights to the background terminal
    """
    out = np.zeros(fore.shape + (3,), dtype=np.float64)
    for channel, weights in enumerate((fore, back)):
        peak = weights.max() if weights.size else 0.0
        out[..., channel] = weights / peak if peak > 0 else 0.0
    return out
