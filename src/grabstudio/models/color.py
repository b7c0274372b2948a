"""Color value and squared-distance metric."""

from dataclasses import dataclass
from typing import Tuple

import numpy as np


@dataclass(frozen=True)
class Color:
    """
    An RGB color with real-valued channels.

    Channels are nominally in [0, 1] but are never clamped, so
    intermediate results (differences, means) can be stored as-is.
    """
    r: float = 0.0
    g: float = 0.0
    b: float = 0.0

    @classmethod
    def from_bytes(cls, rgb: Tuple[int, int, int]) -> 'Color':
        """Create a color from 8-bit (r, g, b) channel values."""
        r, g, b = rgb
        return cls(r / 255.0, g / 255.0, b / 255.0)

    def to_tuple(self) -> Tuple[float, float, float]:
        return (self.r, self.g, self.b)

    def to_array(self) -> np.ndarray:
        return np.array(self.to_tuple(), dtype=np.float64)


def distance2(c1: Color, c2: Color) -> float:
    """Squared Euclidean distance between two colors."""
    dr = c1.r - c2.r
    dg = c1.g - c2.g
    db = c1.b - c2.b
    return dr * dr + dg * dg + db * db


def distance2_array(a: np.ndarray, b: np.ndarray) -> np.ndarray:
    """
    Vectorized distance2 over color arrays.

    Args:
        a: Array of shape (..., 3)
        b: Array broadcastable against a, last axis of length 3

    Returns:
        Array of squared distances with the channel axis reduced
    """
    diff = np.asarray(a, dtype=np.float64) - np.asarray(b, dtype=np.float64)
    return np.sum(diff * diff, axis=-1)
