"""Utility functions for GrabStudio."""

from grabstudio.utils.geometry import (
    Point,
    Rect,
    normalize_rect,
    square_around,
    rect_is_degenerate,
    rect_inside,
    clip_rect,
)
from grabstudio.utils.profiling import (
    OperationTiming,
    PerformanceProfiler,
    timed,
    profile_block,
)

__all__ = [
    # Geometry
    "Point",
    "Rect",
    "normalize_rect",
    "square_around",
    "rect_is_degenerate",
    "rect_inside",
    "clip_rect",
    # Profiling
    "OperationTiming",
    "PerformanceProfiler",
    "timed",
    "profile_block",
]
