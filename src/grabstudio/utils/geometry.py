"""Geometry helpers for pointer positions and pixel rectangles."""

from typing import Optional, Tuple

Point = Tuple[int, int]
Rect = Tuple[int, int, int, int]


def normalize_rect(p1: Point, p2: Point) -> Rect:
    """
    Order two corners into (x0, y0, x1, y1) with x0 <= x1 and y0 <= y1.

    The corners may be given in any order (the drag may go up or left).
    """
    x0, x1 = sorted((int(p1[0]), int(p2[0])))
    y0, y1 = sorted((int(p1[1]), int(p2[1])))
    return (x0, y0, x1, y1)


def square_around(point: Point, radius: int) -> Rect:
    """Axis-aligned square [x-r, x+r] x [y-r, y+r] centred on a point."""
    x, y = point
    return (x - radius, y - radius, x + radius, y + radius)


def rect_is_degenerate(rect: Rect) -> bool:
    """True when the rectangle has zero width or zero height."""
    x0, y0, x1, y1 = rect
    return x0 == x1 or y0 == y1


def rect_inside(rect: Rect, width: int, height: int) -> bool:
    """Check that a normalized rectangle lies fully inside a width x height image."""
    x0, y0, x1, y1 = rect
    return 0 <= x0 and 0 <= y0 and x1 < width and y1 < height


def clip_rect(rect: Rect, width: int, height: int) -> Optional[Rect]:
    """
    Clip a normalized, inclusive rectangle to the image bounds.

    Returns:
        The clipped rectangle, or None if nothing of it lies inside the image
    """
    x0, y0, x1, y1 = rect
    x0, y0 = max(x0, 0), max(y0, 0)
    x1, y1 = min(x1, width - 1), min(y1, height - 1)
    if x0 > x1 or y0 > y1:
        return None
    return (x0, y0, x1, y1)
