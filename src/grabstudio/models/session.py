"""Interaction session state for one loaded image."""

from dataclasses import dataclass, replace
from enum import IntEnum, IntFlag
from typing import Optional, Tuple

from grabstudio.utils.geometry import Point, Rect, normalize_rect


class TrimapLabel(IntEnum):
    """Per-pixel classification consumed by the segmentation engine."""
    BACKGROUND = 0
    FOREGROUND = 1
    UNKNOWN = 2


class ViewMode(IntEnum):
    """Which buffer the compositor renders as the base layer."""
    IMAGE = 0
    GMM_MASK = 1
    NLINK_MASK = 2
    TLINK_MASK = 3

    @property
    def label(self) -> str:
        return VIEW_MODE_LABELS[self]


VIEW_MODE_LABELS = {
    ViewMode.IMAGE: "image",
    ViewMode.GMM_MASK: "GMM mask",
    ViewMode.NLINK_MASK: "NLink mask",
    ViewMode.TLINK_MASK: "TLink mask",
}


class SelectionMode(IntEnum):
    """The pointer gesture currently in progress."""
    NONE = 0
    RECT = 1
    PAINT_BACKGROUND = 2
    PAINT_FOREGROUND = 3

    @property
    def is_painting(self) -> bool:
        return self in (SelectionMode.PAINT_BACKGROUND, SelectionMode.PAINT_FOREGROUND)


class PointerButtons(IntFlag):
    """Button mask reported with pointer events."""
    NONE = 0
    PRIMARY = 1
    SECONDARY = 2
    MIDDLE = 4


@dataclass(frozen=True)
class Session:
    """
    Interaction state threaded through the pointer handlers and the compositor.

    Sessions are immutable; every transition produces a new value.

    Attributes:
        view_mode: Buffer shown as the base layer
        selection_mode: Gesture in progress
        rect_start: Press position of the seeding rectangle
        rect_end: Live (or released) corner of the seeding rectangle
        stroke: Positions recorded during a paint gesture
        initialized: Rect-seeding has happened
        show_mask: Alpha overlay is visible
        refining: Continuous refinement has been requested
    """
    view_mode: ViewMode = ViewMode.IMAGE
    selection_mode: SelectionMode = SelectionMode.NONE
    rect_start: Optional[Point] = None
    rect_end: Optional[Point] = None
    stroke: Tuple[Point, ...] = ()
    initialized: bool = False
    show_mask: bool = False
    refining: bool = False

    def __post_init__(self):
        if self.stroke and not self.selection_mode.is_painting:
            raise ValueError("stroke points recorded outside a paint gesture")

    @property
    def rect(self) -> Optional[Rect]:
        """The seeding rectangle normalized to (min, min)-(max, max)."""
        if self.rect_start is None or self.rect_end is None:
            return None
        return normalize_rect(self.rect_start, self.rect_end)

    def evolve(self, **changes) -> 'Session':
        """Return a copy with the given fields replaced."""
        return replace(self, **changes)

    def cancel_gesture(self) -> 'Session':
        """Drop any in-progress gesture, keeping the rest of the state."""
        return replace(self, selection_mode=SelectionMode.NONE, stroke=())
