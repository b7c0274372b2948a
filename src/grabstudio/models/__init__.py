"""Data models for GrabStudio."""

from grabstudio.models.color import Color, distance2, distance2_array
from grabstudio.models.session import (
    Session,
    TrimapLabel,
    ViewMode,
    SelectionMode,
    PointerButtons,
    VIEW_MODE_LABELS,
)

__all__ = [
    "Color",
    "distance2",
    "distance2_array",
    "Session",
    "TrimapLabel",
    "ViewMode",
    "SelectionMode",
    "PointerButtons",
    "VIEW_MODE_LABELS",
]
