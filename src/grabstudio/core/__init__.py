"""Core interaction and compositing logic."""

from grabstudio.core.engine import (
    SegmentationEngine,
    GrabCutEngine,
    SegmentationError,
    InvalidRectangleError,
    EngineNotInitializedError,
)
from grabstudio.core.compositor import (
    ViewCompositor,
    FrameBuffers,
    float_to_bytes,
    bytes_to_float,
)
from grabstudio.core.commands import (
    Command,
    EngineCall,
    Transition,
    COMMANDS,
    dispatch,
)
from grabstudio.core.controller import SessionController, Document

__all__ = [
    "SegmentationEngine",
    "GrabCutEngine",
    "SegmentationError",
    "InvalidRectangleError",
    "EngineNotInitializedError",
    "ViewCompositor",
    "FrameBuffers",
    "float_to_bytes",
    "bytes_to_float",
    "Command",
    "EngineCall",
    "Transition",
    "COMMANDS",
    "dispatch",
    "SessionController",
    "Document",
]
