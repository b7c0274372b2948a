"""
GrabStudio

Interactive GrabCut segmentation core: drag a rectangle around the
subject, then paint foreground/background corrections while the engine
refines the alpha matte.

Usage:
    from grabstudio import SessionController, PointerButtons

    controller = SessionController()
    controller.open("photo.png")
    controller.on_pointer_down(10, 10, PointerButtons.PRIMARY)
    controller.on_pointer_move(50, 50)
    controller.on_pointer_up(50, 50)
    frame = controller.render()
"""

__version__ = "1.0.0"
__author__ = "GrabStudio Team"

from grabstudio.core.controller import SessionController
from grabstudio.models.session import PointerButtons, SelectionMode, ViewMode

__all__ = ["SessionController", "PointerButtons", "SelectionMode", "ViewMode", "__version__"]
