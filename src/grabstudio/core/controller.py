"""Session controller: pointer input and commands to engine calls."""

import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Callable, Dict, Optional, Union

import numpy as np

from grabstudio.config import StudioSettings
from grabstudio.core import commands
from grabstudio.core.commands import Command, Transition
from grabstudio.core.compositor import FrameBuffers, ViewCompositor, bytes_to_float
from grabstudio.core.engine import GrabCutEngine, SegmentationEngine
from grabstudio.io.image_io import read_image, write_image
from grabstudio.models.session import PointerButtons, Session, ViewMode
from grabstudio.utils.profiling import PerformanceProfiler, profile_block

logger = logging.getLogger("grabstudio.controller")

ENGINE_OPERATIONS = ("engine_initialize", "fit_gmms", "refine_once", "build_images")

EngineFactory = Callable[[np.ndarray], SegmentationEngine]


@dataclass
class Document:
    """
    A loaded image together with its engine and session.

    The three are replaced together on every load.
    """
    source_raster: np.ndarray  # (H, W, 3) uint8
    image: np.ndarray          # (H, W, 3) float
    engine: SegmentationEngine
    session: Session

    @property
    def size(self):
        h, w = self.source_raster.shape[:2]
        return w, h


class SessionController:
    """
    Owns the interaction state for the loaded image.

    Every handler is a silent no-op while no image is loaded. Every state
    change invalidates the last rendered frame; render() redraws on demand.
    """

    def __init__(self,
                 settings: StudioSettings = None,
                 engine_factory: EngineFactory = None,
                 compositor: ViewCompositor = None):
        """
        Create a controller with no image loaded.

        Args:
            settings: Overlay and engine settings
            engine_factory: Builds an engine for a float color buffer
                (defaults to GrabCutEngine)
            compositor: Frame renderer (defaults to one using settings)
        """
        self.settings = settings or StudioSettings()
        self.engine_factory = engine_factory or self._default_engine
        self.compositor = compositor or ViewCompositor(self.settings)
        self._document: Optional[Document] = None
        self._frame: Optional[np.ndarray] = None

    def _default_engine(self, image: np.ndarray) -> SegmentationEngine:
        return GrabCutEngine(image, gamma=self.settings.smoothness_gamma)

    # ------------------------------------------------------------------
    # Document
    # ------------------------------------------------------------------

    @property
    def has_image(self) -> bool:
        return self._document is not None

    @property
    def session(self) -> Optional[Session]:
        return self._document.session if self._document else None

    @property
    def engine(self) -> Optional[SegmentationEngine]:
        return self._document.engine if self._document else None

    @property
    def needs_redraw(self) -> bool:
        return self._frame is None

    def load_image(self, pixels: np.ndarray):
        """
        Replace the current image, engine and session in one step.

        If the new engine cannot be built, the previous document stays.

        Args:
            pixels: (H, W, 3) uint8 RGB, (H, W, 4) RGBA or (H, W) grey image
        """
        raster = _as_rgb(pixels)
        with profile_block("image_load"):
            image = bytes_to_float(raster)
            engine = self.engine_factory(image)

        self._document = Document(
            source_raster=raster,
            image=image,
            engine=engine,
            session=Session(),
        )
        self._invalidate()
        logger.info(f"Loaded image {raster.shape[1]}x{raster.shape[0]}")

    def open(self, path: Union[str, Path]):
        """Read an image file and load it."""
        self.load_image(read_image(path))

    def save(self, path: Union[str, Path]) -> bool:
        """
        Write the export frame of the current view.

        Returns:
            False if no image is loaded
        """
        raster = self.export()
        if raster is None:
            return False
        write_image(path, raster)
        return True

    # ------------------------------------------------------------------
    # Pointer input
    # ------------------------------------------------------------------

    def on_pointer_down(self, x: int, y: int, buttons: PointerButtons) -> bool:
        if not self.has_image:
            return False
        return self._apply(commands.on_pointer_down(self.session, (int(x), int(y)), buttons))

    def on_pointer_move(self, x: int, y: int) -> bool:
        if not self.has_image:
            return False
        return self._apply(commands.on_pointer_move(self.session, (int(x), int(y))))

    def on_pointer_up(self, x: int, y: int) -> bool:
        if not self.has_image:
            return False
        return self._apply(commands.on_pointer_up(self.session, (int(x), int(y))))

    # ------------------------------------------------------------------
    # Commands
    # ------------------------------------------------------------------

    def dispatch(self, command: Command, argument=None) -> bool:
        """Run a discrete command against the current session."""
        if not self.has_image:
            return False
        return self._apply(commands.dispatch(self.session, command, argument))

    def request_refine_once(self) -> bool:
        return self.dispatch(Command.REFINE_ONCE)

    def request_fit_gmms(self) -> bool:
        return self.dispatch(Command.FIT_GMMS)

    def toggle_continuous_refine(self, enabled: bool) -> bool:
        return self.dispatch(Command.REFINE, bool(enabled))

    def request_abort_refine(self) -> bool:
        return self.dispatch(Command.ABORT_REFINE)

    def set_show_mask(self, visible: bool) -> bool:
        return self.dispatch(Command.SHOW_MASK, bool(visible))

    def set_view_mode(self, view_mode: ViewMode) -> bool:
        return self.dispatch(Command.SET_VIEW_MODE, ViewMode(view_mode))

    def run_refine(self,
                   max_iterations: int = None,
                   on_iteration: Callable[[int, int], None] = None) -> int:
        """
        Refine repeatedly while continuous refinement is enabled.

        The loop is cooperative: after every iteration it calls
        on_iteration(iteration, changed_pixels), which may call
        request_abort_refine(). It also stops once an iteration changes
        no pixels, or after max_iterations. The refining flag is cleared
        when the loop ends.

        Returns:
            Number of iterations run
        """
        if not self.has_image or not self.session.refining:
            return 0

        document = self._document
        limit = self.settings.max_refine_iterations if max_iterations is None else max_iterations
        iterations = 0
        try:
            while document.session.refining and iterations < limit:
                changed = document.engine.refine_once()
                document.engine.build_images()
                iterations += 1
                self._invalidate()
                if on_iteration is not None:
                    on_iteration(iterations, changed)
                if changed == 0:
                    logger.info(f"Refinement converged after {iterations} iterations")
                    break
        except Exception:
            logger.exception(f"Refinement failed after {iterations} iterations")
            raise
        finally:
            document.session = document.session.evolve(refining=False)
            self._invalidate()
        return iterations

    # ------------------------------------------------------------------
    # Output
    # ------------------------------------------------------------------

    def frame_buffers(self) -> Optional[FrameBuffers]:
        if not self.has_image:
            return None
        return FrameBuffers.from_engine(self._document.image, self._document.engine)

    def render(self) -> Optional[np.ndarray]:
        """Current on-screen frame, redrawn only after a state change."""
        if not self.has_image:
            return None
        if self._frame is None:
            session = self.session
            self._frame = self.compositor.render_frame(
                session.view_mode,
                session.show_mask,
                session.selection_mode,
                session,
                self.frame_buffers(),
            )
        return self._frame.copy()

    def export(self) -> Optional[np.ndarray]:
        """Frame to save for the current view mode."""
        if not self.has_image:
            return None
        session = self.session
        buffers = self.frame_buffers()
        return self.compositor.export_frame(
            session.view_mode,
            self._document.source_raster,
            buffers.alpha,
            buffers.select(session.view_mode),
        )

    def info(self) -> Dict[str, Any]:
        """Summary of the current state for an information panel."""
        if not self.has_image:
            return {"loaded": False}
        session = self.session
        width, height = self._document.size
        last = PerformanceProfiler.get_instance().last(*ENGINE_OPERATIONS)
        return {
            "loaded": True,
            "resolution": (width, height),
            "initialized": session.initialized,
            "view_mode": session.view_mode.label,
            "selection_mode": session.selection_mode.name.lower(),
            "show_mask": session.show_mask,
            "refining": session.refining,
            "last_operation": last.operation if last else None,
            "last_cost_ms": round(last.duration_ms, 1) if last else None,
        }

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    def _apply(self, transition: Transition) -> bool:
        """
        Issue the transition's engine calls, then commit its session.

        If a call fails, the in-progress gesture is dropped, the rest of
        the session is kept and the error propagates.

        Calls are not rolled back: those issued before the failing one
        have already changed the engine. If initialize() succeeds and
        fit_gmms() then raises, the engine is seeded while the session
        stays uninitialized; the next rectangle re-seeds it.
        """
        document = self._document
        try:
            for call in transition.calls:
                logger.debug(f"Engine call: {call}")
                call.apply(document.engine)
        except Exception:
            logger.exception("Engine call failed; keeping previous session")
            document.session = document.session.cancel_gesture()
            self._invalidate()
            raise

        changed = transition.session != document.session or bool(transition.calls)
        document.session = transition.session
        if changed:
            self._invalidate()
        return changed

    def _invalidate(self):
        self._frame = None


def _as_rgb(pixels: np.ndarray) -> np.ndarray:
    """Normalise a loaded image to (H, W, 3) uint8."""
    pixels = np.asarray(pixels)
    if pixels.dtype != np.uint8:
        raise ValueError(f"Expected 8-bit pixels, got {pixels.dtype}")
    if pixels.ndim == 2:
        pixels = np.repeat(pixels[:, :, None], 3, axis=2)
    elif pixels.ndim == 3 and pixels.shape[2] == 4:
        pixels = pixels[:, :, :3]
    elif pixels.ndim != 3 or pixels.shape[2] != 3:
        raise ValueError(f"Unsupported image shape {pixels.shape}")
    if pixels.shape[0] == 0 or pixels.shape[1] == 0:
        raise ValueError("Image has no pixels")
    return np.ascontiguousarray(pixels)
