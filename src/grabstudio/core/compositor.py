"""View compositing: engine buffers and session state to displayable rasters."""

from dataclasses import dataclass
from typing import Optional

import cv2
import numpy as np

from grabstudio.config import EXPORT_ALPHA_THRESHOLD, StudioSettings
from grabstudio.models.session import Session, SelectionMode, ViewMode
from grabstudio.utils.profiling import timed

# Absorbs float error so that b / 255 converts back to exactly b
_ROUND_DOWN_TOLERANCE = 1e-4


def float_to_bytes(values: np.ndarray) -> np.ndarray:
    """
    Convert real channel values to 8-bit: round_down(value * 255).

    Values are not clamped. Anything outside [0, 1] wraps to its low
    8 bits, the same way a packed RGB write truncates it.

    Rounding is a floor, not truncation toward zero, so a small negative
    value such as -0.001 gives 255 (truncation would give 0).
    """
    scaled = np.floor(np.asarray(values, dtype=np.float64) * 255.0 + _ROUND_DOWN_TOLERANCE)
    return (scaled.astype(np.int64) & 0xFF).astype(np.uint8)


def bytes_to_float(values: np.ndarray) -> np.ndarray:
    """Convert 8-bit channel values to reals in [0, 1]."""
    return np.asarray(values, dtype=np.float64) / 255.0


def to_rgba(rgb: np.ndarray) -> np.ndarray:
    """
    Opaque RGBA raster from an 8-bit color or grey image.

    Args:
        rgb: (H, W, 3) color or (H, W) grey uint8 array
    """
    if rgb.ndim == 2:
        rgb = np.repeat(rgb[:, :, None], 3, axis=2)
    elif rgb.ndim != 3 or rgb.shape[2] != 3:
        raise ValueError(f"Expected an (H, W) or (H, W, 3) buffer, got shape {rgb.shape}")
    h, w = rgb.shape[:2]
    raster = np.empty((h, w, 4), dtype=np.uint8)
    raster[:, :, :3] = rgb
    raster[:, :, 3] = 255
    return raster


@dataclass
class FrameBuffers:
    """
    Everything a frame is drawn from.

    Engine buffers are only valid until the next mutating engine call,
    so a FrameBuffers should be built right before rendering.
    """
    image: np.ndarray
    alpha: np.ndarray
    gmm: np.ndarray
    nlinks: np.ndarray
    tlinks: np.ndarray

    @classmethod
    def from_engine(cls, image: np.ndarray, engine) -> 'FrameBuffers':
        return cls(
            image=image,
            alpha=engine.get_alpha_image(),
            gmm=engine.get_gmms_image(),
            nlinks=engine.get_nlinks_image(),
            tlinks=engine.get_tlinks_image(),
        )

    def select(self, view_mode: ViewMode) -> np.ndarray:
        """Buffer shown as the base layer for a view mode."""
        return {
            ViewMode.IMAGE: self.image,
            ViewMode.GMM_MASK: self.gmm,
            ViewMode.NLINK_MASK: self.nlinks,
            ViewMode.TLINK_MASK: self.tlinks,
        }[ViewMode(view_mode)]


class ViewCompositor:
    """
    Renders frames for display and for export.

    Rendering is a pure function of its arguments: the same buffers and
    session always give the same raster.
    """

    def __init__(self, settings: StudioSettings = None):
        self.settings = settings or StudioSettings()

    @timed("render_frame")
    def render_frame(self,
                     view_mode: ViewMode,
                     show_mask: bool,
                     selection_mode: SelectionMode,
                     session: Session,
                     buffers: FrameBuffers) -> np.ndarray:
        """
        Render the on-screen frame.

        Args:
            view_mode: Buffer to use as the base layer
            show_mask: Blend black over the base using alpha as opacity
            selection_mode: Which gesture feedback to draw
            session: Source of the rectangle corners and stroke points
            buffers: Image and engine buffers

        Returns:
            (H, W, 4) uint8 RGBA raster, fully opaque
        """
        frame = to_rgba(float_to_bytes(buffers.select(view_mode)))

        if show_mask:
            self._blend_mask(frame, buffers.alpha)

        self._draw_selection(frame, selection_mode, session)
        return frame

    @timed("export_frame")
    def export_frame(self,
                     view_mode: ViewMode,
                     source_raster: np.ndarray,
                     alpha: np.ndarray,
                     view_buffer: Optional[np.ndarray] = None) -> np.ndarray:
        """
        Render the frame written to disk.

        In image view, pixels whose alpha byte is above the threshold
        become fully transparent and all others keep their color and
        opacity. Other views export their buffer as-is, without alpha.

        Args:
            view_mode: Current view mode
            source_raster: (H, W, 3) uint8 source image
            alpha: (H, W) alpha buffer
            view_buffer: Buffer of the current view, required unless in image view

        Returns:
            (H, W, 4) uint8 RGBA raster
        """
        if ViewMode(view_mode) != ViewMode.IMAGE:
            if view_buffer is None:
                raise ValueError(f"Exporting {ViewMode(view_mode).label} needs its buffer")
            return to_rgba(float_to_bytes(view_buffer))

        raster = to_rgba(np.asarray(source_raster, dtype=np.uint8))
        alpha_bytes = float_to_bytes(alpha)
        if alpha_bytes.shape != raster.shape[:2]:
            raise ValueError(
                f"Alpha shape {alpha_bytes.shape} does not match image shape {raster.shape[:2]}"
            )
        raster[alpha_bytes > EXPORT_ALPHA_THRESHOLD] = 0
        return raster

    def _blend_mask(self, frame: np.ndarray, alpha: np.ndarray):
        """Source-over blend of solid black with per-pixel alpha, in place."""
        alpha_bytes = float_to_bytes(alpha).astype(np.uint16)
        if alpha_bytes.shape != frame.shape[:2]:
            raise ValueError(
                f"Alpha shape {alpha_bytes.shape} does not match frame shape {frame.shape[:2]}"
            )
        keep = (255 - alpha_bytes)[:, :, None]
        frame[:, :, :3] = (frame[:, :, :3].astype(np.uint16) * keep // 255).astype(np.uint8)

    def _draw_selection(self, frame: np.ndarray, selection_mode: SelectionMode, session: Session):
        """Draw gesture feedback in place."""
        s = self.settings
        selection_mode = SelectionMode(selection_mode)
        if selection_mode == SelectionMode.RECT:
            rect = session.rect
            if rect is None:
                return
            x0, y0, x1, y1 = rect
            cv2.rectangle(frame, (x0, y0), (x1, y1), _rgba(s.rect_color), s.rect_pen_width)
        elif selection_mode.is_painting:
            color = (s.foreground_color if selection_mode == SelectionMode.PAINT_FOREGROUND
                     else s.background_color)
            self._draw_points(frame, session.stroke, _rgba(color), s.stroke_pen_width)

    @staticmethod
    def _draw_points(frame: np.ndarray, points, color, width: int):
        """Square points of the given pen width."""
        lo = width // 2
        hi = width - lo - 1
        for x, y in points:
            x, y = int(x), int(y)
            cv2.rectangle(frame, (x - lo, y - lo), (x + hi, y + hi), color, -1)


def _rgba(rgb) -> tuple:
    return tuple(int(c) for c in rgb) + (255,)
