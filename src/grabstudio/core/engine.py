"""Segmentation engine interface and the OpenCV GrabCut adapter."""

import logging
from abc import ABC, abstractmethod
from typing import Tuple

import cv2
import numpy as np

from grabstudio.core.gmm import GaussianMixture, data_costs, empty_model
from grabstudio.core.links import compute_beta, nlink_image, tlink_image
from grabstudio.models.session import TrimapLabel
from grabstudio.utils.geometry import clip_rect, normalize_rect, rect_inside, rect_is_degenerate
from grabstudio.utils.profiling import timed

logger = logging.getLogger("grabstudio.engine")


class SegmentationError(Exception):
    """Base class for engine failures."""


class InvalidRectangleError(SegmentationError):
    """Seeding rectangle is degenerate or leaves the image."""


class EngineNotInitializedError(SegmentationError):
    """An operation needs rect-seeding to have happened first."""


class SegmentationEngine(ABC):
    """
    Interface the session controller drives.

    Buffers returned by the accessors belong to the engine and are only
    valid until the next mutating call.
    """

    @property
    @abstractmethod
    def width(self) -> int:
        pass

    @property
    @abstractmethod
    def height(self) -> int:
        pass

    @abstractmethod
    def initialize(self, x0: int, y0: int, x1: int, y1: int):
        """Seed the trimap from a rectangle (inside unknown, outside background)."""
        pass

    @abstractmethod
    def fit_gmms(self):
        """Re-estimate the color models from the current labels."""
        pass

    @abstractmethod
    def set_trimap(self, x0: int, y0: int, x1: int, y1: int, label: TrimapLabel):
        """Overwrite the label of every pixel in the rectangle."""
        pass

    @abstractmethod
    def refine_once(self) -> int:
        """
        Run one energy-minimisation iteration.

        Returns:
            Number of pixels whose segmentation changed
        """
        pass

    @abstractmethod
    def build_images(self):
        """Regenerate the GMM, N-link and T-link visualisation buffers."""
        pass

    @abstractmethod
    def get_alpha_image(self) -> np.ndarray:
        pass

    @abstractmethod
    def get_nlinks_image(self) -> np.ndarray:
        pass

    @abstractmethod
    def get_tlinks_image(self) -> np.ndarray:
        pass

    @abstractmethod
    def get_gmms_image(self) -> np.ndarray:
        pass


class GrabCutEngine(SegmentationEngine):
    """
    Segmentation engine backed by cv2.grabCut.

    Keeps its own trimap and hard segmentation and hands OpenCV a mask
    built from them, so user labels are never lost between iterations.

    Until build_images() has run, the diagnostic buffers are zero-filled
    arrays of the image size. Alpha is zero until initialize().
    """

    def __init__(self, image: np.ndarray, gamma: float = 50.0):
        """
        Initialize the engine for one image.

        Args:
            image: (H, W, 3) float color buffer, channels nominally in [0, 1]
            gamma: Smoothness weight used for the N-link diagnostics
        """
        image = np.asarray(image, dtype=np.float64)
        if image.ndim != 3 or image.shape[2] != 3:
            raise ValueError(f"Expected an (H, W, 3) color buffer, got shape {image.shape}")
        h, w = image.shape[:2]
        if h == 0 or w == 0:
            raise ValueError("Image has no pixels")

        self.gamma = gamma
        self._image = image
        # OpenCV works on 8-bit pixels
        self._pixels = np.ascontiguousarray(
            np.clip(np.rint(image * 255.0), 0, 255).astype(np.uint8)
        )
        self._beta = None

        self._trimap = np.full((h, w), TrimapLabel.UNKNOWN, dtype=np.uint8)
        self._hard_fg = np.zeros((h, w), dtype=bool)
        self._alpha = np.zeros((h, w), dtype=np.float64)

        self._gmm_image = np.zeros((h, w, 3), dtype=np.float64)
        self._nlinks = np.zeros((h, w), dtype=np.float64)
        self._tlinks = np.zeros((h, w, 3), dtype=np.float64)

        self._bgd_model = empty_model()
        self._fgd_model = empty_model()
        self.initialized = False
        self.gmms_fitted = False

    @property
    def width(self) -> int:
        return self._image.shape[1]

    @property
    def height(self) -> int:
        return self._image.shape[0]

    @property
    def trimap(self) -> np.ndarray:
        return self._trimap

    @timed("engine_initialize")
    def initialize(self, x0: int, y0: int, x1: int, y1: int):
        rect = normalize_rect((x0, y0), (x1, y1))
        if rect_is_degenerate(rect):
            raise InvalidRectangleError(f"Rectangle {rect} has zero width or height")
        if not rect_inside(rect, self.width, self.height):
            raise InvalidRectangleError(
                f"Rectangle {rect} is outside the {self.width}x{self.height} image"
            )

        rx0, ry0, rx1, ry1 = rect
        self._trimap[:] = TrimapLabel.BACKGROUND
        self._trimap[ry0:ry1 + 1, rx0:rx1 + 1] = TrimapLabel.UNKNOWN
        self._hard_fg[:] = False
        self._hard_fg[ry0:ry1 + 1, rx0:rx1 + 1] = True
        self._update_alpha()

        self._bgd_model = empty_model()
        self._fgd_model = empty_model()
        self.initialized = True
        self.gmms_fitted = False
        logger.debug(f"Initialized trimap from rectangle {rect}")

    @timed("fit_gmms")
    def fit_gmms(self):
        self._require_initialized()
        mask = self._grabcut_mask()
        fg = (mask == cv2.GC_FGD) | (mask == cv2.GC_PR_FGD)
        if not fg.any() or fg.all():
            # A rectangle covering the whole image leaves no background samples
            logger.info("Only one label present; GMMs left empty until both are painted")
            self._bgd_model, self._fgd_model = empty_model(), empty_model()
            self.gmms_fitted = True
            return

        bgd, fgd = empty_model(), empty_model()
        try:
            _, bgd, fgd = cv2.grabCut(
                self._pixels, mask, None, bgd, fgd, 0, cv2.GC_INIT_WITH_MASK
            )
        except cv2.error as e:
            raise SegmentationError(f"GMM fitting failed: {e}") from e

        self._bgd_model, self._fgd_model = bgd, fgd
        self.gmms_fitted = True
        logger.debug("Fitted background and foreground GMMs")

    def set_trimap(self, x0: int, y0: int, x1: int, y1: int, label: TrimapLabel):
        label = TrimapLabel(label)
        rect = clip_rect(normalize_rect((x0, y0), (x1, y1)), self.width, self.height)
        if rect is None:
            return
        rx0, ry0, rx1, ry1 = rect
        region = (slice(ry0, ry1 + 1), slice(rx0, rx1 + 1))
        self._trimap[region] = label
        if label == TrimapLabel.FOREGROUND:
            self._hard_fg[region] = True
        elif label == TrimapLabel.BACKGROUND:
            self._hard_fg[region] = False
        self._alpha[region] = self._hard_fg[region]

    @timed("refine_once")
    def refine_once(self) -> int:
        self._require_initialized()
        if not self.gmms_fitted or self._models_empty():
            self.fit_gmms()
        if self._models_empty():
            logger.debug("Single-label segmentation; nothing to refine")
            return 0

        mask = self._grabcut_mask()
        try:
            mask, bgd, fgd = cv2.grabCut(
                self._pixels, mask, None, self._bgd_model, self._fgd_model, 1, cv2.GC_EVAL
            )
        except cv2.error as e:
            raise SegmentationError(f"Refinement failed: {e}") from e
        self._bgd_model, self._fgd_model = bgd, fgd

        unknown = self._trimap == TrimapLabel.UNKNOWN
        new_fg = (mask == cv2.GC_FGD) | (mask == cv2.GC_PR_FGD)
        changed = int(np.count_nonzero(unknown & (new_fg != self._hard_fg)))
        self._hard_fg[unknown] = new_fg[unknown]
        self._update_alpha()
        logger.debug(f"Refinement changed {changed} pixels")
        return changed

    @timed("build_images")
    def build_images(self):
        if self._beta is None:
            self._beta = compute_beta(self._image)
        self._nlinks = nlink_image(self._image, self.gamma, self._beta)

        if not self.gmms_fitted:
            logger.debug("No fitted GMMs yet; GMM and T-link images stay empty")
            return

        h, w = self.height, self.width
        samples = self._pixels.reshape(-1, 3).astype(np.float64)
        fg = self._hard_fg.ravel()
        bgd_gmm = GaussianMixture.from_model(self._bgd_model)
        fgd_gmm = GaussianMixture.from_model(self._fgd_model)

        gmm_colors = np.zeros((h * w, 3), dtype=np.float64)
        for gmm, selected in ((fgd_gmm, fg), (bgd_gmm, ~fg)):
            if not selected.any() or gmm.is_empty:
                continue
            components = gmm.assign_components(samples[selected])
            gmm_colors[selected] = gmm.means[components] / 255.0
        self._gmm_image = gmm_colors.reshape(h, w, 3)

        self._tlinks = tlink_image(*self._terminal_weights(samples, fgd_gmm, bgd_gmm))

    def get_alpha_image(self) -> np.ndarray:
        return self._alpha

    def get_nlinks_image(self) -> np.ndarray:
        return self._nlinks

    def get_tlinks_image(self) -> np.ndarray:
        return self._tlinks

    def get_gmms_image(self) -> np.ndarray:
        return self._gmm_image

    def _require_initialized(self):
        if not self.initialized:
            raise EngineNotInitializedError("Engine has not been seeded with a rectangle")

    def _models_empty(self) -> bool:
        return (GaussianMixture.from_model(self._bgd_model).is_empty
                or GaussianMixture.from_model(self._fgd_model).is_empty)

    def _update_alpha(self):
        self._alpha = self._hard_fg.astype(np.float64)

    def _grabcut_mask(self) -> np.ndarray:
        """cv2.grabCut mask from the trimap and the current hard segmentation."""
        mask = np.where(self._hard_fg, cv2.GC_PR_FGD, cv2.GC_PR_BGD).astype(np.uint8)
        mask[self._trimap == TrimapLabel.FOREGROUND] = cv2.GC_FGD
        mask[self._trimap == TrimapLabel.BACKGROUND] = cv2.GC_BGD
        return mask

    def _terminal_weights(self, samples: np.ndarray,
                          fgd_gmm: GaussianMixture,
                          bgd_gmm: GaussianMixture) -> Tuple[np.ndarray, np.ndarray]:
        """
        Weights to the foreground and background terminals.

        Unknown pixels use the data cost of the opposite model; hard
        labels tie a pixel to its terminal with the maximal weight.
        """
        h, w = self.height, self.width
        hard_weight = 9.0 * self.gamma
        trimap = self._trimap.ravel()

        fore = np.zeros(h * w, dtype=np.float64)
        back = np.zeros(h * w, dtype=np.float64)
        unknown = trimap == TrimapLabel.UNKNOWN
        if unknown.any():
            fore[unknown] = data_costs(bgd_gmm, samples[unknown])
            back[unknown] = data_costs(fgd_gmm, samples[unknown])
        fore[trimap == TrimapLabel.FOREGROUND] = hard_weight
        back[trimap == TrimapLabel.BACKGROUND] = hard_weight
        return fore.reshape(h, w), back.reshape(h, w)
