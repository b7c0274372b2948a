"""Pytest fixtures for GrabStudio tests."""

import pytest
import numpy as np

from grabstudio.config import StudioSettings
from grabstudio.core.controller import SessionController
from grabstudio.core.engine import InvalidRectangleError, SegmentationEngine
from grabstudio.utils.geometry import normalize_rect, rect_inside, rect_is_degenerate
from grabstudio.utils.profiling import PerformanceProfiler


class RecordingEngine(SegmentationEngine):
    """
    Engine stand-in that records every call.

    initialize() validates the rectangle like the real engine, and
    refine_once() returns the queued change counts (then 0).
    """

    def __init__(self, image, changes=None):
        self.image = image
        h, w = image.shape[:2]
        self.calls = []
        self.changes = list(changes or [])
        self.alpha = np.zeros((h, w), dtype=np.float64)
        self.gmms = np.zeros((h, w, 3), dtype=np.float64)
        self.nlinks = np.zeros((h, w), dtype=np.float64)
        self.tlinks = np.zeros((h, w, 3), dtype=np.float64)

    @property
    def width(self):
        return self.image.shape[1]

    @property
    def height(self):
        return self.image.shape[0]

    def initialize(self, x0, y0, x1, y1):
        self.calls.append(("initialize", (x0, y0, x1, y1)))
        rect = normalize_rect((x0, y0), (x1, y1))
        if rect_is_degenerate(rect) or not rect_inside(rect, self.width, self.height):
            raise InvalidRectangleError(f"bad rectangle {rect}")
        self.alpha[:] = 0.0
        self.alpha[rect[1]:rect[3] + 1, rect[0]:rect[2] + 1] = 1.0

    def fit_gmms(self):
        self.calls.append(("fit_gmms", ()))

    def set_trimap(self, x0, y0, x1, y1, label):
        self.calls.append(("set_trimap", (x0, y0, x1, y1, label)))

    def refine_once(self):
        self.calls.append(("refine_once", ()))
        return self.changes.pop(0) if self.changes else 0

    def build_images(self):
        self.calls.append(("build_images", ()))

    def get_alpha_image(self):
        return self.alpha

    def get_nlinks_image(self):
        return self.nlinks

    def get_tlinks_image(self):
        return self.tlinks

    def get_gmms_image(self):
        return self.gmms

    def call_names(self):
        return [name for name, _ in self.calls]


# ============================================================================
# Image Fixtures
# ============================================================================

@pytest.fixture
def sample_pixels():
    """80x60 RGB image: noisy blue background with a red block in the middle."""
    rng = np.random.default_rng(0)
    img = np.empty((60, 80, 3), dtype=np.float64)
    img[:] = (30, 40, 200)
    img[20:40, 25:55] = (220, 30, 30)
    img += rng.normal(0, 6, img.shape)
    return np.clip(img, 0, 255).astype(np.uint8)


@pytest.fixture
def sample_image(sample_pixels):
    """Float color buffer of sample_pixels."""
    return sample_pixels.astype(np.float64) / 255.0


# ============================================================================
# Controller Fixtures
# ============================================================================

@pytest.fixture
def recording_engine():
    """The RecordingEngine class, for tests that build engines themselves."""
    return RecordingEngine


@pytest.fixture
def settings():
    return StudioSettings()


@pytest.fixture
def engines():
    """Every RecordingEngine created by the controller fixture, in order."""
    return []


@pytest.fixture
def controller(settings, engines):
    """Controller wired to RecordingEngine, no image loaded."""
    def factory(image):
        engine = RecordingEngine(image)
        engines.append(engine)
        return engine
    return SessionController(settings=settings, engine_factory=factory)


@pytest.fixture
def loaded_controller(controller, sample_pixels):
    controller.load_image(sample_pixels)
    return controller


@pytest.fixture(autouse=True)
def clear_profiler():
    PerformanceProfiler.get_instance().clear()
    yield
    PerformanceProfiler.get_instance().clear()
