"""
Shared pytest fixtures for Cover Scanner tests.

Fixture Organization
--------------------
- **banded_image**: Synthetic cover with three horizontal gray bands
- **band_regions**: One detected region inside each band
- **fake_detector / fake_recognizer / fake_extractor**: Collaborator stand-ins
- **no_preprocessing**: Extractor override that disables every enhancement step

The recognizer fake tells regions apart by the gray level at the center of the
crop it receives, so results do not depend on the order worker threads run in.
"""

import threading
import time

import numpy as np
import pytest

from cover_scanner.core.cover_comparator   import ImageDescriptor
from cover_scanner.core.region_geometry    import BoundingBox, DetectedRegion
from cover_scanner.core.text_reconstructor import TextFragment
from cover_scanner.core.utils              import ExtractionFailed

BAND_VALUES  = (10, 20, 30)
TARGET_LABEL = 'titles-or-authors'

# ============================================================================
# Collaborator Fakes
# ============================================================================


class FakeDetector:
    """Returns fixed regions, or raises the given error."""

    def __init__(self, regions=None, error=None):
        self.regions = regions or []
        self.error = error

    def detect(self, image):
        if self.error is not None:
            raise self.error
        return list(self.regions)


class FakeRecognizer:
    """Responds per crop, keyed by the gray level at the crop's center.

    A response is a list of fragments, an exception to raise, or a
    (threading.Event, fragments) pair that blocks until the event is set.
    """

    def __init__(self, responses=None):
        self.responses = responses or {}
        self.calls = []
        self.lock = threading.Lock()

    def recognize(self, image, options):
        height, width = image.shape[:2]
        key = int(image[height // 2, width // 2, 0]) if image.ndim == 3 else int(image[height // 2, width // 2])

        with self.lock:
            self.calls.append(key)

        response = self.responses.get(key, [])
        if isinstance(response, Exception):
            raise response
        if isinstance(response, tuple):
            event, fragments = response
            event.wait(timeout=10)
            return fragments
        return response


class FakeDescriptorExtractor:
    """Returns a descriptor per image shape; shapes listed in failing raise ExtractionFailed."""

    def __init__(self, vectors, failing=(), delay=0.0):
        self.vectors = vectors
        self.failing = set(failing)
        self.delay = delay
        self.threads = set()

    def extract(self, image):
        self.threads.add(threading.get_ident())
        if self.delay:
            time.sleep(self.delay)
        shape = image.shape[:2]
        if shape in self.failing:
            raise ExtractionFailed(f"cannot describe image of shape {shape}")
        return ImageDescriptor(vector=self.vectors[shape])


# ============================================================================
# Image and Region Fixtures
# ============================================================================


@pytest.fixture
def banded_image() -> np.ndarray:
    """300x300 BGR image with rows 0-99, 100-199 and 200-299 at gray levels 10, 20, 30."""
    image = np.zeros((300, 300, 3), dtype=np.uint8)
    for band, value in enumerate(BAND_VALUES):
        image[band * 100:(band + 1) * 100] = value
    return image


@pytest.fixture
def band_regions() -> list[DetectedRegion]:
    """Regions centered in the top, middle and bottom bands (bottom-left origin)."""
    return [
        DetectedRegion(box=BoundingBox(0.1, 0.7, 0.8, 0.2), label=TARGET_LABEL, confidence=0.9),
        DetectedRegion(box=BoundingBox(0.1, 0.4, 0.8, 0.2), label=TARGET_LABEL, confidence=0.8),
        DetectedRegion(box=BoundingBox(0.1, 0.1, 0.8, 0.2), label=TARGET_LABEL, confidence=0.7),
    ]


@pytest.fixture
def textured_image() -> np.ndarray:
    """Noisy BGR image with a bright rectangle, for running real OpenCV stages."""
    rng = np.random.default_rng(seed=7)
    image = rng.integers(0, 60, size=(120, 160, 3), dtype=np.uint8)
    image[30:90, 40:120] = 220
    return image


def fragment(text: str, x: float, y: float, width: float = 0.1, height: float = 0.05) -> TextFragment:
    """Build a fragment from its top-left corner in normalized coordinates."""
    return TextFragment(text=text, box=BoundingBox(x, y, width, height))


@pytest.fixture
def make_fragment():
    return fragment


# ============================================================================
# Collaborator Fixtures
# ============================================================================


@pytest.fixture
def fake_detector():
    return FakeDetector


@pytest.fixture
def fake_recognizer():
    return FakeRecognizer


@pytest.fixture
def fake_extractor():
    return FakeDescriptorExtractor


@pytest.fixture
def no_preprocessing() -> dict:
    """Extractor override disabling every configured enhancement step."""
    steps = ['skew_correction', 'color_clahe', 'contrast_adjustment', 'sharpen', 'shadow_removal', 'denoise']
    return {'steps': {name: {'enabled': False} for name in steps}}
