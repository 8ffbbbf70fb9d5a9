import math
import numpy as np

from cover_scanner import ModuleLogger
from cover_scanner.core.utils import CropError, CropFailure
from dataclasses       import dataclass, replace

logger = ModuleLogger('geometry')()

# -------------------- Data Classes --------------------

@dataclass(frozen = True)
class BoundingBox:
    """
    Axis-aligned box in normalized unit-square coordinates.
    Detector output uses a bottom-left origin; fragment boxes from the recognizer adapter use top-left.
    """
    x      : float
    y      : float
    width  : float
    height : float

    @property
    def min_x(self) -> float:
        return self.x

    @property
    def min_y(self) -> float:
        return self.y

    @property
    def max_x(self) -> float:
        return self.x + self.width

    @property
    def max_y(self) -> float:
        return self.y + self.height

    @property
    def mid_x(self) -> float:
        return self.x + self.width / 2

    @property
    def mid_y(self) -> float:
        return self.y + self.height / 2

    def flipped_vertically(self) -> 'BoundingBox':
        """
        Returns the same box expressed with the opposite vertical origin.
        """
        return replace(self, y = 1 - self.y - self.height)

    @classmethod
    def from_corners(cls, x1: float, y1: float, x2: float, y2: float) -> 'BoundingBox':
        return cls(x = min(x1, x2), y = min(y1, y2), width = abs(x2 - x1), height = abs(y2 - y1))

@dataclass(frozen = True)
class PixelRect:
    """
    Integral crop rectangle in pixel space, origin top-left.
    """
    x      : int
    y      : int
    width  : int
    height : int

    @property
    def area(self) -> int:
        return self.width * self.height

    @property
    def is_empty(self) -> bool:
        return self.width <= 0 or self.height <= 0

@dataclass
class DetectedRegion:
    """
    A single region reported by the detector.

    Attributes:
        box         : Normalized bounding box (bottom-left origin)
        label       : Class label assigned by the detector
        confidence  : Detector confidence, if reported
        length_hint : Estimated number of characters in the region, if known
    """
    box         : BoundingBox
    label       : str
    confidence  : float | None = None
    length_hint : int   | None = None

# -------------------- Expansion Strategies --------------------

class ExpansionStrategy:
    """
    Maps a detected region to horizontal and vertical expansion factors.
    """

    def factors(self, region: DetectedRegion | None = None) -> tuple[float, float]:
        raise NotImplementedError

@dataclass(frozen = True)
class FixedFactor(ExpansionStrategy):
    factor : float = 1.5

    def factors(self, region: DetectedRegion | None = None) -> tuple[float, float]:
        return self.factor, self.factor

@dataclass(frozen = True)
class LengthHintFactor(ExpansionStrategy):
    """
    Short text gets a wider margin since glyphs at the box edge are a larger share of it.
    Each tier is (max_length, factor); lengths above every tier use the fallback.
    """
    tiers           : tuple[tuple[int, float], ...] = ((5, 2.2), (10, 1.8))
    fallback        : float = 1.5
    vertical_ratio  : float = 0.9

    def factors(self, region: DetectedRegion | None = None) -> tuple[float, float]:
        length   = region.length_hint if region is not None else None
        factor_x = self.fallback

        if length is not None:
            for max_length, factor in self.tiers:
                if length <= max_length:
                    factor_x = factor
                    break

        return factor_x, factor_x * self.vertical_ratio

@dataclass(frozen = True)
class ConfidenceTierFactor(ExpansionStrategy):
    """
    Less confident detections get a wider margin. Each tier is (min_confidence, factor),
    checked in order; confidences below every tier use the fallback.
    """
    tiers    : tuple[tuple[float, float], ...] = ((0.9, 1.2), (0.6, 1.5))
    fallback : float = 1.8

    def factors(self, region: DetectedRegion | None = None) -> tuple[float, float]:
        confidence = region.confidence if region is not None else None

        if confidence is not None:
            for min_confidence, factor in self.tiers:
                if confidence >= min_confidence:
                    return factor, factor

        return self.fallback, self.fallback

EXPANSION_STRATEGIES = {
    'fixed'      : FixedFactor,
    'length'     : LengthHintFactor,
    'confidence' : ConfidenceTierFactor
}

def strategy_from_config(config: dict) -> ExpansionStrategy:
    """
    Builds an expansion strategy from the 'expansion' section of the extractor config.

    Args:
        config : Mapping with a 'strategy' name and the strategy's own keys

    Returns:
        ExpansionStrategy instance

    Raises:
        ValueError: If the strategy name is unknown
    """
    name           = config.get('strategy', 'fixed')
    strategy_class = EXPANSION_STRATEGIES.get(name)
    if strategy_class is None:
        raise ValueError(f"Unknown expansion strategy '{name}'")

    if strategy_class is FixedFactor:
        return FixedFactor(factor = float(config.get('factor', 1.5)))

    if strategy_class is LengthHintFactor:
        logger.warning("Length expansion relies on region length hints; regions without one use the fallback factor.")

    kwargs = {}
    if 'tiers' in config:
        kwargs['tiers'] = tuple((tier[0], float(tier[1])) for tier in config['tiers'])
    if 'fallback' in config:
        kwargs['fallback'] = float(config['fallback'])
    if strategy_class is LengthHintFactor and 'vertical_ratio' in config:
        kwargs['vertical_ratio'] = float(config['vertical_ratio'])

    return strategy_class(**kwargs)

# -------------------- Geometry Operations --------------------

def _usable_factor(factor: float) -> bool:
    return math.isfinite(factor) and factor > 0

def expand_box(
    box      : BoundingBox,
    strategy : ExpansionStrategy | float,
    region   : DetectedRegion | None = None
) -> BoundingBox:
    """
    Grows a box around its own center so that glyphs straddling the detector's edge are kept.

    Args:
        box      : Box to expand
        strategy : Expansion strategy, or a bare factor applied to both axes
        region   : Region supplying hints (length, confidence) to hint-based strategies

    Returns:
        BoundingBox: Expanded box with x, y >= 0 and width, height <= 1.
    """
    if not isinstance(strategy, ExpansionStrategy):
        strategy = FixedFactor(factor = float(strategy))

    factor_x, factor_y = strategy.factors(region)
    if not (_usable_factor(factor_x) and _usable_factor(factor_y)):
        logger.debug(f"Degenerate expansion factors ({factor_x}, {factor_y}); box left unchanged.")
        return box

    new_width  = box.width  * factor_x
    new_height = box.height * factor_y
    new_x      = box.x - (new_width  - box.width)  / 2
    new_y      = box.y - (new_height - box.height) / 2

    # The far edge may still exceed 1; crop_image clips it to the image.
    return BoundingBox(
        x      = max(0.0, new_x),
        y      = max(0.0, new_y),
        width  = min(1.0, new_width),
        height = min(1.0, new_height)
    )

def to_pixel_rect(box: BoundingBox, image_width: int, image_height: int) -> PixelRect:
    """
    Converts a normalized bottom-left-origin box to a top-left-origin pixel rectangle.

    Args:
        box          : Normalized bounding box
        image_width  : Width of the source image in pixels
        image_height : Height of the source image in pixels

    Returns:
        PixelRect: Rounded rectangle; negative sizes are clamped to zero.
    """
    return PixelRect(
        x      = round(box.x * image_width),
        y      = round((1 - box.y - box.height) * image_height),
        width  = max(0, round(box.width  * image_width)),
        height = max(0, round(box.height * image_height))
    )

def crop_image(image: np.ndarray, rect: PixelRect) -> np.ndarray:
    """
    Crops the image to the part of the rectangle that lies inside it.

    Args:
        image : Source image (H x W or H x W x C)
        rect  : Pixel rectangle to crop

    Returns:
        np.ndarray: Copy of the cropped pixels

    Raises:
        CropError: If the rectangle has no area or lies entirely outside the image.
    """
    if rect.is_empty:
        raise CropError(CropFailure.OUT_OF_BOUNDS, f"Crop rectangle has no area: {rect}")

    image_height, image_width = image.shape[:2]
    x1 = max(0, rect.x)
    y1 = max(0, rect.y)
    x2 = min(image_width,  rect.x + rect.width)
    y2 = min(image_height, rect.y + rect.height)

    if x2 <= x1 or y2 <= y1:
        raise CropError(
            CropFailure.OUT_OF_BOUNDS,
            f"Crop rectangle {rect} lies outside the {image_width}x{image_height} image"
        )

    return image[y1:y2, x1:x2].copy()
