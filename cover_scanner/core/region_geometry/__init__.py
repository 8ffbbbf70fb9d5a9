"""
Box expansion and crop-rectangle computation for detected regions.
"""

from .geometry import (
    BoundingBox,
    ConfidenceTierFactor,
    DetectedRegion,
    ExpansionStrategy,
    FixedFactor,
    LengthHintFactor,
    PixelRect,
    crop_image,
    expand_box,
    strategy_from_config,
    to_pixel_rect
)

__all__ = [
    'BoundingBox',
    'ConfidenceTierFactor',
    'DetectedRegion',
    'ExpansionStrategy',
    'FixedFactor',
    'LengthHintFactor',
    'PixelRect',
    'crop_image',
    'expand_box',
    'strategy_from_config',
    'to_pixel_rect'
]
