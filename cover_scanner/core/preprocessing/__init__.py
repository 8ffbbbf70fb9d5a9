"""
Ordered, fail-soft image enhancement before recognition and comparison.
"""

from .stages   import (
    STAGE_PARAMETERS,
    BrightnessParams,
    ClaheParams,
    ColorControlsParams,
    ContrastParams,
    DenoiseParams,
    GrayscaleParams,
    MorphologyParams,
    PipelineStage,
    RotationParams,
    ShadowRemovalParams,
    SharpenParams,
    SkewCorrectionParams,
    StageKind,
    ThresholdParams
)
from .filters  import ImageFilterBackend, OpenCVFilterBackend
from .pipeline import PreprocessingPipeline

__all__ = [
    'BrightnessParams',
    'ClaheParams',
    'ColorControlsParams',
    'ContrastParams',
    'DenoiseParams',
    'GrayscaleParams',
    'ImageFilterBackend',
    'MorphologyParams',
    'OpenCVFilterBackend',
    'PipelineStage',
    'PreprocessingPipeline',
    'RotationParams',
    'STAGE_PARAMETERS',
    'ShadowRemovalParams',
    'SharpenParams',
    'SkewCorrectionParams',
    'StageKind',
    'ThresholdParams'
]
