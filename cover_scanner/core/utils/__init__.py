"""
Shared utilities and error types.
"""

from .errors import (
    CoverScannerError,
    CropError,
    CropFailure,
    DecodeFailed,
    DetectionFailed,
    DistanceComputationFailed,
    ExternalServiceFailed,
    ExtractionFailed,
    GeometryDegenerate,
    RecognitionFailed,
    StageFailed
)
from .utils  import Utils

__all__ = [
    'CoverScannerError',
    'CropError',
    'CropFailure',
    'DecodeFailed',
    'DetectionFailed',
    'DistanceComputationFailed',
    'ExternalServiceFailed',
    'ExtractionFailed',
    'GeometryDegenerate',
    'RecognitionFailed',
    'StageFailed',
    'Utils'
]
