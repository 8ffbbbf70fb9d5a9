"""
Exception hierarchy shared by the scanner modules.

Only DecodeFailed is meant to reach callers of the top-level operations; the
remaining failures are absorbed by the component that observes them and
turned into empty or sentinel results.
"""

from enum import Enum

class CoverScannerError(Exception):
    """
    Base class for all scanner errors.
    """

class DecodeFailed(CoverScannerError):
    """
    The input image could not be read or decoded. No output can be produced.
    """

# -------------------- External Service Failures --------------------

class ExternalServiceFailed(CoverScannerError):
    """
    A detector, recognizer, descriptor extractor or filter backend failed.
    """

class DetectionFailed(ExternalServiceFailed):
    pass

class RecognitionFailed(ExternalServiceFailed):
    pass

class ExtractionFailed(ExternalServiceFailed):
    pass

class DistanceComputationFailed(ExternalServiceFailed):
    pass

class StageFailed(ExternalServiceFailed):
    """
    A single preprocessing stage could not be applied.
    """

    def __init__(self, stage_name: str, reason: str):
        super().__init__(f"Stage '{stage_name}' failed: {reason}")
        self.stage_name = stage_name
        self.reason     = reason

# -------------------- Geometry Failures --------------------

class GeometryDegenerate(CoverScannerError):
    """
    A computed rectangle cannot be used for cropping.
    """

class CropFailure(Enum):
    OUT_OF_BOUNDS = 'out_of_bounds'

class CropError(GeometryDegenerate):

    def __init__(self, failure: CropFailure, message: str):
        super().__init__(message)
        self.failure = failure
