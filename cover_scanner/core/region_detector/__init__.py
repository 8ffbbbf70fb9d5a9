"""
Region detection on cover photos.
"""

from .detector import RegionDetector, YOLORegionDetector, decode_detections

__all__ = ['RegionDetector', 'YOLORegionDetector', 'decode_detections']
