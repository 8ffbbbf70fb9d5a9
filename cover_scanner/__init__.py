"""
Cover Scanner
Compares book cover photos and reads title and author text from them.
"""

__version__ = '0.1.0'

from cover_scanner.core.utils              import Utils
from cover_scanner.core.module_logger      import ModuleLogger
from cover_scanner.core.region_geometry    import BoundingBox, DetectedRegion, PixelRect, expand_box, to_pixel_rect
from cover_scanner.core.preprocessing      import PreprocessingPipeline
from cover_scanner.core.cover_comparator   import CoverComparator, SimilarityResult
from cover_scanner.core.text_reconstructor import TextFragment, reconstruct_reading_order
from cover_scanner.core.text_cleanup       import TextCleanupChain
from cover_scanner.core.scan_orchestrator  import CoverTextExtractor, ScanResult, ScanStatus

__all__ = [
    'Utils',
    'ModuleLogger',
    'BoundingBox',
    'DetectedRegion',
    'PixelRect',
    'expand_box',
    'to_pixel_rect',
    'PreprocessingPipeline',
    'CoverComparator',
    'SimilarityResult',
    'TextFragment',
    'reconstruct_reading_order',
    'TextCleanupChain',
    'CoverTextExtractor',
    'ScanResult',
    'ScanStatus'
]
