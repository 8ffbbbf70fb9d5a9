"""
Cover similarity scoring.
"""

from .similarity import (
    FORMULAS,
    LENIENT,
    STRICT,
    AffineFormula,
    ImageDescriptor,
    SimilarityResult,
    score
)
from .descriptor import DescriptorExtractor, OnnxDescriptorExtractor
from .comparator import CoverComparator

__all__ = [
    'AffineFormula',
    'CoverComparator',
    'DescriptorExtractor',
    'FORMULAS',
    'ImageDescriptor',
    'LENIENT',
    'OnnxDescriptorExtractor',
    'STRICT',
    'SimilarityResult',
    'score'
]
