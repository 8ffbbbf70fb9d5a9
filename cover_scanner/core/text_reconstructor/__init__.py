"""
Reading-order reconstruction of recognized text fragments.
"""

from .reconstructor import LINE_RESOLUTION, TextFragment, group_lines, reconstruct_reading_order

__all__ = ['LINE_RESOLUTION', 'TextFragment', 'group_lines', 'reconstruct_reading_order']
