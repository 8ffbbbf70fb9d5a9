"""
Concurrent per-region recognition and ordered aggregation of cover text.
"""

from .orchestrator import CoverTextExtractor, RegionResult, ScanResult, ScanStatus

__all__ = ['CoverTextExtractor', 'RegionResult', 'ScanResult', 'ScanStatus']
