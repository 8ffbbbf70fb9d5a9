"""
Noise removal and ordered corrections for recognized cover text.
"""

from .cleanup import (
    DUPLICATE_WORD_RULE,
    NOISE_PATTERNS,
    PARTICLE_SPACING_RULE,
    CorrectionRule,
    TextCleanupChain,
    default_rules
)

__all__ = [
    'CorrectionRule',
    'DUPLICATE_WORD_RULE',
    'NOISE_PATTERNS',
    'PARTICLE_SPACING_RULE',
    'TextCleanupChain',
    'default_rules'
]
