import math
import numpy as np

from cover_scanner.core.utils import DistanceComputationFailed
from dataclasses              import dataclass, field

# -------------------- Data Classes --------------------

@dataclass(frozen = True)
class AffineFormula:
    """
    Maps a descriptor distance d to a percentage: (a - d * b) * 100, clamped to [0, 100].
    Distances at or beyond a / b score 0.
    """
    a    : float
    b    : float
    name : str = 'custom'

    def __post_init__(self):
        if self.b <= 0:
            raise ValueError("Formula slope b must be positive")

    @property
    def zero_distance(self) -> float:
        return self.a / self.b

    @classmethod
    def from_name(cls, name: str) -> 'AffineFormula':
        try:
            return FORMULAS[name.lower()]
        except KeyError:
            raise ValueError(f"Unknown similarity formula '{name}'; expected one of {sorted(FORMULAS)}") from None

STRICT  = AffineFormula(a = 2.5, b = 2.5, name = 'strict')
LENIENT = AffineFormula(a = 2.2, b = 2.0, name = 'lenient')
FORMULAS = {
    'strict'  : STRICT,
    'lenient' : LENIENT
}

@dataclass
class ImageDescriptor:
    """
    Opaque feature vector summarizing an image; only its distance to another descriptor is used.
    """
    vector : np.ndarray = field(repr = False)

    def __post_init__(self):
        self.vector = np.asarray(self.vector, dtype = np.float32).ravel()

    def distance(self, other: 'ImageDescriptor') -> float:
        """
        Euclidean distance to another descriptor.

        Raises:
            DistanceComputationFailed: If the descriptors differ in length or the result is not finite.
        """
        if self.vector.shape != other.vector.shape:
            raise DistanceComputationFailed(
                f"Descriptor lengths differ: {self.vector.shape[0]} vs {other.vector.shape[0]}"
            )

        distance = float(np.linalg.norm(self.vector - other.vector))
        if not math.isfinite(distance):
            raise DistanceComputationFailed("Descriptor distance is not finite")
        return distance

@dataclass(frozen = True)
class SimilarityResult:
    """
    A similarity percentage in [0, 100], or the unavailable state (score is None).
    """
    score    : float | None
    distance : float | None = None

    @property
    def available(self) -> bool:
        return self.score is not None

    @classmethod
    def unavailable(cls) -> 'SimilarityResult':
        return cls(score = None)

    def __str__(self) -> str:
        return f"Similarity: {self.score:.1f}%" if self.available else "Comparison unavailable"

# -------------------- Scoring --------------------

def score(distance: float, formula: AffineFormula = STRICT) -> float:
    """
    Converts a descriptor distance into a similarity percentage.

    Args:
        distance : Non-negative distance between two descriptors
        formula  : Affine formula selected by the caller

    Returns:
        float: Similarity in [0, 100]; monotonically non-increasing in distance
    """
    return max(0.0, min(100.0, (formula.a - distance * formula.b) * 100))
