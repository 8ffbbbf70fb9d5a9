from collections.abc import Mapping
from dataclasses     import dataclass, fields
from enum            import Enum
from typing          import Any

# -------------------- Stage Kinds --------------------

class StageKind(Enum):
    """
    Every enhancement stage the pipeline knows how to order.
    The value is the step name used in the YAML configuration.
    """
    COLOR_CONTROLS  = 'color_controls'
    CONTRAST        = 'contrast_adjustment'
    BRIGHTNESS      = 'brightness_adjustment'
    CLAHE           = 'color_clahe'
    SHADOW_REMOVAL  = 'shadow_removal'
    GRAYSCALE       = 'grayscale'
    THRESHOLD       = 'adaptive_threshold'
    MORPHOLOGY      = 'morphology'
    DENOISE         = 'denoise'
    SHARPEN         = 'sharpen'
    ROTATION        = 'image_rotation'
    SKEW_CORRECTION = 'skew_correction'

# -------------------- Parameter Classes --------------------

@dataclass(frozen = True)
class ColorControlsParams:
    """
    Brightness is additive on the [0, 1] intensity scale; contrast and saturation are multipliers.
    """
    contrast   : float = 1.0
    brightness : float = 0.0
    saturation : float = 1.0

    def __post_init__(self):
        if self.contrast < 0 or self.saturation < 0:
            raise ValueError("Contrast and saturation must be non-negative")
        if not -1.0 <= self.brightness <= 1.0:
            raise ValueError("Brightness must lie in [-1, 1]")

@dataclass(frozen = True)
class ContrastParams:
    contrast_value : float = 1.0

    def __post_init__(self):
        if self.contrast_value < 0:
            raise ValueError("Contrast must be non-negative")

@dataclass(frozen = True)
class BrightnessParams:
    brightness_value : int = 0

@dataclass(frozen = True)
class ClaheParams:
    clahe_clip_limit : float = 2.0
    tile_grid_size   : int   = 8

    def __post_init__(self):
        if self.clahe_clip_limit <= 0 or self.tile_grid_size < 1:
            raise ValueError("CLAHE clip limit must be positive and tile grid size at least 1")

@dataclass(frozen = True)
class ShadowRemovalParams:
    shadow_kernel_size : int = 7
    shadow_median_blur : int = 21

    def __post_init__(self):
        if self.shadow_kernel_size < 1 or self.shadow_median_blur < 1:
            raise ValueError("Shadow removal kernel sizes must be at least 1")

@dataclass(frozen = True)
class GrayscaleParams:
    pass

@dataclass(frozen = True)
class ThresholdParams:
    block_size : int   = 31
    offset     : float = 10.0

    def __post_init__(self):
        if self.block_size < 3 or self.block_size % 2 == 0:
            raise ValueError("Threshold block size must be an odd number >= 3")

@dataclass(frozen = True)
class MorphologyParams:
    radius : int = 1

    def __post_init__(self):
        if self.radius < 0:
            raise ValueError("Morphology radius must be non-negative")

@dataclass(frozen = True)
class DenoiseParams:
    strength : float = 10.0

    def __post_init__(self):
        if self.strength < 0:
            raise ValueError("Denoise strength must be non-negative")

@dataclass(frozen = True)
class SharpenParams:
    radius : float = 1.0
    amount : float = 1.0

    def __post_init__(self):
        if self.radius <= 0 or self.amount < 0:
            raise ValueError("Sharpen radius must be positive and amount non-negative")

@dataclass(frozen = True)
class RotationParams:
    rotation_angle : float = 0.0

@dataclass(frozen = True)
class SkewCorrectionParams:
    """
    min_area_ratio : Smallest rectangle, as a share of the image area, accepted as the cover outline
    max_angle      : Detected skews beyond this many degrees are ignored
    """
    min_area_ratio : float = 0.2
    max_angle      : float = 30.0

    def __post_init__(self):
        if not 0 < self.min_area_ratio <= 1:
            raise ValueError("Minimum area ratio must lie in (0, 1]")

STAGE_PARAMETERS = {
    StageKind.COLOR_CONTROLS  : ColorControlsParams,
    StageKind.CONTRAST        : ContrastParams,
    StageKind.BRIGHTNESS      : BrightnessParams,
    StageKind.CLAHE           : ClaheParams,
    StageKind.SHADOW_REMOVAL  : ShadowRemovalParams,
    StageKind.GRAYSCALE       : GrayscaleParams,
    StageKind.THRESHOLD       : ThresholdParams,
    StageKind.MORPHOLOGY      : MorphologyParams,
    StageKind.DENOISE         : DenoiseParams,
    StageKind.SHARPEN         : SharpenParams,
    StageKind.ROTATION        : RotationParams,
    StageKind.SKEW_CORRECTION : SkewCorrectionParams
}

# -------------------- Pipeline Stage --------------------

@dataclass(frozen = True)
class PipelineStage:
    """
    One resolved enhancement stage: its kind plus the typed parameters for that kind.
    """
    name   : str
    kind   : StageKind
    params : Any

    def __post_init__(self):
        expected = STAGE_PARAMETERS[self.kind]
        if not isinstance(self.params, expected):
            raise TypeError(f"Stage '{self.name}' expects {expected.__name__}, got {type(self.params).__name__}")

    @classmethod
    def create(cls, kind: StageKind, name: str | None = None, **parameters) -> 'PipelineStage':
        """
        Builds a stage directly from keyword parameters.
        """
        return cls(name = name or kind.value, kind = kind, params = STAGE_PARAMETERS[kind](**parameters))

    @classmethod
    def from_definition(cls, step_name: str, step_definition: Mapping) -> 'PipelineStage':
        """
        Resolves a configuration step into a typed stage.

        Args:
            step_name       : Key of the step in the configuration
            step_definition : Mapping with optional 'kind' and 'parameters' entries;
                              each parameter is either a bare number or a mapping with a 'value'

        Returns:
            PipelineStage instance

        Raises:
            ValueError: If the kind or a parameter name is unknown, or a value is out of range
        """
        kind_name = step_definition.get('kind', step_name)
        try:
            kind = StageKind(kind_name)
        except ValueError:
            raise ValueError(f"Unknown preprocessing stage '{kind_name}'") from None

        param_class = STAGE_PARAMETERS[kind]
        known_names = {f.name for f in fields(param_class)}
        raw_params  = step_definition.get('parameters') or {}
        values      = {}

        for param_name, param_definition in raw_params.items():
            if param_name not in known_names:
                raise ValueError(f"Unknown parameter '{param_name}' for stage '{step_name}'")
            values[param_name] = (
                param_definition['value'] if isinstance(param_definition, Mapping)
                else param_definition
            )

        return cls(name = step_name, kind = kind, params = param_class(**values))
