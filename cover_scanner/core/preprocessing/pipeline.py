import numpy as np

from cover_scanner import ModuleLogger, Utils
from cover_scanner.core.preprocessing.filters import ImageFilterBackend, OpenCVFilterBackend
from cover_scanner.core.preprocessing.stages  import PipelineStage, RotationParams, StageKind
from collections.abc   import Iterable, Mapping
from omegaconf         import DictConfig, OmegaConf
from pathlib           import Path

logger = ModuleLogger('pipeline')()

class PreprocessingPipeline:
    """
    Runs an ordered, immutable list of enhancement stages over an image.

    Stages run strictly in order, each consuming the previous stage's output. A stage that
    fails ends the run and the image produced so far is returned. Only decoding the input
    (run_bytes / run_file) can fail the whole pipeline.
    """

    def __init__(
        self,
        stages  : Iterable[PipelineStage] = (),
        backend : ImageFilterBackend | None = None
    ):
        """
        Args:
            stages  : Stages in execution order
            backend : Filter backend applying individual stages (defaults to OpenCVFilterBackend)
        """
        self.stages  = tuple(stages)
        self.backend = backend or OpenCVFilterBackend()

    @classmethod
    def from_config(
        cls,
        steps   : Mapping | DictConfig | None,
        backend : ImageFilterBackend | None = None
    ) -> 'PreprocessingPipeline':
        """
        Builds a pipeline from a 'steps' configuration mapping. Disabled steps are skipped and
        step names are resolved to typed stages here, so a bad configuration fails immediately.

        Args:
            steps   : Mapping of step name to {enabled, kind?, parameters}
            backend : Optional filter backend

        Returns:
            PreprocessingPipeline instance

        Raises:
            ValueError: If a step names an unknown stage or parameter
        """
        if isinstance(steps, DictConfig):
            steps = OmegaConf.to_container(steps, resolve = True)

        stages = [
            PipelineStage.from_definition(step_name, step_definition or {})
            for step_name, step_definition in (steps or {}).items()
            if (step_definition or {}).get('enabled', True)
        ]
        return cls(stages = stages, backend = backend)

    @property
    def stage_names(self) -> list[str]:
        return [stage.name for stage in self.stages]

    def run(self, image: np.ndarray) -> np.ndarray:
        """
        Applies every stage in order.

        Args:
            image : Input image (left unmodified)

        Returns:
            np.ndarray: Output of the last stage that succeeded
        """
        processed_image = image.copy()

        for stage in self.stages:
            try:
                processed_image = self.apply_stage(stage = stage, image = processed_image)
            except Exception as e:
                logger.warning(f"Stage '{stage.name}' failed, keeping output of previous stages: {e}")
                break

        return processed_image

    def apply_stage(self, stage: PipelineStage, image: np.ndarray) -> np.ndarray:
        """
        Applies one stage. Skew correction is a no-op when no rectangle is detected.
        """
        if stage.kind is StageKind.SKEW_CORRECTION:
            angle = self.backend.detect_rectangle(image, stage.params)
            if angle is None:
                logger.debug(f"No rectangle found for '{stage.name}'; passing image through.")
                return image

            stage = PipelineStage(
                name   = stage.name,
                kind   = StageKind.ROTATION,
                params = RotationParams(rotation_angle = angle)
            )

        output_image = self.backend.apply(stage, image)
        logger.debug(f"Applied '{stage.name}' step.")
        return output_image

    def run_bytes(self, image_bytes: bytes) -> np.ndarray:
        """
        Decodes and processes an encoded image.

        Raises:
            DecodeFailed: If the bytes cannot be decoded.
        """
        return self.run(Utils.decode_image(image_bytes))

    def run_file(self, image_path: Path | str) -> np.ndarray:
        """
        Loads and processes an image file.

        Raises:
            DecodeFailed: If the file is missing or cannot be decoded.
        """
        return self.run(Utils.load_image(image_path))
