import math
import numpy as np

from concurrent.futures import ThreadPoolExecutor
from cover_scanner import ModuleLogger, Utils
from cover_scanner.core.cover_comparator.descriptor import DescriptorExtractor, OnnxDescriptorExtractor
from cover_scanner.core.cover_comparator.similarity import AffineFormula, ImageDescriptor, SimilarityResult, score
from cover_scanner.core.preprocessing               import ImageFilterBackend, PreprocessingPipeline
from cover_scanner.core.utils                       import DecodeFailed, ExternalServiceFailed
from omegaconf         import OmegaConf
from pathlib           import Path

logger = ModuleLogger('comparator')()

class CoverComparator:
    """
    Estimates how visually similar two book covers are.

    Each comparison preprocesses both covers, extracts their descriptors concurrently and waits
    for both before scoring. Nothing is kept between comparisons.
    """

    # -------------------- Class Constants --------------------

    PROJECT_ROOT = Utils.find_root('pyproject.toml')
    CONFIG_FILE  = PROJECT_ROOT / 'cover_scanner' / 'config' / 'comparator.yml'
    MODELS_DIR   = PROJECT_ROOT / 'cover_scanner' / 'models'

    # -------------------- Initialization --------------------

    def __init__(
        self,
        extractor       : DescriptorExtractor | None = None,
        formula         : AffineFormula | str | None = None,
        config_file     : Path | None = None,
        config_override : dict | None = None,
        backend         : ImageFilterBackend | None = None
    ):
        """
        Initializes the CoverComparator instance.

        Args:
            extractor       : Descriptor extractor (defaults to the configured ONNX model)
            formula         : Scoring formula or its name (defaults to the configured one)
            config_file     : Optional custom path to comparator.yml
            config_override : Optional overrides merged over the file configuration
            backend         : Optional filter backend for the preprocessing stages
        """
        base_config = OmegaConf.load(config_file or self.CONFIG_FILE)
        self.config = OmegaConf.merge(base_config, OmegaConf.create(config_override)) if config_override else base_config

        formula        = formula or self.config.formula
        self.formula   = formula if isinstance(formula, AffineFormula) else AffineFormula.from_name(formula)
        self.pipeline  = PreprocessingPipeline.from_config(self.config.steps, backend = backend)
        self.extractor = extractor or OnnxDescriptorExtractor(
            model_path = self.MODELS_DIR / self.config.descriptor.model_file,
            input_size = self.config.descriptor.input_size,
            normalize  = self.config.descriptor.normalize
        )

    # -------------------- Comparison Operations --------------------

    def describe(self, image: np.ndarray) -> ImageDescriptor:
        """
        Preprocesses an image and extracts its descriptor.

        Raises:
            ExtractionFailed: If the extractor cannot describe the image.
        """
        return self.extractor.extract(self.pipeline.run(image))

    def compare_images(self, image1: np.ndarray, image2: np.ndarray) -> SimilarityResult:
        """
        Compares two decoded cover images.

        Args:
            image1 : First cover (BGR)
            image2 : Second cover (BGR)

        Returns:
            SimilarityResult: Percentage in [0, 100], or unavailable if either descriptor
                              or their distance could not be computed
        """
        try:
            with ThreadPoolExecutor(max_workers = 2, thread_name_prefix = 'descriptor') as executor:
                futures     = [executor.submit(self.describe, image) for image in (image1, image2)]
                descriptors = [future.result() for future in futures]

            distance = descriptors[0].distance(descriptors[1])

        except ExternalServiceFailed as e:
            logger.error(f"Cover comparison unavailable: {e}")
            return SimilarityResult.unavailable()

        if math.isnan(distance):
            logger.error("Cover comparison unavailable: distance is NaN")
            return SimilarityResult.unavailable()

        similarity = score(distance = distance, formula = self.formula)
        logger.info(f"Descriptor distance: {distance:.4f}, similarity ({self.formula.name}): {similarity:.2f}%")
        return SimilarityResult(score = similarity, distance = distance)

    def compare_bytes(self, image_bytes1: bytes, image_bytes2: bytes) -> SimilarityResult:
        """
        Compares two encoded covers; an undecodable cover makes the comparison unavailable.
        """
        try:
            image1 = Utils.decode_image(image_bytes1)
            image2 = Utils.decode_image(image_bytes2)
        except DecodeFailed as e:
            logger.error(f"Cover comparison unavailable: {e}")
            return SimilarityResult.unavailable()

        return self.compare_images(image1, image2)

    def compare_files(self, image_path1: Path | str, image_path2: Path | str) -> SimilarityResult:
        """
        Compares two cover image files.
        """
        try:
            image1 = Utils.load_image(image_path1)
            image2 = Utils.load_image(image_path2)
        except DecodeFailed as e:
            logger.error(f"Cover comparison unavailable: {e}")
            return SimilarityResult.unavailable()

        return self.compare_images(image1, image2)

    def compare_urls(self, url1: str, url2: str) -> SimilarityResult:
        """
        Downloads two covers concurrently and compares them.
        """
        timeout = self.config.get('download_timeout')
        try:
            with ThreadPoolExecutor(max_workers = 2, thread_name_prefix = 'download') as executor:
                futures = [executor.submit(Utils.fetch_image_bytes, url, timeout) for url in (url1, url2)]
                payloads = [future.result() for future in futures]
        except DecodeFailed as e:
            logger.error(f"Cover comparison unavailable: {e}")
            return SimilarityResult.unavailable()

        return self.compare_bytes(*payloads)

    def compare_sources(self, source1: Path | str, source2: Path | str) -> SimilarityResult:
        """
        Compares two covers given as file paths or URLs, in any combination.
        """
        if Utils.is_url(source1) and Utils.is_url(source2):
            return self.compare_urls(str(source1), str(source2))

        try:
            image1, image2 = (
                Utils.decode_image(Utils.fetch_image_bytes(str(source), self.config.get('download_timeout')))
                if Utils.is_url(source) else Utils.load_image(source)
                for source in (source1, source2)
            )
        except DecodeFailed as e:
            logger.error(f"Cover comparison unavailable: {e}")
            return SimilarityResult.unavailable()

        return self.compare_images(image1, image2)
