import cv2
import json
import numpy as np

from concurrent.futures import ThreadPoolExecutor, wait
from cover_scanner import ModuleLogger, Utils
from cover_scanner.core.preprocessing      import ImageFilterBackend, PreprocessingPipeline
from cover_scanner.core.region_detector    import RegionDetector, YOLORegionDetector
from cover_scanner.core.region_geometry    import (
    BoundingBox,
    DetectedRegion,
    crop_image,
    expand_box,
    strategy_from_config,
    to_pixel_rect
)
from cover_scanner.core.text_cleanup       import TextCleanupChain
from cover_scanner.core.text_recognizer    import EasyOCRRecognizer, RecognitionOptions, TextRecognizer
from cover_scanner.core.text_reconstructor import reconstruct_reading_order
from cover_scanner.core.utils              import CropError, DecodeFailed, ExternalServiceFailed
from dataclasses       import dataclass, field
from enum              import Enum
from omegaconf         import OmegaConf
from pathlib           import Path
from PIL               import Image, ImageDraw, ImageFont
from typing            import Any

logger = ModuleLogger('orchestrator')()

# -------------------- Data Classes --------------------

class ScanStatus(Enum):
    """
    Outcome of one scan, with the message shown to the user.
    """
    OK             = 'ok'
    NO_MATCH       = 'no_match'
    NO_TEXT        = 'no_text'
    SERVICE_FAILED = 'service_failed'

    @property
    def message(self) -> str:
        return {
            ScanStatus.OK             : 'Text recognized',
            ScanStatus.NO_MATCH       : 'No title or author region found',
            ScanStatus.NO_TEXT        : 'No text recognized',
            ScanStatus.SERVICE_FAILED : 'Text recognition is unavailable'
        }[self]

@dataclass
class RegionResult:
    """
    Cleaned text of one detected region, keyed by the region's detection order.
    """
    index : int
    text  : str
    box   : BoundingBox | None = None

    def to_dict(self) -> dict:
        return {
            'index' : self.index,
            'text'  : self.text,
            'box'   : [self.box.x, self.box.y, self.box.width, self.box.height] if self.box else None
        }

@dataclass
class ScanResult:
    """
    Final text of a scan. When nothing usable was read, text is empty and status says why.
    """
    status  : ScanStatus
    text    : str                = ''
    regions : list[RegionResult] = field(default_factory = list)

    @property
    def message(self) -> str:
        return self.text if self.status is ScanStatus.OK else self.status.message

    def to_dict(self) -> dict:
        return {
            'status'  : self.status.value,
            'message' : self.message,
            'text'    : self.text,
            'regions' : [region.to_dict() for region in self.regions]
        }

# -------------------- CoverTextExtractor Class --------------------

class CoverTextExtractor:
    """
    Reads title and author text from a cover photo.

    Detected regions carrying the target label are recognized concurrently, one task per region,
    and merged once every task has finished or the deadline has passed. Regions are merged in
    detection order whatever order their tasks finish in; a region that fails contributes nothing.
    """

    # -------------------- Class Constants --------------------

    PROJECT_ROOT = Utils.find_root('pyproject.toml')
    CONFIG_FILE  = PROJECT_ROOT / 'cover_scanner' / 'config' / 'extractor.yml'
    MODELS_DIR   = PROJECT_ROOT / 'cover_scanner' / 'models'
    OUTPUT_FILE  = PROJECT_ROOT / 'cover_scanner' / 'data' / 'results' / 'extractor.json'
    BOX_COLOR    = (0, 255, 0)

    # -------------------- Initialization --------------------

    def __init__(
        self,
        detector        : RegionDetector | None     = None,
        recognizer      : TextRecognizer | None     = None,
        backend         : ImageFilterBackend | None = None,
        config_file     : Path | None               = None,
        config_override : dict | None               = None,
        output_json     : bool                      = False,
        output_file     : Path | None               = None,
        output_images   : bool                      = False,
        image_dir       : Path | None               = None
    ):
        """
        Initializes the CoverTextExtractor instance.

        Args:
            detector        : Region detector (defaults to the configured YOLO model)
            recognizer      : Text recognizer (defaults to EasyOCR with the configured languages)
            backend         : Filter backend for the preprocessing stages
            config_file     : Optional custom path to extractor.yml
            config_override : Optional overrides merged over the file configuration
            output_json     : Whether to save scan results to a JSON file
            output_file     : Path of the JSON results file
            output_images   : Whether to save annotated images
            image_dir       : Directory for annotated images
        """
        base_config = OmegaConf.load(config_file or self.CONFIG_FILE)
        self.config = OmegaConf.merge(base_config, OmegaConf.create(config_override)) if config_override else base_config

        self.output_json   = output_json
        self.output_file   = output_file or self.OUTPUT_FILE
        self.output_images = output_images
        self.image_dir     = image_dir

        if self.output_images and self.image_dir is not None:
            self.image_dir.mkdir(parents = True, exist_ok = True)

        self.target_label = self.config.target_label
        self.max_workers  = int(self.config.orchestrator.max_workers)
        self.task_timeout = self.config.orchestrator.get('task_timeout')
        self.strategy     = strategy_from_config(OmegaConf.to_container(self.config.expansion, resolve = True))
        self.pipeline     = PreprocessingPipeline.from_config(self.config.steps, backend = backend)
        self.options      = RecognitionOptions.from_config(self.config.easyocr)
        self.cleanup      = TextCleanupChain.from_config(
            cleanup_config = OmegaConf.to_container(self.config.cleanup, resolve = True),
            vocabulary     = self.options.custom_words
        )

        self.detector   = detector or YOLORegionDetector(
            model_path           = self.MODELS_DIR / self.config.detector.model_file,
            labels               = list(self.config.detector.labels),
            input_size           = self.config.detector.input_size,
            confidence_threshold = self.config.detector.confidence_threshold,
            iou_threshold        = self.config.detector.iou_threshold
        )
        self.recognizer = recognizer or EasyOCRRecognizer(
            languages    = self.options.languages,
            gpu_enabled  = self.config.easyocr.gpu_enabled,
            lock_timeout = self.config.easyocr.get('lock_timeout')
        )

    # -------------------- Scan Operations --------------------

    def extract_text(self, image: np.ndarray, image_name: str | None = None) -> ScanResult:
        """
        Extracts cleaned title/author text from a decoded cover photo.

        Args:
            image      : Cover photo (BGR)
            image_name : Optional name used for annotated output images

        Returns:
            ScanResult: Joined region texts, or an empty result with the reason in its status
        """
        try:
            regions = self.detector.detect(image)
        except ExternalServiceFailed as e:
            logger.error(f"Region detection failed: {e}")
            return ScanResult(status = ScanStatus.SERVICE_FAILED)

        targets = [region for region in regions if region.label == self.target_label]
        logger.info(f"{len(targets)} of {len(regions)} detected regions carry label '{self.target_label}'.")
        if not targets:
            return ScanResult(status = ScanStatus.NO_MATCH)

        region_results = self.recognize_regions(image = image, regions = targets)
        texts          = [region_result.text for region_result in region_results if region_result.text]
        scan_result    = ScanResult(
            status  = ScanStatus.OK if texts else ScanStatus.NO_TEXT,
            text    = '\n'.join(texts),
            regions = region_results
        )

        if self.output_images and self.image_dir is not None and image_name:
            annotated_image = self.annotate_image(image = image, region_results = region_results)
            self.save_annotated_image(annotated_image = annotated_image, image_name = image_name)

        return scan_result

    def extract_text_from_bytes(self, image_bytes: bytes, image_name: str | None = None) -> ScanResult:
        """
        Raises:
            DecodeFailed: If the bytes cannot be decoded.
        """
        return self.extract_text(image = Utils.decode_image(image_bytes), image_name = image_name)

    def extract_text_from_file(self, image_path: Path | str) -> ScanResult:
        """
        Raises:
            DecodeFailed: If the file is missing or cannot be decoded.
        """
        image_path = Path(image_path)
        return self.extract_text(image = Utils.load_image(image_path), image_name = image_path.name)

    def run_headless_mode(self, image_files: list[Path]) -> dict[str, dict]:
        """
        Scans several cover photos one after another.

        Args:
            image_files : List of image file paths to process

        Returns:
            dict: Scan results keyed by image file name; undecodable files are skipped
        """
        if not image_files:
            raise ValueError("No image files provided")

        results = {}
        for image_path in image_files:
            try:
                results[image_path.name] = self.extract_text_from_file(image_path = image_path).to_dict()
            except DecodeFailed as e:
                logger.error(f"Failed to process image {image_path.name}: {e}")
                continue

        if self.output_json:
            self.save_to_json(results)

        return results

    # -------------------- Region Operations --------------------

    def recognize_regions(self, image: np.ndarray, regions: list[DetectedRegion]) -> list[RegionResult]:
        """
        Recognizes every region concurrently and waits for all of them.

        Args:
            image   : Full cover photo
            regions : Regions to recognize, in detection order

        Returns:
            list: One RegionResult per region, in detection order
        """
        # Regions can queue behind max_workers or a shared recognizer lock, so the scan
        # deadline grants task_timeout per region rather than per scan.
        scan_timeout = self.task_timeout * len(regions) if self.task_timeout else None
        results      = [None] * len(regions)
        executor     = ThreadPoolExecutor(
            max_workers        = max(1, min(self.max_workers, len(regions))),
            thread_name_prefix = 'region'
        )

        try:
            future_to_index = {
                executor.submit(self.process_region, image, region, index): index
                for index, region in enumerate(regions)
            }
            done, not_done = wait(future_to_index, timeout = scan_timeout)

            for future in not_done:
                future.cancel()
                logger.warning(
                    f"Region {future_to_index[future]} did not finish within the {scan_timeout:.1f}s scan deadline."
                )

            for future in done:
                index = future_to_index[future]
                try:
                    results[index] = future.result()
                except Exception as e:
                    logger.error(f"Region {index} generated an exception: {e}")

        finally:
            executor.shutdown(wait = False, cancel_futures = True)

        return [
            result if result is not None else RegionResult(index = index, text = '')
            for index, result in enumerate(results)
        ]

    def process_region(self, image: np.ndarray, region: DetectedRegion, index: int) -> RegionResult:
        """
        Expands, crops, enhances, recognizes and cleans a single region.

        Args:
            image  : Full cover photo
            region : Region to read
            index  : Detection order of the region

        Returns:
            RegionResult: Cleaned text, empty if the region could not be read
        """
        image_height, image_width = image.shape[:2]
        expanded_box = expand_box(box = region.box, strategy = self.strategy, region = region)
        pixel_rect   = to_pixel_rect(box = expanded_box, image_width = image_width, image_height = image_height)

        try:
            cropped_image = crop_image(image = image, rect = pixel_rect)
        except CropError as e:
            logger.debug(f"Skipping region {index}: {e}")
            return RegionResult(index = index, text = '', box = expanded_box)

        processed_image = self.pipeline.run(cropped_image)
        try:
            fragments = self.recognizer.recognize(processed_image, self.options)
        except ExternalServiceFailed as e:
            logger.warning(f"Recognition failed for region {index}: {e}")
            return RegionResult(index = index, text = '', box = expanded_box)

        raw_text   = reconstruct_reading_order(fragments)
        clean_text = self.cleanup.clean(raw_text)
        logger.info(f"Region {index}: {len(fragments)} fragments, text {clean_text!r}")
        return RegionResult(index = index, text = clean_text, box = expanded_box)

    # -------------------- Output Methods --------------------

    def annotate_image(self, image: np.ndarray, region_results: list[RegionResult]) -> np.ndarray:
        """
        Draws each region's crop rectangle and recognized text onto a copy of the image.
        """
        image_height, image_width = image.shape[:2]
        annotated_image = image.copy()

        for region_result in region_results:
            if region_result.box is None:
                continue
            rect = to_pixel_rect(region_result.box, image_width, image_height)
            cv2.rectangle(
                annotated_image,
                (rect.x, rect.y),
                (rect.x + rect.width, rect.y + rect.height),
                self.BOX_COLOR,
                2
            )
            if region_result.text:
                annotated_image = self.draw_text(
                    position     = (rect.x + rect.width // 2, max(rect.y - 10, 0)),
                    source_image = annotated_image,
                    text         = region_result.text.replace('\n', ' / ')
                )

        return annotated_image

    def draw_text(
        self,
        position     : tuple[int, int],
        source_image : np.ndarray,
        text         : str,
        opacity      : float = 0.75
    ) -> np.ndarray:
        """
        Draws white text on a semi-transparent box centered at position.
        A configured TrueType font is needed to render Hangul.
        """
        pil_image  = Image.fromarray(cv2.cvtColor(source_image, cv2.COLOR_BGR2RGB))
        text_layer = Image.new('RGBA', pil_image.size, (0, 0, 0, 0))
        draw       = ImageDraw.Draw(text_layer)

        font_file = self.config.get('annotation', {}).get('font_file')
        font      = ImageFont.truetype(font_file, 20) if font_file else ImageFont.load_default()
        bbox      = draw.textbbox((0, 0), text, font = font)
        text_width, text_height = bbox[2] - bbox[0], bbox[3] - bbox[1]

        box_padding = 4
        center_x, center_y = position
        text_x = max(box_padding, min(source_image.shape[1] - text_width - box_padding, center_x - text_width // 2))
        text_y = max(box_padding, min(source_image.shape[0] - text_height - box_padding, center_y - text_height // 2))

        draw.rectangle(
            (text_x - box_padding, text_y - box_padding, text_x + text_width + box_padding, text_y + text_height + box_padding),
            fill = (0, 0, 0, int(255 * opacity))
        )
        draw.text((text_x, text_y), text, font = font, fill = (255, 255, 255, 255))

        annotated_image = Image.alpha_composite(pil_image.convert('RGBA'), text_layer)
        return cv2.cvtColor(np.array(annotated_image), cv2.COLOR_RGBA2BGR)

    def save_annotated_image(self, annotated_image: np.ndarray, image_name: str):
        """
        Saves the annotated image to the image directory.
        """
        if self.image_dir is not None:
            output_path = self.image_dir / image_name
            cv2.imwrite(str(output_path), annotated_image)
            logger.info(f"Annotated image saved to {output_path}")

    def save_to_json(self, results: dict[str, Any]):
        """
        Saves scan results keyed by image name to the output file.
        """
        self.output_file.parent.mkdir(parents = True, exist_ok = True)
        with self.output_file.open('w', encoding = 'utf-8') as f:
            json.dump(results, f, ensure_ascii = False, indent = 4)
        logger.info(f"Scan results saved to {self.output_file}")
