import numpy as np
import threading

from cover_scanner import ModuleLogger
from cover_scanner.core.region_geometry    import BoundingBox
from cover_scanner.core.text_reconstructor import TextFragment
from cover_scanner.core.utils              import RecognitionFailed
from dataclasses       import dataclass, field
from typing            import Protocol

logger = ModuleLogger('recognizer')()

@dataclass(frozen = True)
class RecognitionOptions:
    """
    Recognition settings handed to the recognizer unchanged.

    Attributes:
        languages       : Language codes to recognize
        min_text_height : Smallest fragment height kept, as a share of the image height
        custom_words    : Vocabulary hint list of words expected on covers
    """
    languages       : tuple[str, ...] = ('ko', 'en')
    min_text_height : float           = 0.002
    custom_words    : tuple[str, ...] = field(default_factory = tuple)

    @classmethod
    def from_config(cls, easyocr_config) -> 'RecognitionOptions':
        return cls(
            languages       = tuple(easyocr_config.get('language_list', cls.languages)),
            min_text_height = float(easyocr_config.get('min_text_height', cls.min_text_height)),
            custom_words    = tuple(easyocr_config.get('custom_words') or ())
        )

class TextRecognizer(Protocol):
    """
    Recognizes text fragments in an image.
    """

    def recognize(self, image: np.ndarray, options: RecognitionOptions) -> list[TextFragment]:
        """
        Raises RecognitionFailed if recognition cannot run.
        """
        ...

# -------------------- Result Conversion --------------------

def fragments_from_easyocr(
    ocr_results     : list[tuple],
    image_shape     : tuple[int, ...],
    min_text_height : float = 0.0
) -> list[TextFragment]:
    """
    Converts EasyOCR (points, text, confidence) tuples to fragments in normalized top-left space.

    Args:
        ocr_results     : Raw EasyOCR results with four corner points per fragment
        image_shape     : Shape of the recognized image
        min_text_height : Fragments shorter than this share of the image height are dropped

    Returns:
        list: TextFragment instances in recognizer order
    """
    image_height, image_width = image_shape[:2]
    fragments = []

    for points, text, confidence in ocr_results:
        points = np.asarray(points, dtype = np.float32)
        x1, y1 = points.min(axis = 0)
        x2, y2 = points.max(axis = 0)

        box = BoundingBox.from_corners(
            float(x1) / image_width,  float(y1) / image_height,
            float(x2) / image_width,  float(y2) / image_height
        )
        if box.height < min_text_height:
            logger.debug(f"Dropped fragment '{text}' below minimum text height ({box.height:.4f}).")
            continue

        fragments.append(TextFragment(text = text, box = box, confidence = float(confidence)))

    return fragments

# -------------------- EasyOCRRecognizer Class --------------------

class EasyOCRRecognizer:
    """
    Text recognizer backed by an EasyOCR Reader.
    """

    def __init__(
        self,
        languages    : list[str] | tuple[str, ...] = ('ko', 'en'),
        gpu_enabled  : bool = False,
        decoder      : str  = 'greedy',
        lock_timeout : float | None = None
    ):
        """
        Args:
            languages    : Languages to load into the Reader
            gpu_enabled  : Whether EasyOCR may use the GPU
            decoder      : EasyOCR decoder ('greedy', 'beamsearch' or 'wordbeamsearch')
            lock_timeout : Seconds a region waits for the shared Reader (None waits indefinitely)
        """
        from easyocr import Reader

        self.languages    = tuple(languages)
        self.decoder      = decoder
        self.reader       = Reader(lang_list = list(self.languages), gpu = gpu_enabled)
        self.lock         = threading.Lock()
        self.lock_timeout = lock_timeout

    def recognize(self, image: np.ndarray, options: RecognitionOptions) -> list[TextFragment]:
        """
        Extracts text fragments from a cropped region.

        Raises:
            RecognitionFailed: If the options ask for unloaded languages, the Reader stays busy
                               past lock_timeout, or EasyOCR fails.
        """
        missing_languages = set(options.languages) - set(self.languages)
        if missing_languages:
            raise RecognitionFailed(f"Languages not loaded in reader: {sorted(missing_languages)}")

        rgb_image = image[..., ::-1] if image.ndim == 3 else image

        # The Reader's torch models are shared between worker threads.
        if not self.lock.acquire(timeout = -1 if self.lock_timeout is None else self.lock_timeout):
            raise RecognitionFailed(f"EasyOCR reader still busy after {self.lock_timeout}s")
        try:
            ocr_results = self.reader.readtext(np.ascontiguousarray(rgb_image), decoder = self.decoder)
        except Exception as e:
            raise RecognitionFailed(f"EasyOCR failed: {e}") from e
        finally:
            self.lock.release()

        return fragments_from_easyocr(
            ocr_results     = ocr_results,
            image_shape     = image.shape,
            min_text_height = options.min_text_height
        )
