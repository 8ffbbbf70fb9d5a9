import cv2
import numpy       as np
import onnxruntime as ort

from cover_scanner import ModuleLogger
from cover_scanner.core.cover_comparator.similarity import ImageDescriptor
from cover_scanner.core.utils                       import ExtractionFailed
from pathlib           import Path
from typing            import Protocol

logger = ModuleLogger('descriptor')()

class DescriptorExtractor(Protocol):
    """
    Produces a comparable descriptor for an image.
    """

    def extract(self, image: np.ndarray) -> ImageDescriptor:
        """
        Raises ExtractionFailed if no descriptor can be produced.
        """
        ...

# -------------------- OnnxDescriptorExtractor Class --------------------

class OnnxDescriptorExtractor:
    """
    Runs an image-embedding model through ONNX Runtime and uses its output as the descriptor.
    """

    IMAGENET_MEAN = np.array([0.485, 0.456, 0.406], dtype = np.float32)
    IMAGENET_STD  = np.array([0.229, 0.224, 0.225], dtype = np.float32)

    def __init__(
        self,
        model_path : Path,
        input_size : int  = 224,
        normalize  : bool = True
    ):
        """
        Args:
            model_path : Path to the ONNX embedding model
            input_size : Square input resolution expected by the model
            normalize  : Whether to L2-normalize descriptors
        """
        self.model_path  = Path(model_path)
        self.input_size  = input_size
        self.normalize   = normalize

        if not self.model_path.is_file():
            raise FileNotFoundError(f"Descriptor model not found: {self.model_path}")

        self.ort_session = ort.InferenceSession(str(self.model_path))
        self.input_name  = self.ort_session.get_inputs()[0].name
        logger.debug(f"Descriptor model loaded from: {self.model_path}")

    def preprocess(self, image: np.ndarray) -> np.ndarray:
        """
        Converts a BGR image into a normalized NCHW float tensor.
        """
        if image.ndim == 2:
            image = cv2.cvtColor(image, cv2.COLOR_GRAY2BGR)
        image_rgb = cv2.cvtColor(image, cv2.COLOR_BGR2RGB)
        img       = cv2.resize(image_rgb, (self.input_size, self.input_size))
        img       = (img.astype(np.float32) / 255.0 - self.IMAGENET_MEAN) / self.IMAGENET_STD
        img       = np.transpose(img, (2, 0, 1))
        return np.expand_dims(img, axis = 0).astype(np.float32)

    def extract(self, image: np.ndarray) -> ImageDescriptor:
        """
        Computes the descriptor of an image.

        Raises:
            ExtractionFailed: If the image is empty or inference fails.
        """
        if image is None or image.size == 0:
            raise ExtractionFailed("Cannot describe an empty image")

        try:
            outputs = self.ort_session.run(None, {self.input_name: self.preprocess(image)})
        except Exception as e:
            raise ExtractionFailed(f"Descriptor inference failed: {e}") from e

        vector = np.asarray(outputs[0], dtype = np.float32).ravel()
        if self.normalize:
            norm = np.linalg.norm(vector)
            if norm == 0 or not np.isfinite(norm):
                raise ExtractionFailed("Descriptor model returned a degenerate vector")
            vector = vector / norm

        return ImageDescriptor(vector = vector)
