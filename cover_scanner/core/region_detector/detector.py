import cv2
import numpy       as np
import onnxruntime as ort

from cover_scanner import ModuleLogger
from cover_scanner.core.region_geometry import BoundingBox, DetectedRegion
from cover_scanner.core.utils           import DetectionFailed
from pathlib           import Path
from typing            import Protocol

logger = ModuleLogger('detector')()

class RegionDetector(Protocol):
    """
    Finds labelled regions of interest on a cover photo.
    """

    def detect(self, image: np.ndarray) -> list[DetectedRegion]:
        """
        Raises DetectionFailed if detection cannot run.
        """
        ...

# -------------------- Output Decoding --------------------

def decode_detections(
    output               : np.ndarray,
    labels               : list[str],
    input_size           : int   = 640,
    confidence_threshold : float = 0.3,
    iou_threshold        : float = 0.5
) -> list[DetectedRegion]:
    """
    Turns raw YOLOv8 detection output into regions in normalized bottom-left coordinates.

    Args:
        output               : Model output of shape [1, 4 + num_classes (+ extra), num_candidates]
        labels               : Class labels in model order
        input_size           : Square input resolution the boxes are expressed in
        confidence_threshold : Minimum class score kept
        iou_threshold        : IoU threshold for non-maximum suppression

    Returns:
        list: DetectedRegion instances, highest confidence first
    """
    predictions = np.squeeze(output, axis = 0).T
    num_classes = len(labels)

    if predictions.ndim != 2 or predictions.shape[1] < 4 + num_classes:
        logger.error(f"Unexpected detector output shape {output.shape} for {num_classes} labels.")
        return []

    class_scores = predictions[:, 4:4 + num_classes]
    class_ids    = np.argmax(class_scores, axis = 1)
    scores       = class_scores[np.arange(len(class_scores)), class_ids]

    cx, cy, w, h = (predictions[:, i] for i in range(4))
    pixel_boxes  = np.stack([cx - w / 2, cy - h / 2, w, h], axis = 1)

    indices = cv2.dnn.NMSBoxes(
        bboxes          = pixel_boxes.tolist(),
        scores          = scores.tolist(),
        score_threshold = confidence_threshold,
        nms_threshold   = iou_threshold
    )

    x_top, y_top, w, h = (pixel_boxes[:, i] / input_size for i in range(4))

    regions = []
    for i in np.array(indices).flatten():
        x1 = float(np.clip(x_top[i], 0, 1))
        y1 = float(np.clip(y_top[i], 0, 1))
        x2 = float(np.clip(x_top[i] + w[i], 0, 1))
        y2 = float(np.clip(y_top[i] + h[i], 0, 1))

        top_left_box = BoundingBox.from_corners(x1, y1, x2, y2)
        regions.append(DetectedRegion(
            box        = top_left_box.flipped_vertically(),
            label      = labels[int(class_ids[i])],
            confidence = float(scores[i])
        ))

    regions.sort(key = lambda region: region.confidence, reverse = True)
    return regions

# -------------------- YOLORegionDetector Class --------------------

class YOLORegionDetector:
    """
    YOLOv8 region detector running through ONNX Runtime.
    """

    def __init__(
        self,
        model_path           : Path,
        labels               : list[str],
        input_size           : int   = 640,
        confidence_threshold : float = 0.3,
        iou_threshold        : float = 0.5
    ):
        """
        Initializes the detector.

        Args:
            model_path           : Path to the ONNX model file
            labels               : Class labels in model order
            input_size           : Square model input resolution
            confidence_threshold : Confidence threshold for detections
            iou_threshold        : IOU threshold for NMS
        """
        self.model_path           = Path(model_path)
        self.labels               = list(labels)
        self.input_size           = input_size
        self.confidence_threshold = confidence_threshold
        self.iou_threshold        = iou_threshold

        if not self.model_path.is_file():
            raise FileNotFoundError(f"Detector model not found: {self.model_path}")

        self.ort_session          = ort.InferenceSession(str(self.model_path))
        self.input_name           = self.ort_session.get_inputs()[0].name
        logger.debug(f"Region detector loaded from: {self.model_path}")

    def preprocess(self, image: np.ndarray) -> np.ndarray:
        """
        Converts a BGR image into the model's input tensor.
        """
        image_rgb = cv2.cvtColor(image, cv2.COLOR_BGR2RGB)
        img       = cv2.resize(image_rgb, (self.input_size, self.input_size))
        img       = img.astype(np.float32) / 255.0
        img       = np.transpose(img, (2, 0, 1))
        return np.expand_dims(img, axis = 0)

    def detect(self, image: np.ndarray) -> list[DetectedRegion]:
        """
        Detects regions in the given image.

        Raises:
            DetectionFailed: If inference fails.
        """
        start = cv2.getTickCount()
        try:
            outputs = self.ort_session.run(None, {self.input_name: self.preprocess(image)})
        except Exception as e:
            raise DetectionFailed(f"Region detection failed: {e}") from e

        time_ms = (cv2.getTickCount() - start) / cv2.getTickFrequency() * 1000
        regions = decode_detections(
            output               = outputs[0],
            labels               = self.labels,
            input_size           = self.input_size,
            confidence_threshold = self.confidence_threshold,
            iou_threshold        = self.iou_threshold
        )
        logger.debug(f"Detected {len(regions)} regions in {time_ms:.2f} ms.")
        return regions
