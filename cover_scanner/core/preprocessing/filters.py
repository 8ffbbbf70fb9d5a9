import cv2
import math
import numpy as np

from cover_scanner import ModuleLogger
from cover_scanner.core.preprocessing.stages import (
    PipelineStage,
    SkewCorrectionParams,
    StageKind
)
from cover_scanner.core.utils import StageFailed
from typing                   import Protocol

logger = ModuleLogger('filters')()

# -------------------- Backend Contract --------------------

class ImageFilterBackend(Protocol):
    """
    Applies single enhancement stages to images.
    """

    def apply(self, stage: PipelineStage, image: np.ndarray) -> np.ndarray:
        """
        Returns a new image; raises StageFailed if the stage cannot be applied.
        """
        ...

    def detect_rectangle(self, image: np.ndarray, params: SkewCorrectionParams) -> float | None:
        """
        Returns the skew angle in degrees of the dominant rectangle, or None if none is found.
        """
        ...

# -------------------- Helper Functions --------------------

def as_bgr(image: np.ndarray) -> np.ndarray:
    return cv2.cvtColor(image, cv2.COLOR_GRAY2BGR) if image.ndim == 2 else image

def as_gray(image: np.ndarray) -> np.ndarray:
    return cv2.cvtColor(image, cv2.COLOR_BGR2GRAY) if image.ndim == 3 else image

# -------------------- Processing Functions --------------------

def apply_color_controls(input_image: np.ndarray, params) -> np.ndarray:
    """
    Saturation, brightness and contrast in that order, on a [0, 1] float copy of the image.
    """
    image = as_bgr(input_image).astype(np.float32) / 255.0

    if params.saturation != 1.0:
        hsv_image = cv2.cvtColor(image, cv2.COLOR_BGR2HSV)
        hsv_image[:, :, 1] = np.clip(hsv_image[:, :, 1] * params.saturation, 0, 1)
        image = cv2.cvtColor(hsv_image, cv2.COLOR_HSV2BGR)

    image = image + params.brightness
    image = (image - 0.5) * params.contrast + 0.5
    return (np.clip(image, 0, 1) * 255).astype(np.uint8)

def adjust_contrast(input_image: np.ndarray, params) -> np.ndarray:
    return cv2.convertScaleAbs(input_image, alpha = params.contrast_value, beta = 0)

def adjust_brightness(input_image: np.ndarray, params) -> np.ndarray:
    hsv_image = cv2.cvtColor(as_bgr(input_image), cv2.COLOR_BGR2HSV)
    hsv_image[:, :, 2] = cv2.add(hsv_image[:, :, 2], int(params.brightness_value))
    return cv2.cvtColor(hsv_image, cv2.COLOR_HSV2BGR)

def apply_clahe(input_image: np.ndarray, params) -> np.ndarray:
    """
    Applies CLAHE to the lightness channel to reveal local text detail.
    """
    clahe = cv2.createCLAHE(
        clipLimit    = params.clahe_clip_limit,
        tileGridSize = (params.tile_grid_size, params.tile_grid_size)
    )
    if input_image.ndim == 2:
        return clahe.apply(input_image)

    lab_image = cv2.cvtColor(input_image, cv2.COLOR_BGR2LAB)
    lab_image[:, :, 0] = clahe.apply(lab_image[:, :, 0])
    return cv2.cvtColor(lab_image, cv2.COLOR_LAB2BGR)

def remove_shadow(input_image: np.ndarray, params) -> np.ndarray:
    """
    Divides out a blurred background estimate per channel.
    """
    kernel_size = int(params.shadow_kernel_size) | 1
    median_blur = int(params.shadow_median_blur) | 1
    kernel      = np.ones((kernel_size, kernel_size), np.uint8)
    channels    = list(cv2.split(as_bgr(input_image)))

    for i in range(len(channels)):
        dilated     = cv2.dilate(channels[i], kernel)
        bg_image    = cv2.medianBlur(dilated, median_blur)
        diff_image  = 255 - cv2.absdiff(channels[i], bg_image)
        channels[i] = cv2.normalize(diff_image, None, 0, 255, cv2.NORM_MINMAX)

    return cv2.merge(channels)

def to_grayscale(input_image: np.ndarray, params) -> np.ndarray:
    return as_gray(input_image)

def apply_adaptive_threshold(input_image: np.ndarray, params) -> np.ndarray:
    return cv2.adaptiveThreshold(
        as_gray(input_image),
        255,
        cv2.ADAPTIVE_THRESH_GAUSSIAN_C,
        cv2.THRESH_BINARY,
        int(params.block_size),
        params.offset
    )

def apply_morphology(input_image: np.ndarray, params) -> np.ndarray:
    """
    Closes small gaps inside strokes.
    """
    if params.radius == 0:
        return input_image
    size   = 2 * int(params.radius) + 1
    kernel = cv2.getStructuringElement(cv2.MORPH_ELLIPSE, (size, size))
    return cv2.morphologyEx(input_image, cv2.MORPH_CLOSE, kernel)

def apply_denoise(input_image: np.ndarray, params) -> np.ndarray:
    if input_image.ndim == 2:
        return cv2.fastNlMeansDenoising(input_image, None, h = params.strength)
    return cv2.fastNlMeansDenoisingColored(input_image, None, params.strength, params.strength)

def apply_sharpen(input_image: np.ndarray, params) -> np.ndarray:
    """
    Unsharp mask.
    """
    blurred = cv2.GaussianBlur(input_image, (0, 0), sigmaX = params.radius)
    return cv2.addWeighted(input_image, 1.0 + params.amount, blurred, -params.amount, 0)

def rotate_image(input_image: np.ndarray, params) -> np.ndarray:
    """
    Quarter turns are exact; other angles rotate about the center, padding with the border color.
    """
    angle = params.rotation_angle
    if angle % 360 == 0:
        return input_image

    if angle % 90 == 0:
        rotations = int(angle / 90) % 4
        return np.ascontiguousarray(np.rot90(input_image, rotations))

    height, width = input_image.shape[:2]
    matrix        = cv2.getRotationMatrix2D((width / 2, height / 2), angle, 1.0)
    return cv2.warpAffine(
        input_image,
        matrix,
        (width, height),
        flags      = cv2.INTER_CUBIC,
        borderMode = cv2.BORDER_REPLICATE
    )

PROCESSING_FUNCTIONS = {
    StageKind.COLOR_CONTROLS : apply_color_controls,
    StageKind.CONTRAST       : adjust_contrast,
    StageKind.BRIGHTNESS     : adjust_brightness,
    StageKind.CLAHE          : apply_clahe,
    StageKind.SHADOW_REMOVAL : remove_shadow,
    StageKind.GRAYSCALE      : to_grayscale,
    StageKind.THRESHOLD      : apply_adaptive_threshold,
    StageKind.MORPHOLOGY     : apply_morphology,
    StageKind.DENOISE        : apply_denoise,
    StageKind.SHARPEN        : apply_sharpen,
    StageKind.ROTATION       : rotate_image
}

# -------------------- OpenCVFilterBackend Class --------------------

class OpenCVFilterBackend:
    """
    Filter backend built on OpenCV primitives.
    """

    def apply(self, stage: PipelineStage, image: np.ndarray) -> np.ndarray:
        """
        Applies one stage to the image.

        Raises:
            StageFailed: If the stage has no OpenCV binding or OpenCV rejects the input.
        """
        processing_function = PROCESSING_FUNCTIONS.get(stage.kind)
        if processing_function is None:
            raise StageFailed(stage.name, f"no OpenCV binding for {stage.kind.name}")

        try:
            return processing_function(image, stage.params)
        except cv2.error as e:
            raise StageFailed(stage.name, str(e).strip()) from e

    def detect_rectangle(self, image: np.ndarray, params: SkewCorrectionParams) -> float | None:
        """
        Finds the largest four-sided contour and returns the angle that levels it.

        Args:
            image  : Input image
            params : Skew correction parameters

        Returns:
            float | None: Correction angle in degrees, or None if no acceptable rectangle exists
        """
        gray     = as_gray(image)
        blurred  = cv2.GaussianBlur(gray, (5, 5), 0)
        edges    = cv2.Canny(blurred, 50, 150)
        edges    = cv2.dilate(edges, np.ones((3, 3), np.uint8))
        contours, _ = cv2.findContours(edges, cv2.RETR_EXTERNAL, cv2.CHAIN_APPROX_SIMPLE)

        min_area = params.min_area_ratio * gray.shape[0] * gray.shape[1]
        for contour in sorted(contours, key = cv2.contourArea, reverse = True):
            if cv2.contourArea(contour) < min_area:
                break

            perimeter = cv2.arcLength(contour, True)
            approx    = cv2.approxPolyDP(contour, 0.02 * perimeter, True)
            if len(approx) != 4:
                continue

            (_, _), (width, height), angle = cv2.minAreaRect(approx)
            # minAreaRect reports angles in (0, 90]; fold to the smallest levelling rotation.
            if width < height:
                angle = angle - 90
            if math.isclose(angle, 0.0, abs_tol = 0.1) or abs(angle) > params.max_angle:
                return None

            logger.debug(f"Detected cover outline skewed by {angle:.2f} degrees.")
            return angle

        return None
