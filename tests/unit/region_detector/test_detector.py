"""
Tests for decoding raw YOLO output into detected regions.

Test Strategy
-------------
- Synthetic output tensors in the [1, 4 + classes, candidates] layout
- Boxes are checked after normalization and the flip to a bottom-left origin
- Thresholding, non-maximum suppression and confidence ordering
- Decoded regions carry no length hint, so length expansion falls back

Organization
------------
- TestDecodeDetections: Output decoding
- TestYOLORegionDetector: Model file handling
"""

import numpy as np
import pytest

from cover_scanner.core.region_detector import YOLORegionDetector, decode_detections
from cover_scanner.core.region_geometry import strategy_from_config

LABELS = ['titles-or-authors', 'cover']


def yolo_output(candidates):
    """Builds a [1, 4 + classes, N] tensor from (cx, cy, w, h, *class_scores) rows in pixels."""
    return np.array(candidates, dtype=np.float32).T[np.newaxis, ...]


# ============================================================================
# Test Classes
# ============================================================================


class TestDecodeDetections:
    """Tests for decode_detections."""

    def test_boxes_normalized_and_flipped(self):
        output = yolo_output([[320, 160, 320, 64, 0.9, 0.1]])

        regions = decode_detections(output, LABELS, input_size=640)

        assert len(regions) == 1
        region = regions[0]
        assert region.label == 'titles-or-authors'
        assert region.confidence == pytest.approx(0.9)
        assert region.box.x == pytest.approx(0.25)
        assert region.box.width == pytest.approx(0.5)
        assert region.box.height == pytest.approx(0.1)
        # Top edge at 0.2 from the top is 0.7 from the bottom for the box's lower edge.
        assert region.box.y == pytest.approx(0.7)

    def test_class_with_highest_score_wins(self):
        output = yolo_output([[320, 480, 200, 100, 0.2, 0.7]])

        assert decode_detections(output, LABELS)[0].label == 'cover'

    def test_low_confidence_dropped(self):
        output = yolo_output([[320, 160, 320, 64, 0.1, 0.05]])

        assert decode_detections(output, LABELS, confidence_threshold=0.3) == []

    def test_overlapping_duplicates_suppressed(self):
        output = yolo_output([
            [320, 160, 320, 64, 0.8, 0.0],
            [322, 161, 320, 64, 0.9, 0.0],
            [320, 480, 200, 100, 0.0, 0.7],
        ])

        regions = decode_detections(output, LABELS, iou_threshold=0.5)

        assert [region.confidence for region in regions] == pytest.approx([0.9, 0.7])
        assert [region.label for region in regions] == ['titles-or-authors', 'cover']

    def test_boxes_clipped_to_unit_square(self):
        output = yolo_output([[20, 20, 100, 100, 0.9, 0.0]])

        box = decode_detections(output, LABELS)[0].box

        assert box.x == 0.0
        assert box.width == pytest.approx(70 / 640)
        assert box.y + box.height == pytest.approx(1.0)

    def test_unexpected_shape_gives_no_regions(self):
        output = np.zeros((1, 5, 3), dtype=np.float32)

        assert decode_detections(output, LABELS) == []

    def test_detected_regions_use_length_fallback(self):
        # The detector reports no text length, so the length strategy keeps its fallback.
        region = decode_detections(yolo_output([[320, 160, 320, 64, 0.9, 0.1]]), LABELS)[0]

        assert region.length_hint is None
        assert strategy_from_config({'strategy': 'length'}).factors(region) == pytest.approx((1.5, 1.35))


class TestYOLORegionDetector:
    """Tests for detector construction."""

    def test_missing_model_file(self, tmp_path):
        with pytest.raises(FileNotFoundError):
            YOLORegionDetector(model_path=tmp_path / 'missing.onnx', labels=LABELS)
