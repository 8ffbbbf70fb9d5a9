"""
Tests for CoverTextExtractor.

Test Strategy
-------------
- Detector and recognizer are fakes; the recognizer keys its answer on the
  gray band a crop was taken from, so answers follow regions, not threads
- Enhancement steps are disabled so crops keep their band values
- Aggregation: detection order, failed regions contribute nothing
- Sentinel statuses for no match, no text and detector failure
- Deadline: a stuck region does not hold up the scan, while regions queued
  behind a shared recognizer still finish inside it

Organization
------------
- TestExtractText: Status and aggregation of a single scan
- TestConcurrency: Ordering under uneven latencies and the deadline
- TestInputsAndOutputs: Bytes, files, headless runs and JSON output
"""

import json
import threading
import time

import cv2
import pytest

from cover_scanner.core.scan_orchestrator import CoverTextExtractor, ScanResult, ScanStatus
from cover_scanner.core.utils import DecodeFailed, DetectionFailed, RecognitionFailed


class SerializedRecognizer:
    """Wraps a recognizer behind one lock with a fixed latency, like a shared OCR model."""

    def __init__(self, recognizer, latency):
        self.recognizer = recognizer
        self.latency = latency
        self.lock = threading.Lock()

    def recognize(self, image, options):
        with self.lock:
            time.sleep(self.latency)
            return self.recognizer.recognize(image, options)


@pytest.fixture
def make_extractor(fake_detector, no_preprocessing):
    def build(regions=None, responses=None, recognizer=None, detector_error=None, override=None, **kwargs):
        config_override = {**no_preprocessing, **(override or {})}
        return CoverTextExtractor(
            detector=fake_detector(regions=regions, error=detector_error),
            recognizer=recognizer,
            config_override=config_override,
            **kwargs,
        )

    return build


# ============================================================================
# Test Classes
# ============================================================================


class TestExtractText:
    """Tests for a single scan."""

    def test_failed_region_is_skipped(self, make_extractor, fake_recognizer, make_fragment, banded_image, band_regions):
        recognizer = fake_recognizer({
            10: [make_fragment("Title", 0.1, 0.2)],
            20: RecognitionFailed("model crashed"),
            30: [make_fragment("Author", 0.1, 0.2)],
        })
        extractor = make_extractor(regions=band_regions, recognizer=recognizer)

        result = extractor.extract_text(banded_image)

        assert result.status is ScanStatus.OK
        assert result.text == "Title\nAuthor"
        assert result.message == "Title\nAuthor"
        assert [region.text for region in result.regions] == ["Title", "", "Author"]
        assert sorted(recognizer.calls) == [10, 20, 30]

    def test_unexpected_region_error_is_skipped(self, make_extractor, fake_recognizer, make_fragment, banded_image, band_regions):
        recognizer = fake_recognizer({10: [make_fragment("Title", 0.1, 0.2)], 20: RuntimeError("boom")})
        extractor = make_extractor(regions=band_regions, recognizer=recognizer)

        assert extractor.extract_text(banded_image).text == "Title"

    def test_only_target_label_is_read(self, make_extractor, fake_recognizer, make_fragment, banded_image, band_regions):
        band_regions[0].label = 'barcode'
        recognizer = fake_recognizer({
            10: [make_fragment("9788936434731", 0.1, 0.2)],
            20: [make_fragment("Title", 0.1, 0.2)],
        })
        extractor = make_extractor(regions=band_regions, recognizer=recognizer)

        result = extractor.extract_text(banded_image)

        assert result.text == "Title"
        assert 10 not in recognizer.calls

    def test_no_matching_region(self, make_extractor, fake_recognizer, banded_image, band_regions):
        for region in band_regions:
            region.label = 'cover'
        recognizer = fake_recognizer()
        extractor = make_extractor(regions=band_regions, recognizer=recognizer)

        result = extractor.extract_text(banded_image)

        assert result.status is ScanStatus.NO_MATCH
        assert result.text == ""
        assert result.message == "No title or author region found"
        assert recognizer.calls == []

    def test_no_text(self, make_extractor, fake_recognizer, make_fragment, banded_image, band_regions):
        recognizer = fake_recognizer({10: [make_fragment("ISBN 978-89-364-3473-4", 0.1, 0.2)]})
        extractor = make_extractor(regions=band_regions, recognizer=recognizer)

        result = extractor.extract_text(banded_image)

        assert result.status is ScanStatus.NO_TEXT
        assert result.text == ""
        assert result.message == "No text recognized"

    def test_detector_failure(self, make_extractor, fake_recognizer, banded_image):
        extractor = make_extractor(detector_error=DetectionFailed("no model"), recognizer=fake_recognizer())

        result = extractor.extract_text(banded_image)

        assert result.status is ScanStatus.SERVICE_FAILED
        assert result.message == "Text recognition is unavailable"

    def test_region_text_is_cleaned(self, make_extractor, fake_recognizer, make_fragment, banded_image, band_regions):
        recognizer = fake_recognizer({
            20: [make_fragment("채식주의자", 0.1, 0.1), make_fragment("채식주의자", 0.5, 0.1), make_fragment("한강", 0.1, 0.6)],
        })
        extractor = make_extractor(regions=band_regions, recognizer=recognizer)

        assert extractor.extract_text(banded_image).text == "채식주의자\n한강"

    def test_result_to_dict(self):
        result = ScanResult(status=ScanStatus.NO_MATCH)

        assert result.to_dict() == {'status': 'no_match', 'message': 'No title or author region found', 'text': '', 'regions': []}


class TestConcurrency:
    """Tests for ordering and deadlines of the concurrent region tasks."""

    def test_detection_order_despite_finish_order(self, make_extractor, fake_recognizer, make_fragment, banded_image, band_regions):
        first_region_gate = threading.Event()
        recognizer = fake_recognizer({
            10: (first_region_gate, [make_fragment("First", 0.1, 0.2)]),
            20: [make_fragment("Second", 0.1, 0.2)],
            30: [make_fragment("Third", 0.1, 0.2)],
        })
        extractor = make_extractor(regions=band_regions, recognizer=recognizer)

        # The first region only finishes after the others have been recognized.
        releaser = threading.Thread(target=lambda: (time.sleep(0.2), first_region_gate.set()))
        releaser.start()
        result = extractor.extract_text(banded_image)
        releaser.join()

        assert result.text == "First\nSecond\nThird"

    def test_stuck_region_hits_deadline(self, make_extractor, fake_recognizer, make_fragment, banded_image, band_regions):
        stuck_gate = threading.Event()
        recognizer = fake_recognizer({
            10: [make_fragment("Title", 0.1, 0.2)],
            20: (stuck_gate, [make_fragment("Late", 0.1, 0.2)]),
            30: [make_fragment("Author", 0.1, 0.2)],
        })
        extractor = make_extractor(
            regions=band_regions,
            recognizer=recognizer,
            override={'orchestrator': {'task_timeout': 0.3}},
        )

        started = time.monotonic()
        try:
            result = extractor.extract_text(banded_image)
        finally:
            stuck_gate.set()

        assert time.monotonic() - started < 5
        assert result.text == "Title\nAuthor"
        assert result.regions[1].text == ""

    def test_single_worker_still_reads_every_region(self, make_extractor, fake_recognizer, make_fragment, banded_image, band_regions):
        recognizer = fake_recognizer({value: [make_fragment(f"Band {value}", 0.1, 0.2)] for value in (10, 20, 30)})
        extractor = make_extractor(
            regions=band_regions,
            recognizer=recognizer,
            override={'orchestrator': {'max_workers': 1}},
        )

        assert extractor.extract_text(banded_image).text == "Band 10\nBand 20\nBand 30"

    @pytest.mark.parametrize("max_workers", [4, 1])
    def test_serialized_regions_share_the_deadline(
        self, max_workers, make_extractor, fake_recognizer, make_fragment, banded_image, band_regions
    ):
        # Each region takes 0.2s behind one lock, so the last finishes after
        # 0.6s; that is past task_timeout but inside the scan deadline.
        recognizer = SerializedRecognizer(
            fake_recognizer({value: [make_fragment(f"Band {value}", 0.1, 0.2)] for value in (10, 20, 30)}),
            latency=0.2,
        )
        extractor = make_extractor(
            regions=band_regions,
            recognizer=recognizer,
            override={'orchestrator': {'task_timeout': 0.5, 'max_workers': max_workers}},
        )

        result = extractor.extract_text(banded_image)

        assert result.text == "Band 10\nBand 20\nBand 30"
        assert all(region.text for region in result.regions)


class TestInputsAndOutputs:
    """Tests for encoded inputs, batch runs and saved output."""

    def test_undecodable_bytes_raise(self, make_extractor, fake_recognizer):
        extractor = make_extractor(recognizer=fake_recognizer())

        with pytest.raises(DecodeFailed):
            extractor.extract_text_from_bytes(b'definitely not a jpeg')

    def test_extract_from_file(self, tmp_path, make_extractor, fake_recognizer, make_fragment, banded_image, band_regions):
        image_path = tmp_path / 'cover.png'
        cv2.imwrite(str(image_path), banded_image)
        extractor = make_extractor(regions=band_regions, recognizer=fake_recognizer({30: [make_fragment("Author", 0.1, 0.2)]}))

        assert extractor.extract_text_from_file(image_path).text == "Author"

    def test_headless_mode_skips_bad_files_and_saves_json(
        self, tmp_path, make_extractor, fake_recognizer, make_fragment, banded_image, band_regions
    ):
        good_path = tmp_path / 'good.png'
        bad_path = tmp_path / 'bad.png'
        cv2.imwrite(str(good_path), banded_image)
        bad_path.write_bytes(b'broken')
        output_file = tmp_path / 'results' / 'scan.json'
        extractor = make_extractor(
            regions=band_regions,
            recognizer=fake_recognizer({10: [make_fragment("Title", 0.1, 0.2)]}),
            output_json=True,
            output_file=output_file,
        )

        results = extractor.run_headless_mode([good_path, bad_path])

        assert list(results) == ['good.png']
        saved = json.loads(output_file.read_text(encoding='utf-8'))
        assert saved['good.png']['status'] == 'ok'
        assert saved['good.png']['text'] == 'Title'
        assert len(saved['good.png']['regions']) == 3

    def test_headless_mode_requires_files(self, make_extractor, fake_recognizer):
        with pytest.raises(ValueError):
            make_extractor(recognizer=fake_recognizer()).run_headless_mode([])

    def test_annotated_image_saved(self, tmp_path, make_extractor, fake_recognizer, make_fragment, banded_image, band_regions):
        image_dir = tmp_path / 'annotated'
        extractor = make_extractor(
            regions=band_regions,
            recognizer=fake_recognizer({10: [make_fragment("Title", 0.1, 0.2)]}),
            output_images=True,
            image_dir=image_dir,
        )

        extractor.extract_text(banded_image, image_name='cover.png')

        saved = cv2.imread(str(image_dir / 'cover.png'))
        assert saved is not None
        assert saved.shape == banded_image.shape
