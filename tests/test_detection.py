import cv2
import numpy as np
import pytest

from marker2pitch.app_config import DETECTION_COLOR, DETECTION_GRAYSCALE
from marker2pitch.core.app_state import AppState
from marker2pitch.detection.base import DetectionConfigError, DetectionProcessingError
from marker2pitch.detection.blob_classifier import BlobClassifier
from marker2pitch.detection.color_mask import HueMaskExtractor, split_hue_range
from marker2pitch.detection.factory import DetectionFactory
from marker2pitch.detection.grayscale import GrayscaleThresholdExtractor


@pytest.fixture
def white_frame():
    return np.full((240, 320, 3), 255, dtype=np.uint8)


class TestSplitHueRange:
    def test_band_inside_scale(self):
        assert split_hue_range(60, 10) == [(50, 70)]

    def test_band_wrapping_below_zero(self):
        assert split_hue_range(5, 10) == [(0, 15), (175, 180)]

    def test_band_wrapping_above_max(self):
        assert split_hue_range(175, 10) == [(0, 5), (165, 180)]

    def test_full_circle(self):
        assert split_hue_range(90, 90) == [(0, 180)]

    def test_negative_tolerance_rejected(self):
        with pytest.raises(DetectionConfigError):
            split_hue_range(90, -1)


class TestGrayscaleThresholdExtractor:
    def test_dark_disc_found(self, white_frame):
        cv2.circle(white_frame, (160, 120), 12, (0, 0, 0), -1)

        contours = GrayscaleThresholdExtractor().extract(white_frame)
        candidates = BlobClassifier().classify(contours)

        assert len(candidates) == 1
        assert candidates[0].centroid_x == pytest.approx(160, abs=2)
        assert candidates[0].centroid_y == pytest.approx(120, abs=2)

    def test_blank_frame_has_no_contours(self, white_frame):
        assert GrayscaleThresholdExtractor().extract(white_frame) == []

    def test_light_grey_ignored(self, white_frame):
        cv2.circle(white_frame, (160, 120), 12, (200, 200, 200), -1)
        assert GrayscaleThresholdExtractor(threshold=120).extract(white_frame) == []

    @pytest.mark.parametrize("frame", [
        np.zeros((0, 0, 3), dtype=np.uint8),
        np.zeros((240, 320), dtype=np.uint8),
    ])
    def test_bad_frames_rejected(self, frame):
        with pytest.raises(DetectionProcessingError):
            GrayscaleThresholdExtractor().extract(frame)


class TestHueMaskExtractor:
    def test_red_disc_found_across_wraparound(self, white_frame):
        cv2.circle(white_frame, (80, 60), 12, (0, 0, 255), -1)
        cv2.circle(white_frame, (240, 180), 12, (255, 0, 0), -1)  # blue, not matched

        contours = HueMaskExtractor(hue_ranges=split_hue_range(0, 10)).extract(white_frame)
        candidates = BlobClassifier().classify(contours)

        assert len(candidates) == 1
        assert candidates[0].centroid_x == pytest.approx(80, abs=2)

    def test_dark_pixels_below_value_floor_ignored(self):
        frame = np.zeros((120, 160, 3), dtype=np.uint8)
        cv2.circle(frame, (80, 60), 12, (0, 0, 40), -1)  # very dark red

        assert HueMaskExtractor(value_min=80).extract(frame) == []

    def test_requires_a_range(self):
        with pytest.raises(DetectionConfigError):
            HueMaskExtractor(hue_ranges=[])


class TestDetectionFactory:
    def test_available_methods(self):
        assert set(DetectionFactory.get_available_methods()) == {DETECTION_GRAYSCALE, DETECTION_COLOR}

    def test_unknown_method(self):
        with pytest.raises(DetectionConfigError):
            DetectionFactory.create_extractor("infrared")

    def test_bad_kwargs_wrapped(self):
        with pytest.raises(DetectionConfigError):
            DetectionFactory.create_extractor(DETECTION_GRAYSCALE, brightness=3)

    def test_create_from_app_state(self):
        app_state = AppState()
        assert isinstance(DetectionFactory.create_from_app_state(app_state), GrayscaleThresholdExtractor)

        app_state.detection.strategy = DETECTION_COLOR
        app_state.detection.hue_ranges = [(100, 130)]
        extractor = DetectionFactory.create_from_app_state(app_state)
        assert isinstance(extractor, HueMaskExtractor)
        assert extractor.hue_ranges == [(100, 130)]

    def test_method_info(self):
        info = DetectionFactory.get_method_info(DETECTION_GRAYSCALE)
        assert info["parameters"]["threshold"] == 120
        assert DetectionFactory.get_method_info("infrared") is None
