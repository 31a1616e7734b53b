"""
Grayscale threshold strategy: the marker is a dark shape on a light background.
"""
from typing import Any, Dict

import cv2
import numpy as np

from marker2pitch.app_config import DEFAULT_ERODE_KERNEL, DEFAULT_GRAY_THRESHOLD
from .base import ContourExtractor


class GrayscaleThresholdExtractor(ContourExtractor):
    """Inverse binary threshold followed by a light erosion."""

    def __init__(self, threshold: int = DEFAULT_GRAY_THRESHOLD,
                 erode_kernel: int = DEFAULT_ERODE_KERNEL):
        super().__init__("Grayscale Threshold")
        self.threshold = threshold
        self.kernel = cv2.getStructuringElement(cv2.MORPH_RECT, (erode_kernel, erode_kernel))

    def build_mask(self, frame_bgr: np.ndarray) -> np.ndarray:
        gray = cv2.cvtColor(frame_bgr, cv2.COLOR_BGR2GRAY)
        # Dark marker pixels become foreground
        _, mask = cv2.threshold(gray, self.threshold, 255, cv2.THRESH_BINARY_INV)
        return cv2.erode(mask, self.kernel)

    def get_method_info(self) -> Dict[str, Any]:
        return {
            'name': self.name,
            'description': 'Dark marker on a light background, inverse binary threshold',
            'parameters': {
                'threshold': self.threshold,
                'erode_kernel': self.kernel.shape[0],
            },
        }
