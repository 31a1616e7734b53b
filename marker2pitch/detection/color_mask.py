"""
Dual hue-range colour strategy: the marker is a specific saturated colour.

Hue uses the OpenCV 0-180 scale. Red sits on both ends of that scale, so a
single target band is expressed as up to two ranges whose masks are OR-ed.
"""
from typing import Any, Dict, List, Sequence, Tuple

import cv2
import numpy as np

from marker2pitch.app_config import (
    DEFAULT_HUE_RANGES,
    DEFAULT_MORPH_KERNEL,
    DEFAULT_SATURATION_MIN,
    DEFAULT_VALUE_MIN,
    HUE_SCALE_MAX,
)
from .base import ContourExtractor, DetectionConfigError


def split_hue_range(center: float, tolerance: float) -> List[Tuple[int, int]]:
    """
    Turn a hue band ``center ± tolerance`` into inclusive ranges on 0-180.

    Args:
        center: Hue centre on the OpenCV scale
        tolerance: Half-width of the band

    Returns:
        One range, or two when the band wraps past 0 or 180
    """
    if tolerance < 0:
        raise DetectionConfigError(f"Hue tolerance must be non-negative, got {tolerance}")
    if tolerance * 2 >= HUE_SCALE_MAX:
        return [(0, HUE_SCALE_MAX)]

    center = center % HUE_SCALE_MAX
    low = int(round(center - tolerance))
    high = int(round(center + tolerance))

    if low < 0:
        return [(0, high), (HUE_SCALE_MAX + low, HUE_SCALE_MAX)]
    if high > HUE_SCALE_MAX:
        return [(0, high - HUE_SCALE_MAX), (low, HUE_SCALE_MAX)]
    return [(low, high)]


class HueMaskExtractor(ContourExtractor):
    """HSV mask over one or more hue ranges, cleaned with open/close morphology."""

    def __init__(self,
                 hue_ranges: Sequence[Tuple[int, int]] = tuple(DEFAULT_HUE_RANGES),
                 saturation_min: int = DEFAULT_SATURATION_MIN,
                 value_min: int = DEFAULT_VALUE_MIN,
                 morph_kernel: int = DEFAULT_MORPH_KERNEL):
        super().__init__("Hue Mask")
        if not hue_ranges:
            raise DetectionConfigError("HueMaskExtractor needs at least one hue range")
        self.hue_ranges = [(int(low), int(high)) for low, high in hue_ranges]
        self.saturation_min = saturation_min
        self.value_min = value_min
        self.kernel = np.ones((morph_kernel, morph_kernel), np.uint8)
        self.logger.debug(f"[HUE-MASK] ranges={self.hue_ranges}, "
                          f"S>={saturation_min}, V>={value_min}")

    def build_mask(self, frame_bgr: np.ndarray) -> np.ndarray:
        hsv = cv2.cvtColor(frame_bgr, cv2.COLOR_BGR2HSV)

        mask = np.zeros(hsv.shape[:2], dtype=np.uint8)
        for low, high in self.hue_ranges:
            lower = np.array([low, self.saturation_min, self.value_min], dtype=np.uint8)
            upper = np.array([high, 255, 255], dtype=np.uint8)
            mask = cv2.bitwise_or(mask, cv2.inRange(hsv, lower, upper))

        mask = cv2.morphologyEx(mask, cv2.MORPH_OPEN, self.kernel)
        mask = cv2.morphologyEx(mask, cv2.MORPH_CLOSE, self.kernel)
        return mask

    def get_method_info(self) -> Dict[str, Any]:
        return {
            'name': self.name,
            'description': 'Saturated colour marker, OR of HSV hue-range masks',
            'parameters': {
                'hue_ranges': list(self.hue_ranges),
                'saturation_min': self.saturation_min,
                'value_min': self.value_min,
                'morph_kernel': self.kernel.shape[0],
            },
        }
