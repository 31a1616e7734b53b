"""
Base classes and interfaces for all contour extraction methods.

Provides clear interfaces that make it easy to add new preprocessing
strategies and test them independently. Each strategy implements the
ContourExtractor interface and hands plain ContourGeometry records to the
blob classifier, so nothing downstream touches OpenCV types.
"""
from abc import ABC, abstractmethod
import logging
from dataclasses import dataclass
from typing import Any, Dict, List

import cv2
import numpy as np


@dataclass(frozen=True)
class ContourGeometry:
    """Geometry of one raw contour: bounding box, area and convex-hull area."""
    x: float
    y: float
    width: float
    height: float
    area: float
    hull_area: float


def contour_to_geometry(contour: np.ndarray) -> ContourGeometry:
    """Measure an OpenCV contour."""
    x, y, w, h = cv2.boundingRect(contour)
    area = cv2.contourArea(contour)
    hull_area = cv2.contourArea(cv2.convexHull(contour))
    return ContourGeometry(float(x), float(y), float(w), float(h), float(area), float(hull_area))


class ContourExtractor(ABC):
    """
    Abstract base class for all contour extraction strategies.

    Owns colour-space conversion, thresholding and morphological cleanup.
    """

    def __init__(self, name: str):
        self.name = name
        self.logger = logging.getLogger(f"{__name__}.{self.__class__.__name__}")
        self.logger.debug(f"Initialized {name} contour extractor")

    def get_name(self) -> str:
        """Get the human-readable name of this strategy."""
        return self.name

    def extract(self, frame_bgr: np.ndarray) -> List[ContourGeometry]:
        """
        Extract contour geometries from a single frame.

        Args:
            frame_bgr: Video frame in BGR format (OpenCV standard)

        Returns:
            List of contour geometries (possibly empty)

        Raises:
            DetectionProcessingError: If the frame cannot be processed
        """
        if frame_bgr is None or frame_bgr.size == 0:
            raise DetectionProcessingError("Empty frame passed to contour extraction")
        if frame_bgr.ndim != 3 or frame_bgr.shape[2] != 3:
            raise DetectionProcessingError(f"Expected a BGR frame, got shape {frame_bgr.shape}")

        mask = self.build_mask(frame_bgr)
        contours, _ = cv2.findContours(mask, cv2.RETR_EXTERNAL, cv2.CHAIN_APPROX_SIMPLE)
        return [contour_to_geometry(contour) for contour in contours]

    @abstractmethod
    def build_mask(self, frame_bgr: np.ndarray) -> np.ndarray:
        """
        Produce the binary marker mask for a frame.

        Args:
            frame_bgr: Video frame in BGR format

        Returns:
            Single-channel uint8 mask, marker pixels set to 255
        """
        pass

    @abstractmethod
    def get_method_info(self) -> Dict[str, Any]:
        """
        Get information about this strategy.

        Returns:
            Dict with strategy name, description, and parameter info
        """
        pass


class DetectionError(Exception):
    """Base exception for detection-related errors."""
    pass


class DetectionConfigError(DetectionError):
    """Exception raised for detection configuration errors."""
    pass


class DetectionProcessingError(DetectionError):
    """Exception raised during detection processing."""
    pass
