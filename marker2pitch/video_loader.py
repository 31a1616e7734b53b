"""
Frame capture.

Provides a single interface over OpenCV capture for both live cameras
(selected by integer index) and video files (used for replaying recorded
sessions at a fixed resolution).
"""
import logging
import os
from typing import Optional, Tuple, Union

import cv2
import numpy as np


class CaptureUnavailableError(RuntimeError):
    """Raised when the capture device or file cannot be opened."""
    pass


def parse_source(source: Union[str, int]) -> Union[str, int]:
    """Camera indices arrive as strings from the CLI and INI files."""
    if isinstance(source, int):
        return source
    text = str(source).strip()
    return int(text) if text.isdigit() else text


class CaptureSession:
    """Manages an OpenCV capture session."""

    def __init__(self, source: Union[str, int] = 0):
        """
        Opens the capture source.
        Args:
            source: Camera index or path to a video file.
        Raises:
            CaptureUnavailableError: If the source cannot be opened.
        """
        self.source = parse_source(source)
        self.logger = logging.getLogger(f"{__name__}.CaptureSession")

        if isinstance(self.source, str) and not os.path.exists(self.source):
            raise CaptureUnavailableError(f"Video file not found: {self.source}")

        self.cap = cv2.VideoCapture(self.source)
        if not self.cap.isOpened():
            self.cap.release()
            raise CaptureUnavailableError(f"Could not open capture source: {self.source}")

        self.is_live = isinstance(self.source, int)
        detected_fps = self.cap.get(cv2.CAP_PROP_FPS)
        if 0 < detected_fps < 1000:  # Sanity check for valid FPS
            self.fps: float = float(detected_fps)
        else:
            self.fps = 30.0
            self.logger.warning(f"Could not detect valid FPS (got {detected_fps}), using default 30 FPS")
        self.width: int = int(self.cap.get(cv2.CAP_PROP_FRAME_WIDTH))
        self.height: int = int(self.cap.get(cv2.CAP_PROP_FRAME_HEIGHT))
        self.frames_read = 0

        self.logger.info(f"[CAPTURE] Opened {'camera' if self.is_live else 'file'} {self.source}: "
                         f"{self.width}x{self.height} @ {self.fps:.1f} fps")

    @property
    def is_open(self) -> bool:
        return self.cap is not None and self.cap.isOpened()

    def read_frame(self) -> Tuple[bool, Optional[np.ndarray]]:
        """
        Retrieves the next frame.

        Returns:
            A tuple (success, frame_array).
            frame_array is a BGR NumPy array if successful, None otherwise.
        """
        if not self.is_open:
            return False, None

        success, frame = self.cap.read()
        if not success or frame is None:
            return False, None

        self.frames_read += 1
        return True, frame

    def release(self) -> None:
        """Release the capture device."""
        if self.cap is not None:
            self.cap.release()
            self.cap = None
            self.logger.info(f"[CAPTURE] Released {self.source} after {self.frames_read} frames")

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.release()
