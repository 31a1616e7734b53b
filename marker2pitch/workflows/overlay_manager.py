"""
Preview overlay drawing.

Draws the tracking window, the pitch grid and the in-window candidates onto a
copy of the frame for the live preview.
"""
from typing import Sequence

import cv2
import numpy as np

from marker2pitch.detection.blob_classifier import BlobCandidate
from marker2pitch.tracking.calibration_grid import CalibrationState
from marker2pitch.tracking.tracking_window import TrackingWindowState

# BGR colours
WINDOW_COLOR = (0, 255, 0)
ANCHOR_LINE_COLOR = (0, 165, 255)
NOTE_LINE_COLOR = (0, 0, 255)
CANDIDATE_COLOR = (255, 0, 0)
LABEL_COLOR = (255, 255, 255)

LABEL_OFFSET = 10  # px below the region's top edge


def draw_overlay(frame_bgr: np.ndarray,
                 grid_state: CalibrationState,
                 window_state: TrackingWindowState,
                 candidates: Sequence[BlobCandidate] = ()) -> np.ndarray:
    """
    Render the tracking overlay.

    Args:
        frame_bgr: Source frame (left untouched)
        grid_state: Current calibration snapshot
        window_state: Current window position
        candidates: Classified candidates of the frame

    Returns:
        Annotated copy of the frame
    """
    canvas = frame_bgr.copy()
    height = canvas.shape[0]

    left = int(round(window_state.left_x))
    right = int(round(window_state.right_x))
    cv2.rectangle(canvas, (left, 0), (right, height - 1), WINDOW_COLOR, 2)

    for region in grid_state.regions:
        mid_y = int(round(region.mid_y))
        color = ANCHOR_LINE_COLOR if region.is_anchor else NOTE_LINE_COLOR
        cv2.line(canvas, (left, mid_y), (right, mid_y), color, 1)
        cv2.putText(canvas, region.label, (right + 4, int(round(region.min_y)) + LABEL_OFFSET),
                    cv2.FONT_HERSHEY_SIMPLEX, 0.35, LABEL_COLOR, 1, cv2.LINE_AA)

    for candidate in candidates:
        if window_state.contains(candidate.centroid_x):
            center = (int(round(candidate.centroid_x)), int(round(candidate.centroid_y)))
            cv2.circle(canvas, center, 3, CANDIDATE_COLOR, -1)

    return canvas


def draw_status(frame_bgr: np.ndarray, status: str) -> np.ndarray:
    """Write the session status line in the top-left corner, in place."""
    cv2.putText(frame_bgr, status, (8, 20), cv2.FONT_HERSHEY_SIMPLEX, 0.5,
                LABEL_COLOR, 1, cv2.LINE_AA)
    return frame_bgr
