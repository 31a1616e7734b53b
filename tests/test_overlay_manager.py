import numpy as np

from marker2pitch.app_config import DEFAULT_NOTE_TABLE, GRID_DYNAMIC
from marker2pitch.detection.blob_classifier import BlobClassifier
from marker2pitch.tracking.calibration_grid import CalibrationGrid
from marker2pitch.tracking.tracking_window import TrackingWindow
from marker2pitch.workflows.overlay_manager import (
    ANCHOR_LINE_COLOR,
    CANDIDATE_COLOR,
    NOTE_LINE_COLOR,
    WINDOW_COLOR,
    draw_overlay,
)


class TestDrawOverlay:
    def test_draws_window_grid_and_candidates(self, geometry):
        frame = np.zeros((480, 640, 3), dtype=np.uint8)
        grid = CalibrationGrid(DEFAULT_NOTE_TABLE, frame_height=480, mode=GRID_DYNAMIC)
        window = TrackingWindow(frame_width=640, width=40)
        candidates = BlobClassifier().classify([geometry(320, 200), geometry(50, 200)])

        canvas = draw_overlay(frame, grid.state, window.state, candidates)

        assert not frame.any()
        assert tuple(canvas[100, 300]) == WINDOW_COLOR
        top_mid = int(round(grid.regions[0].mid_y))
        note_mid = int(round(grid.regions[1].mid_y))
        assert tuple(canvas[top_mid, 320]) == ANCHOR_LINE_COLOR
        assert tuple(canvas[note_mid, 320]) == NOTE_LINE_COLOR
        assert tuple(canvas[200, 320]) == CANDIDATE_COLOR
        assert not canvas[200, 50].any()
