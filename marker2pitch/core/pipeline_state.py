"""
Per-session pipeline state.

The three blocks that persist from one frame to the next (calibration grid,
tracking window, previous chord) are owned by a single PipelineState held by
the frame pipeline. Nothing in it survives a stop/start cycle.
"""
import logging
from dataclasses import dataclass
from typing import Any, Dict, Optional

from marker2pitch.core.app_state import AppState
from marker2pitch.tracking.calibration_grid import CalibrationGrid
from marker2pitch.tracking.chord_deduper import ChordDeduper, ToneTrigger
from marker2pitch.tracking.tracking_window import TrackingWindow


@dataclass
class PipelineState:
    """Grid, window and chord state for one capture session."""

    grid: CalibrationGrid
    window: TrackingWindow
    chord: ChordDeduper
    frame_width: int
    frame_height: int

    @classmethod
    def from_app_state(cls, app_state: AppState, frame_width: int, frame_height: int,
                       trigger: Optional[ToneTrigger] = None) -> "PipelineState":
        """Build fresh state for a frame size from the configuration."""
        grid = CalibrationGrid(
            notes=app_state.grid.notes,
            frame_height=frame_height,
            mode=app_state.grid.mode,
            margin=app_state.grid.margin,
            min_span=app_state.grid.min_span,
        )
        window = TrackingWindow(
            frame_width=frame_width,
            width=app_state.window.width,
            mode=app_state.window.mode,
            alpha=app_state.window.alpha,
            idle_alpha=app_state.window.idle_alpha,
        )
        return cls(grid, window, ChordDeduper(trigger), frame_width, frame_height)

    def reset(self) -> None:
        """Return every block to its initial value."""
        self.grid.reset(self.frame_height)
        self.window.reset()
        self.chord.reset()
        logging.getLogger(f"{__name__}.PipelineState").debug("[STATE] Pipeline state reset")

    def resize(self, frame_width: int, frame_height: int) -> None:
        """Adopt a new frame size; the grid and window start over."""
        self.frame_width = frame_width
        self.frame_height = frame_height
        self.grid.reset(frame_height)
        self.window.resize(frame_width)

    def get_state_summary(self) -> Dict[str, Any]:
        """Get a summary of current state for debugging."""
        grid_state = self.grid.state
        return {
            "grid_mode": self.grid.mode,
            "grid_top": grid_state.top_y,
            "grid_bottom": grid_state.bottom_y,
            "last_known_top": grid_state.last_known_top_y,
            "last_known_bottom": grid_state.last_known_bottom_y,
            "window_left": self.window.state.left_x,
            "chord": sorted(self.chord.previous_frequencies),
        }
