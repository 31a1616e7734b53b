"""
Horizontal eligibility band for marker candidates.

Only candidates whose centroid falls inside ``[left_x, left_x + width)`` take
part in pitch resolution. In tracking mode the band follows the candidates
with an exponential moving average and relaxes back to the frame centre when
nothing is happening.
"""
import logging
import threading
from dataclasses import dataclass
from typing import Sequence

from marker2pitch.app_config import (
    DEFAULT_IDLE_ALPHA,
    DEFAULT_WINDOW_ALPHA,
    DEFAULT_WINDOW_WIDTH,
    WINDOW_FIXED,
    WINDOW_TRACKING,
)


@dataclass(frozen=True)
class TrackingWindowState:
    """Window position; ``left_x`` is the band's left edge."""
    left_x: float
    width: float
    alpha: float

    @property
    def right_x(self) -> float:
        return self.left_x + self.width

    def contains(self, x: float) -> bool:
        return self.left_x <= x < self.left_x + self.width


class TrackingWindow:
    """
    Maintains the TrackingWindowState.

    Args:
        frame_width: Width of the frames in pixels
        width: Window width in pixels
        mode: 'fixed' or 'tracking'
        alpha: Smoothing factor toward the candidates, in (0, 1]
        idle_alpha: Relaxation factor toward the centre when idle
    """

    def __init__(self,
                 frame_width: float,
                 width: float = DEFAULT_WINDOW_WIDTH,
                 mode: str = WINDOW_TRACKING,
                 alpha: float = DEFAULT_WINDOW_ALPHA,
                 idle_alpha: float = DEFAULT_IDLE_ALPHA):
        if mode not in (WINDOW_FIXED, WINDOW_TRACKING):
            raise ValueError(f"Unknown window mode '{mode}'")
        if not 0.0 < alpha <= 1.0:
            raise ValueError(f"Smoothing factor must be in (0, 1], got {alpha}")

        self.mode = mode
        self.width = width
        self.alpha = alpha
        self.idle_alpha = idle_alpha
        self.frame_width = frame_width
        self.logger = logging.getLogger(f"{__name__}.TrackingWindow")
        self._lock = threading.Lock()
        self._state = TrackingWindowState(self._clamp(self.home_x), width, alpha)

    @property
    def state(self) -> TrackingWindowState:
        return self._state

    @property
    def home_x(self) -> float:
        """Left edge that centres the window on the frame."""
        return self.frame_width / 2 - self.width / 2

    def contains(self, x: float) -> bool:
        return self._state.contains(x)

    def _clamp(self, left_x: float) -> float:
        upper = max(0.0, self.frame_width - self.width)
        return min(max(left_x, 0.0), upper)

    def _set_left(self, left_x: float) -> None:
        self._state = TrackingWindowState(self._clamp(left_x), self.width, self.alpha)

    def resize(self, frame_width: float) -> None:
        """Re-home the window for a new frame width."""
        with self._lock:
            self.frame_width = frame_width
            self._set_left(self.home_x)
        self.logger.debug(f"[WINDOW] Resized to frame width {frame_width}, left_x={self._state.left_x:.1f}")

    def reset(self) -> None:
        with self._lock:
            self._set_left(self.home_x)

    def update(self, candidate_xs: Sequence[float], chord_active: bool) -> TrackingWindowState:
        """
        Move the window toward this frame's candidates.

        Args:
            candidate_xs: Centroid X of every classified candidate this frame
            chord_active: Whether a chord was sounding after the previous frame

        Returns:
            The new window state
        """
        if self.mode == WINDOW_FIXED:
            return self._state

        with self._lock:
            left_x = self._state.left_x
            if len(candidate_xs):
                target = sum(candidate_xs) / len(candidate_xs) - self.width / 2
                left_x = self.alpha * target + (1 - self.alpha) * left_x
            elif not chord_active:
                left_x = self.idle_alpha * self.home_x + (1 - self.idle_alpha) * left_x
            self._set_left(left_x)
            return self._state
