"""
Vertical pitch grid with anchor-driven self calibration.

The grid maps a vertical position to one of N contiguous, half-open pitch
regions. In static mode the regions are laid out once from the frame height.
In dynamic mode the first and last regions are reserved anchors: markers seen
inside them re-measure the grid's top and bottom every frame, and the whole
region table is rebuilt and swapped in one assignment.

Key behaviours:
- A missing anchor falls back to the last jointly measured value, then to
  the default margin.
- Last known anchors are only persisted when both anchors were measured in
  the same frame, so a single noisy anchor cannot drag the calibration.
- A measured span below the minimum keeps the previous table.
"""
import logging
import threading
from dataclasses import dataclass
from typing import List, Optional, Sequence, Tuple

import numpy as np

from marker2pitch.app_config import (
    DEFAULT_GRID_MARGIN,
    GRID_DYNAMIC,
    GRID_STATIC,
    MIN_GRID_SPAN,
    NoteEntry,
    with_anchors,
)


@dataclass(frozen=True)
class PitchRegion:
    """One band of the grid; ``min_y <= y < max_y``."""
    index: int
    label: str
    frequency: Optional[float]
    midi: Optional[int]
    min_y: float
    max_y: float
    mid_y: float

    @property
    def is_anchor(self) -> bool:
        return self.frequency is None

    def contains(self, y: float) -> bool:
        return self.min_y <= y < self.max_y


@dataclass(frozen=True)
class CalibrationState:
    """Immutable snapshot of the grid, replaced whole on every update."""
    regions: Tuple[PitchRegion, ...]
    last_known_top_y: Optional[float] = None
    last_known_bottom_y: Optional[float] = None

    @property
    def top_y(self) -> Optional[float]:
        return self.regions[0].min_y if self.regions else None

    @property
    def bottom_y(self) -> Optional[float]:
        return self.regions[-1].max_y if self.regions else None


def build_regions(entries: Sequence[NoteEntry], top_y: float, step: float) -> Tuple[PitchRegion, ...]:
    """Lay ``entries`` out top-down from ``top_y`` in bands of ``step`` pixels."""
    regions = []
    for i, entry in enumerate(entries):
        min_y = top_y + i * step
        regions.append(PitchRegion(
            index=i,
            label=entry.label,
            frequency=entry.frequency,
            midi=None if entry.is_anchor else entry.midi,
            min_y=min_y,
            max_y=min_y + step,
            mid_y=min_y + step / 2,
        ))
    return tuple(regions)


class CalibrationGrid:
    """
    Owns the CalibrationState and applies per-frame anchor measurements.

    Args:
        notes: Ordered note table, top of the frame first
        frame_height: Height of the frames in pixels
        mode: 'static' or 'dynamic'
        margin: Default distance of the grid from the top and bottom edges
        min_span: Smallest anchor span accepted in dynamic mode
    """

    def __init__(self,
                 notes: Sequence[NoteEntry],
                 frame_height: float,
                 mode: str = GRID_DYNAMIC,
                 margin: float = DEFAULT_GRID_MARGIN,
                 min_span: float = MIN_GRID_SPAN):
        if mode not in (GRID_STATIC, GRID_DYNAMIC):
            raise ValueError(f"Unknown grid mode '{mode}'")
        if not notes:
            raise ValueError("CalibrationGrid needs at least one note")

        self.mode = mode
        self.margin = margin
        self.min_span = min_span
        self.entries: List[NoteEntry] = with_anchors(notes) if mode == GRID_DYNAMIC else list(notes)
        self.logger = logging.getLogger(f"{__name__}.CalibrationGrid")
        self._lock = threading.Lock()
        self.frame_height = frame_height
        self._state = self._initial_state()

    # -----------------------------------------------------------------
    # State access
    # -----------------------------------------------------------------
    @property
    def state(self) -> CalibrationState:
        return self._state

    @property
    def regions(self) -> Tuple[PitchRegion, ...]:
        return self._state.regions

    @property
    def default_top(self) -> float:
        return self.margin

    @property
    def default_bottom(self) -> float:
        return self.frame_height - self.margin

    def region_for(self, y: float) -> Optional[PitchRegion]:
        """Return the region containing ``y``, or None outside the grid."""
        for region in self._state.regions:
            if region.contains(y):
                return region
        return None

    # -----------------------------------------------------------------
    # Lifecycle
    # -----------------------------------------------------------------
    def _initial_state(self) -> CalibrationState:
        top, bottom = self.default_top, self.default_bottom
        n = len(self.entries)
        span = bottom - top
        if span <= 0:
            self.logger.warning(f"[GRID] Frame height {self.frame_height} leaves no room "
                                f"inside margin {self.margin}; grid is empty")
            return CalibrationState(regions=())

        if self.mode == GRID_STATIC:
            # Regions start on the top margin; the last midline sits on the bottom margin
            step = span / (n - 0.5)
        else:
            step = span / (n - 1)

        self.logger.debug(f"[GRID] Initial {self.mode} grid: top={top:.1f}, "
                          f"bottom={bottom:.1f}, step={step:.2f}, regions={n}")
        return CalibrationState(regions=build_regions(self.entries, top, step))

    def reset(self, frame_height: Optional[float] = None) -> None:
        """Forget every measurement and rebuild the default grid."""
        with self._lock:
            if frame_height is not None:
                self.frame_height = frame_height
            self._state = self._initial_state()

    # -----------------------------------------------------------------
    # Per-frame update
    # -----------------------------------------------------------------
    def update(self, top_anchor_ys: Sequence[float], bottom_anchor_ys: Sequence[float]) -> bool:
        """
        Recalibrate the grid from this frame's anchor observations.

        Args:
            top_anchor_ys: Y of candidates seen in the top anchor region
            bottom_anchor_ys: Y of candidates seen in the bottom anchor region

        Returns:
            True if a new region table was installed
        """
        if self.mode == GRID_STATIC:
            return False

        with self._lock:
            previous = self._state
            measured_top = float(np.mean(top_anchor_ys)) if len(top_anchor_ys) else None
            measured_bottom = float(np.mean(bottom_anchor_ys)) if len(bottom_anchor_ys) else None

            resolved_top = _first_not_none(measured_top, previous.last_known_top_y, self.default_top)
            resolved_bottom = _first_not_none(measured_bottom, previous.last_known_bottom_y,
                                              self.default_bottom)

            if resolved_bottom - resolved_top < self.min_span:
                self.logger.debug(f"[GRID] Degenerate span {resolved_top:.1f}..{resolved_bottom:.1f}, "
                                  f"keeping previous grid")
                return False

            last_top, last_bottom = previous.last_known_top_y, previous.last_known_bottom_y
            if measured_top is not None and measured_bottom is not None:
                last_top, last_bottom = resolved_top, resolved_bottom

            step = (resolved_bottom - resolved_top) / (len(self.entries) - 1)
            self._state = CalibrationState(
                regions=build_regions(self.entries, resolved_top, step),
                last_known_top_y=last_top,
                last_known_bottom_y=last_bottom,
            )
            return True


def _first_not_none(*values: Optional[float]) -> float:
    for value in values:
        if value is not None:
            return value
    raise ValueError("No fallback value available")
