"""
Resolve classified candidates into pitch events.

Runs two folds over the same candidate list so calibration changes apply
within the frame that produced them: the first fold collects anchor
observations, the grid and window are updated, and the second fold maps the
candidates against the updated grid and window.
"""
import logging
from dataclasses import dataclass, field
from typing import List, Optional, Sequence, Tuple

from marker2pitch.app_config import ANCHOR_BOTTOM_LABEL, ANCHOR_TOP_LABEL
from marker2pitch.detection.blob_classifier import BlobCandidate
from .calibration_grid import CalibrationGrid
from .tracking_window import TrackingWindow


@dataclass(frozen=True)
class PitchEvent:
    """One sounding region hit by a candidate."""
    frequency: float
    label: str
    midi: Optional[int] = None


@dataclass
class ResolutionResult:
    """Everything the resolver learned about one frame."""
    events: List[PitchEvent] = field(default_factory=list)
    top_anchor_ys: List[float] = field(default_factory=list)
    bottom_anchor_ys: List[float] = field(default_factory=list)
    grid_updated: bool = False


class PitchResolver:
    """Intersects candidates with the grid and the tracking window."""

    def __init__(self, grid: CalibrationGrid, window: TrackingWindow):
        self.grid = grid
        self.window = window
        self.logger = logging.getLogger(f"{__name__}.PitchResolver")

    def collect_anchors(self, candidates: Sequence[BlobCandidate]) -> Tuple[List[float], List[float]]:
        """
        First fold: Y of the in-window candidates that land on an anchor.

        Returns:
            (top_anchor_ys, bottom_anchor_ys)
        """
        top_ys: List[float] = []
        bottom_ys: List[float] = []
        for candidate in candidates:
            if not self.window.contains(candidate.centroid_x):
                continue
            region = self.grid.region_for(candidate.centroid_y)
            if region is None or not region.is_anchor:
                continue
            if region.label == ANCHOR_TOP_LABEL:
                top_ys.append(candidate.centroid_y)
            elif region.label == ANCHOR_BOTTOM_LABEL:
                bottom_ys.append(candidate.centroid_y)
        return top_ys, bottom_ys

    def resolve(self, candidates: Sequence[BlobCandidate]) -> List[PitchEvent]:
        """Second fold: sounding regions hit by in-window candidates."""
        events = []
        for candidate in candidates:
            if not self.window.contains(candidate.centroid_x):
                continue
            region = self.grid.region_for(candidate.centroid_y)
            if region is None or region.is_anchor:
                continue
            events.append(PitchEvent(region.frequency, region.label, region.midi))
        return events

    def process(self, candidates: Sequence[BlobCandidate], chord_active: bool) -> ResolutionResult:
        """
        Run the full two-phase resolution for one frame.

        Args:
            candidates: Classified candidates of the frame
            chord_active: Whether a chord was sounding after the previous frame

        Returns:
            ResolutionResult with the pitch events and anchor observations
        """
        top_ys, bottom_ys = self.collect_anchors(candidates)
        grid_updated = self.grid.update(top_ys, bottom_ys)
        self.window.update([c.centroid_x for c in candidates], chord_active)

        events = self.resolve(candidates)
        if top_ys or bottom_ys:
            self.logger.debug(f"[RESOLVE] anchors top={len(top_ys)} bottom={len(bottom_ys)}, "
                              f"grid_updated={grid_updated}, events={len(events)}")
        return ResolutionResult(events, top_ys, bottom_ys, grid_updated)
