"""
Per-frame processing workflow.

Runs one frame end to end: contour extraction, blob classification, the
two-phase pitch resolution (which updates the grid and window), chord
deduplication and tone dispatch. A failure anywhere in a frame is logged and
the frame is treated as silent; the next frame is processed normally.
"""
import logging
import time
from dataclasses import dataclass, field
from typing import List, Optional, Sequence

import numpy as np

from marker2pitch.core.pipeline_state import PipelineState
from marker2pitch.detection.base import ContourExtractor, ContourGeometry
from marker2pitch.detection.blob_classifier import BlobCandidate, BlobClassifier
from marker2pitch.tracking.chord_deduper import ChordTransition
from marker2pitch.tracking.pitch_resolver import PitchResolver, ResolutionResult


@dataclass
class FrameResult:
    """Outcome of one processed frame."""
    candidates: List[BlobCandidate] = field(default_factory=list)
    resolution: ResolutionResult = field(default_factory=ResolutionResult)
    transition: ChordTransition = ChordTransition.IDLE
    labels: List[str] = field(default_factory=list)
    processing_time_ms: float = 0.0
    error: Optional[str] = None

    @property
    def failed(self) -> bool:
        return self.error is not None


class FramePipeline:
    """
    Handles the per-frame pipeline for one capture session.

    Args:
        extractor: Contour extraction strategy
        classifier: Blob classifier for the configured shape profile
        state: Grid, window and chord state owned by this pipeline
    """

    def __init__(self, extractor: ContourExtractor, classifier: BlobClassifier, state: PipelineState):
        self.extractor = extractor
        self.classifier = classifier
        self.state = state
        self.resolver = PitchResolver(state.grid, state.window)
        self.logger = logging.getLogger(f"{__name__}.FramePipeline")

        self.frames_processed = 0
        self.frames_failed = 0
        self.consecutive_failures = 0

    def process_frame(self, frame_bgr: np.ndarray) -> FrameResult:
        """
        Process a single BGR frame.

        Args:
            frame_bgr: Video frame in BGR format

        Returns:
            FrameResult; on failure the result is empty and carries the error
        """
        start_time = time.perf_counter()
        try:
            if frame_bgr.shape[1] != self.state.frame_width or frame_bgr.shape[0] != self.state.frame_height:
                self.logger.info(f"[FRAME] Frame size changed to {frame_bgr.shape[1]}x{frame_bgr.shape[0]}")
                self.state.resize(frame_bgr.shape[1], frame_bgr.shape[0])
            contours = self.extractor.extract(frame_bgr)
            result = self._run(contours)
        except Exception as e:
            result = self._handle_failure(e)

        result.processing_time_ms = (time.perf_counter() - start_time) * 1000
        return result

    def process_contours(self, contours: Sequence[ContourGeometry]) -> FrameResult:
        """Process a frame whose contours were extracted elsewhere."""
        try:
            return self._run(contours)
        except Exception as e:
            return self._handle_failure(e)

    def _run(self, contours: Sequence[ContourGeometry]) -> FrameResult:
        candidates = self.classifier.classify(contours)
        chord_active = self.state.chord.chord_active
        resolution = self.resolver.process(candidates, chord_active)
        transition, labels = self.state.chord.submit(resolution.events)

        self.frames_processed += 1
        if self.consecutive_failures:
            self.logger.info(f"[FRAME] Recovered after {self.consecutive_failures} failed frames")
        self.consecutive_failures = 0

        return FrameResult(candidates, resolution, transition, labels)

    def _handle_failure(self, error: Exception) -> FrameResult:
        self.frames_failed += 1
        self.consecutive_failures += 1
        self.logger.error(f"[FRAME] Frame processing failed: {error}", exc_info=True)

        # A failed frame counts as a frame without pitches
        try:
            transition, labels = self.state.chord.submit([])
        except Exception as chord_error:
            self.logger.error(f"[FRAME] Could not release chord after failure: {chord_error}")
            transition, labels = ChordTransition.IDLE, []
        return FrameResult(transition=transition, labels=labels, error=str(error))

    def reset(self) -> None:
        """Reset pipeline state and counters."""
        self.state.reset()
        self.frames_processed = 0
        self.frames_failed = 0
        self.consecutive_failures = 0
