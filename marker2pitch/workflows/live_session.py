"""
Live capture session workflow.

Ties the capture device, the frame pipeline, the tone engine, the optional
MIDI recorder and the preview window together. Stopping a session releases
the device and resets every piece of per-frame state, so a restart always
begins from a clean grid, a centred window and no previous chord.
"""
import logging
import time
from dataclasses import dataclass
from typing import Callable, Optional

import cv2

from marker2pitch.core.app_state import AppState
from marker2pitch.core.pipeline_state import PipelineState
from marker2pitch.detection.blob_classifier import BlobClassifier
from marker2pitch.detection.factory import DetectionFactory
from marker2pitch.audio.tone_engine import ToneEngine
from marker2pitch.midi_generator import ChordRecorder
from marker2pitch.tracking.chord_deduper import ChordTransition
from marker2pitch.video_loader import CaptureSession
from .frame_pipeline import FramePipeline, FrameResult
from .overlay_manager import draw_overlay, draw_status

PREVIEW_WINDOW = "marker2pitch"
QUIT_KEYS = (ord('q'), 27)  # q / ESC


@dataclass
class SessionStats:
    """Counters collected over one session."""
    frames: int = 0
    failed_frames: int = 0
    max_consecutive_failures: int = 0
    chords_triggered: int = 0
    duration_s: float = 0.0

    @property
    def effective_fps(self) -> float:
        return self.frames / self.duration_s if self.duration_s > 0 else 0.0


def status_text(result: FrameResult) -> str:
    """Status line shown on the preview."""
    if result.transition is ChordTransition.TRIGGERED:
        return f"Playing chord: {' + '.join(result.labels)}"
    if result.transition is ChordTransition.SUSTAINED:
        return "Holding chord"
    return "Waiting for notes"


class LiveSession:
    """
    One start/run/stop cycle over a capture source.

    Args:
        app_state: Validated application configuration
        capture_factory: Callable opening the capture source
        tone_engine: Tone trigger to use instead of building one from the config
        clock: Monotonic clock in seconds
    """

    def __init__(self, app_state: AppState,
                 capture_factory: Callable = CaptureSession,
                 tone_engine: Optional[ToneEngine] = None,
                 clock: Callable[[], float] = time.monotonic):
        self.app_state = app_state
        self.capture_factory = capture_factory
        self.clock = clock
        self.logger = logging.getLogger(f"{__name__}.LiveSession")

        self.capture = None
        self.pipeline: Optional[FramePipeline] = None
        self.recorder: Optional[ChordRecorder] = None
        self.tone_engine = tone_engine
        self.stats = SessionStats()
        self.last_result: Optional[FrameResult] = None
        self._started_at: Optional[float] = None
        self._stop_requested = False
        self._preview_open = False

    @property
    def is_running(self) -> bool:
        return self.capture is not None

    def start(self) -> None:
        """
        Open the capture source and build fresh pipeline state.

        Any failure after the device is opened releases it, stops audio
        started here and re-raises; the session is then still stopped.

        Raises:
            CaptureUnavailableError: If the source cannot be opened
            DetectionConfigError: If the detection settings are unusable
            ValueError: If the grid, window or note settings are unusable
        """
        if self.is_running:
            self.logger.warning("[SESSION] start() called on a running session")
            return

        # The device is opened before any state exists
        capture = self.capture_factory(self.app_state.session.source)
        owns_engine = self.tone_engine is None
        audio_started = False

        try:
            extractor = DetectionFactory.create_from_app_state(self.app_state)
            classifier = BlobClassifier(self.app_state.detection.profile)

            if owns_engine and self.app_state.audio.enabled:
                self.tone_engine = ToneEngine.from_config(self.app_state.audio)
            if self.tone_engine is not None:
                audio_started = True
                if not self.tone_engine.start():
                    self.logger.warning("[SESSION] Audio output unavailable, chords will be deferred")

            state = PipelineState.from_app_state(self.app_state, capture.width, capture.height,
                                                 trigger=self.tone_engine)
            pipeline = FramePipeline(extractor, classifier, state)
            state.chord.add_listener(self._on_chord_transition)

            recorder = None
            if self.app_state.session.record_path:
                recorder = ChordRecorder(tempo=self.app_state.session.midi_tempo, clock=self.clock)
                state.chord.add_listener(recorder.on_transition)
        except Exception as e:
            self.logger.error(f"[SESSION] Setup failed, releasing capture: {e}")
            capture.release()
            if audio_started:
                self.tone_engine.stop()
            if owns_engine:
                self.tone_engine = None
            raise

        self.pipeline = pipeline
        self.recorder = recorder
        self.capture = capture
        self.stats = SessionStats()
        self.last_result = None
        self._stop_requested = False
        self._started_at = self.clock()

        self.logger.info(f"[SESSION] Started on {self.app_state.session.source} "
                         f"({capture.width}x{capture.height}), detection={extractor.get_name()}, "
                         f"grid={self.app_state.grid.mode}, window={self.app_state.window.mode}")

    def _on_chord_transition(self, transition: ChordTransition, frequencies) -> None:
        if transition is ChordTransition.TRIGGERED:
            self.stats.chords_triggered += 1

    def step(self) -> Optional[FrameResult]:
        """
        Read and process one frame.

        Returns:
            The frame result, or None when the source has no more frames
        """
        if not self.is_running:
            return None

        success, frame = self.capture.read_frame()
        if not success:
            return None

        result = self.pipeline.process_frame(frame)
        self.last_result = result
        self.stats.frames += 1
        if result.failed:
            self.stats.failed_frames += 1
            self.stats.max_consecutive_failures = max(self.stats.max_consecutive_failures,
                                                      self.pipeline.consecutive_failures)

        if self.app_state.session.show_preview:
            self._show_preview(frame, result)
        return result

    def _show_preview(self, frame, result: FrameResult) -> None:
        state = self.pipeline.state
        canvas = draw_overlay(frame, state.grid.state, state.window.state, result.candidates)
        draw_status(canvas, status_text(result))
        cv2.imshow(PREVIEW_WINDOW, canvas)
        self._preview_open = True
        if (cv2.waitKey(1) & 0xFF) in QUIT_KEYS:
            self.logger.info("[SESSION] Quit key pressed")
            self._stop_requested = True

    def run(self, max_frames: Optional[int] = None) -> SessionStats:
        """
        Start if needed and process frames until the source ends, the quit
        key is pressed or ``max_frames`` is reached. Always stops the session.
        """
        if not self.is_running:
            self.start()
        try:
            while not self._stop_requested:
                if max_frames is not None and self.stats.frames >= max_frames:
                    break
                if self.step() is None:
                    self.logger.info("[SESSION] Capture source ended")
                    break
        except KeyboardInterrupt:
            self.logger.info("[SESSION] Interrupted")
        finally:
            self.stop()
        return self.stats

    def stop(self) -> SessionStats:
        """Release the device, reset per-frame state, stop audio and save the recording."""
        if not self.is_running:
            return self.stats

        self.capture.release()
        self.capture = None

        if self.pipeline is not None:
            self.logger.debug(f"[SESSION] Final state: {self.pipeline.state.get_state_summary()}")
            self.pipeline.reset()
        if self.tone_engine is not None:
            self.tone_engine.stop()

        record_path = self.app_state.session.record_path
        if self.recorder is not None and record_path:
            self.recorder.save(record_path)
        self.recorder = None

        self.last_result = None
        if self._preview_open:
            cv2.destroyWindow(PREVIEW_WINDOW)
            self._preview_open = False

        if self._started_at is not None:
            self.stats.duration_s = self.clock() - self._started_at
        self.logger.info(f"[SESSION] Stopped: {self.stats.frames} frames "
                         f"({self.stats.failed_frames} failed), {self.stats.chords_triggered} chords, "
                         f"{self.stats.effective_fps:.1f} fps")
        return self.stats
