from unittest.mock import MagicMock, patch

import cv2
import numpy as np
import pytest

from marker2pitch.detection.base import DetectionConfigError
from marker2pitch.tracking.chord_deduper import ChordTransition
from marker2pitch.video_loader import CaptureUnavailableError, parse_source
from marker2pitch.workflows.frame_pipeline import FrameResult
from marker2pitch.workflows.live_session import LiveSession, status_text


def marker_frame(*centres):
    frame = np.full((310, 640, 3), 255, dtype=np.uint8)
    for centre in centres:
        cv2.circle(frame, centre, 8, (0, 0, 0), -1)
    return frame


class FakeCapture:
    def __init__(self, frames, width=640, height=310):
        self.frames = list(frames)
        self.width = width
        self.height = height
        self.released = False

    def read_frame(self):
        if not self.frames:
            return False, None
        return True, self.frames.pop(0)

    def release(self):
        self.released = True


class TestLiveSession:
    @pytest.fixture
    def tone_engine(self):
        return MagicMock()

    def make_session(self, app_state, frames, tone_engine):
        capture = FakeCapture(frames)
        session = LiveSession(app_state, capture_factory=lambda source: capture, tone_engine=tone_engine)
        return session, capture

    def test_held_marker_plays_once_per_session(self, static_app_state, tone_engine):
        frames = [marker_frame((320, 20))] * 3
        session, capture = self.make_session(static_app_state, frames, tone_engine)

        stats = session.run()

        assert stats.frames == 3
        assert stats.chords_triggered == 1
        assert tone_engine.play.call_count == 1
        assert capture.released

    def test_stop_resets_state_and_audio(self, static_app_state, tone_engine):
        session, capture = self.make_session(static_app_state, [marker_frame((320, 20))], tone_engine)
        session.start()
        session.step()
        assert session.pipeline.state.chord.chord_active

        session.stop()

        assert not session.is_running
        assert capture.released
        assert session.last_result is None
        assert not session.pipeline.state.chord.chord_active
        tone_engine.stop.assert_called_once()

    def test_restart_starts_from_clean_state(self, static_app_state, tone_engine):
        session, _ = self.make_session(static_app_state, [marker_frame((320, 20))], tone_engine)
        session.run()

        second = FakeCapture([marker_frame((320, 20))])
        session.capture_factory = lambda source: second
        session.run()

        assert tone_engine.play.call_count == 2

    def test_unavailable_capture_raises_before_state_exists(self, static_app_state, tone_engine):
        def unavailable(source):
            raise CaptureUnavailableError("no camera")

        session = LiveSession(static_app_state, capture_factory=unavailable, tone_engine=tone_engine)

        with pytest.raises(CaptureUnavailableError):
            session.start()
        assert session.pipeline is None
        tone_engine.start.assert_not_called()

    def test_bad_frame_counted_and_skipped(self, static_app_state, tone_engine):
        frames = [
            marker_frame((320, 20)),
            np.zeros((310, 640), dtype=np.uint8),  # not a BGR frame
            marker_frame((320, 20)),
        ]
        session, _ = self.make_session(static_app_state, frames, tone_engine)

        stats = session.run()

        assert stats.frames == 3
        assert stats.failed_frames == 1
        assert stats.max_consecutive_failures == 1
        # The failed frame released the chord, so it plays again afterwards
        assert tone_engine.play.call_count == 2

    def test_max_frames(self, static_app_state, tone_engine):
        session, capture = self.make_session(static_app_state, [marker_frame()] * 5, tone_engine)

        stats = session.run(max_frames=2)

        assert stats.frames == 2
        assert len(capture.frames) == 3

    def test_recording_saved_on_stop(self, static_app_state, tone_engine, tmp_path):
        path = tmp_path / "take.mid"
        static_app_state.session.record_path = str(path)
        frames = [marker_frame((320, 20)), marker_frame((320, 60)), marker_frame()]
        session, _ = self.make_session(static_app_state, frames, tone_engine)

        session.run()

        assert path.exists()
        assert path.read_bytes().startswith(b"MThd")


class TestSessionSetupFailure:
    def test_bad_window_settings_release_capture_and_audio(self, static_app_state):
        static_app_state.window.alpha = 0.0
        capture = FakeCapture([marker_frame((320, 20))])
        tone_engine = MagicMock()
        session = LiveSession(static_app_state, capture_factory=lambda source: capture,
                              tone_engine=tone_engine)

        with pytest.raises(ValueError):
            session.start()

        assert capture.released
        assert not session.is_running
        assert session.pipeline is None
        tone_engine.start.assert_called_once()
        tone_engine.stop.assert_called_once()

    def test_detection_failure_leaves_audio_untouched(self, static_app_state):
        capture = FakeCapture([])
        tone_engine = MagicMock()
        session = LiveSession(static_app_state, capture_factory=lambda source: capture,
                              tone_engine=tone_engine)

        with patch("marker2pitch.workflows.live_session.DetectionFactory.create_from_app_state",
                   side_effect=DetectionConfigError("bad hue range")):
            with pytest.raises(DetectionConfigError):
                session.start()

        assert capture.released
        tone_engine.start.assert_not_called()
        tone_engine.stop.assert_not_called()

    def test_engine_built_for_failed_session_is_discarded(self, static_app_state):
        static_app_state.audio.enabled = True
        static_app_state.window.alpha = 0.0
        capture = FakeCapture([])
        built = MagicMock()
        session = LiveSession(static_app_state, capture_factory=lambda source: capture)

        with patch("marker2pitch.workflows.live_session.ToneEngine.from_config", return_value=built):
            with pytest.raises(ValueError):
                session.start()

        built.stop.assert_called_once()
        assert session.tone_engine is None
        assert capture.released

    def test_session_starts_after_failed_attempt(self, static_app_state):
        static_app_state.window.alpha = 0.0
        tone_engine = MagicMock()
        session = LiveSession(static_app_state, capture_factory=lambda source: FakeCapture([]),
                              tone_engine=tone_engine)
        with pytest.raises(ValueError):
            session.start()

        static_app_state.window.alpha = 0.5
        session.start()

        assert session.is_running
        session.stop()
        assert not session.is_running


class TestStatusText:
    def test_messages(self):
        assert status_text(FrameResult(transition=ChordTransition.TRIGGERED,
                                       labels=["C4", "E4"])) == "Playing chord: C4 + E4"
        assert status_text(FrameResult(transition=ChordTransition.SUSTAINED)) == "Holding chord"
        assert status_text(FrameResult(transition=ChordTransition.RELEASED)) == "Waiting for notes"


class TestParseSource:
    def test_camera_index(self):
        assert parse_source("0") == 0
        assert parse_source(2) == 2

    def test_file_path(self):
        assert parse_source("clip.mp4") == "clip.mp4"
