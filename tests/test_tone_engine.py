from unittest.mock import MagicMock, patch

import numpy as np
import pytest

from marker2pitch.app_config import PENDING_CHORD_LIMIT
from marker2pitch.audio.tone_engine import ToneEngine, render_tone, tone_envelope

SAMPLE_RATE = 1000  # 1 sample per millisecond keeps the envelope easy to read


def make_stream():
    stream = MagicMock()
    stream.active = False

    def _start():
        stream.active = True

    stream.start.side_effect = _start
    return stream


def run_callback(engine, frames):
    outdata = np.zeros((frames, 1), dtype=np.float32)
    engine._callback(outdata, frames, None, None)
    return outdata[:, 0]


class TestToneEnvelope:
    def test_shape(self):
        envelope = tone_envelope(SAMPLE_RATE)

        assert envelope.size == 150
        assert envelope[0] == 0.0
        assert envelope[5] == pytest.approx(0.5)
        assert envelope.max() == pytest.approx(0.5)
        assert envelope[100] == pytest.approx(0.0)
        assert np.all(envelope[100:] == 0.0)

    def test_rendered_tone_is_bounded_and_read_only(self):
        samples = render_tone(50.0, SAMPLE_RATE)

        assert samples.dtype == np.float32
        assert np.abs(samples).max() <= 0.5 + 1e-6
        assert not samples.flags.writeable


class TestToneEngine:
    @pytest.fixture
    def engine(self):
        return ToneEngine(sample_rate=SAMPLE_RATE)

    def test_play_before_start_is_deferred(self, engine):
        engine.play({440.0})

        assert engine.pending_count == 1
        assert not engine.is_active

    def test_pending_queue_is_bounded(self, engine):
        for i in range(PENDING_CHORD_LIMIT + 3):
            engine.play({100.0 + i})

        assert engine.pending_count == PENDING_CHORD_LIMIT

    def test_start_flushes_deferred_chords(self, engine):
        stream = make_stream()
        engine.play({50.0, 75.0})

        with patch.object(ToneEngine, "_open_stream", return_value=stream):
            assert engine.start() is True

        assert engine.is_active
        assert engine.pending_count == 0
        out = run_callback(engine, 20)
        assert np.any(out != 0.0)
        assert engine.active_voice_count() == 2

    def test_play_while_active_is_queued_for_callback(self, engine):
        with patch.object(ToneEngine, "_open_stream", return_value=make_stream()):
            engine.start()

        engine.play({50.0})

        assert engine.pending_count == 0
        assert np.any(run_callback(engine, 20) != 0.0)

    def test_voices_finish_after_tone_duration(self, engine):
        with patch.object(ToneEngine, "_open_stream", return_value=make_stream()):
            engine.start()
        engine.play({50.0})

        run_callback(engine, 200)

        assert engine.active_voice_count() == 0
        assert np.all(run_callback(engine, 20) == 0.0)

    def test_start_failure_reported(self, engine):
        with patch.object(ToneEngine, "_open_stream", side_effect=OSError("no output device")):
            assert engine.start() is False

        engine.play({440.0})
        assert engine.pending_count == 1

    def test_paused_stream_is_resumed_on_play(self, engine):
        stream = make_stream()
        with patch.object(ToneEngine, "_open_stream", return_value=stream):
            engine.start()
        stream.active = False

        engine.play({440.0})

        assert stream.start.call_count == 2
        assert engine.pending_count == 0

    def test_silent_frequencies_ignored(self, engine):
        engine.play(set())
        engine.play({0.0})
        assert engine.pending_count == 0

    def test_stop_closes_stream_and_drops_pending(self, engine):
        stream = make_stream()
        with patch.object(ToneEngine, "_open_stream", return_value=stream):
            engine.start()
        stream.active = False
        engine._pending.append((440.0,))

        engine.stop()

        stream.stop.assert_called_once()
        stream.close.assert_called_once()
        assert engine.pending_count == 0
        assert not engine.is_active

    def test_stop_without_stream(self, engine):
        engine.stop()
        assert not engine.is_active


class TestStreamRecovery:
    @pytest.fixture
    def now(self):
        return [100.0]

    @pytest.fixture
    def engine(self, now):
        return ToneEngine(sample_rate=SAMPLE_RATE, retry_interval_s=1.0, clock=lambda: now[0])

    def test_failed_open_is_retried_on_play(self, engine, now):
        with patch.object(ToneEngine, "_open_stream", side_effect=OSError("no output device")):
            assert engine.start() is False

        stream = make_stream()
        with patch.object(ToneEngine, "_open_stream", return_value=stream) as open_stream:
            engine.play({440.0})
            assert open_stream.call_count == 0
            assert engine.pending_count == 1

            now[0] += 1.0
            engine.play({550.0})
            assert open_stream.call_count == 1

        assert engine.is_active
        assert engine.pending_count == 0
        run_callback(engine, 20)
        assert engine.active_voice_count() == 2

    def test_play_does_not_open_before_start(self, engine, now):
        with patch.object(ToneEngine, "_open_stream") as open_stream:
            engine.play({440.0})
            now[0] += 5.0
            engine.play({550.0})

        open_stream.assert_not_called()
        assert engine.pending_count == 2

    def test_play_does_not_reopen_after_stop(self, engine, now):
        with patch.object(ToneEngine, "_open_stream", return_value=make_stream()) as open_stream:
            engine.start()
            engine.stop()
            now[0] += 5.0
            engine.play({440.0})

        assert open_stream.call_count == 1
        assert engine.pending_count == 1


class TestStopLetsTonesFinish:
    def test_sounding_voice_finishes_before_close(self):
        engine = ToneEngine(sample_rate=SAMPLE_RATE)
        stream = make_stream()
        with patch.object(ToneEngine, "_open_stream", return_value=stream):
            engine.start()
        engine.play({50.0})
        run_callback(engine, 20)
        assert engine.active_voice_count() == 1

        with patch("marker2pitch.audio.tone_engine.time.sleep",
                   side_effect=lambda _: run_callback(engine, 50)) as sleep:
            engine.stop()

        assert sleep.call_count >= 1
        assert engine.active_voice_count() == 0
        stream.stop.assert_called_once()
        stream.close.assert_called_once()

    def test_wait_is_bounded_by_tone_duration(self):
        now = [0.0]

        def advance(_):
            now[0] += 0.06

        engine = ToneEngine(sample_rate=SAMPLE_RATE, clock=lambda: now[0])
        stream = make_stream()
        with patch.object(ToneEngine, "_open_stream", return_value=stream):
            engine.start()
        engine.play({50.0})

        with patch("marker2pitch.audio.tone_engine.time.sleep", side_effect=advance) as sleep:
            engine.stop()

        # The callback never ran, so the wait ends at the deadline
        assert sleep.call_count == 3
        stream.close.assert_called_once()
