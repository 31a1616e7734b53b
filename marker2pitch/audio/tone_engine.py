"""
Tone engine: short enveloped sine tones through a sounddevice output stream.

The rest of the system only calls ``play(frequencies)``. Chords are handed to
the audio callback through a queue and mixed there, so ``play`` never blocks
the frame loop. Chords played while the stream is not running are held in a
small pending queue and flushed once it starts.
"""
import logging
import queue
import threading
import time
from collections import deque
from functools import lru_cache
from typing import Callable, Deque, Iterable, List, Optional, Tuple

import numpy as np

from marker2pitch.app_config import (
    DEFAULT_SAMPLE_RATE,
    PENDING_CHORD_LIMIT,
    STREAM_RETRY_INTERVAL_S,
    TONE_ATTACK_S,
    TONE_DECAY_S,
    TONE_DURATION_S,
    TONE_PEAK_GAIN,
)


def tone_envelope(sample_rate: int = DEFAULT_SAMPLE_RATE,
                  peak_gain: float = TONE_PEAK_GAIN,
                  attack_s: float = TONE_ATTACK_S,
                  decay_s: float = TONE_DECAY_S,
                  duration_s: float = TONE_DURATION_S) -> np.ndarray:
    """
    Gain curve: linear rise to ``peak_gain`` over the attack, linear fall to
    zero at ``decay_s``, silence until ``duration_s``.
    """
    n = int(round(duration_s * sample_rate))
    t = np.arange(n, dtype=np.float64) / float(sample_rate)
    return np.interp(t, [0.0, attack_s, decay_s, duration_s], [0.0, peak_gain, 0.0, 0.0])


@lru_cache(maxsize=128)
def render_tone(frequency: float,
                sample_rate: int = DEFAULT_SAMPLE_RATE,
                peak_gain: float = TONE_PEAK_GAIN,
                attack_s: float = TONE_ATTACK_S,
                decay_s: float = TONE_DECAY_S,
                duration_s: float = TONE_DURATION_S) -> np.ndarray:
    """Render one enveloped sine tone as float32 samples."""
    envelope = tone_envelope(sample_rate, peak_gain, attack_s, decay_s, duration_s)
    t = np.arange(envelope.size, dtype=np.float64) / float(sample_rate)
    samples = np.sin(2.0 * np.pi * frequency * t) * envelope
    samples = samples.astype(np.float32)
    samples.setflags(write=False)
    return samples


class _ToneVoice:
    """Playback cursor over a rendered tone."""

    __slots__ = ("samples", "pos")

    def __init__(self, samples: np.ndarray):
        self.samples = samples
        self.pos = 0

    @property
    def done(self) -> bool:
        return self.pos >= self.samples.size

    def render_into(self, out: np.ndarray) -> None:
        n = min(out.size, self.samples.size - self.pos)
        if n > 0:
            out[:n] += self.samples[self.pos:self.pos + n]
            self.pos += n


class ToneEngine:
    """
    sounddevice-backed tone trigger.

    Parameters
    ----------
    sample_rate : int
        Output sample rate in Hz.
    peak_gain, attack_s, decay_s, duration_s : float
        Envelope of every tone.
    retry_interval_s : float
        Minimum time between attempts to reopen a stream that failed to open.
    clock : callable
        Monotonic clock in seconds.
    """

    def __init__(self,
                 sample_rate: int = DEFAULT_SAMPLE_RATE,
                 peak_gain: float = TONE_PEAK_GAIN,
                 attack_s: float = TONE_ATTACK_S,
                 decay_s: float = TONE_DECAY_S,
                 duration_s: float = TONE_DURATION_S,
                 retry_interval_s: float = STREAM_RETRY_INTERVAL_S,
                 clock: Callable[[], float] = time.monotonic):
        self.sample_rate = sample_rate
        self._envelope = (peak_gain, attack_s, decay_s, duration_s)
        self.retry_interval_s = retry_interval_s
        self._clock = clock
        self._stream = None
        # Set by start(), cleared by stop(); play() only reopens while wanted
        self._wanted = False
        self._last_start_attempt: Optional[float] = None
        self._events: "queue.SimpleQueue[Tuple[float, ...]]" = queue.SimpleQueue()
        self._pending: Deque[Tuple[float, ...]] = deque(maxlen=PENDING_CHORD_LIMIT)
        self._voices: List[_ToneVoice] = []
        self._lock = threading.Lock()
        self.logger = logging.getLogger(f"{__name__}.ToneEngine")

    @classmethod
    def from_config(cls, audio_config) -> "ToneEngine":
        return cls(
            sample_rate=audio_config.sample_rate,
            peak_gain=audio_config.peak_gain,
            attack_s=audio_config.attack_s,
            decay_s=audio_config.decay_s,
            duration_s=audio_config.duration_s,
        )

    # -----------------------------------------------------------------
    # Lifecycle
    # -----------------------------------------------------------------
    @property
    def is_active(self) -> bool:
        """True when the output stream is running."""
        return self._stream is not None and bool(self._stream.active)

    @property
    def pending_count(self) -> int:
        return len(self._pending)

    def _open_stream(self):
        import sounddevice as sd

        return sd.OutputStream(
            samplerate=self.sample_rate,
            channels=1,
            dtype="float32",
            callback=self._callback,
            blocksize=0,
        )

    def start(self) -> bool:
        """
        Open and start the output stream, then flush deferred chords.

        Returns:
            True if the stream is running
        """
        with self._lock:
            self._wanted = True
            self._last_start_attempt = self._clock()
            try:
                if self._stream is None:
                    self._stream = self._open_stream()
                if not self._stream.active:
                    self._stream.start()
            except Exception as exc:
                self.logger.error(f"[AUDIO] Could not start output stream: {exc}")
                return False

            while self._pending:
                self._events.put(self._pending.popleft())

        self.logger.info(f"[AUDIO] Output stream running at {self.sample_rate} Hz")
        return True

    def _drain(self, stream) -> None:
        """Wait for sounding voices to finish, at most one tone duration."""
        if not stream.active:
            return
        deadline = self._clock() + self._envelope[3]
        while (self._voices or not self._events.empty()) and self._clock() < deadline:
            time.sleep(0.005)

    def stop(self) -> None:
        """
        Let sounding tones finish, then stop and close the stream. Deferred
        chords are dropped.
        """
        stream = self._stream
        if stream is not None:
            self._drain(stream)

        with self._lock:
            self._wanted = False
            stream, self._stream = self._stream, None
            self._pending.clear()
            while not self._events.empty():
                self._events.get_nowait()
        if stream is None:
            return
        try:
            stream.stop()
            stream.close()
        except Exception as exc:
            self.logger.warning(f"[AUDIO] Error while closing output stream: {exc}")
        self.logger.info("[AUDIO] Output stream closed")

    # -----------------------------------------------------------------
    # Playback
    # -----------------------------------------------------------------
    def play(self, frequencies: Iterable[float]) -> None:
        """
        Queue one tone per frequency (non-blocking).

        When the stream is not running the chord is deferred and a restart is
        attempted: a paused stream is resumed at once, a stream that failed to
        open is reopened at most once per ``retry_interval_s``.
        """
        chord = tuple(sorted(float(f) for f in frequencies if f and f > 0))
        if not chord:
            return

        if self.is_active:
            self._events.put(chord)
            return

        with self._lock:
            self._pending.append(chord)
            retry = self._stream is not None or (self._wanted and self._reopen_due())
        self.logger.debug(f"[AUDIO] Stream inactive, deferred chord {chord}")

        if retry:
            self.start()

    def _reopen_due(self) -> bool:
        if self._last_start_attempt is None:
            return True
        return self._clock() - self._last_start_attempt >= self.retry_interval_s

    def _callback(self, outdata, frames, time_info, status) -> None:
        if status:
            self.logger.debug(f"[AUDIO] Stream status: {status}")

        while True:
            try:
                chord = self._events.get_nowait()
            except queue.Empty:
                break
            for frequency in chord:
                self._voices.append(_ToneVoice(render_tone(frequency, self.sample_rate, *self._envelope)))

        out = np.zeros(frames, dtype=np.float32)
        for voice in self._voices:
            voice.render_into(out)
        self._voices = [voice for voice in self._voices if not voice.done]

        np.clip(out, -1.0, 1.0, out=out)
        outdata[:, 0] = out

    def active_voice_count(self) -> int:
        return len(self._voices)
