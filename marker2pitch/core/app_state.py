"""
Organized application state with validation and clear ownership.
"""
import logging
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Tuple

from marker2pitch.app_config import (
    DEFAULT_ERODE_KERNEL,
    DEFAULT_GRAY_THRESHOLD,
    DEFAULT_GRID_MARGIN,
    DEFAULT_HUE_RANGES,
    DEFAULT_IDLE_ALPHA,
    DEFAULT_MIDI_TEMPO,
    DEFAULT_MORPH_KERNEL,
    DEFAULT_NOTE_TABLE,
    DEFAULT_SAMPLE_RATE,
    DEFAULT_SATURATION_MIN,
    DEFAULT_VALUE_MIN,
    DEFAULT_WINDOW_ALPHA,
    DEFAULT_WINDOW_WIDTH,
    DETECTION_COLOR,
    DETECTION_GRAYSCALE,
    GRID_DYNAMIC,
    GRID_STATIC,
    HUE_SCALE_MAX,
    MIN_GRID_SPAN,
    SHAPE_PROFILES,
    SHAPE_ROUND,
    TONE_ATTACK_S,
    TONE_DECAY_S,
    TONE_DURATION_S,
    TONE_PEAK_GAIN,
    WINDOW_FIXED,
    WINDOW_TRACKING,
    NoteEntry,
    ShapeProfile,
)


@dataclass
class DetectionConfig:
    """All detection-related settings grouped together."""

    # Strategy selection
    strategy: str = DETECTION_GRAYSCALE
    shape_profile: str = SHAPE_ROUND

    # Grayscale strategy
    gray_threshold: int = DEFAULT_GRAY_THRESHOLD
    erode_kernel: int = DEFAULT_ERODE_KERNEL

    # Colour strategy (hue on the OpenCV 0-180 scale)
    hue_ranges: List[Tuple[int, int]] = field(default_factory=lambda: list(DEFAULT_HUE_RANGES))
    saturation_min: int = DEFAULT_SATURATION_MIN
    value_min: int = DEFAULT_VALUE_MIN
    morph_kernel: int = DEFAULT_MORPH_KERNEL

    @property
    def profile(self) -> ShapeProfile:
        return SHAPE_PROFILES[self.shape_profile]

    def validate(self) -> List[str]:
        """Validate detection configuration and return error messages."""
        errors = []

        if self.strategy not in (DETECTION_GRAYSCALE, DETECTION_COLOR):
            errors.append(f"Detection strategy '{self.strategy}' must be "
                          f"'{DETECTION_GRAYSCALE}' or '{DETECTION_COLOR}'")

        if self.shape_profile not in SHAPE_PROFILES:
            errors.append(f"Shape profile '{self.shape_profile}' must be one of {sorted(SHAPE_PROFILES)}")

        if not 0 <= self.gray_threshold <= 255:
            errors.append(f"Gray threshold {self.gray_threshold} must be between 0 and 255")

        if self.erode_kernel < 1:
            errors.append("Erode kernel size must be at least 1")

        if self.morph_kernel < 1:
            errors.append("Morphology kernel size must be at least 1")

        if not self.hue_ranges:
            errors.append("At least one hue range is required")
        for low, high in self.hue_ranges:
            if not 0 <= low <= high <= HUE_SCALE_MAX:
                errors.append(f"Hue range ({low}, {high}) must satisfy 0 <= low <= high <= {HUE_SCALE_MAX}")

        if not 0 <= self.saturation_min <= 255:
            errors.append(f"Saturation floor {self.saturation_min} must be between 0 and 255")

        if not 0 <= self.value_min <= 255:
            errors.append(f"Value floor {self.value_min} must be between 0 and 255")

        return errors


@dataclass
class GridConfig:
    """Vertical pitch grid settings."""

    mode: str = GRID_DYNAMIC
    margin: float = DEFAULT_GRID_MARGIN
    min_span: float = MIN_GRID_SPAN
    notes: List[NoteEntry] = field(default_factory=lambda: list(DEFAULT_NOTE_TABLE))

    def validate(self) -> List[str]:
        errors = []

        if self.mode not in (GRID_STATIC, GRID_DYNAMIC):
            errors.append(f"Grid mode '{self.mode}' must be '{GRID_STATIC}' or '{GRID_DYNAMIC}'")

        if self.margin < 0:
            errors.append("Grid margin must be non-negative")

        if self.min_span <= 0:
            errors.append("Minimum grid span must be positive")

        if not self.notes:
            errors.append("Note table must contain at least one note")

        labels = [note.label for note in self.notes]
        if len(set(labels)) != len(labels):
            errors.append("Note labels must be unique")

        for note in self.notes:
            if note.is_anchor:
                errors.append(f"Note '{note.label}' uses the reserved anchor pitch number")
            elif not 1 <= note.midi <= 127:
                errors.append(f"Note '{note.label}' pitch number {note.midi} must be between 1 and 127")

        return errors


@dataclass
class WindowConfig:
    """Horizontal tracking window settings."""

    mode: str = WINDOW_TRACKING
    width: float = DEFAULT_WINDOW_WIDTH
    alpha: float = DEFAULT_WINDOW_ALPHA
    idle_alpha: float = DEFAULT_IDLE_ALPHA

    def validate(self) -> List[str]:
        errors = []

        if self.mode not in (WINDOW_FIXED, WINDOW_TRACKING):
            errors.append(f"Window mode '{self.mode}' must be '{WINDOW_FIXED}' or '{WINDOW_TRACKING}'")

        if self.width <= 0:
            errors.append("Window width must be positive")

        if not 0.0 < self.alpha <= 1.0:
            errors.append(f"Smoothing factor {self.alpha} must be in (0, 1]")

        if not 0.0 <= self.idle_alpha <= 1.0:
            errors.append(f"Idle smoothing factor {self.idle_alpha} must be in [0, 1]")

        return errors


@dataclass
class AudioConfig:
    """Tone engine settings."""

    enabled: bool = True
    sample_rate: int = DEFAULT_SAMPLE_RATE
    peak_gain: float = TONE_PEAK_GAIN
    attack_s: float = TONE_ATTACK_S
    decay_s: float = TONE_DECAY_S
    duration_s: float = TONE_DURATION_S

    def validate(self) -> List[str]:
        errors = []

        if self.sample_rate <= 0:
            errors.append("Sample rate must be positive")

        if not 0.0 < self.peak_gain <= 1.0:
            errors.append(f"Peak gain {self.peak_gain} must be in (0, 1]")

        if not 0.0 < self.attack_s < self.decay_s <= self.duration_s:
            errors.append("Envelope times must satisfy 0 < attack < decay <= duration")

        return errors


@dataclass
class SessionConfig:
    """Capture, preview and recording settings."""

    source: str = "0"  # camera index or video file path
    show_preview: bool = True
    record_path: Optional[str] = None
    midi_tempo: int = DEFAULT_MIDI_TEMPO

    def validate(self) -> List[str]:
        errors = []

        if not self.source:
            errors.append("Capture source must not be empty")

        if not 20 <= self.midi_tempo <= 300:
            errors.append(f"Tempo {self.midi_tempo} should be between 20 and 300 BPM")

        return errors


@dataclass
class AppState:
    """
    Organized application state with clear boundaries and validation.
    """

    detection: DetectionConfig = field(default_factory=DetectionConfig)
    grid: GridConfig = field(default_factory=GridConfig)
    window: WindowConfig = field(default_factory=WindowConfig)
    audio: AudioConfig = field(default_factory=AudioConfig)
    session: SessionConfig = field(default_factory=SessionConfig)

    def validate(self) -> List[str]:
        """
        Comprehensive validation of all state groups.

        Returns:
            List of validation error messages (empty if valid)
        """
        all_errors = []

        all_errors.extend([f"Detection: {err}" for err in self.detection.validate()])
        all_errors.extend([f"Grid: {err}" for err in self.grid.validate()])
        all_errors.extend([f"Window: {err}" for err in self.window.validate()])
        all_errors.extend([f"Audio: {err}" for err in self.audio.validate()])
        all_errors.extend([f"Session: {err}" for err in self.session.validate()])

        if all_errors:
            logging.debug(f"AppState validation found {len(all_errors)} problems")

        return all_errors

    def get_state_summary(self) -> Dict[str, Any]:
        """Get a summary of current state for debugging."""
        return {
            "detection": {
                "strategy": self.detection.strategy,
                "shape_profile": self.detection.shape_profile,
            },
            "grid": {
                "mode": self.grid.mode,
                "notes": len(self.grid.notes),
            },
            "window": {
                "mode": self.window.mode,
                "width": self.window.width,
                "alpha": self.window.alpha,
            },
            "audio": {
                "enabled": self.audio.enabled,
                "sample_rate": self.audio.sample_rate,
            },
            "session": {
                "source": self.session.source,
                "preview": self.session.show_preview,
                "record_path": self.session.record_path,
            },
        }
