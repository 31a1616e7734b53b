"""
Application configuration constants and core data structures.

Defines global constants, default values, and data classes used throughout
the marker2pitch application. Contains the marker shape profiles, the default
note table, colour-mask defaults, and pitch conversion helpers.

Key Components:
- NoteEntry: one row of the ordered note table
- ShapeProfile: area / aspect / solidity limits for a marker shape
- Default note table (bracketed by anchors in dynamic grid mode)
- Audio envelope and grid/window defaults
"""
import logging
import math
from dataclasses import dataclass
from typing import Dict, List, Optional, Tuple

# --- General App Config ---
APP_NAME = "marker2pitch"
LOG_DIR = "logs"
DEFAULT_MIDI_TEMPO = 120

# --- Note Names ---
NOTE_NAMES_SHARP = ["C", "C#", "D", "D#", "E", "F", "F#", "G", "G#", "A", "A#", "B"]

# --- Anchors ---
ANCHOR_TOP_LABEL = "ANCHOR_TOP"
ANCHOR_BOTTOM_LABEL = "ANCHOR_BOTTOM"
ANCHOR_MIDI = 0  # marks a non-sounding row in the note table

# --- Detection modes ---
DETECTION_GRAYSCALE = "grayscale"
DETECTION_COLOR = "color"

SHAPE_ROUND = "round"
SHAPE_SQUARE = "square"

GRID_STATIC = "static"
GRID_DYNAMIC = "dynamic"

WINDOW_FIXED = "fixed"
WINDOW_TRACKING = "tracking"

# --- Grid defaults ---
DEFAULT_GRID_MARGIN = 10.0   # px from the top and bottom frame edges
MIN_GRID_SPAN = 5.0          # px; anchor pairs closer than this are ignored

# --- Tracking window defaults ---
DEFAULT_WINDOW_WIDTH = 20.0
DEFAULT_WINDOW_ALPHA = 0.1
DEFAULT_IDLE_ALPHA = 0.005

# --- Grayscale preprocessing ---
DEFAULT_GRAY_THRESHOLD = 120
DEFAULT_ERODE_KERNEL = 2

# --- Colour preprocessing (OpenCV hue scale 0-180) ---
HUE_SCALE_MAX = 180
DEFAULT_HUE_RANGES: List[Tuple[int, int]] = [(0, 10), (170, 180)]  # saturated red
DEFAULT_SATURATION_MIN = 100
DEFAULT_VALUE_MIN = 80
DEFAULT_MORPH_KERNEL = 3

# --- Audio envelope ---
DEFAULT_SAMPLE_RATE = 44100
TONE_PEAK_GAIN = 0.5
TONE_ATTACK_S = 0.005
TONE_DECAY_S = 0.1
TONE_DURATION_S = 0.15
PENDING_CHORD_LIMIT = 8
STREAM_RETRY_INTERVAL_S = 1.0


@dataclass(frozen=True)
class NoteEntry:
    """One row of the ordered note table."""
    label: str
    midi: int

    @property
    def is_anchor(self) -> bool:
        return self.midi == ANCHOR_MIDI

    @property
    def frequency(self) -> Optional[float]:
        """Frequency in Hz, or None for anchor rows."""
        if self.is_anchor:
            return None
        return midi_to_frequency(self.midi)


@dataclass(frozen=True)
class ShapeProfile:
    """Acceptance limits for a marker shape."""
    name: str
    area_min: float
    area_max: float
    aspect_min: float
    aspect_max: float
    solidity_min: float


SHAPE_PROFILES: Dict[str, ShapeProfile] = {
    SHAPE_ROUND: ShapeProfile(SHAPE_ROUND, 50.0, 4000.0, 0.5, 2.0, 0.80),
    SHAPE_SQUARE: ShapeProfile(SHAPE_SQUARE, 70.0, 6000.0, 0.7, 1.3, 0.85),
}

# Top of the frame is the first row, so the table reads downwards.
DEFAULT_NOTE_TABLE: List[NoteEntry] = [
    NoteEntry("C4", 60),
    NoteEntry("D4", 62),
    NoteEntry("E4", 64),
    NoteEntry("F4", 65),
    NoteEntry("G4", 67),
    NoteEntry("A4", 69),
    NoteEntry("B4", 71),
    NoteEntry("C5", 72),
    NoteEntry("D5", 74),
    NoteEntry("E5", 76),
    NoteEntry("F5", 77),
    NoteEntry("G5", 79),
    NoteEntry("A5", 81),
    NoteEntry("C6", 84),
    NoteEntry("B6", 95),
]


def midi_to_frequency(midi_note: int) -> float:
    """Equal-tempered frequency for a MIDI note number (A4 = 69 = 440 Hz)."""
    return 440.0 * math.pow(2.0, (midi_note - 69) / 12.0)


def frequency_to_midi(frequency: float) -> int:
    """Nearest MIDI note number for a frequency, clamped to 0-127."""
    if frequency <= 0:
        logging.warning(f"Cannot convert non-positive frequency {frequency} to MIDI, using 0")
        return 0
    midi_note = int(round(69 + 12 * math.log2(frequency / 440.0)))
    return max(0, min(127, midi_note))


def midi_note_name(midi_note: int) -> str:
    """Return a human-readable name like 'C4' for a MIDI note number."""
    octave = (midi_note // 12) - 1
    return f"{NOTE_NAMES_SHARP[midi_note % 12]}{octave}"


def with_anchors(notes: List[NoteEntry]) -> List[NoteEntry]:
    """Bracket a note table with the top and bottom anchor rows."""
    return (
        [NoteEntry(ANCHOR_TOP_LABEL, ANCHOR_MIDI)]
        + list(notes)
        + [NoteEntry(ANCHOR_BOTTOM_LABEL, ANCHOR_MIDI)]
    )


# --- Logging Configuration ---
LOG_FORMAT = '%(asctime)s - %(levelname)s - %(module)s - %(message)s'
