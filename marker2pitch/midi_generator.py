"""
MIDI recording of played chords.

Converts the chord transitions of a live session into a MIDI file using the
midiutil library. Every triggered chord starts its notes; the next chord or a
release ends them. Times come from the session clock and are converted to
beats at the configured tempo.
"""
import os
import logging
import time
from typing import Callable, Dict, FrozenSet, Optional, Set, Tuple

from midiutil.MidiFile import MIDIFile  # type: ignore

from marker2pitch.app_config import DEFAULT_MIDI_TEMPO, frequency_to_midi
from marker2pitch.tracking.chord_deduper import ChordTransition


class MidiWriter:
    """Handles the creation and saving of MIDI data."""

    def __init__(self, num_tracks: int = 1, midi_file_format: int = 1, remove_duplicates: bool = True):
        """
        Initializes the MIDIFile object.
        Args:
            num_tracks: Number of tracks for the MIDI file.
            midi_file_format: MIDI file format (0, 1, or 2).
            remove_duplicates: Whether midiutil should remove duplicate notes.
        """
        self.logger = logging.getLogger(f"{__name__}.MidiWriter")
        self.tempo: int = DEFAULT_MIDI_TEMPO
        self.note_count = 0

        # Track active notes for note-on/note-off workflow
        # Format: {(track, channel, pitch): (start_time, velocity)}
        self.active_notes: Dict[Tuple[int, int, int], Tuple[float, int]] = {}

        self.mf = MIDIFile(numTracks=num_tracks,
                           removeDuplicates=remove_duplicates,
                           deinterleave=False,
                           adjust_origin=False,  # Keep absolute time
                           file_format=midi_file_format)

    def set_track_name(self, track: int, time: float, name: str) -> None:
        self.mf.addTrackName(track, time, name)

    def set_tempo(self, track: int, time: float, tempo: int) -> None:
        self.tempo = tempo
        self.mf.addTempo(track, time, tempo)

    def _add_note(self, track: int, channel: int, pitch: int, start: float, end: float, velocity: int) -> None:
        duration = max(0.01, end - start)  # Minimum duration to avoid zero-length notes
        self.mf.addNote(track, channel, pitch, start, duration, velocity)
        self.note_count += 1

    def add_note_on(self, track: int, channel: int, time: float, pitch: int, velocity: int = 80) -> None:
        """
        Adds a note-on event. Tracks the start time for later note-off processing.
        Args:
            track: The track number.
            channel: The MIDI channel (0-15).
            time: Time in beats when the note starts.
            pitch: MIDI note number (0-127).
            velocity: Note velocity (0-127).
        """
        note_key = (track, channel, pitch)
        # A retriggered note ends the sounding one first
        if note_key in self.active_notes:
            start_time, start_velocity = self.active_notes[note_key]
            self._add_note(track, channel, pitch, start_time, time, start_velocity)

        self.active_notes[note_key] = (time, velocity)

    def add_note_off(self, track: int, channel: int, time: float, pitch: int) -> None:
        """
        Completes an active note with its real duration.
        Args:
            track: The track number.
            channel: The MIDI channel (0-15).
            time: Time in beats when the note ends.
            pitch: MIDI note number (0-127).
        """
        note_key = (track, channel, pitch)
        if note_key in self.active_notes:
            start_time, velocity = self.active_notes.pop(note_key)
            self._add_note(track, channel, pitch, start_time, time, velocity)

    def finalize_active_notes(self, final_time: Optional[float] = None) -> None:
        """
        Finalizes any remaining active notes.
        Args:
            final_time: The final time in beats. If None, each note gets half a beat.
        """
        self.logger.info(f"[FINALIZE-NOTES] Finalizing {len(self.active_notes)} active notes")
        for (track, channel, pitch), (start_time, velocity) in list(self.active_notes.items()):
            end_time = final_time if final_time is not None else start_time + 0.5
            self._add_note(track, channel, pitch, start_time, end_time, velocity)
        self.active_notes.clear()

    def save_to_disk(self, filename: str) -> Tuple[bool, str]:
        """
        Writes the MIDI data to a file.
        Args:
            filename: The path to save the MIDI file.
        Returns:
            A tuple (success, message).
        """
        self.finalize_active_notes()
        try:
            directory = os.path.dirname(filename)
            if directory:
                os.makedirs(directory, exist_ok=True)
            with open(filename, 'wb') as outf:
                self.mf.writeFile(outf)
            self.logger.info(f"[MIDI-SAVE] Saved {self.note_count} notes to {filename}")
            return True, f'Saved to disk: {filename}'
        except OSError as e:
            self.logger.error(f"[MIDI-SAVE] Failed to save: {e}", exc_info=True)
            return False, f"Can't save to disk: {filename}. Error: {e}"


class ChordRecorder:
    """
    Listens to chord transitions and writes them through a MidiWriter.

    Args:
        tempo: Tempo in BPM used to convert seconds to beats
        clock: Monotonic time source in seconds
    """

    TRACK = 0
    CHANNEL = 0
    VELOCITY = 90

    def __init__(self, tempo: int = DEFAULT_MIDI_TEMPO,
                 clock: Callable[[], float] = time.monotonic,
                 track_name: str = "marker2pitch session"):
        self.tempo = tempo
        self.clock = clock
        self.writer = MidiWriter(midi_file_format=1)
        self.writer.set_track_name(self.TRACK, 0, track_name)
        self.writer.set_tempo(self.TRACK, 0, tempo)
        self._origin = clock()
        self._sounding: Set[int] = set()
        self.logger = logging.getLogger(f"{__name__}.ChordRecorder")

    def _now_beats(self) -> float:
        return (self.clock() - self._origin) * self.tempo / 60.0

    def on_transition(self, transition: ChordTransition, frequencies: FrozenSet[float]) -> None:
        """ChordDeduper listener."""
        now = self._now_beats()

        if transition is ChordTransition.TRIGGERED:
            pitches = {frequency_to_midi(f) for f in frequencies}
            for pitch in self._sounding - pitches:
                self.writer.add_note_off(self.TRACK, self.CHANNEL, now, pitch)
            # Every pitch of a triggered chord is re-attacked
            for pitch in sorted(pitches):
                self.writer.add_note_on(self.TRACK, self.CHANNEL, now, pitch, self.VELOCITY)
            self._sounding = pitches
        elif transition is ChordTransition.RELEASED:
            for pitch in self._sounding:
                self.writer.add_note_off(self.TRACK, self.CHANNEL, now, pitch)
            self._sounding = set()

    def save(self, filename: str) -> bool:
        """Close sounding notes at the current time and write the file."""
        self.writer.finalize_active_notes(self._now_beats())
        self._sounding = set()
        success, message = self.writer.save_to_disk(filename)
        if not success:
            self.logger.error(message)
        return success
