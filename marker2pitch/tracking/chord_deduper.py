"""
Chord deduplication.

Collapses a frame's pitch events into a frequency set and only calls the tone
trigger when that set changes, so a held marker does not retrigger at capture
rate.
"""
import logging
import threading
from enum import Enum
from typing import FrozenSet, List, Optional, Protocol, Sequence, Tuple

from .pitch_resolver import PitchEvent


class ToneTrigger(Protocol):
    """Anything that can render a set of frequencies without blocking."""

    def play(self, frequencies: FrozenSet[float]) -> None:
        ...


class ChordTransition(Enum):
    TRIGGERED = "triggered"   # new non-empty chord, trigger called
    SUSTAINED = "sustained"   # same chord as last frame
    RELEASED = "released"     # chord went silent
    IDLE = "idle"             # still silent


class ChordDeduper:
    """Owns the ChordState (the previously active frequency set)."""

    def __init__(self, trigger: Optional[ToneTrigger] = None):
        self.trigger = trigger
        self.listeners: List = []
        self.logger = logging.getLogger(f"{__name__}.ChordDeduper")
        self._lock = threading.Lock()
        self._previous: FrozenSet[float] = frozenset()

    @property
    def previous_frequencies(self) -> FrozenSet[float]:
        return self._previous

    @property
    def chord_active(self) -> bool:
        return bool(self._previous)

    def add_listener(self, callback) -> None:
        """Register ``callback(transition, frequencies)`` for every trigger or release."""
        self.listeners.append(callback)

    def reset(self) -> None:
        with self._lock:
            self._previous = frozenset()

    def submit(self, events: Sequence[PitchEvent]) -> Tuple[ChordTransition, List[str]]:
        """
        Compare this frame's events against the previous chord.

        Args:
            events: Pitch events of the frame (duplicates allowed)

        Returns:
            (transition, unique labels of the current chord, low to high)
        """
        current = frozenset(event.frequency for event in events)
        labels = [label for _, label in sorted({(event.frequency, event.label) for event in events})]

        with self._lock:
            if current:
                if current == self._previous:
                    return ChordTransition.SUSTAINED, labels
                self._previous = current
                transition = ChordTransition.TRIGGERED
            elif self._previous:
                self._previous = frozenset()
                transition = ChordTransition.RELEASED
            else:
                return ChordTransition.IDLE, labels

        if transition is ChordTransition.TRIGGERED:
            self.logger.info(f"[CHORD] Playing chord: {' + '.join(labels)}")
            if self.trigger is not None:
                self.trigger.play(current)
        else:
            self.logger.info("[CHORD] Waiting for notes...")

        for callback in self.listeners:
            callback(transition, current)
        return transition, labels
