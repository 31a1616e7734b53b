"""
Configuration management for marker2pitch application state.

Handles loading and saving of the application configuration using INI files.
Every section is optional; a missing key keeps the value already held by the
AppState, so a file only needs to list what it changes.

Sections:
- [detection]  strategy, shape profile, threshold and hue mask settings
- [grid]       grid mode, margin, minimum span
- [window]     window mode, width, smoothing factors
- [audio]      output and tone envelope settings
- [session]    capture source, preview, recording
- [notes]      ordered note table, one ``LABEL = midi_number`` per line
"""
import configparser
import logging
import os
from typing import List, Tuple

from marker2pitch.app_config import NoteEntry
from marker2pitch.core.app_state import AppState
from marker2pitch.detection.base import DetectionConfigError
from marker2pitch.detection.color_mask import split_hue_range


class ConfigError(ValueError):
    """Raised when a configuration file cannot be read or is invalid."""
    pass


def parse_hue_ranges(text: str) -> List[Tuple[int, int]]:
    """Parse ``"0-10, 170-180"`` into [(0, 10), (170, 180)]."""
    ranges = []
    for part in text.split(','):
        part = part.strip()
        if not part:
            continue
        low, sep, high = part.partition('-')
        if not sep:
            raise ConfigError(f"Hue range '{part}' must look like LOW-HIGH")
        ranges.append((int(low), int(high)))
    return ranges


def format_hue_ranges(ranges: List[Tuple[int, int]]) -> str:
    return ', '.join(f"{low}-{high}" for low, high in ranges)


class ConfigManager:
    """Handles INI file operations for application state."""

    def __init__(self, app_state: AppState):
        self.app_state = app_state
        self.logger = logging.getLogger(f"{__name__}.ConfigManager")

    @staticmethod
    def _new_parser() -> configparser.ConfigParser:
        config = configparser.ConfigParser()
        config.optionxform = str  # keep note labels as written
        return config

    def load_config(self, config_filepath: str) -> bool:
        """
        Load configuration from an INI file into the app state.

        Args:
            config_filepath: Path to the INI file

        Returns:
            True when the file was applied

        Raises:
            ConfigError: If the file is missing, malformed or fails validation
        """
        self.logger.info(f"[CONFIG-LOAD] Loading config from: {config_filepath}")
        if not config_filepath or not os.path.exists(config_filepath):
            raise ConfigError(f"Config file not found: {config_filepath}")

        config = self._new_parser()
        try:
            config.read(config_filepath, encoding='utf-8')
        except configparser.Error as e:
            raise ConfigError(f"Could not parse {config_filepath}: {e}") from e

        try:
            self._apply(config)
        except ConfigError:
            raise
        except (ValueError, KeyError, DetectionConfigError) as e:
            raise ConfigError(f"Invalid value in {config_filepath}: {e}") from e

        errors = self.app_state.validate()
        if errors:
            for error in errors:
                self.logger.error(f"[CONFIG-LOAD] {error}")
            raise ConfigError(f"Invalid configuration in {config_filepath}: {'; '.join(errors)}")

        self.logger.info(f"[CONFIG-LOAD] [OK] Applied {len(config.sections())} sections")
        return True

    def _apply(self, config: configparser.ConfigParser) -> None:
        state = self.app_state

        if config.has_section('detection'):
            data = config['detection']
            det = state.detection
            det.strategy = data.get('strategy', det.strategy)
            det.shape_profile = data.get('shape_profile', det.shape_profile)
            det.gray_threshold = data.getint('gray_threshold', det.gray_threshold)
            det.erode_kernel = data.getint('erode_kernel', det.erode_kernel)
            det.saturation_min = data.getint('saturation_min', det.saturation_min)
            det.value_min = data.getint('value_min', det.value_min)
            det.morph_kernel = data.getint('morph_kernel', det.morph_kernel)
            if 'hue_ranges' in data:
                det.hue_ranges = parse_hue_ranges(data['hue_ranges'])
            elif 'hue_center' in data:
                # Centre/tolerance form, split when it crosses the hue wraparound
                det.hue_ranges = split_hue_range(data.getint('hue_center'),
                                                 data.getint('hue_tolerance', 10))

        if config.has_section('grid'):
            data = config['grid']
            state.grid.mode = data.get('mode', state.grid.mode)
            state.grid.margin = data.getfloat('margin', state.grid.margin)
            state.grid.min_span = data.getfloat('min_span', state.grid.min_span)

        if config.has_section('window'):
            data = config['window']
            win = state.window
            win.mode = data.get('mode', win.mode)
            win.width = data.getfloat('width', win.width)
            win.alpha = data.getfloat('alpha', win.alpha)
            win.idle_alpha = data.getfloat('idle_alpha', win.idle_alpha)

        if config.has_section('audio'):
            data = config['audio']
            audio = state.audio
            audio.enabled = data.getboolean('enabled', audio.enabled)
            audio.sample_rate = data.getint('sample_rate', audio.sample_rate)
            audio.peak_gain = data.getfloat('peak_gain', audio.peak_gain)
            audio.attack_s = data.getfloat('attack_s', audio.attack_s)
            audio.decay_s = data.getfloat('decay_s', audio.decay_s)
            audio.duration_s = data.getfloat('duration_s', audio.duration_s)

        if config.has_section('session'):
            data = config['session']
            session = state.session
            session.source = data.get('source', session.source)
            session.show_preview = data.getboolean('show_preview', session.show_preview)
            session.midi_tempo = data.getint('midi_tempo', session.midi_tempo)
            record_path = data.get('record_path', session.record_path or '')
            session.record_path = record_path or None

        if config.has_section('notes'):
            notes = [NoteEntry(label, int(value)) for label, value in config.items('notes')]
            if notes:
                state.grid.notes = notes
                self.logger.debug(f"[CONFIG-LOAD] Loaded {len(notes)} notes")

    def save_config(self, config_filepath: str) -> bool:
        """
        Write the current app state to an INI file.

        Returns:
            True if the file was written
        """
        state = self.app_state
        config = self._new_parser()

        det = state.detection
        config['detection'] = {
            'strategy': det.strategy,
            'shape_profile': det.shape_profile,
            'gray_threshold': str(det.gray_threshold),
            'erode_kernel': str(det.erode_kernel),
            'hue_ranges': format_hue_ranges(det.hue_ranges),
            'saturation_min': str(det.saturation_min),
            'value_min': str(det.value_min),
            'morph_kernel': str(det.morph_kernel),
        }
        config['grid'] = {
            'mode': state.grid.mode,
            'margin': str(state.grid.margin),
            'min_span': str(state.grid.min_span),
        }
        config['window'] = {
            'mode': state.window.mode,
            'width': str(state.window.width),
            'alpha': str(state.window.alpha),
            'idle_alpha': str(state.window.idle_alpha),
        }
        config['audio'] = {
            'enabled': str(state.audio.enabled),
            'sample_rate': str(state.audio.sample_rate),
            'peak_gain': str(state.audio.peak_gain),
            'attack_s': str(state.audio.attack_s),
            'decay_s': str(state.audio.decay_s),
            'duration_s': str(state.audio.duration_s),
        }
        config['session'] = {
            'source': state.session.source,
            'show_preview': str(state.session.show_preview),
            'record_path': state.session.record_path or '',
            'midi_tempo': str(state.session.midi_tempo),
        }
        config['notes'] = {note.label: str(note.midi) for note in state.grid.notes}

        try:
            directory = os.path.dirname(config_filepath)
            if directory:
                os.makedirs(directory, exist_ok=True)
            with open(config_filepath, 'w', encoding='utf-8') as configfile:
                config.write(configfile)
            self.logger.info(f"[CONFIG-SAVE] [OK] Configuration saved to: {config_filepath}")
            return True
        except OSError as e:
            self.logger.error(f"[CONFIG-SAVE] Error saving config to {config_filepath}: {e}")
            return False
