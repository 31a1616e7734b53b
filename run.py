#!/usr/bin/env python3
"""
Command-line entry point for marker2pitch.

Configures logging, builds the application state from an optional INI file
and command-line overrides, and runs a live session until the source ends or
the preview window is closed with q/ESC.
"""
import argparse
import logging
import os
import sys
import traceback
from typing import List, Optional

# Ensure the local package is importable (run.py lives next to the package directory)
current_dir = os.path.dirname(os.path.abspath(__file__))
if current_dir not in sys.path:
    sys.path.insert(0, current_dir)

from marker2pitch.app_config import (
    APP_NAME,
    DETECTION_COLOR,
    DETECTION_GRAYSCALE,
    GRID_DYNAMIC,
    GRID_STATIC,
    SHAPE_ROUND,
    SHAPE_SQUARE,
    WINDOW_FIXED,
    WINDOW_TRACKING,
)
from marker2pitch.config_manager import ConfigError, ConfigManager
from marker2pitch.core.app_state import AppState
from marker2pitch.core.logging_config import LoggingConfig
from marker2pitch.detection.base import DetectionError
from marker2pitch.video_loader import CaptureUnavailableError
from marker2pitch.workflows.live_session import LiveSession


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog=APP_NAME,
        description="Play tones from coloured markers seen by a camera.",
    )
    parser.add_argument("--source", help="Camera index or video file path (default: 0)")
    parser.add_argument("--config", help="INI configuration file")
    parser.add_argument("--detection", choices=[DETECTION_GRAYSCALE, DETECTION_COLOR],
                        help="Marker preprocessing strategy")
    parser.add_argument("--shape", choices=[SHAPE_ROUND, SHAPE_SQUARE], help="Marker shape profile")
    parser.add_argument("--grid", choices=[GRID_STATIC, GRID_DYNAMIC], help="Pitch grid mode")
    parser.add_argument("--window", choices=[WINDOW_FIXED, WINDOW_TRACKING], help="Tracking window mode")
    parser.add_argument("--window-width", type=float, help="Tracking window width in pixels")
    parser.add_argument("--alpha", type=float, help="Tracking window smoothing factor (0, 1]")
    parser.add_argument("--no-preview", action="store_true", help="Do not open the preview window")
    parser.add_argument("--no-audio", action="store_true", help="Do not open the audio output")
    parser.add_argument("--record", metavar="MIDI_PATH", help="Record played chords to a MIDI file")
    parser.add_argument("--log-level", default="INFO",
                        choices=["DEBUG", "INFO", "WARNING", "ERROR"], help="Root log level")
    parser.add_argument("--log-console", action="store_true", help="Also log to the console")
    return parser


def build_app_state(args: argparse.Namespace) -> AppState:
    """
    Build the application state: defaults, then the INI file, then CLI flags.

    Raises:
        ConfigError: If the INI file or the resulting state is invalid
    """
    app_state = AppState()
    if args.config:
        ConfigManager(app_state).load_config(args.config)

    if args.source is not None:
        app_state.session.source = args.source
    if args.detection:
        app_state.detection.strategy = args.detection
    if args.shape:
        app_state.detection.shape_profile = args.shape
    if args.grid:
        app_state.grid.mode = args.grid
    if args.window:
        app_state.window.mode = args.window
    if args.window_width is not None:
        app_state.window.width = args.window_width
    if args.alpha is not None:
        app_state.window.alpha = args.alpha
    if args.no_preview:
        app_state.session.show_preview = False
    if args.no_audio:
        app_state.audio.enabled = False
    if args.record:
        app_state.session.record_path = args.record

    errors = app_state.validate()
    if errors:
        raise ConfigError("; ".join(errors))
    return app_state


def main(argv: Optional[List[str]] = None) -> int:
    args = build_parser().parse_args(argv)

    log_file = LoggingConfig.setup_logging(
        log_to_file=True,
        log_to_console=args.log_console,
        log_level=getattr(logging, args.log_level),
    )
    logger = logging.getLogger(__name__)
    logger.info("=" * 80)
    logger.info(f"{APP_NAME} starting")
    logger.info("=" * 80)
    logger.info("Python version: %s", sys.version)
    logger.info("Log file: %s", log_file)

    try:
        app_state = build_app_state(args)
    except ConfigError as e:
        logger.error(f"Invalid configuration: {e}")
        print(f"Invalid configuration: {e}", file=sys.stderr)
        return 1
    logger.info(f"Configuration: {app_state.get_state_summary()}")

    session = LiveSession(app_state)
    try:
        stats = session.run()
    except CaptureUnavailableError as e:
        logger.error(f"Capture unavailable: {e}")
        print(f"Capture unavailable: {e}", file=sys.stderr)
        return 1
    except DetectionError as e:
        logger.error(f"Detection setup failed: {e}")
        print(f"Detection setup failed: {e}", file=sys.stderr)
        return 1
    except Exception as e:
        logger.error(f"Runtime error: {e}")
        logger.error(traceback.format_exc())
        return 1

    print(f"Processed {stats.frames} frames, {stats.chords_triggered} chords "
          f"({stats.failed_frames} failed frames)")
    return 0


if __name__ == "__main__":
    sys.exit(main())
