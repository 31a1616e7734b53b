"""
Centralized logging configuration for marker2pitch.

This module provides a unified logging setup shared by the command-line entry
point and the live session. The frame loop logs at INFO on transitions only;
per-frame detail is kept at DEBUG.
"""
import datetime
import logging
import os
import sys
from pathlib import Path
from typing import Dict, List, Optional

from marker2pitch.app_config import APP_NAME, LOG_DIR, LOG_FORMAT


def _default_log_dir() -> str:
    override = os.getenv("MARKER2PITCH_LOG_DIR")
    if override:
        return override

    # A checkout keeps its logs next to pyproject.toml
    for parent in Path(__file__).resolve().parents:
        if (parent / "pyproject.toml").exists() or (parent / ".git").exists():
            return str(parent / LOG_DIR)

    if sys.platform == "win32":
        return str(Path(os.getenv("LOCALAPPDATA") or Path.home() / "AppData" / "Local") / APP_NAME / LOG_DIR)
    if sys.platform == "darwin":
        return str(Path.home() / "Library" / "Logs" / APP_NAME)
    return str(Path.home() / f".{APP_NAME}" / LOG_DIR)


class LoggingConfig:
    """Centralized logging configuration manager."""

    DEFAULT_LEVEL = logging.WARNING

    LOG_FORMAT = LOG_FORMAT

    # Per-package levels applied after the root level
    MODULE_LEVELS: Dict[str, int] = {
        f'{APP_NAME}.tracking': logging.INFO,
        f'{APP_NAME}.workflows': logging.INFO,
        f'{APP_NAME}.audio': logging.INFO,
        f'{APP_NAME}.detection': logging.WARNING,

        # Third-party libraries
        'numpy': logging.ERROR,
        'cv2': logging.ERROR,
        'midiutil': logging.ERROR,
        'sounddevice': logging.ERROR,
    }

    _configured = False
    _log_filename = ""
    _handlers: List[logging.Handler] = []

    @classmethod
    def _run_log_path(cls, log_dir: str) -> str:
        os.makedirs(log_dir, exist_ok=True)
        stamp = datetime.datetime.now().strftime('%Y%m%d_%H%M%S')
        return os.path.join(log_dir, f"run_{stamp}.log")

    @classmethod
    def _build_handlers(cls, log_filename: str, log_to_console: bool) -> List[logging.Handler]:
        formatter = logging.Formatter(cls.LOG_FORMAT)
        handlers: List[logging.Handler] = []
        if log_filename:
            handlers.append(logging.FileHandler(log_filename, mode='w'))
        if log_to_console:
            handlers.append(logging.StreamHandler())
        for handler in handlers:
            handler.setFormatter(formatter)
        return handlers

    @classmethod
    def setup_logging(cls,
                      log_to_file: bool = True,
                      log_to_console: bool = False,
                      log_level: Optional[int] = None,
                      log_dir: Optional[str] = None) -> str:
        """
        Configure the root logger once per process.

        Args:
            log_to_file: Write a timestamped run log
            log_to_console: Also log to stderr
            log_level: Root level, WARNING when omitted
            log_dir: Directory for the run log, see _default_log_dir

        Returns:
            Path to the run log, or an empty string when not logging to file
        """
        if cls._configured:
            return cls._log_filename

        root_level = log_level or cls.DEFAULT_LEVEL
        log_filename = cls._run_log_path(log_dir or _default_log_dir()) if log_to_file else ""
        handlers = cls._build_handlers(log_filename, log_to_console)

        logging.basicConfig(
            level=root_level,
            format=cls.LOG_FORMAT,
            handlers=handlers or [logging.NullHandler()],
            force=True,
        )

        for module_name, level in cls.MODULE_LEVELS.items():
            # An explicit DEBUG request opens up every marker2pitch logger
            if root_level <= logging.DEBUG and module_name.startswith(APP_NAME):
                level = logging.DEBUG
            logging.getLogger(module_name).setLevel(level)

        logger = logging.getLogger(__name__)
        logger.info(f"[LOGGING-CONFIG] level={logging.getLevelName(root_level)}, "
                    f"file={log_filename or 'no'}, console={'yes' if log_to_console else 'no'}")

        cls._configured = True
        cls._log_filename = log_filename
        cls._handlers = handlers
        return log_filename

    @classmethod
    def reset(cls) -> None:
        """Close handlers so the next setup_logging call starts over."""
        root = logging.getLogger()
        for handler in cls._handlers:
            root.removeHandler(handler)
            handler.close()
        cls._handlers = []
        cls._configured = False
        cls._log_filename = ""

    @classmethod
    def set_module_level(cls, module_name: str, level: int):
        """
        Set logging level for a specific module.

        Args:
            module_name: Module name (e.g., 'marker2pitch.tracking')
            level: Logging level (e.g., logging.WARNING)
        """
        logging.getLogger(module_name).setLevel(level)
        cls.MODULE_LEVELS[module_name] = level
