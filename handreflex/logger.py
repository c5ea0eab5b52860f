"""
Logging setup for HandReflex.

Every module logs through a child of the "HandReflex" logger. The console
gets a short format; the rotating log file gets module, function and line.
"""

import logging
import os
import sys
from logging.handlers import RotatingFileHandler
from pathlib import Path
from typing import Optional

from .config import LOG_FILENAME, LOG_MAX_BYTES, LOG_BACKUP_COUNT

ROOT_LOGGER_NAME = "HandReflex"

# Third-party loggers that are chatty at INFO
_NOISY_LOGGERS = ("mediapipe", "absl")

_FILE_FORMAT = "%(asctime)s | %(levelname)-8s | %(name)s.%(funcName)s:%(lineno)d | %(message)s"
_CONSOLE_FORMAT = "%(asctime)s | %(levelname)-8s | %(message)s"


def get_log_directory() -> Path:
    """
    Per-user directory for log and event files, created on demand.

    %APPDATA%/HandReflex/logs on Windows, $XDG_STATE_HOME/handreflex/logs
    when set, ~/.handreflex/logs otherwise.
    """
    appdata = os.environ.get("APPDATA")
    state_home = os.environ.get("XDG_STATE_HOME")
    if appdata:
        log_dir = Path(appdata) / "HandReflex" / "logs"
    elif state_home:
        log_dir = Path(state_home) / "handreflex" / "logs"
    else:
        log_dir = Path.home() / ".handreflex" / "logs"

    log_dir.mkdir(parents=True, exist_ok=True)
    return log_dir


def _file_handler(log_filename: Optional[str]) -> Optional[RotatingFileHandler]:
    try:
        log_path = get_log_directory() / (log_filename or LOG_FILENAME)
        handler = RotatingFileHandler(
            log_path,
            maxBytes=LOG_MAX_BYTES,
            backupCount=LOG_BACKUP_COUNT,
            encoding="utf-8"
        )
    except OSError as e:
        # Read-only home or locked file: keep running with console output only
        print(f"HandReflex: file logging disabled ({e})", file=sys.stderr)
        return None

    handler.setLevel(logging.DEBUG)
    handler.setFormatter(logging.Formatter(_FILE_FORMAT, datefmt="%Y-%m-%d %H:%M:%S"))
    return handler


def setup_logging(
    debug: bool = False,
    log_to_file: bool = True,
    log_filename: Optional[str] = None
) -> logging.Logger:
    """
    Configure and return the application logger.

    Safe to call again; existing handlers are replaced.

    Args:
        debug: Log per-frame detail at DEBUG level.
        log_to_file: Also write to the rotating log file.
        log_filename: Override default log filename.
    """
    level = logging.DEBUG if debug else logging.INFO

    logger = logging.getLogger(ROOT_LOGGER_NAME)
    logger.setLevel(level)
    for handler in list(logger.handlers):
        logger.removeHandler(handler)
        handler.close()

    console_handler = logging.StreamHandler(sys.stdout)
    console_handler.setLevel(level)
    console_handler.setFormatter(logging.Formatter(_CONSOLE_FORMAT, datefmt="%H:%M:%S"))
    logger.addHandler(console_handler)

    if log_to_file:
        file_handler = _file_handler(log_filename)
        if file_handler is not None:
            logger.addHandler(file_handler)
            logger.debug(f"Logging to file: {file_handler.baseFilename}")

    for name in _NOISY_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)

    return logger


def get_logger(name: Optional[str] = None) -> logging.Logger:
    """Child of the HandReflex logger, or the root application logger if no name."""
    base_logger = logging.getLogger(ROOT_LOGGER_NAME)
    return base_logger.getChild(name) if name else base_logger
