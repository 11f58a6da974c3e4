"""
Logging setup

Application log plus a separate protocol-capture log holding every TX/RX
byte sequence, for comparing against traces of the legacy Eagle system.
"""

import logging
import logging.handlers
from pathlib import Path
from typing import Optional

from .config import LoggingConfig

logger = logging.getLogger(__name__)


LOG_FORMAT = '%(asctime)s - %(name)s - %(levelname)s - %(message)s'
CAPTURE_FORMAT = '%(asctime)s.%(msecs)03d %(message)s'
CAPTURE_DATE_FORMAT = '%H:%M:%S'

APP_LOG_FILE = 'eagle-automation.log'
APP_LOG_MAX_BYTES = 10 * 1024 * 1024
APP_LOG_BACKUPS = 30

CAPTURE_LOGGER = 'eagle_automation.capture'
CAPTURE_LOG_FILE = 'protocol-capture.log'
CAPTURE_LOG_MAX_BYTES = 50 * 1024 * 1024
CAPTURE_LOG_BACKUPS = 7

_installed = []


def _ensure_log_dir(directory: str) -> Path:
    path = Path(directory)
    try:
        path.mkdir(parents=True, exist_ok=True)
    except OSError as e:
        fallback = Path.cwd() / 'logs'
        fallback.mkdir(parents=True, exist_ok=True)
        logger.warning(f"Could not create log directory {path} ({e}), using {fallback}")
        return fallback
    return path


def configure_logging(config: Optional[LoggingConfig] = None, console: bool = True) -> Path:
    """
    Install console, application-file and protocol-capture handlers

    Calling again replaces the handlers installed by the previous call.

    Args:
        config: logging settings (defaults if None)
        console: also log to stderr

    Returns:
        The directory log files are written to
    """
    config = config or LoggingConfig()
    shutdown_logging()

    level = logging.DEBUG if config.debug else logging.INFO
    log_dir = _ensure_log_dir(config.log_directory)

    root = logging.getLogger()
    root.setLevel(level)

    if console:
        stream_handler = logging.StreamHandler()
        stream_handler.setFormatter(logging.Formatter(LOG_FORMAT))
        root.addHandler(stream_handler)
        _installed.append((root, stream_handler))

    file_handler = logging.handlers.RotatingFileHandler(
        log_dir / APP_LOG_FILE,
        maxBytes=APP_LOG_MAX_BYTES,
        backupCount=APP_LOG_BACKUPS,
        encoding='utf-8',
    )
    file_handler.setFormatter(logging.Formatter(LOG_FORMAT))
    root.addHandler(file_handler)
    _installed.append((root, file_handler))

    capture = logging.getLogger(CAPTURE_LOGGER)
    if config.capture_protocol:
        # Capture needs DEBUG even when the application log is at INFO
        capture.setLevel(logging.DEBUG)
        capture.propagate = config.debug
        capture_handler = logging.handlers.RotatingFileHandler(
            log_dir / CAPTURE_LOG_FILE,
            maxBytes=CAPTURE_LOG_MAX_BYTES,
            backupCount=CAPTURE_LOG_BACKUPS,
            encoding='utf-8',
        )
        capture_handler.setFormatter(logging.Formatter(CAPTURE_FORMAT, CAPTURE_DATE_FORMAT))
        capture.addHandler(capture_handler)
        _installed.append((capture, capture_handler))
    else:
        capture.setLevel(logging.NOTSET)
        capture.propagate = True

    logger.info("=== Eagle Automation started ===")
    logger.info(f"Log level: {logging.getLevelName(level)}, directory: {log_dir}")
    return log_dir


def shutdown_logging() -> None:
    """Flush and remove the handlers installed by configure_logging()"""
    while _installed:
        owner, handler = _installed.pop()
        owner.removeHandler(handler)
        handler.flush()
        handler.close()
