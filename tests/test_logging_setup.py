"""
Logging Setup Unit Tests
"""

import pytest
import sys
import os
import logging

# Add src to path
sys.path.insert(0, os.path.join(os.path.dirname(__file__), '..', 'src'))

from eagle_automation.config import LoggingConfig
from eagle_automation.logging_setup import (
    configure_logging, shutdown_logging, APP_LOG_FILE, CAPTURE_LOG_FILE, CAPTURE_LOGGER
)


@pytest.fixture(autouse=True)
def restore_logging():
    root = logging.getLogger()
    level = root.level
    yield
    shutdown_logging()
    root.setLevel(level)
    capture = logging.getLogger(CAPTURE_LOGGER)
    capture.setLevel(logging.NOTSET)
    capture.propagate = True


class TestConfigureLogging:
    """configure_logging / shutdown_logging"""

    def test_creates_log_files(self, tmp_path):
        log_dir = configure_logging(LoggingConfig(log_directory=str(tmp_path / 'logs')), console=False)

        logging.getLogger('eagle_automation.test').info("hello")
        logging.getLogger(CAPTURE_LOGGER).debug("TX (5 bytes): 02 41 4B 03 09")
        shutdown_logging()

        app_log = (log_dir / APP_LOG_FILE).read_text(encoding='utf-8')
        capture_log = (log_dir / CAPTURE_LOG_FILE).read_text(encoding='utf-8')

        assert "hello" in app_log
        assert "TX (5 bytes)" in capture_log
        assert "TX (5 bytes)" not in app_log

    def test_capture_disabled(self, tmp_path):
        log_dir = configure_logging(
            LoggingConfig(log_directory=str(tmp_path), capture_protocol=False), console=False
        )
        shutdown_logging()
        assert not (log_dir / CAPTURE_LOG_FILE).exists()

    def test_debug_level(self, tmp_path):
        configure_logging(LoggingConfig(debug=True, log_directory=str(tmp_path)), console=False)
        assert logging.getLogger().level == logging.DEBUG
        assert logging.getLogger(CAPTURE_LOGGER).propagate is True

    def test_reconfigure_replaces_handlers(self, tmp_path):
        root = logging.getLogger()
        before = len(root.handlers)

        configure_logging(LoggingConfig(log_directory=str(tmp_path)), console=True)
        configure_logging(LoggingConfig(log_directory=str(tmp_path)), console=True)
        assert len(root.handlers) == before + 2

        shutdown_logging()
        assert len(root.handlers) == before


if __name__ == '__main__':
    pytest.main([__file__, '-v'])
