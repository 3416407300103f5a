"""
Tests for root logger configuration.
"""

import json
import logging
import sys
from logging.handlers import RotatingFileHandler

import pytest

from conflictradar.utils.logging import LogSettings, configure_logging, get_logger

LOG_ENV = ("LOG_LEVEL", "LOG_OUTPUT", "LOG_FILE_PATH", "LOG_FORMAT")


@pytest.fixture(autouse=True)
def clean_env(monkeypatch, restore_root_logger):
    for name in LOG_ENV:
        monkeypatch.delenv(name, raising=False)


class TestSettings:
    """Tests for resolving settings from arguments and environment."""

    def test_defaults(self):
        """Without arguments or environment, log text at INFO to stdout."""
        settings = LogSettings.resolve()

        assert settings == LogSettings("INFO", "stdout", "logs/conflict-radar.log", "text")

    def test_environment_is_read_at_call_time(self, monkeypatch):
        """Environment variables set after import still apply."""
        monkeypatch.setenv("LOG_LEVEL", "debug")
        monkeypatch.setenv("LOG_OUTPUT", "BOTH")
        monkeypatch.setenv("LOG_FORMAT", "json")

        settings = LogSettings.resolve()

        assert (settings.level, settings.output, settings.log_format) == ("DEBUG", "both", "json")

    def test_arguments_win_over_environment(self, monkeypatch):
        """Explicit arguments override the environment."""
        monkeypatch.setenv("LOG_LEVEL", "DEBUG")

        assert LogSettings.resolve(level="warning").level == "WARNING"

    @pytest.mark.parametrize("kwargs", [{"output": "syslog"}, {"log_format": "xml"}])
    def test_unknown_values_rejected(self, kwargs):
        """Unsupported outputs and formats raise ValueError."""
        with pytest.raises(ValueError):
            LogSettings.resolve(**kwargs)


class TestConfigureLogging:
    """Tests for installing handlers on the root logger."""

    def test_stdout_handler(self):
        """stdout output installs a single stream handler."""
        configure_logging(level="INFO", output="stdout")

        (handler,) = logging.getLogger().handlers
        assert isinstance(handler, logging.StreamHandler)
        assert handler.stream is sys.stdout

    def test_json_lines_to_file(self, tmp_path):
        """File output writes one JSON object per record."""
        path = tmp_path / "logs" / "app.log"
        configure_logging(level="INFO", output="file", file_path=str(path), log_format="json")

        get_logger("cr.test").info("hello")
        for handler in logging.getLogger().handlers:
            handler.flush()

        (handler,) = logging.getLogger().handlers
        assert isinstance(handler, RotatingFileHandler)
        record = json.loads(path.read_text(encoding="utf-8").splitlines()[-1])
        assert record["name"] == "cr.test"
        assert record["level"] == "INFO"
        assert record["message"] == "hello"
        handler.close()

    def test_noisy_loggers_capped(self):
        """Scheduler and urllib3 chatter is limited to warnings outside DEBUG."""
        configure_logging(level="INFO", output="stdout")

        assert logging.getLogger("apscheduler").level == logging.WARNING
        assert logging.getLogger("urllib3").level == logging.WARNING

    def test_invalid_settings_leave_handlers_alone(self):
        """A rejected configuration does not strip existing handlers."""
        configure_logging(level="INFO", output="stdout")
        before = list(logging.getLogger().handlers)

        with pytest.raises(ValueError):
            configure_logging(output="syslog")

        assert logging.getLogger().handlers == before
