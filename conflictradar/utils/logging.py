"""Logging configuration utilities.

Initialises the root logger with one consistent format for local runs and
containerised deployments. Anything not passed in explicitly is taken from
the ``LOG_LEVEL``, ``LOG_OUTPUT``, ``LOG_FILE_PATH`` and ``LOG_FORMAT``
environment variables at call time, so values loaded from ``.env`` apply.
"""

from __future__ import annotations

import logging
import os
import sys
from dataclasses import dataclass
from logging.handlers import RotatingFileHandler
from typing import List, Literal, Optional

LogOutput = Literal["stdout", "file", "both"]
LogFormat = Literal["text", "json"]

DEFAULT_LEVEL = "INFO"
DEFAULT_OUTPUT: LogOutput = "stdout"
DEFAULT_FILE_PATH = "logs/conflict-radar.log"
DEFAULT_FORMAT: LogFormat = "text"

MAX_LOG_BYTES = 10 * 1024 * 1024
LOG_BACKUPS = 5

_OUTPUTS = ("stdout", "file", "both")
_FORMATS = ("text", "json")

# Chatty libraries kept at WARNING unless DEBUG is requested
_NOISY_LOGGERS = ("apscheduler", "urllib3")

_TEXT_FORMAT = "%(asctime)s | %(levelname)s | %(name)s | %(threadName)s | %(message)s"
_JSON_FORMAT = (
    '{"timestamp": "%(asctime)s", "level": "%(levelname)s", "name": "%(name)s", '
    '"thread": "%(threadName)s", "message": "%(message)s"}'
)


@dataclass(frozen=True, slots=True)
class LogSettings:
    level: str | int
    output: str
    file_path: str
    log_format: str

    @classmethod
    def resolve(
        cls,
        level: str | int | None = None,
        output: Optional[str] = None,
        file_path: Optional[str] = None,
        log_format: Optional[str] = None,
    ) -> "LogSettings":
        env = os.environ
        if level is None:
            level = env.get("LOG_LEVEL") or DEFAULT_LEVEL
        if isinstance(level, str):
            level = level.upper()
        if output is None:
            output = env.get("LOG_OUTPUT") or DEFAULT_OUTPUT
        if file_path is None:
            file_path = env.get("LOG_FILE_PATH") or DEFAULT_FILE_PATH
        if log_format is None:
            log_format = env.get("LOG_FORMAT") or DEFAULT_FORMAT

        settings = cls(level, output.lower(), file_path, log_format.lower())
        if settings.output not in _OUTPUTS:
            raise ValueError(f"Unsupported log output {output!r}; use one of {', '.join(_OUTPUTS)}")
        if settings.log_format not in _FORMATS:
            raise ValueError(f"Unsupported log format {log_format!r}; use one of {', '.join(_FORMATS)}")
        return settings


def _build_handlers(settings: LogSettings) -> List[logging.Handler]:
    handlers: List[logging.Handler] = []
    if settings.output in ("stdout", "both"):
        handlers.append(logging.StreamHandler(sys.stdout))
    if settings.output in ("file", "both"):
        log_dir = os.path.dirname(settings.file_path)
        if log_dir:
            os.makedirs(log_dir, exist_ok=True)
        handlers.append(RotatingFileHandler(settings.file_path, maxBytes=MAX_LOG_BYTES, backupCount=LOG_BACKUPS))

    formatter = logging.Formatter(_JSON_FORMAT if settings.log_format == "json" else _TEXT_FORMAT)
    for handler in handlers:
        handler.setFormatter(formatter)
    return handlers


def configure_logging(
    level: str | int | None = None,
    output: LogOutput | None = None,
    file_path: str | None = None,
    log_format: LogFormat | None = None,
) -> LogSettings:
    """Replace the root logger's handlers and return the settings applied.

    Raises ValueError for an unknown output or format.
    """
    settings = LogSettings.resolve(level, output, file_path, log_format)

    root_logger = logging.getLogger()
    root_logger.setLevel(settings.level)
    root_logger.handlers.clear()
    for handler in _build_handlers(settings):
        root_logger.addHandler(handler)

    if root_logger.getEffectiveLevel() > logging.DEBUG:
        for name in _NOISY_LOGGERS:
            logging.getLogger(name).setLevel(logging.WARNING)
    return settings


def get_logger(name: str) -> logging.Logger:
    return logging.getLogger(name)
