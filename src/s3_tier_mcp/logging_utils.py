"""Logging setup for the tiering server.

stdout carries the MCP stdio stream, so every handler writes to stderr or to
the optional log file.
"""

from __future__ import annotations

import logging
import sys
import threading
from pathlib import Path

from s3_tier_mcp.config import LoggingSettings, load_settings

_logging_configured = False
_logging_lock = threading.Lock()

_logger = logging.getLogger(__name__)

_LOG_FORMAT = "%(asctime)s | %(levelname)s | %(name)s | %(message)s"
_DATE_FORMAT = "%Y-%m-%dT%H:%M:%S"

# SDK loggers that flood DEBUG output with per-request wire detail.
_NOISY_LOGGERS = ("botocore", "boto3", "urllib3", "s3transfer")


def _formatter() -> logging.Formatter:
    return logging.Formatter(_LOG_FORMAT, datefmt=_DATE_FORMAT)


def _build_handlers(settings: LoggingSettings) -> list[logging.Handler]:
    stderr_handler = logging.StreamHandler(sys.stderr)
    stderr_handler.setFormatter(_formatter())
    handlers: list[logging.Handler] = [stderr_handler]
    if not settings.file:
        return handlers
    try:
        Path(settings.file).parent.mkdir(parents=True, exist_ok=True)
        file_handler = logging.FileHandler(settings.file)
    except OSError as exc:
        _logger.warning("Failed to open log file %s: %s", settings.file, exc)
        return handlers
    file_handler.setFormatter(_formatter())
    handlers.append(file_handler)
    return handlers


def configure_logging() -> None:
    """Install stderr (and file) handlers at the configured level."""
    global _logging_configured

    logging_settings = load_settings().logging
    level = getattr(logging, logging_settings.level.upper(), logging.INFO)

    logging.basicConfig(level=level, handlers=_build_handlers(logging_settings), force=True)
    for name in _NOISY_LOGGERS:
        logging.getLogger(name).setLevel(max(level, logging.INFO))

    _logging_configured = True


def get_logger(name: str) -> logging.Logger:
    if not _logging_configured:
        with _logging_lock:
            if not _logging_configured:
                configure_logging()
    return logging.getLogger(name)
