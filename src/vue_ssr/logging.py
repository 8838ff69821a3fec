"""
Logging setup for vue-ssr.

Every module logs through ``logging.getLogger(__name__)`` under the
``vue_ssr`` namespace. ``setup_logging`` attaches:

- a console handler with a short, optionally coloured format
- optionally, a JSONL file handler (``RotatingFileHandler``) for tooling that
  tails build and render logs

Host applications that configure logging themselves need not call it.
"""

from __future__ import annotations

import json
import logging
import os
import sys
from datetime import datetime, timezone
from logging.handlers import RotatingFileHandler
from pathlib import Path
from typing import Any

ROOT_LOGGER_NAME = "vue_ssr"
LOG_FILENAME = "vue-ssr.log"

# =============================================================================
# Terminal Colors (respects NO_COLOR)
# =============================================================================


def _no_color() -> bool:
    return bool(os.environ.get("NO_COLOR")) or not sys.stderr.isatty()


class Colors:
    """ANSI color codes for terminal output."""

    RESET = "\033[0m"
    DIM = "\033[2m"

    DEBUG = "\033[36m"  # Cyan
    WARNING = "\033[33m"  # Yellow
    ERROR = "\033[31m"  # Red
    CRITICAL = "\033[35m"  # Magenta


# =============================================================================
# Formatters
# =============================================================================


class JSONLFormatter(logging.Formatter):
    """
    One JSON object per line.

    Example output:
    {"timestamp":"2026-01-15T10:30:45.123000Z","level":"INFO","logger":"vue_ssr.webpack","message":"Built /app/views/Home.vue in 1.20s"}
    """

    def format(self, record: logging.LogRecord) -> str:
        entry: dict[str, Any] = {
            "timestamp": datetime.fromtimestamp(record.created, tz=timezone.utc)
            .isoformat()
            .replace("+00:00", "Z"),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }

        context = getattr(record, "context", None)
        if context:
            entry["context"] = context

        if record.levelno >= logging.WARNING:
            entry["source"] = {"file": record.pathname, "line": record.lineno}

        if record.exc_info and record.exc_info[0]:
            entry["exception"] = {
                "type": record.exc_info[0].__name__,
                "message": str(record.exc_info[1]),
            }

        return json.dumps(entry, default=str)


class ConsoleFormatter(logging.Formatter):
    """Human-readable formatter for console output."""

    LEVEL_COLORS = {
        logging.DEBUG: Colors.DEBUG,
        logging.WARNING: Colors.WARNING,
        logging.ERROR: Colors.ERROR,
        logging.CRITICAL: Colors.CRITICAL,
    }

    def __init__(self, color: bool | None = None):
        super().__init__()
        self.color = not _no_color() if color is None else color

    def format(self, record: logging.LogRecord) -> str:
        timestamp = datetime.fromtimestamp(record.created).strftime("%H:%M:%S")
        component = record.name.removeprefix(f"{ROOT_LOGGER_NAME}.")

        if self.color:
            prefix = f"{Colors.DIM}{timestamp}{Colors.RESET} [{component}]"
        else:
            prefix = f"[{timestamp}] [{component}]"

        if record.levelno != logging.INFO:
            level_name = record.levelname
            if self.color:
                level_name = f"{self.LEVEL_COLORS.get(record.levelno, '')}{level_name}{Colors.RESET}"
            prefix = f"{prefix} {level_name}:"

        message = f"{prefix} {record.getMessage()}"
        if record.exc_info:
            message = f"{message}\n{self.formatException(record.exc_info)}"
        return message


# =============================================================================
# Logger Setup
# =============================================================================


def level_from_env(default: int = logging.INFO) -> int:
    """Log level named by ``VUE_SSR_LOG_LEVEL``, or ``default``."""
    name = os.environ.get("VUE_SSR_LOG_LEVEL", "").strip().upper()
    if not name:
        return default
    level = logging.getLevelName(name)
    return level if isinstance(level, int) else default


def setup_logging(
    level: int | None = None,
    log_dir: Path | str | None = None,
    max_bytes: int = 5 * 1024 * 1024,  # 5MB
    backup_count: int = 3,
) -> logging.Logger:
    """
    Configure the ``vue_ssr`` logger.

    Calling it again replaces the handlers installed by the previous call.

    Args:
        level: Minimum log level; defaults to ``VUE_SSR_LOG_LEVEL`` or INFO
        log_dir: Directory for a JSONL log file; no file handler when None
        max_bytes: Max size per log file before rotation
        backup_count: Number of rotated files to keep

    Returns:
        The configured ``vue_ssr`` logger
    """
    if level is None:
        level = level_from_env()

    root_logger = logging.getLogger(ROOT_LOGGER_NAME)
    root_logger.setLevel(level)
    for handler in list(root_logger.handlers):
        root_logger.removeHandler(handler)
        handler.close()

    console_handler = logging.StreamHandler(sys.stderr)
    console_handler.setFormatter(ConsoleFormatter())
    console_handler.setLevel(level)
    root_logger.addHandler(console_handler)

    if log_dir is not None:
        directory = Path(log_dir)
        directory.mkdir(parents=True, exist_ok=True)
        log_file = directory / LOG_FILENAME

        file_handler = RotatingFileHandler(
            log_file,
            maxBytes=max_bytes,
            backupCount=backup_count,
            encoding="utf-8",
        )
        file_handler.setFormatter(JSONLFormatter())
        file_handler.setLevel(level)
        root_logger.addHandler(file_handler)

        root_logger.debug(
            "File logging enabled",
            extra={"context": {"log_format": "jsonl", "log_file": str(log_file)}},
        )

    return root_logger


__all__ = [
    "ConsoleFormatter",
    "JSONLFormatter",
    "level_from_env",
    "setup_logging",
]
