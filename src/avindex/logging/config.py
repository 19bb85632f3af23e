"""Root logger setup from LoggingConfig."""

from __future__ import annotations

import logging
import sys
from logging.handlers import RotatingFileHandler
from typing import TYPE_CHECKING

from avindex.logging.context import WorkerContextFilter
from avindex.logging.handlers import JSONFormatter

if TYPE_CHECKING:
    from avindex.config.models import LoggingConfig

TEXT_FORMAT = "%(asctime)s - %(worker_tag)s%(name)s - %(levelname)s - %(message)s"
DATE_FORMAT = "%Y-%m-%dT%H:%M:%S%z"

# PyAV forwards FFmpeg's own messages here; every non-media file makes noise
LIBAV_LOGGER = "libav"


def _formatter(config: LoggingConfig) -> logging.Formatter:
    if config.format.casefold() == "json":
        return JSONFormatter()
    return logging.Formatter(TEXT_FORMAT, datefmt=DATE_FORMAT)


def _open_log_file(config: LoggingConfig) -> logging.Handler | None:
    """Return a rotating handler for config.file, or None if it cannot open."""
    path = config.file.expanduser()
    try:
        path.parent.mkdir(parents=True, exist_ok=True)
        return RotatingFileHandler(
            path,
            maxBytes=config.max_bytes,
            backupCount=config.backup_count,
            encoding="utf-8",
        )
    except OSError as e:
        # logging is not set up yet, so say it on stderr directly
        sys.stderr.write(f"Warning: cannot open log file {path}: {e}\n")
        return None


def configure_logging(config: LoggingConfig) -> None:
    """Replace the root logger's handlers according to config.

    Logs go to the rotating file when one is configured and opens, and to
    stderr otherwise or when include_stderr is set.
    """
    level = logging.getLevelName(config.level.upper())
    handlers: list[logging.Handler] = []

    if config.file is not None:
        file_handler = _open_log_file(config)
        if file_handler is not None:
            handlers.append(file_handler)
    if config.include_stderr or not handlers:
        handlers.append(logging.StreamHandler(sys.stderr))

    formatter = _formatter(config)
    context_filter = WorkerContextFilter()
    for handler in handlers:
        handler.setLevel(level)
        handler.setFormatter(formatter)
        handler.addFilter(context_filter)

    root = logging.getLogger()
    root.handlers.clear()
    root.setLevel(level)
    for handler in handlers:
        root.addHandler(handler)

    logging.getLogger(LIBAV_LOGGER).setLevel(
        logging.DEBUG if level == logging.DEBUG else logging.ERROR
    )
