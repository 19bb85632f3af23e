"""Worker context for structured logging.

Probe workers run in threads; contextvars carry the worker slot and the
file being probed so every log record emitted during a probe names both.
"""

from __future__ import annotations

import contextvars
import logging
from contextlib import contextmanager
from pathlib import Path
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from collections.abc import Generator

_worker_id: contextvars.ContextVar[str | None] = contextvars.ContextVar(
    "worker_id", default=None
)
_file_path: contextvars.ContextVar[str | None] = contextvars.ContextVar(
    "file_path", default=None
)


def get_worker_context() -> tuple[str | None, str | None]:
    """Return the current (worker_id, file_path), either may be None."""
    return _worker_id.get(), _file_path.get()


@contextmanager
def worker_context(
    worker_id: str,
    file_path: Path | str | None = None,
) -> Generator[None, None, None]:
    """Set worker context on entry and restore the previous one on exit.

    Args:
        worker_id: Worker slot identifier (e.g., "01").
        file_path: Path of the file being processed.

    Example:
        with worker_context("01", "/media/a.mp4"):
            logger.info("Probing")  # Logged as "[W01] ..."
    """
    worker_token = _worker_id.set(worker_id)
    path_token = _file_path.set(str(file_path) if file_path is not None else None)
    try:
        yield
    finally:
        _file_path.reset(path_token)
        _worker_id.reset(worker_token)


class WorkerContextFilter(logging.Filter):
    """Logging filter that injects worker context into log records.

    Adds worker_id and file_path for the JSON formatter and a compact
    worker_tag ("[W01] " or "") for the text format.
    """

    def filter(self, record: logging.LogRecord) -> bool:
        worker_id, file_path = get_worker_context()

        record.worker_id = worker_id
        record.file_path = file_path
        record.worker_tag = f"[W{worker_id}] " if worker_id else ""

        return True
