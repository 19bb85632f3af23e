"""Structured logging for avindex."""

from avindex.logging.config import configure_logging
from avindex.logging.context import (
    WorkerContextFilter,
    get_worker_context,
    worker_context,
)
from avindex.logging.handlers import JSONFormatter

__all__ = [
    "JSONFormatter",
    "WorkerContextFilter",
    "configure_logging",
    "get_worker_context",
    "worker_context",
]
