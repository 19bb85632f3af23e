"""Unit tests for the JSON log formatter."""

import json
import logging
import sys

from avindex.logging.context import WorkerContextFilter, worker_context
from avindex.logging.handlers import JSONFormatter


def _format(record: logging.LogRecord) -> dict:
    WorkerContextFilter().filter(record)
    return json.loads(JSONFormatter().format(record))


class TestJSONFormatter:
    """Tests for JSONFormatter."""

    def test_basic_fields(self) -> None:
        record = logging.LogRecord(
            "avindex.jobs", logging.WARNING, __file__, 1, "probed %d", (3,), None
        )
        entry = _format(record)
        assert entry["level"] == "WARNING"
        assert entry["message"] == "probed 3"
        assert entry["logger"] == "avindex.jobs"
        assert "timestamp" in entry
        assert "context" not in entry

    def test_worker_context_included(self) -> None:
        record = logging.LogRecord(
            "avindex.media", logging.INFO, __file__, 1, "probe", (), None
        )
        with worker_context("02", "/media/a.mp4"):
            entry = _format(record)
        assert entry["context"] == {"worker_id": "02", "file_path": "/media/a.mp4"}

    def test_extra_attributes_in_context(self) -> None:
        record = logging.LogRecord("avindex", logging.INFO, __file__, 1, "x", (), None)
        record.thumbname = "abc.webp"
        entry = _format(record)
        assert entry["context"]["thumbname"] == "abc.webp"

    def test_exception_included(self) -> None:
        try:
            raise ValueError("bad value")
        except ValueError:
            exc_info = sys.exc_info()
        record = logging.LogRecord(
            "avindex", logging.ERROR, __file__, 1, "failed", (), exc_info
        )
        entry = _format(record)
        assert "ValueError: bad value" in entry["exception"]
