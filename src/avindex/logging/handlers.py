"""JSON log formatter for avindex."""

from __future__ import annotations

import json
import logging
from datetime import datetime, timezone
from typing import Any

# Attributes every LogRecord carries, plus those the context filter adds
_RECORD_ATTRS = frozenset(
    logging.LogRecord("", logging.NOTSET, "", 0, "", (), None).__dict__
) | {"message", "asctime", "worker_tag", "worker_id", "file_path"}


class JSONFormatter(logging.Formatter):
    """One JSON object per record.

    Keys: timestamp (UTC, ISO-8601), level, message, logger (omitted for
    the root logger), context and exception. context holds the worker
    slot and file being probed, plus anything passed through `extra=`.
    """

    def format(self, record: logging.LogRecord) -> str:
        created = datetime.fromtimestamp(record.created, tz=timezone.utc)
        entry: dict[str, Any] = {
            "timestamp": created.isoformat(),
            "level": record.levelname,
            "message": record.getMessage(),
        }
        if record.name != "root":
            entry["logger"] = record.name

        context = {
            key: value
            for key, value in vars(record).items()
            if key not in _RECORD_ATTRS and not key.startswith("_")
        }
        for key in ("worker_id", "file_path"):
            if getattr(record, key, None):
                context[key] = getattr(record, key)
        if context:
            entry["context"] = context

        if record.exc_info:
            entry["exception"] = self.formatException(record.exc_info)

        return json.dumps(entry, default=str)
