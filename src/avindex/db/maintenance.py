"""Database maintenance operations (WAL checkpoint)."""

import logging
import sqlite3

logger = logging.getLogger(__name__)


def checkpoint_wal(conn: sqlite3.Connection) -> tuple[int, int, int]:
    """Checkpoint and truncate the write-ahead log.

    Must run outside a transaction.

    Args:
        conn: Database connection.

    Returns:
        (busy, log_frames, checkpointed_frames) as reported by SQLite.

    Raises:
        sqlite3.Error: If the checkpoint fails.
    """
    row = conn.execute("PRAGMA wal_checkpoint(TRUNCATE)").fetchone()
    # PRAGMA columns: busy(0), log(1), checkpointed(2)
    result = (row[0], row[1], row[2])
    if result[0]:
        logger.debug("WAL checkpoint incomplete, readers still active")
    return result
