"""Database connection management for the avindex catalogue."""

from __future__ import annotations

import sqlite3
import threading
from collections.abc import Iterator
from contextlib import contextmanager
from pathlib import Path

from avindex.db.functions import register_functions


def is_locked_error(exc: BaseException) -> bool:
    """True for SQLite lock contention errors ("database is locked"/"busy")."""
    if not isinstance(exc, sqlite3.OperationalError):
        return False
    message = str(exc).casefold()
    return "locked" in message or "busy" in message


def _configure_connection(conn: sqlite3.Connection) -> sqlite3.Connection:
    """Apply the standard PRAGMAs and register SQL functions."""
    conn.execute("PRAGMA foreign_keys = ON")

    # WAL admits concurrent readers while one writer commits
    conn.execute("PRAGMA journal_mode = WAL")

    # NORMAL is durable enough with WAL
    conn.execute("PRAGMA synchronous = NORMAL")

    conn.execute("PRAGMA busy_timeout = 10000")
    conn.execute("PRAGMA temp_store = MEMORY")

    conn.row_factory = sqlite3.Row
    register_functions(conn)
    return conn


def open_connection(
    db_path: Path, timeout: float = 30.0, check_same_thread: bool = True
) -> sqlite3.Connection:
    """Open a configured connection that the caller must close.

    Args:
        db_path: Path to the database file. Parent directories are created.
        timeout: How long to wait for locks (seconds).
        check_same_thread: Passed through to sqlite3.connect.

    Returns:
        An sqlite3 Connection with PRAGMAs applied and scorefn registered.
    """
    db_path.parent.mkdir(parents=True, exist_ok=True)
    conn = sqlite3.connect(
        str(db_path), timeout=timeout, check_same_thread=check_same_thread
    )
    try:
        return _configure_connection(conn)
    except sqlite3.Error:
        conn.close()
        raise


@contextmanager
def get_connection(
    db_path: Path, timeout: float = 30.0
) -> Iterator[sqlite3.Connection]:
    """Get a database connection with proper settings.

    Args:
        db_path: Path to the database file.
        timeout: How long to wait for locks (seconds). Default 30s.

    Yields:
        An sqlite3 Connection object.

    Raises:
        sqlite3.OperationalError: If the database cannot be opened.
    """
    conn = open_connection(db_path, timeout=timeout)
    try:
        yield conn
    finally:
        conn.close()


@contextmanager
def transaction(conn: sqlite3.Connection) -> Iterator[sqlite3.Connection]:
    """Run a block as one write transaction.

    Uses BEGIN IMMEDIATE so the write lock is taken up front. Commits on
    success and rolls back on any exception.

    Example:
        with transaction(conn):
            conn.execute("INSERT ...")
            conn.execute("UPDATE ...")
    """
    conn.execute("BEGIN IMMEDIATE")
    try:
        yield conn
    except BaseException:
        conn.execute("ROLLBACK")
        raise
    conn.execute("COMMIT")


class ConnectionPool:
    """Hands out short-lived read connections to the HTTP handlers.

    Every read opens its own connection with query_only set, so handlers
    running in worker threads never share a connection and never write.
    The background loops own all writes through their own connections.
    """

    def __init__(self, db_path: Path, timeout: float = 30.0) -> None:
        self.db_path = db_path
        self.timeout = timeout
        self._closed = threading.Event()

    @contextmanager
    def read_connection(self) -> Iterator[sqlite3.Connection]:
        """Yield a read-only connection that is closed when the block exits.

        Raises:
            RuntimeError: The pool was closed during app cleanup.
        """
        if self._closed.is_set():
            raise RuntimeError("Connection pool is closed")
        conn = open_connection(
            self.db_path, timeout=self.timeout, check_same_thread=False
        )
        try:
            conn.execute("PRAGMA query_only = ON")
            yield conn
        finally:
            conn.close()

    def close(self) -> None:
        """Refuse further reads. Connections already handed out finish normally."""
        self._closed.set()

    @property
    def is_closed(self) -> bool:
        return self._closed.is_set()
