"""File (filestat) queries.

All functions here do NOT commit. Caller must manage transactions.
"""

import sqlite3

from avindex.db.types import FileRecord

from .helpers import _row_to_file_record

# Tables holding a filename column; filestat last
FILE_TABLES = ("tags", "wordassocs", "thumbmap", "mediastat", "filestat")


def get_known_files(conn: sqlite3.Connection) -> dict[str, int]:
    """Return {filename: filesize} for every recorded file.

    Args:
        conn: Database connection.

    Returns:
        Mapping used by the scanner for change detection.
    """
    rows = conn.execute("SELECT filename, filesize FROM filestat").fetchall()
    return {row["filename"]: row["filesize"] for row in rows}


def get_file(conn: sqlite3.Connection, filename: str) -> FileRecord | None:
    """Get a file record by path, or None."""
    row = conn.execute(
        "SELECT filename, filesize FROM filestat WHERE filename = ?", (filename,)
    ).fetchone()
    return _row_to_file_record(row) if row else None


def upsert_file(conn: sqlite3.Connection, filename: str, filesize: int) -> None:
    """Insert or update a file record (upsert by path).

    Args:
        conn: Database connection.
        filename: Absolute path.
        filesize: Size in bytes, >= 0.

    Raises:
        ValueError: If filesize is negative.
    """
    if filesize < 0:
        raise ValueError(f"filesize must be >= 0, got {filesize}")
    conn.execute(
        """
        INSERT INTO filestat (filename, filesize) VALUES (?, ?)
        ON CONFLICT(filename) DO UPDATE SET filesize = excluded.filesize
        """,
        (filename, filesize),
    )


def delete_file(conn: sqlite3.Connection, filename: str) -> None:
    """Delete every row keyed by filename across the file tables.

    Thumbnails themselves are shared and are left to
    delete_orphan_thumbnails.
    """
    for table in FILE_TABLES:
        conn.execute(
            f"DELETE FROM {table} WHERE filename = ?",  # nosec B608 - constant names
            (filename,),
        )


def list_filenames(conn: sqlite3.Connection) -> list[str]:
    """Return every recorded path, sorted."""
    rows = conn.execute("SELECT filename FROM filestat ORDER BY filename").fetchall()
    return [row["filename"] for row in rows]
