"""Thumbnail, mapping and face observation queries.

All functions here do NOT commit. Caller must manage transactions.
"""

import sqlite3
from collections.abc import Sequence

from avindex.db.types import FaceObservation, ThumbnailRecord

from .helpers import _row_to_thumbnail_record

_RECORD_COLUMNS = "t.thumbname, t.facechecked, t.area, t.confidence, t.quality, t.score"


def insert_thumbnail(conn: sqlite3.Connection, thumbname: str, image: bytes) -> bool:
    """Insert an unevaluated thumbnail unless the digest already exists.

    Returns:
        True if a new row was inserted.
    """
    cursor = conn.execute(
        """
        INSERT OR IGNORE INTO thumbnail
            (thumbname, image, facechecked, area, confidence, quality, score)
        VALUES (?, ?, 0, 0, 0, 0, 0)
        """,
        (thumbname, image),
    )
    return cursor.rowcount > 0


def map_thumbnail(conn: sqlite3.Connection, filename: str, thumbname: str) -> None:
    """Associate a thumbnail with a file (idempotent)."""
    conn.execute(
        "INSERT OR IGNORE INTO thumbmap (filename, thumbname) VALUES (?, ?)",
        (filename, thumbname),
    )


def unmap_thumbnail(conn: sqlite3.Connection, filename: str, thumbname: str) -> None:
    conn.execute(
        "DELETE FROM thumbmap WHERE filename = ? AND thumbname = ?",
        (filename, thumbname),
    )


def is_thumbnail_mapped(conn: sqlite3.Connection, thumbname: str) -> bool:
    row = conn.execute(
        "SELECT 1 FROM thumbmap WHERE thumbname = ? LIMIT 1", (thumbname,)
    ).fetchone()
    return row is not None


def delete_thumbnail(conn: sqlite3.Connection, thumbname: str) -> None:
    """Delete a thumbnail with its observations and every mapping."""
    conn.execute("DELETE FROM thumbface WHERE thumbname = ?", (thumbname,))
    conn.execute("DELETE FROM thumbmap WHERE thumbname = ?", (thumbname,))
    conn.execute("DELETE FROM thumbnail WHERE thumbname = ?", (thumbname,))


def delete_orphan_thumbnails(conn: sqlite3.Connection) -> int:
    """Delete thumbnails and observations no file maps to.

    Returns:
        Number of thumbnail rows deleted.
    """
    conn.execute(
        "DELETE FROM thumbface WHERE thumbname NOT IN (SELECT thumbname FROM thumbmap)"
    )
    cursor = conn.execute(
        "DELETE FROM thumbnail WHERE thumbname NOT IN (SELECT thumbname FROM thumbmap)"
    )
    return cursor.rowcount


def get_thumbnail_image(conn: sqlite3.Connection, thumbname: str) -> bytes | None:
    """Return the WEBP bytes of a thumbnail, or None."""
    row = conn.execute(
        "SELECT image FROM thumbnail WHERE thumbname = ?", (thumbname,)
    ).fetchone()
    return bytes(row["image"]) if row else None


def get_thumbnails_for_file(
    conn: sqlite3.Connection, filename: str
) -> list[ThumbnailRecord]:
    """Return the file's thumbnails, best first (score desc, thumbname asc)."""
    rows = conn.execute(
        f"""
        SELECT {_RECORD_COLUMNS} FROM thumbmap m
        JOIN thumbnail t ON t.thumbname = m.thumbname
        WHERE m.filename = ?
        ORDER BY t.score DESC, t.thumbname ASC
        """,  # nosec B608 - constant column list
        (filename,),
    ).fetchall()
    return [_row_to_thumbnail_record(row) for row in rows]


def get_unevaluated_thumbnails(
    conn: sqlite3.Connection, filename: str
) -> list[tuple[str, bytes]]:
    """Return (thumbname, image) for the file's unscored thumbnails."""
    rows = conn.execute(
        """
        SELECT t.thumbname, t.image FROM thumbmap m
        JOIN thumbnail t ON t.thumbname = m.thumbname
        WHERE m.filename = ? AND NOT t.facechecked
        ORDER BY t.thumbname
        """,
        (filename,),
    ).fetchall()
    return [(row["thumbname"], bytes(row["image"])) for row in rows]


def record_face_observations(
    conn: sqlite3.Connection,
    thumbname: str,
    observations: Sequence[FaceObservation],
) -> None:
    """Store the faces found on a thumbnail and mark it evaluated.

    Replaces earlier observations. With faces, the thumbnail gets the sum
    of areas, mean confidence and mean quality; without, its aggregates
    stay as they are and only facechecked is set.
    """
    conn.execute("DELETE FROM thumbface WHERE thumbname = ?", (thumbname,))
    conn.executemany(
        "INSERT INTO thumbface (thumbname, area, confidence, quality) VALUES (?, ?, ?, ?)",
        [(thumbname, o.area, o.confidence, o.quality) for o in observations],
    )
    if observations:
        conn.execute(
            """
            UPDATE thumbnail SET
                area = (SELECT sum(area) FROM thumbface WHERE thumbname = ?),
                confidence = (SELECT avg(confidence) FROM thumbface WHERE thumbname = ?),
                quality = (SELECT avg(quality) FROM thumbface WHERE thumbname = ?),
                facechecked = 1
            WHERE thumbname = ?
            """,
            (thumbname, thumbname, thumbname, thumbname),
        )
    else:
        conn.execute(
            "UPDATE thumbnail SET facechecked = 1 WHERE thumbname = ?", (thumbname,)
        )


def get_files_mapping(conn: sqlite3.Connection, thumbname: str) -> list[str]:
    """Return every file a thumbnail is mapped to."""
    rows = conn.execute(
        "SELECT filename FROM thumbmap WHERE thumbname = ? ORDER BY filename",
        (thumbname,),
    ).fetchall()
    return [row["filename"] for row in rows]


def cull_overflow(conn: sqlite3.Connection, filename: str, keep: int = 4) -> list[str]:
    """Keep only the file's top `keep` thumbnails by score.

    Surplus thumbnails are unmapped from this file. A thumbnail no other
    file maps to is deleted with its observations. Caller rescores.

    Returns:
        Thumbnail names unmapped from the file.
    """
    if keep < 1:
        raise ValueError(f"keep must be >= 1, got {keep}")

    surplus = [t.thumbname for t in get_thumbnails_for_file(conn, filename)[keep:]]
    for thumbname in surplus:
        unmap_thumbnail(conn, filename, thumbname)
        if not is_thumbnail_mapped(conn, thumbname):
            delete_thumbnail(conn, thumbname)
    return surplus
