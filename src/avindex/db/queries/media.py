"""Media file (mediastat) queries, scoring and selection.

All functions here do NOT commit. Caller must manage transactions.
"""

import sqlite3

from avindex.db.types import MediaFileRecord

from .helpers import _row_to_media_file_record

# Improvement stops once bestscore reaches scorefn of these
TARGET_AREA = 30000
TARGET_CONFIDENCE = 0.85
TARGET_QUALITY = 0.6

_BEST_THUMB_SQL = """
    SELECT t.thumbname FROM thumbmap m
    JOIN thumbnail t ON t.thumbname = m.thumbname
    WHERE m.filename = mediastat.filename
    ORDER BY t.score DESC, t.thumbname ASC
    LIMIT 1
"""

_BEST_SCORE_SQL = """
    SELECT t.score FROM thumbmap m
    JOIN thumbnail t ON t.thumbname = m.thumbname
    WHERE m.filename = mediastat.filename
    ORDER BY t.score DESC, t.thumbname ASC
    LIMIT 1
"""


def get_media_file(conn: sqlite3.Connection, filename: str) -> MediaFileRecord | None:
    """Get a media file record by path, or None."""
    row = conn.execute(
        "SELECT * FROM mediastat WHERE filename = ?", (filename,)
    ).fetchone()
    return _row_to_media_file_record(row) if row else None


def upsert_media_file(
    conn: sqlite3.Connection,
    filename: str,
    canseek: bool,
    probes: int,
    bestthumb: str,
) -> None:
    """Insert or replace the mediastat row with facechecked cleared.

    bestthumb is provisional; rescore() picks the real one.
    """
    conn.execute(
        """
        INSERT INTO mediastat
            (filename, canseek, probes, facechecked, bestthumb, bestscore)
        VALUES (?, ?, ?, 0, ?, 0)
        ON CONFLICT(filename) DO UPDATE SET
            canseek = excluded.canseek,
            probes = excluded.probes,
            facechecked = 0,
            bestthumb = excluded.bestthumb
        """,
        (filename, int(canseek), probes, bestthumb),
    )


def update_probe_state(
    conn: sqlite3.Connection,
    filename: str,
    probes: int,
    canseek: bool,
    facechecked: bool,
) -> None:
    """Set probe count, seekability and facechecked for a media file."""
    conn.execute(
        """
        UPDATE mediastat SET probes = ?, canseek = ?, facechecked = ?
        WHERE filename = ?
        """,
        (probes, int(canseek), int(facechecked), filename),
    )


def mark_file_evaluated(conn: sqlite3.Connection, filename: str) -> None:
    """Set facechecked on a media file."""
    conn.execute("UPDATE mediastat SET facechecked = 1 WHERE filename = ?", (filename,))


def rescore(conn: sqlite3.Connection, filename: str) -> None:
    """Recompute thumbnail scores for a file and pick its best thumbnail.

    bestthumb is the mapped thumbnail with the highest score, ties broken
    by the lowest thumbname; bestscore is its score. A file with no
    mapped thumbnail keeps its current values.
    """
    conn.execute(
        """
        UPDATE thumbnail SET score = scorefn(area, confidence, quality)
        WHERE thumbname IN (SELECT thumbname FROM thumbmap WHERE filename = ?)
        """,
        (filename,),
    )
    conn.execute(
        f"""
        UPDATE mediastat SET
            bestthumb = ({_BEST_THUMB_SQL}),
            bestscore = ({_BEST_SCORE_SQL})
        WHERE filename = ?
          AND EXISTS (SELECT 1 FROM thumbmap m
                      JOIN thumbnail t ON t.thumbname = m.thumbname
                      WHERE m.filename = mediastat.filename)
        """,  # nosec B608 - constant subqueries
        (filename,),
    )


def rescore_all(conn: sqlite3.Connection) -> None:
    """Recompute every thumbnail score and every file's best thumbnail."""
    conn.execute("UPDATE thumbnail SET score = scorefn(area, confidence, quality)")
    conn.execute(
        f"""
        UPDATE mediastat SET
            bestthumb = ({_BEST_THUMB_SQL}),
            bestscore = ({_BEST_SCORE_SQL})
        WHERE EXISTS (SELECT 1 FROM thumbmap m
                      JOIN thumbnail t ON t.thumbname = m.thumbname
                      WHERE m.filename = mediastat.filename)
        """  # nosec B608 - constant subqueries
    )


def select_unevaluated_files(conn: sqlite3.Connection) -> list[str]:
    """Return media files whose thumbnails have not all been scored."""
    rows = conn.execute(
        "SELECT filename FROM mediastat WHERE NOT facechecked ORDER BY filename"
    ).fetchall()
    return [row["filename"] for row in rows]


def select_improvable_files(
    conn: sqlite3.Connection, probe_min: int, probe_max: int
) -> list[MediaFileRecord]:
    """Return evaluated, seekable files still below the target score.

    A file qualifies while probes < probe_min, or while
    probes < probe_max if any face has been found (bestscore > 0).

    Args:
        conn: Database connection.
        probe_min: Probes every file gets regardless of score.
        probe_max: Hard cap on probes.

    Returns:
        Records ordered by probes ascending.
    """
    rows = conn.execute(
        """
        SELECT * FROM mediastat
        WHERE facechecked
          AND canseek
          AND ((probes < ?) OR (probes < ? AND bestscore > 0))
          AND bestscore < scorefn(?, ?, ?)
        ORDER BY probes ASC, filename ASC
        """,
        (probe_min, probe_max, TARGET_AREA, TARGET_CONFIDENCE, TARGET_QUALITY),
    ).fetchall()
    return [_row_to_media_file_record(row) for row in rows]
