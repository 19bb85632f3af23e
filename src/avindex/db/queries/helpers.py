"""Row mapping helpers shared by the query modules."""

import sqlite3

from avindex.db.types import FileRecord, MediaFileRecord, ThumbnailRecord


def _row_to_file_record(row: sqlite3.Row) -> FileRecord:
    return FileRecord(filename=row["filename"], filesize=row["filesize"])


def _row_to_media_file_record(row: sqlite3.Row) -> MediaFileRecord:
    """Convert a mediastat row to MediaFileRecord using named columns."""
    return MediaFileRecord(
        filename=row["filename"],
        canseek=bool(row["canseek"]),
        probes=row["probes"],
        facechecked=bool(row["facechecked"]),
        bestthumb=row["bestthumb"],
        bestscore=row["bestscore"],
    )


def _row_to_thumbnail_record(row: sqlite3.Row) -> ThumbnailRecord:
    """Convert a thumbnail row (without image) to ThumbnailRecord."""
    return ThumbnailRecord(
        thumbname=row["thumbname"],
        facechecked=bool(row["facechecked"]),
        area=row["area"],
        confidence=row["confidence"],
        quality=row["quality"],
        score=row["score"],
    )
