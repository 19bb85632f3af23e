"""Catalogue row counts."""

import sqlite3

from avindex.db.types import CatalogueStats


def get_catalogue_stats(conn: sqlite3.Connection) -> CatalogueStats:
    """Count files, media files, thumbnails and unevaluated media files."""
    row = conn.execute(
        """
        SELECT
            (SELECT count(*) FROM filestat) AS files,
            (SELECT count(*) FROM mediastat) AS media_files,
            (SELECT count(*) FROM thumbnail) AS thumbnails,
            (SELECT count(*) FROM mediastat WHERE NOT facechecked) AS unevaluated
        """
    ).fetchone()
    return CatalogueStats(
        files=row["files"],
        media_files=row["media_files"],
        thumbnails=row["thumbnails"],
        unevaluated=row["unevaluated"],
    )
