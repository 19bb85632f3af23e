"""Transactional catalogue operations.

Each public function here runs as one BEGIN IMMEDIATE transaction on the
given connection and commits before returning. They compose the query
functions in avindex.db.queries, which never commit on their own.
"""

from __future__ import annotations

import logging
import sqlite3
from collections.abc import Callable, Mapping, Sequence

from avindex.db.connection import transaction
from avindex.db.queries import (
    cull_overflow,
    delete_file,
    delete_orphan_thumbnails,
    get_file,
    get_files_mapping,
    get_media_file,
    insert_thumbnail,
    list_filenames,
    map_thumbnail,
    mark_file_evaluated,
    record_face_observations,
    rescore,
    rescore_all,
    update_probe_state,
    upsert_file,
    upsert_media_file,
    upsert_tags,
)
from avindex.db.schema import create_schema
from avindex.db.types import FaceObservation, IngestOutcome
from avindex.media.interface import (
    DecodeError,
    MissingFileError,
    NotMediaError,
    ProbeError,
)
from avindex.media.types import ProbeReply, Thumbnail

logger = logging.getLogger(__name__)

DEFAULT_KEEP = 4

# Per-file tables cleared when a file stops being the media it was
_MEDIA_TABLES = ("tags", "wordassocs", "thumbmap", "mediastat")


def initialize_database(conn: sqlite3.Connection) -> None:
    """Create the schema if needed and bring every score up to date.

    Idempotent. Call once per process before starting the loops.
    """
    create_schema(conn)
    with transaction(conn):
        rescore_all(conn)


def _forget_media(conn: sqlite3.Connection, filename: str) -> None:
    for table in _MEDIA_TABLES:
        conn.execute(
            f"DELETE FROM {table} WHERE filename = ?",  # nosec B608 - constant names
            (filename,),
        )


def _store_thumbnails(
    conn: sqlite3.Connection, filename: str, thumbnails: Sequence[Thumbnail]
) -> None:
    for thumbnail in thumbnails:
        insert_thumbnail(conn, thumbnail.thumbname, thumbnail.image)
        map_thumbnail(conn, filename, thumbnail.thumbname)


def record_ingest(conn: sqlite3.Connection, reply: ProbeReply) -> IngestOutcome:
    """Record the outcome of a first-time or changed-file probe.

    - MissingFileError: nothing is written.
    - NotMediaError: a File row only. A file that used to be media loses
      its media rows.
    - DecodeError: a File row only, existing media rows are kept.
    - Success: File, thumbnails and mappings, lowercased tags and a fresh
      MediaFile (facechecked cleared), then the file is rescored. A file
      re-ingested after a size change loses its previous tags, mappings
      and word associations first.

    Args:
        conn: Database connection, outside any transaction.
        reply: The dispatcher reply.

    Returns:
        How the reply was recorded.

    Raises:
        Exception: reply.error when it is not a probe error.
        ValueError: If a successful reply carries no thumbnail.
    """
    path = reply.request.path
    error = reply.error

    if isinstance(error, MissingFileError):
        logger.debug("File vanished before probe: %s", path)
        return IngestOutcome.MISSING

    if isinstance(error, (NotMediaError, DecodeError)):
        if error.size is None:
            logger.debug("No size recorded for %s, skipping", path)
            return IngestOutcome.MISSING
        with transaction(conn):
            upsert_file(conn, path, error.size)
            if isinstance(error, DecodeError):
                return IngestOutcome.FAILED
            if get_media_file(conn, path) is not None:
                _forget_media(conn, path)
                delete_orphan_thumbnails(conn)
        return IngestOutcome.NOT_MEDIA

    if error is not None:
        raise error

    info = reply.info
    if info is None or not info.thumbnails:
        raise ValueError(f"Probe of {path} returned no thumbnail")

    with transaction(conn):
        previous = get_file(conn, path)
        upsert_file(conn, path, info.size)
        if previous is not None:
            _forget_media(conn, path)

        _store_thumbnails(conn, path, info.thumbnails)
        upsert_tags(conn, path, info.tags)
        upsert_media_file(
            conn,
            path,
            canseek=info.can_seek,
            probes=reply.request.probes,
            bestthumb=info.thumbnails[0].thumbname,
        )
        if previous is not None:
            delete_orphan_thumbnails(conn)
        rescore(conn, path)
    return IngestOutcome.MEDIA


def record_evaluation(
    conn: sqlite3.Connection,
    filename: str,
    observations: Mapping[str, Sequence[FaceObservation]],
    keep: int = DEFAULT_KEEP,
) -> None:
    """Store face observations for a file's thumbnails and settle the file.

    Writes observations and aggregates, marks the file evaluated,
    rescores it and every other file sharing an evaluated thumbnail, then
    culls the file down to `keep` thumbnails.

    Args:
        conn: Database connection, outside any transaction.
        filename: The media file evaluated.
        observations: Faces found per thumbname (empty list for none).
        keep: Thumbnails to keep after culling.
    """
    with transaction(conn):
        affected = {filename}
        for thumbname, faces in observations.items():
            record_face_observations(conn, thumbname, faces)
            affected.update(get_files_mapping(conn, thumbname))

        mark_file_evaluated(conn, filename)
        for name in sorted(affected):
            rescore(conn, name)

        culled = cull_overflow(conn, filename, keep)
        if culled:
            logger.debug("Culled %d thumbnail(s) from %s", len(culled), filename)
            rescore(conn, filename)


def record_improvement(
    conn: sqlite3.Connection, reply: ProbeReply, probe_max: int
) -> bool:
    """Record an additional probe of an already catalogued media file.

    On success the new thumbnails are stored and the file is queued for
    evaluation again. On a probe error the attempt still counts, so the
    file cannot be retried forever. Probes never exceed probe_max.

    Args:
        conn: Database connection, outside any transaction.
        reply: The dispatcher reply for the improvement request.
        probe_max: Probe cap.

    Returns:
        True if new thumbnails were recorded.
    """
    path = reply.request.path
    if isinstance(reply.error, MissingFileError):
        logger.debug("File vanished before improvement: %s", path)
        return False
    if reply.error is not None and not isinstance(reply.error, ProbeError):
        raise reply.error

    with transaction(conn):
        current = get_media_file(conn, path)
        if current is None:
            logger.debug("No media row for %s, skipping improvement", path)
            return False

        probes = min(current.probes + reply.request.probes, probe_max)
        if reply.info is None or reply.error is not None:
            logger.warning("Improvement probe failed for %s: %s", path, reply.error)
            update_probe_state(
                conn, path, probes=probes, canseek=current.canseek, facechecked=True
            )
            return False

        _store_thumbnails(conn, path, reply.info.thumbnails)
        update_probe_state(
            conn, path, probes=probes, canseek=reply.info.can_seek, facechecked=False
        )
        rescore(conn, path)
    return True


def _path_missing(path: str) -> bool:
    try:
        with open(path, "rb"):
            return False
    except (FileNotFoundError, NotADirectoryError):
        return True


def cull_missing(
    conn: sqlite3.Connection, is_missing: Callable[[str], bool] = _path_missing
) -> list[str]:
    """Remove every row for files that no longer open.

    Paths are probed by opening them for reading. Rows go from filestat,
    mediastat, tags, thumbmap and wordassocs; thumbnails left unmapped
    go with their observations.

    Args:
        conn: Database connection, outside any transaction.
        is_missing: Predicate used to probe a path.

    Returns:
        Removed paths, sorted.
    """
    missing = [name for name in list_filenames(conn) if is_missing(name)]
    if not missing:
        return []

    with transaction(conn):
        for name in missing:
            delete_file(conn, name)
        orphans = delete_orphan_thumbnails(conn)

    logger.info(
        "Culled %d missing file(s), %d orphaned thumbnail(s)", len(missing), orphans
    )
    return missing
