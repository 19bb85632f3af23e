"""Catalogue database for avindex.

This module provides the public API for catalogue operations.

Module organization:
- types.py: record dataclasses and enums
- schema.py: table definitions
- functions.py: the scorefn SQL function
- connection.py: connections, read-only HTTP connections, transactions
- queries/: per-table query functions (never commit)
- operations.py: transactional operations composed from queries
- maintenance.py: WAL checkpoint

Usage:
    from avindex.db import get_connection, initialize_database, record_ingest
"""

from .connection import (
    ConnectionPool,
    get_connection,
    is_locked_error,
    open_connection,
    transaction,
)
from .functions import register_functions, score_fn
from .maintenance import checkpoint_wal
from .operations import (
    DEFAULT_KEEP,
    cull_missing,
    initialize_database,
    record_evaluation,
    record_improvement,
    record_ingest,
)
from .queries import (
    cull_overflow,
    derive_word_associations,
    get_catalogue_stats,
    get_known_files,
    get_media_file,
    get_tags,
    get_thumbnail_image,
    get_thumbnails_for_file,
    get_unevaluated_thumbnails,
    normalise_tag_keys,
    record_face_observations,
    rescore,
    rescore_all,
    select_improvable_files,
    select_unevaluated_files,
    split_words,
)
from .schema import SCHEMA_VERSION, create_schema, get_schema_version
from .types import (
    CatalogueStats,
    FaceObservation,
    FileRecord,
    IngestOutcome,
    MediaFileRecord,
    ThumbnailRecord,
)

__all__ = [
    "DEFAULT_KEEP",
    "SCHEMA_VERSION",
    "CatalogueStats",
    "ConnectionPool",
    "FaceObservation",
    "FileRecord",
    "IngestOutcome",
    "MediaFileRecord",
    "ThumbnailRecord",
    "checkpoint_wal",
    "create_schema",
    "cull_missing",
    "cull_overflow",
    "derive_word_associations",
    "get_catalogue_stats",
    "get_connection",
    "get_known_files",
    "get_media_file",
    "get_schema_version",
    "get_tags",
    "get_thumbnail_image",
    "get_thumbnails_for_file",
    "get_unevaluated_thumbnails",
    "initialize_database",
    "is_locked_error",
    "normalise_tag_keys",
    "open_connection",
    "record_evaluation",
    "record_face_observations",
    "record_improvement",
    "record_ingest",
    "register_functions",
    "rescore",
    "rescore_all",
    "score_fn",
    "select_improvable_files",
    "select_unevaluated_files",
    "split_words",
    "transaction",
]
