"""Catalogue query functions.

Functions are organised by table but re-exported here for convenience.
None of them commit; callers wrap writes in transaction().

Module organization:
- helpers.py: row mapping functions
- files.py: filestat operations and per-file deletion
- media.py: mediastat operations, rescoring and selection
- thumbnails.py: thumbnail, thumbmap and thumbface operations
- tags.py: tag upsert and key normalisation
- words.py: word association derivation
- stats.py: row counts
"""

from .files import (
    FILE_TABLES,
    delete_file,
    get_file,
    get_known_files,
    list_filenames,
    upsert_file,
)
from .media import (
    TARGET_AREA,
    TARGET_CONFIDENCE,
    TARGET_QUALITY,
    get_media_file,
    mark_file_evaluated,
    rescore,
    rescore_all,
    select_improvable_files,
    select_unevaluated_files,
    update_probe_state,
    upsert_media_file,
)
from .stats import get_catalogue_stats
from .tags import get_tags, normalise_tag_keys, upsert_tags
from .thumbnails import (
    cull_overflow,
    delete_orphan_thumbnails,
    delete_thumbnail,
    get_files_mapping,
    get_thumbnail_image,
    get_thumbnails_for_file,
    get_unevaluated_thumbnails,
    insert_thumbnail,
    is_thumbnail_mapped,
    map_thumbnail,
    record_face_observations,
    unmap_thumbnail,
)
from .words import WORD_SEPARATORS, derive_word_associations, split_words

__all__ = [
    "FILE_TABLES",
    "TARGET_AREA",
    "TARGET_CONFIDENCE",
    "TARGET_QUALITY",
    "WORD_SEPARATORS",
    "cull_overflow",
    "delete_file",
    "delete_orphan_thumbnails",
    "delete_thumbnail",
    "derive_word_associations",
    "get_catalogue_stats",
    "get_file",
    "get_files_mapping",
    "get_known_files",
    "get_media_file",
    "get_tags",
    "get_thumbnail_image",
    "get_thumbnails_for_file",
    "get_unevaluated_thumbnails",
    "insert_thumbnail",
    "is_thumbnail_mapped",
    "list_filenames",
    "map_thumbnail",
    "mark_file_evaluated",
    "normalise_tag_keys",
    "record_face_observations",
    "rescore",
    "rescore_all",
    "select_improvable_files",
    "select_unevaluated_files",
    "split_words",
    "unmap_thumbnail",
    "update_probe_state",
    "upsert_file",
    "upsert_media_file",
    "upsert_tags",
]
