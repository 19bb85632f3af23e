"""File discovery and change detection for the media tree."""

from __future__ import annotations

import logging
import os
import sqlite3
import time
from collections.abc import Iterable, Mapping
from dataclasses import dataclass, field
from pathlib import Path

from avindex.db import get_known_files

logger = logging.getLogger(__name__)

# Auxiliary files SQLite keeps next to the database
AUXILIARY_SUFFIXES = ("-wal", "-shm", "-journal")


@dataclass(frozen=True)
class DiscoveredFile:
    """A regular file found under the media root."""

    path: str
    size: int


@dataclass
class ScanResult:
    """Result of a scan operation."""

    files_found: int = 0
    files_new: int = 0
    files_changed: int = 0
    files_unchanged: int = 0
    elapsed_seconds: float = 0.0
    paths: list[str] = field(default_factory=list)


def _raise(error: OSError) -> None:
    raise error


def discover_files(root: Path, ignore: Iterable[str] = ()) -> list[DiscoveredFile]:
    """Walk root recursively and return every regular file with its size.

    Entries whose name is in `ignore` are skipped (directories are not
    descended into), as are files ending in -wal, -shm or -journal.
    Files that vanish during the walk are skipped.

    Args:
        root: Media root directory.
        ignore: File or directory names to skip.

    Returns:
        Discovered files with absolute paths, sorted by path.

    Raises:
        OSError: If a directory cannot be read.
    """
    ignored = set(ignore)
    found = []
    for dirpath, dirnames, filenames in os.walk(os.path.abspath(root), onerror=_raise):
        dirnames[:] = sorted(name for name in dirnames if name not in ignored)
        for name in filenames:
            if name in ignored or name.endswith(AUXILIARY_SUFFIXES):
                continue
            path = os.path.join(dirpath, name)
            try:
                st = os.stat(path)
            except FileNotFoundError:
                logger.debug("File vanished during discovery: %s", path)
                continue
            if not os.path.isfile(path):
                continue
            found.append(DiscoveredFile(path=path, size=st.st_size))

    found.sort(key=lambda f: f.path)
    return found


def files_needing_ingest(
    known: Mapping[str, int], discovered: Iterable[DiscoveredFile]
) -> list[str]:
    """Return paths that are new or whose size changed, sorted.

    Args:
        known: {path: size} from the catalogue.
        discovered: Files currently on disk.

    Returns:
        Paths needing a probe.
    """
    return sorted(f.path for f in discovered if known.get(f.path) != f.size)


class Scanner:
    """Compares the media tree against the catalogue.

    Args:
        root: Media root directory.
        ignore: Names to skip; the database file name is always added.
        db_path: Catalogue path, whose name is ignored.
    """

    def __init__(
        self, root: Path, db_path: Path | None = None, ignore: Iterable[str] = ()
    ) -> None:
        self.root = root
        self.ignore = set(ignore)
        if db_path is not None:
            self.ignore.add(db_path.name)

    def scan(self, conn: sqlite3.Connection) -> ScanResult:
        """Find files that need ingesting.

        Args:
            conn: Catalogue connection (read only).

        Returns:
            ScanResult whose paths are the files to probe.

        Raises:
            OSError: If a directory cannot be read.
        """
        start = time.monotonic()
        discovered = discover_files(self.root, self.ignore)
        known = get_known_files(conn)
        paths = files_needing_ingest(known, discovered)
        new = sum(1 for path in paths if path not in known)

        result = ScanResult(
            files_found=len(discovered),
            files_new=new,
            files_changed=len(paths) - new,
            files_unchanged=len(discovered) - len(paths),
            elapsed_seconds=time.monotonic() - start,
            paths=paths,
        )
        logger.info(
            "Scanned %s: %d found, %d new, %d changed (%.1fs)",
            self.root,
            result.files_found,
            result.files_new,
            result.files_changed,
            result.elapsed_seconds,
        )
        return result
