"""Media tree discovery and change detection."""

from avindex.scanner.discovery import (
    AUXILIARY_SUFFIXES,
    DiscoveredFile,
    Scanner,
    ScanResult,
    discover_files,
    files_needing_ingest,
)

__all__ = [
    "AUXILIARY_SUFFIXES",
    "DiscoveredFile",
    "ScanResult",
    "Scanner",
    "discover_files",
    "files_needing_ingest",
]
