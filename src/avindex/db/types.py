"""Record types for the avindex catalogue."""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum


class IngestOutcome(Enum):
    """How record_ingest treated a probe reply."""

    MEDIA = "media"
    NOT_MEDIA = "not_media"
    FAILED = "failed"  # decode error, file row only
    MISSING = "missing"


@dataclass(frozen=True)
class FileRecord:
    """Database record for the filestat table."""

    filename: str
    filesize: int


@dataclass(frozen=True)
class MediaFileRecord:
    """Database record for the mediastat table."""

    filename: str
    canseek: bool
    probes: int
    facechecked: bool
    bestthumb: str
    bestscore: float


@dataclass(frozen=True)
class ThumbnailRecord:
    """Database record for the thumbnail table, without the image bytes."""

    thumbname: str
    facechecked: bool
    area: int
    confidence: float
    quality: float
    score: float


@dataclass(frozen=True)
class FaceObservation:
    """One face found on a thumbnail.

    area is the bounding box area in pixels of the scored image;
    confidence and quality are in [0, 1].
    """

    area: int
    confidence: float
    quality: float


@dataclass(frozen=True)
class CatalogueStats:
    """Row counts reported by the health endpoint."""

    files: int = 0
    media_files: int = 0
    thumbnails: int = 0
    unevaluated: int = 0
