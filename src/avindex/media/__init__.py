"""Media probing: demux, keyframe extraction and WEBP thumbnails."""

from avindex.media.interface import (
    DecodeError,
    Decoder,
    EndOfStreamError,
    MissingFileError,
    NotMediaError,
    ProbeError,
    SeekUnsupportedError,
)
from avindex.media.probe import MediaProbe
from avindex.media.types import (
    MediaInfo,
    ProbeReply,
    ProbeRequest,
    ProbeResult,
    Thumbnail,
    digest_bytes,
)

__all__ = [
    "DecodeError",
    "Decoder",
    "EndOfStreamError",
    "MediaInfo",
    "MediaProbe",
    "MissingFileError",
    "NotMediaError",
    "ProbeError",
    "ProbeReply",
    "ProbeRequest",
    "ProbeResult",
    "SeekUnsupportedError",
    "Thumbnail",
    "digest_bytes",
]
