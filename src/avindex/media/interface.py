"""Decoder interface and probe error taxonomy."""

from __future__ import annotations

from collections.abc import Sequence
from typing import Protocol

from avindex.media.types import ProbeResult, Thumbnail


class ProbeError(Exception):
    """Base class for failures while probing a single file.

    Attributes:
        path: The file being probed.
        size: Size in bytes when the file was stat'ed, if known.
    """

    def __init__(self, path: str, message: str = "", size: int | None = None) -> None:
        self.path = path
        self.size = size
        super().__init__(message or path)


class NotMediaError(ProbeError):
    """The container could not be opened as media (text, subtitles, ...)."""

    pass


class MissingFileError(ProbeError):
    """The file vanished between scan and probe."""

    pass


class SeekUnsupportedError(ProbeError):
    """The stream refused a seek; the probe is retried from the start."""

    pass


class EndOfStreamError(ProbeError):
    """The stream ended before a keyframe was decoded."""

    pass


class DecodeError(ProbeError):
    """Any other decoder failure. Fatal for the probe."""

    pass


class Decoder(Protocol):
    """Protocol for container demux and thumbnail extraction.

    Implementations must release every native resource before returning,
    on success and on every error path.
    """

    def probe(
        self, path: str, positions: Sequence[float], want_seek: bool = True
    ) -> ProbeResult:
        """Extract tags and one thumbnail per position.

        Args:
            path: Path to the file.
            positions: Fractions of the duration in [0, 1) to sample.
            want_seek: Seek to each position; False decodes from the start.

        Returns:
            ProbeResult with tags, thumbnails and seekability.

        Raises:
            NotMediaError: If the container is not media.
            MissingFileError: If the path does not exist.
            DecodeError: If decoding fails.
        """
        ...

    def test_pattern(self) -> Thumbnail:
        """Return the 960x540 fallback thumbnail."""
        ...
