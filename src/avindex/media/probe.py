"""Probe one file: stat it, sample thumbnails and add the reserved tags."""

from __future__ import annotations

import logging
import os
import random
from collections.abc import Callable
from datetime import datetime, timezone

from avindex.media.interface import (
    Decoder,
    MissingFileError,
    ProbeError,
)
from avindex.media.types import MediaInfo, ProbeReply, ProbeRequest

logger = logging.getLogger(__name__)

FIRST_PROBE_POSITION = 0.5


def format_file_time(mtime: float) -> str:
    """Format a modification time as UTC YYYY-MM-DDTHH:MM:SS."""
    return datetime.fromtimestamp(mtime, tz=timezone.utc).strftime("%Y-%m-%dT%H:%M:%S")


def format_file_size(size: int) -> str:
    """Zero-pad a size to 99 digits so text order matches numeric order."""
    return "%099d" % size


def reserved_tags(path: str, size: int, mtime: float) -> dict[str, str]:
    """Tags written for every media file regardless of the container."""
    return {
        "favourite": "false",
        "diskfiletime": format_file_time(mtime),
        "diskfilename": os.path.basename(path),
        "diskfilesize": format_file_size(size),
    }


class MediaProbe:
    """Turn a ProbeRequest into MediaInfo using a Decoder.

    Args:
        decoder: The Decoder implementation.
        rand: Source of positions in [0, 1); defaults to random.random.
    """

    def __init__(
        self, decoder: Decoder, rand: Callable[[], float] | None = None
    ) -> None:
        self.decoder = decoder
        self._rand = rand or random.random

    def positions(self, probes: int, first: bool) -> list[float]:
        """Choose sample positions; a first-time ingest starts at the midpoint."""
        chosen = [self._rand() for _ in range(probes)]
        if first:
            chosen[0] = FIRST_PROBE_POSITION
        return chosen

    def probe(self, path: str, probes: int = 1, first: bool = True) -> MediaInfo:
        """Probe path for the requested number of thumbnails.

        Args:
            path: Absolute path of the file.
            probes: Number of thumbnails, at least 1.
            first: True for a first-time ingest.

        Returns:
            MediaInfo with decoder tags plus the reserved tags.

        Raises:
            MissingFileError: If the file vanished.
            NotMediaError: If the file is not media; size is set.
            DecodeError: If decoding failed; size is set.
        """
        try:
            st = os.stat(path)
        except FileNotFoundError as e:
            raise MissingFileError(path, str(e)) from e

        try:
            result = self.decoder.probe(path, self.positions(probes, first))
        except ProbeError as e:
            e.size = st.st_size
            raise

        tags = dict(result.tags)
        tags.update(reserved_tags(path, st.st_size, st.st_mtime))
        return MediaInfo(
            path=path,
            size=st.st_size,
            tags=tags,
            thumbnails=list(result.thumbnails),
            can_seek=result.can_seek,
        )

    def handle(self, request: ProbeRequest) -> ProbeReply:
        """Dispatcher handler: probe and wrap the outcome in a reply."""
        try:
            info = self.probe(request.path, request.probes, request.first)
        except ProbeError as e:
            return ProbeReply(request=request, error=e)
        return ProbeReply(request=request, info=info)
