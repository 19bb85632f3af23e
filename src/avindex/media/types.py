"""Value types passed between the probe workers and the catalogue."""

from __future__ import annotations

import hashlib
from dataclasses import dataclass, field


def digest_bytes(data: bytes) -> str:
    """Return the hex BLAKE2b-512 digest of data."""
    return hashlib.blake2b(data, digest_size=64).hexdigest()


@dataclass(frozen=True)
class Thumbnail:
    """One encoded WEBP image, identified by the digest of its bytes."""

    image: bytes

    @property
    def digest(self) -> str:
        return digest_bytes(self.image)

    @property
    def thumbname(self) -> str:
        """Content address used as the thumbnail primary key."""
        return f"{self.digest}.webp"


@dataclass
class ProbeResult:
    """What a Decoder extracted from one container.

    Attributes:
        tags: Container metadata plus mediatype and duration.
        thumbnails: One thumbnail per requested position, in order.
        can_seek: False once any seek on the file failed.
    """

    tags: dict[str, str] = field(default_factory=dict)
    thumbnails: list[Thumbnail] = field(default_factory=list)
    can_seek: bool = True


@dataclass
class MediaInfo:
    """Everything recorded for a media file after a successful probe."""

    path: str
    size: int
    tags: dict[str, str] = field(default_factory=dict)
    thumbnails: list[Thumbnail] = field(default_factory=list)
    can_seek: bool = True


@dataclass(frozen=True)
class ProbeRequest:
    """Ask a worker to probe path for the given number of thumbnails.

    Attributes:
        path: Absolute path of the file.
        probes: Number of thumbnails to generate, at least 1.
        first: True for a first-time ingest, which probes the midpoint.
    """

    path: str
    probes: int = 1
    first: bool = True

    def __post_init__(self) -> None:
        if self.probes < 1:
            raise ValueError(f"probes must be >= 1, got {self.probes}")


@dataclass
class ProbeReply:
    """Outcome of one ProbeRequest.

    Exactly one of info and error is set.
    """

    request: ProbeRequest
    info: MediaInfo | None = None
    error: Exception | None = None

    @property
    def ok(self) -> bool:
        return self.error is None and self.info is not None
