"""Scorer interface for face detection on thumbnails."""

from __future__ import annotations

from typing import TYPE_CHECKING, Protocol

if TYPE_CHECKING:
    from avindex.db.types import FaceObservation


class ScorerError(Exception):
    """Raised when a model cannot be loaded or an image cannot be scored."""

    pass


class Scorer(Protocol):
    """Protocol for thumbnail scorers.

    Implementations hold their models for the life of the instance and
    may be called from one thread at a time.
    """

    def evaluate(self, image: bytes) -> list[FaceObservation]:
        """Find faces in an encoded image.

        Args:
            image: Encoded image bytes (WEBP).

        Returns:
            One observation per face; empty when none are found.

        Raises:
            ScorerError: If the image cannot be decoded.
        """
        ...
