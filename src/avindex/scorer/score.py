"""Thumbnail score function and face aggregation."""

from __future__ import annotations

import math
from collections.abc import Sequence
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from avindex.db.types import FaceObservation


def score_fn(area: float | None, confidence: float | None, quality: float | None) -> float:
    """Score a thumbnail from its face aggregates.

    score = sqrt(max(0, area)) * confidence * quality. None counts as
    zero so a thumbnail without observations scores 0.
    """
    return (
        math.sqrt(max(0.0, float(area or 0)))
        * float(confidence or 0.0)
        * float(quality or 0.0)
    )


def aggregate(observations: Sequence[FaceObservation]) -> tuple[int, float, float]:
    """Combine faces into (total area, mean confidence, mean quality).

    Returns (0, 0.0, 0.0) for no faces.
    """
    if not observations:
        return 0, 0.0, 0.0
    count = len(observations)
    return (
        sum(o.area for o in observations),
        sum(o.confidence for o in observations) / count,
        sum(o.quality for o in observations) / count,
    )
