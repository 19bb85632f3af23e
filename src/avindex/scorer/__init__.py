"""Thumbnail scoring: face detection, quality assessment and the score function."""

from avindex.scorer.interface import Scorer, ScorerError
from avindex.scorer.score import aggregate, score_fn

__all__ = [
    "Scorer",
    "ScorerError",
    "aggregate",
    "score_fn",
]
