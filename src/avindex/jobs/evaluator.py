"""Evaluator: score unevaluated thumbnails and settle their files."""

from __future__ import annotations

import logging
import sqlite3
import threading

from avindex.db import (
    DEFAULT_KEEP,
    FaceObservation,
    get_unevaluated_thumbnails,
    record_evaluation,
    select_unevaluated_files,
)
from avindex.scorer import Scorer, ScorerError, aggregate, score_fn

logger = logging.getLogger(__name__)


class Evaluator:
    """Runs the Scorer over every media file with facechecked cleared.

    Args:
        conn: Catalogue connection owned by the calling thread.
        scorer: Face scorer.
        keep: Thumbnails kept per file after culling.
        stop: Optional event that ends a run between files.
    """

    def __init__(
        self,
        conn: sqlite3.Connection,
        scorer: Scorer,
        keep: int = DEFAULT_KEEP,
        stop: threading.Event | None = None,
    ) -> None:
        self.conn = conn
        self.scorer = scorer
        self.keep = keep
        self.stop = stop or threading.Event()

    def run(self) -> int:
        """Evaluate every pending file.

        Returns:
            Number of files evaluated.
        """
        evaluated = 0
        for filename in select_unevaluated_files(self.conn):
            if self.stop.is_set():
                break
            self.evaluate_file(filename)
            evaluated += 1
        if evaluated:
            logger.info("Evaluated %d file(s)", evaluated)
        return evaluated

    def evaluate_file(self, filename: str) -> None:
        """Score a file's unevaluated thumbnails and record the results.

        An image the scorer cannot decode counts as having no faces.
        """
        observations: dict[str, list[FaceObservation]] = {}
        for thumbname, image in get_unevaluated_thumbnails(self.conn, filename):
            try:
                faces = self.scorer.evaluate(image)
            except ScorerError as e:
                logger.warning("Cannot score %s of %s: %s", thumbname, filename, e)
                faces = []
            observations[thumbname] = faces
            logger.debug(
                "%s: %d face(s), score %.2f",
                thumbname,
                len(faces),
                score_fn(*aggregate(faces)),
            )

        record_evaluation(self.conn, filename, observations, keep=self.keep)
