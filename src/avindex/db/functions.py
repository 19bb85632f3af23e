"""SQL functions registered on every catalogue connection."""

from __future__ import annotations

import sqlite3

from avindex.scorer.score import score_fn


def register_functions(conn: sqlite3.Connection) -> None:
    """Register scorefn(area, confidence, quality) on a connection."""
    conn.create_function("scorefn", 3, score_fn, deterministic=True)
