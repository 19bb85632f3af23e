"""Long-lived background loops for `avindex serve`.

Two loops share the catalogue: the ingest loop rescans the media tree,
the improve loop evaluates and re-probes thumbnails. Each runs in its own
thread with its own database connection. A locked database makes the
loop sleep a random while and retry; any other error stops that loop
only.
"""

from __future__ import annotations

import logging
import random
import sqlite3
import threading
from collections.abc import Callable
from pathlib import Path

from avindex.config.models import AvIndexConfig
from avindex.db import get_connection, is_locked_error
from avindex.jobs.evaluator import Evaluator
from avindex.jobs.improver import Improver
from avindex.jobs.ingest import IngestPass
from avindex.media import MediaProbe
from avindex.scanner import Scanner
from avindex.scorer import Scorer

logger = logging.getLogger(__name__)

LoopBody = Callable[[sqlite3.Connection], object]


class BackgroundLoop:
    """Run a body repeatedly in a thread until stopped or failed.

    Args:
        name: Loop name used for the thread and in logs.
        db_path: Catalogue opened inside the loop thread.
        body: Called with the connection once per round.
        stop: Shared shutdown event.
        interval: Returns the pause after a successful round.
        locked_retry_max: Upper bound of the pause after a locked database.
        initial_delay: Pause before the first round.
    """

    def __init__(
        self,
        name: str,
        db_path: Path,
        body: LoopBody,
        stop: threading.Event,
        interval: Callable[[], float],
        locked_retry_max: float = 30.0,
        initial_delay: float = 0.0,
    ) -> None:
        self.name = name
        self.db_path = db_path
        self.body = body
        self.stop = stop
        self.interval = interval
        self.locked_retry_max = locked_retry_max
        self.initial_delay = initial_delay
        self.error: BaseException | None = None
        self.rounds = 0
        self._thread: threading.Thread | None = None

    @property
    def failed(self) -> bool:
        return self.error is not None

    def is_alive(self) -> bool:
        return self._thread is not None and self._thread.is_alive()

    def start(self) -> None:
        self._thread = threading.Thread(target=self._run, name=self.name, daemon=True)
        self._thread.start()

    def join(self, timeout: float | None = None) -> bool:
        """Wait for the loop thread. Returns True if it exited."""
        if self._thread is None:
            return True
        self._thread.join(timeout)
        if self._thread.is_alive():
            logger.warning("%s loop did not stop within %.0fs", self.name, timeout or 0)
            return False
        return True

    def _run(self) -> None:
        logger.info("%s loop started", self.name)
        try:
            with get_connection(self.db_path) as conn:
                self._loop(conn)
        except Exception as e:
            self.error = e
            logger.exception("%s loop failed", self.name)
            return
        logger.info("%s loop stopped", self.name)

    def _loop(self, conn: sqlite3.Connection) -> None:
        if self.initial_delay:
            self.stop.wait(self.initial_delay)
        while not self.stop.is_set():
            try:
                self.body(conn)
            except Exception as e:
                if not is_locked_error(e):
                    raise
                if conn.in_transaction:
                    conn.rollback()
                delay = random.uniform(0, self.locked_retry_max)
                logger.warning(
                    "%s: database locked, retrying in %.1fs", self.name, delay
                )
                self.stop.wait(delay)
                continue
            self.rounds += 1
            self.stop.wait(self.interval())


def ingest_loop(
    config: AvIndexConfig,
    probe: MediaProbe,
    stop: threading.Event,
    initial_delay: float = 0.0,
) -> BackgroundLoop:
    """Build the loop that rescans the media tree every scan interval."""
    db_path = config.resolved_database_path
    scanner = Scanner(config.media_path, db_path=db_path)

    def body(conn: sqlite3.Connection) -> None:
        IngestPass(conn, scanner, probe, workers=config.ingest.workers, stop=stop).run()

    return BackgroundLoop(
        "ingest",
        db_path,
        body,
        stop,
        interval=lambda: config.ingest.scan_interval_seconds,
        locked_retry_max=config.ingest.locked_retry_max_seconds,
        initial_delay=initial_delay,
    )


def improve_loop(
    config: AvIndexConfig, probe: MediaProbe, scorer: Scorer, stop: threading.Event
) -> BackgroundLoop:
    """Build the evaluate, improve, evaluate loop with a random idle pause."""
    ingest = config.ingest

    def body(conn: sqlite3.Connection) -> None:
        evaluator = Evaluator(conn, scorer, keep=ingest.thumbnails_per_file, stop=stop)
        improver = Improver(
            conn,
            probe,
            workers=ingest.workers,
            probe_min=ingest.probe_min,
            probe_max=ingest.probe_max,
            stop=stop,
        )
        evaluator.run()
        improver.run()
        evaluator.run()

    return BackgroundLoop(
        "improve",
        config.resolved_database_path,
        body,
        stop,
        interval=lambda: random.uniform(0, ingest.idle_max_seconds),
        locked_retry_max=ingest.locked_retry_max_seconds,
    )


def start_background_loops(
    config: AvIndexConfig,
    probe: MediaProbe,
    scorer: Scorer | None,
    stop: threading.Event,
    ingest_delay: float = 0.0,
) -> list[BackgroundLoop]:
    """Start the ingest loop, and the improve loop when a scorer is given.

    Args:
        config: Effective configuration.
        probe: MediaProbe shared by both loops.
        scorer: Face scorer, or None to skip evaluation and improvement.
        stop: Shared shutdown event.
        ingest_delay: Pause before the first background ingest pass.

    Returns:
        The started loops.
    """
    loops = [ingest_loop(config, probe, stop, initial_delay=ingest_delay)]
    if scorer is not None:
        loops.append(improve_loop(config, probe, scorer, stop))
    else:
        logger.info("No face models configured, evaluation and improvement disabled")
    for loop in loops:
        loop.start()
    return loops
