"""Improver: probe poorly scoring files again at random positions."""

from __future__ import annotations

import logging
import sqlite3
import threading

from avindex.db import record_improvement, select_improvable_files
from avindex.jobs.dispatcher import Dispatcher
from avindex.media import MediaProbe, ProbeRequest

logger = logging.getLogger(__name__)


class Improver:
    """Requests one more thumbnail for every improvable file.

    A file is improvable while it is evaluated, seekable, below the
    target score and within its probe budget (see
    select_improvable_files).

    Args:
        conn: Catalogue connection owned by the calling thread.
        probe: MediaProbe used by the workers.
        workers: Dispatcher pool size.
        probe_min: Probes every low scoring file gets.
        probe_max: Hard cap on probes.
        stop: Optional event that ends a round early.
    """

    def __init__(
        self,
        conn: sqlite3.Connection,
        probe: MediaProbe,
        workers: int = 2,
        probe_min: int = 10,
        probe_max: int = 30,
        stop: threading.Event | None = None,
    ) -> None:
        self.conn = conn
        self.probe = probe
        self.workers = workers
        self.probe_min = probe_min
        self.probe_max = probe_max
        self.stop = stop or threading.Event()

    def run(self) -> int:
        """Run one improvement round.

        Returns:
            Number of files that got a new thumbnail.
        """
        candidates = select_improvable_files(self.conn, self.probe_min, self.probe_max)
        if not candidates:
            return 0

        requests = [ProbeRequest(path=record.filename, first=False) for record in candidates]
        improved = 0
        with Dispatcher(self.probe.handle, self.workers, name="improve") as dispatcher:
            for reply in dispatcher.run(requests, self.stop):
                if record_improvement(self.conn, reply, self.probe_max):
                    improved += 1

        logger.info("Improvement round: %d of %d file(s) probed", improved, len(candidates))
        return improved
