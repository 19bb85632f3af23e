"""One ingest pass: scan, probe, record, then housekeeping."""

from __future__ import annotations

import logging
import sqlite3
import threading
from dataclasses import dataclass, field

from avindex.db import (
    IngestOutcome,
    checkpoint_wal,
    cull_missing,
    derive_word_associations,
    normalise_tag_keys,
    record_ingest,
    transaction,
)
from avindex.jobs.dispatcher import Dispatcher
from avindex.media import MediaProbe, ProbeRequest
from avindex.scanner import Scanner, ScanResult

logger = logging.getLogger(__name__)


@dataclass
class IngestSummary:
    """Counts from one ingest pass."""

    scan: ScanResult = field(default_factory=ScanResult)
    media: int = 0
    not_media: int = 0
    failed: int = 0
    missing: int = 0
    files_indexed: int = 0
    files_removed: int = 0
    interrupted: bool = False


class IngestPass:
    """Bring the catalogue in line with the media tree.

    Steps: scan for new or changed files, probe them through a
    Dispatcher, record every reply in its own transaction, derive word
    associations, normalise tag keys, cull missing files and truncate
    the WAL.

    Args:
        conn: Catalogue connection owned by the calling thread.
        scanner: Scanner for the media root.
        probe: MediaProbe used by the workers.
        workers: Dispatcher pool size.
        stop: Optional event that ends the pass early.
    """

    def __init__(
        self,
        conn: sqlite3.Connection,
        scanner: Scanner,
        probe: MediaProbe,
        workers: int = 2,
        stop: threading.Event | None = None,
    ) -> None:
        self.conn = conn
        self.scanner = scanner
        self.probe = probe
        self.workers = workers
        self.stop = stop or threading.Event()

    def run(self) -> IngestSummary:
        """Run the pass.

        Returns:
            IngestSummary for the pass.

        Raises:
            OSError: If the media tree cannot be read.
            sqlite3.Error: On database failures.
        """
        summary = IngestSummary(scan=self.scanner.scan(self.conn))
        requests = [ProbeRequest(path=path) for path in summary.scan.paths]

        if requests:
            with Dispatcher(self.probe.handle, self.workers, name="ingest") as dispatcher:
                for reply in dispatcher.run(requests, self.stop):
                    outcome = record_ingest(self.conn, reply)
                    self._count(summary, outcome)
                    if outcome is IngestOutcome.FAILED:
                        logger.error(
                            "Cannot decode %s: %s", reply.request.path, reply.error
                        )

        if self.stop.is_set():
            summary.interrupted = True
            logger.info("Ingest pass interrupted")
            return summary

        with transaction(self.conn):
            summary.files_indexed = derive_word_associations(self.conn)
            normalise_tag_keys(self.conn)
        summary.files_removed = len(cull_missing(self.conn))
        checkpoint_wal(self.conn)

        logger.info(
            "Ingest pass done: %d media, %d not media, %d failed, %d removed",
            summary.media,
            summary.not_media,
            summary.failed,
            summary.files_removed,
        )
        return summary

    @staticmethod
    def _count(summary: IngestSummary, outcome: IngestOutcome) -> None:
        if outcome is IngestOutcome.MEDIA:
            summary.media += 1
        elif outcome is IngestOutcome.NOT_MEDIA:
            summary.not_media += 1
        elif outcome is IngestOutcome.FAILED:
            summary.failed += 1
        else:
            summary.missing += 1
