"""Ingest, evaluation and improvement jobs."""

from avindex.jobs.dispatcher import Dispatcher
from avindex.jobs.evaluator import Evaluator
from avindex.jobs.exceptions import DispatcherClosedError, JobError
from avindex.jobs.improver import Improver
from avindex.jobs.ingest import IngestPass, IngestSummary
from avindex.jobs.runner import (
    BackgroundLoop,
    improve_loop,
    ingest_loop,
    start_background_loops,
)

__all__ = [
    "BackgroundLoop",
    "Dispatcher",
    "DispatcherClosedError",
    "Evaluator",
    "Improver",
    "IngestPass",
    "IngestSummary",
    "JobError",
    "improve_loop",
    "ingest_loop",
    "start_background_loops",
]
