"""Server lifecycle management.

`avindex serve` runs the HTTP layer on an asyncio loop and the catalogue
loops in threads. ServerLifecycle is the one object both sides hold: the
loops watch its stop_event, /health reads its uptime and loop failures,
and the serve command joins the loops against its shutdown deadline.
"""

from __future__ import annotations

import logging
import threading
import time
from dataclasses import dataclass, field
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from avindex.jobs.runner import BackgroundLoop

logger = logging.getLogger(__name__)


@dataclass
class ServerLifecycle:
    """Shared run state for the serve command.

    Attributes:
        shutdown_timeout: Seconds the loops get to finish after shutdown
            begins.
        started_at: time.monotonic() reading taken at construction.
        stop_event: Set once shutdown begins. Passed to every loop and
            through them to their dispatchers.
        loops: Background loops started by the serve command.
    """

    shutdown_timeout: float = 30.0
    started_at: float = field(default_factory=time.monotonic)
    stop_event: threading.Event = field(default_factory=threading.Event)
    loops: list[BackgroundLoop] = field(default_factory=list)
    _deadline: float | None = field(default=None, init=False, repr=False)

    @property
    def uptime_seconds(self) -> float:
        return time.monotonic() - self.started_at

    @property
    def is_shutting_down(self) -> bool:
        return self._deadline is not None

    @property
    def remaining_seconds(self) -> float | None:
        """Seconds left before stragglers are abandoned, None while running."""
        if self._deadline is None:
            return None
        return max(0.0, self._deadline - time.monotonic())

    @property
    def failed_loops(self) -> list[str]:
        """Names of background loops that stopped on an error."""
        return [loop.name for loop in self.loops if loop.failed]

    def initiate_shutdown(self) -> None:
        """Start the shutdown clock and signal the loops. Repeat calls do nothing."""
        if self._deadline is not None:
            return
        self._deadline = time.monotonic() + self.shutdown_timeout
        logger.debug("Shutdown started, deadline in %.1fs", self.shutdown_timeout)
        self.stop_event.set()

    def join_loops(self) -> bool:
        """Join every loop, sharing the time left until the deadline.

        Returns:
            True when all loops exited before the deadline.
        """
        stopped = True
        for loop in self.loops:
            remaining = self.remaining_seconds
            if remaining is None:
                remaining = self.shutdown_timeout
            if not loop.join(remaining):
                logger.warning("Loop %s did not stop in time", loop.name)
                stopped = False
        return stopped
