"""SIGTERM and SIGINT handling for `avindex serve`.

Either signal starts a graceful shutdown: the background loops see the
lifecycle stop event, the HTTP side wakes from its asyncio.Event.
"""

from __future__ import annotations

import asyncio
import logging
import signal
from collections.abc import Iterable
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from avindex.server.lifecycle import ServerLifecycle

logger = logging.getLogger(__name__)

SHUTDOWN_SIGNALS = (signal.SIGTERM, signal.SIGINT)


def setup_signal_handlers(
    loop: asyncio.AbstractEventLoop,
    lifecycle: ServerLifecycle,
    shutdown_event: asyncio.Event,
) -> list[signal.Signals]:
    """Install the shutdown handler on loop for each shutdown signal.

    Registration only works from the main thread of a running loop; a
    signal that cannot be registered is logged and skipped.

    Returns:
        The signals actually registered.
    """

    def on_signal(sig: signal.Signals) -> None:
        if lifecycle.is_shutting_down:
            logger.info("Received %s again, shutdown already in progress", sig.name)
        else:
            logger.info("Received %s, shutting down", sig.name)
        lifecycle.initiate_shutdown()
        shutdown_event.set()

    registered = []
    for sig in SHUTDOWN_SIGNALS:
        try:
            loop.add_signal_handler(sig, on_signal, sig)
        except (ValueError, RuntimeError) as e:
            logger.warning("Cannot handle %s: %s", sig.name, e)
            continue
        registered.append(sig)
    return registered


def remove_signal_handlers(
    loop: asyncio.AbstractEventLoop,
    signals: Iterable[signal.Signals] = SHUTDOWN_SIGNALS,
) -> None:
    """Drop the handlers installed by setup_signal_handlers."""
    for sig in signals:
        try:
            loop.remove_signal_handler(sig)
        except (ValueError, RuntimeError) as e:
            logger.debug("No handler to remove for %s: %s", sig.name, e)
