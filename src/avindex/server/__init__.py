"""HTTP layer for `avindex serve`."""

from avindex.server.app import HealthStatus, create_app, resolve_media_file
from avindex.server.lifecycle import ServerLifecycle
from avindex.server.signals import remove_signal_handlers, setup_signal_handlers

__all__ = [
    "HealthStatus",
    "ServerLifecycle",
    "create_app",
    "remove_signal_handlers",
    "resolve_media_file",
    "setup_signal_handlers",
]
