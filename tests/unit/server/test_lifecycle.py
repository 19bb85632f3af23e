"""Tests for server lifecycle management."""

import threading
import time
from types import SimpleNamespace

from avindex.server.lifecycle import ServerLifecycle


class FakeLoop:
    def __init__(self, name: str, exits: bool = True, failed: bool = False) -> None:
        self.name = name
        self.failed = failed
        self.exits = exits
        self.timeouts: list[float] = []

    def join(self, timeout: float | None = None) -> bool:
        self.timeouts.append(timeout)
        return self.exits


class TestServerLifecycle:
    """Tests for ServerLifecycle."""

    def test_initial_state(self) -> None:
        lifecycle = ServerLifecycle()
        assert not lifecycle.is_shutting_down
        assert lifecycle.remaining_seconds is None
        assert not lifecycle.stop_event.is_set()

    def test_uptime(self) -> None:
        lifecycle = ServerLifecycle(started_at=time.monotonic() - 5)
        assert lifecycle.uptime_seconds >= 5

    def test_initiate_shutdown_sets_stop_event(self) -> None:
        lifecycle = ServerLifecycle(shutdown_timeout=10)
        lifecycle.initiate_shutdown()

        assert lifecycle.is_shutting_down
        assert lifecycle.stop_event.is_set()
        assert 9 < lifecycle.remaining_seconds <= 10

    def test_initiate_shutdown_keeps_first_deadline(self) -> None:
        lifecycle = ServerLifecycle(shutdown_timeout=10)
        lifecycle.initiate_shutdown()
        first = lifecycle.remaining_seconds
        time.sleep(0.01)
        lifecycle.initiate_shutdown()
        assert lifecycle.remaining_seconds < first

    def test_remaining_never_negative(self) -> None:
        lifecycle = ServerLifecycle(shutdown_timeout=0)
        lifecycle.initiate_shutdown()
        assert lifecycle.remaining_seconds == 0.0

    def test_failed_loops(self) -> None:
        lifecycle = ServerLifecycle()
        lifecycle.loops = [
            SimpleNamespace(name="ingest", failed=True),
            SimpleNamespace(name="improve", failed=False),
        ]
        assert lifecycle.failed_loops == ["ingest"]

    def test_join_loops_within_deadline(self) -> None:
        lifecycle = ServerLifecycle(shutdown_timeout=5)
        loops = [FakeLoop("ingest"), FakeLoop("improve")]
        lifecycle.loops = loops
        lifecycle.initiate_shutdown()

        assert lifecycle.join_loops()
        for loop in loops:
            assert 0 <= loop.timeouts[0] <= 5

    def test_join_loops_before_shutdown_uses_full_timeout(self) -> None:
        lifecycle = ServerLifecycle(shutdown_timeout=3)
        lifecycle.loops = [FakeLoop("ingest")]
        assert lifecycle.join_loops()
        assert lifecycle.loops[0].timeouts == [3]

    def test_join_loops_reports_stragglers(self) -> None:
        lifecycle = ServerLifecycle()
        lifecycle.loops = [FakeLoop("ingest", exits=False), FakeLoop("improve")]
        lifecycle.initiate_shutdown()

        assert not lifecycle.join_loops()
        assert lifecycle.loops[1].timeouts, "every loop is joined"

    def test_stop_event_is_per_instance(self) -> None:
        assert ServerLifecycle().stop_event is not ServerLifecycle().stop_event
        assert isinstance(ServerLifecycle().stop_event, threading.Event)
