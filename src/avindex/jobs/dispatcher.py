"""Bounded worker pool that turns probe requests into replies.

Requests and replies travel over bounded queues, so a producer blocks
once every worker is busy and nothing is buffered without limit. Closing
the request side puts one sentinel per worker; each worker exits on its
sentinel and the last one to exit closes the reply side.
"""

from __future__ import annotations

import logging
import queue
import threading
from collections.abc import Callable, Iterable, Iterator

from avindex.jobs.exceptions import DispatcherClosedError
from avindex.logging import worker_context
from avindex.media.types import ProbeReply, ProbeRequest

logger = logging.getLogger(__name__)

Handler = Callable[[ProbeRequest], ProbeReply]


class Dispatcher:
    """Fixed pool of probe workers.

    Replies come back in completion order, not submission order. An
    exception escaping the handler is returned in the reply's error.

    submit() and close() must be called from a single producer thread
    while another thread (or run()) consumes results().

    Example:
        with Dispatcher(probe.handle, workers=2) as dispatcher:
            for reply in dispatcher.run(requests, stop_event):
                record(reply)
    """

    def __init__(self, handler: Handler, workers: int = 2, name: str = "probe") -> None:
        """Start the workers.

        Args:
            handler: Called in a worker thread for each request.
            workers: Pool size, at least 1.
            name: Prefix for worker thread names.

        Raises:
            ValueError: If workers is less than 1.
        """
        if workers < 1:
            raise ValueError(f"workers must be at least 1, got {workers}")
        self.handler = handler
        self.workers = workers
        self.name = name

        self._requests: queue.Queue[ProbeRequest | None] = queue.Queue(maxsize=workers)
        self._replies: queue.Queue[ProbeReply | None] = queue.Queue(maxsize=workers)
        self._closed = False
        self._close_lock = threading.Lock()
        self._alive = workers
        self._alive_lock = threading.Lock()
        self._finished = False
        self._abort = threading.Event()

        self._threads = [
            threading.Thread(
                target=self._work, args=(index,), name=f"{name}-{index:02d}", daemon=True
            )
            for index in range(1, workers + 1)
        ]
        for thread in self._threads:
            thread.start()
        logger.debug("Dispatcher %s started with %d worker(s)", name, workers)

    def _work(self, index: int) -> None:
        worker_id = f"{index:02d}"
        try:
            while True:
                request = self._requests.get()
                if request is None:
                    break
                with worker_context(worker_id, request.path):
                    reply = self._call(request)
                self._replies.put(reply)
        finally:
            with self._alive_lock:
                self._alive -= 1
                last = self._alive == 0
            if last:
                self._replies.put(None)

    def _call(self, request: ProbeRequest) -> ProbeReply:
        try:
            return self.handler(request)
        except Exception as e:
            logger.debug("Handler raised for %s: %r", request.path, e)
            return ProbeReply(request=request, error=e)

    @property
    def closed(self) -> bool:
        with self._close_lock:
            return self._closed

    def submit(self, request: ProbeRequest) -> None:
        """Queue a request, blocking while the pool is saturated.

        Raises:
            DispatcherClosedError: If close() was already called.
        """
        with self._close_lock:
            if self._closed:
                raise DispatcherClosedError(request.path)
        self._requests.put(request)

    def close(self) -> None:
        """Close the request side. Workers finish queued work, then exit."""
        with self._close_lock:
            if self._closed:
                return
            self._closed = True
        for _ in self._threads:
            self._requests.put(None)

    def results(self) -> Iterator[ProbeReply]:
        """Yield replies until every worker has exited.

        Finite once close() has been called.
        """
        while not self._finished:
            reply = self._replies.get()
            if reply is None:
                self._finished = True
                return
            yield reply

    def run(
        self, requests: Iterable[ProbeRequest], stop: threading.Event | None = None
    ) -> Iterator[ProbeReply]:
        """Feed requests from a producer thread and yield their replies.

        The producer stops submitting once stop is set; replies for work
        already queued are still yielded.

        Args:
            requests: Requests to submit, consumed lazily.
            stop: Optional event that ends submission early.

        Yields:
            Replies in completion order.
        """

        def produce() -> None:
            try:
                for request in requests:
                    if self._abort.is_set() or (stop is not None and stop.is_set()):
                        logger.debug("Dispatcher %s stopped submitting", self.name)
                        break
                    self.submit(request)
            finally:
                self.close()

        producer = threading.Thread(
            target=produce, name=f"{self.name}-producer", daemon=True
        )
        producer.start()
        try:
            yield from self.results()
        finally:
            self._abort.set()
            for _ in self.results():
                pass
            producer.join()

    def shutdown(self) -> list[ProbeReply]:
        """Stop submission, drain replies and join the workers.

        Returns:
            Replies nobody consumed.
        """
        self._abort.set()
        closer = threading.Thread(target=self.close, name=f"{self.name}-closer", daemon=True)
        closer.start()
        leftover = list(self.results())
        closer.join()
        for thread in self._threads:
            thread.join()
        if leftover:
            logger.debug("Dispatcher %s dropped %d reply(s)", self.name, len(leftover))
        return leftover

    def __enter__(self) -> Dispatcher:
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.shutdown()
