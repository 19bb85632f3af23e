"""Exceptions raised by the job layer."""


class JobError(Exception):
    """Base exception for ingest and improvement jobs."""


class DispatcherClosedError(JobError):
    """Raised when a request is submitted after the dispatcher closed.

    Attributes:
        path: The path of the rejected request.
    """

    def __init__(self, path: str) -> None:
        self.path = path
        super().__init__(f"Dispatcher is closed, cannot submit {path}")
