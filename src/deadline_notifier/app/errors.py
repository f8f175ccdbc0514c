"""Error taxonomy mapped to HTTP status codes at the API boundary."""

from __future__ import annotations


class DeadlineNotifierError(Exception):
    """Base class for errors raised by this service."""

    status_code = 500


class TaskValidationError(DeadlineNotifierError):
    """Missing, malformed, or past-due input."""

    status_code = 400


class TaskNotFoundError(DeadlineNotifierError):
    status_code = 404

    def __init__(self, task_id: str) -> None:
        super().__init__("not found")
        self.task_id = task_id


class StorageError(DeadlineNotifierError):
    """Backing store (file or database) is unavailable or failed a write."""

    status_code = 500


class BroadcastWriteError(DeadlineNotifierError):
    """A frame could not be queued for one subscriber.

    Never leaves the broadcaster; the subscriber is dropped instead.
    """
