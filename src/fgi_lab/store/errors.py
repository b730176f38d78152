"""Result store errors."""

from __future__ import annotations


class StoreWriteError(RuntimeError):
    """A batch could not be committed after all write attempts.

    The rows stay buffered on the store and are written by the next
    successful persist or flush.
    """

    def __init__(self, message: str, pending: int) -> None:
        super().__init__(message)
        self.pending = pending
