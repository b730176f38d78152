"""Cooperative cancellation for long sweeps."""

from __future__ import annotations

import time
from threading import Event
from typing import Optional

from fgi_lab.sweep.errors import SweepCancelled


class CancellationToken:
    def __init__(self, deadline_seconds: Optional[float] = None) -> None:
        self._event = Event()
        self._deadline: Optional[float] = None
        if deadline_seconds is not None:
            self._deadline = time.monotonic() + deadline_seconds

    def cancel(self) -> None:
        self._event.set()

    @property
    def cancelled(self) -> bool:
        if self._event.is_set():
            return True
        if self._deadline is not None and time.monotonic() >= self._deadline:
            self._event.set()
            return True
        return False

    def raise_if_cancelled(self) -> None:
        if self.cancelled:
            raise SweepCancelled("Sweep cancelled")
