"""Pause-after-N-files backpressure for a scan."""

from __future__ import annotations

import logging
import threading
import time
from typing import Callable

from galleryindex.errors import RunCancelledError

LOGGER = logging.getLogger(__name__)


class ThrottleController:
    """Suspends the scan for ``pause_time_seconds`` every ``pause_after`` files.

    The counter is global to a run, not per directory, and is reset after each
    pause and by :meth:`reset` at the start of a run.
    """

    def __init__(
        self,
        pause_after: int,
        pause_time_seconds: float,
        *,
        cancel_event: threading.Event | None = None,
        sleep: Callable[[float], None] | None = None,
    ) -> None:
        if pause_after < 1:
            raise ValueError(f"pause_after must be >= 1, got {pause_after}")
        self.pause_after = pause_after
        self.pause_time_seconds = pause_time_seconds
        self.cancel_event = cancel_event
        self._sleep = sleep or self._wait
        self.count = 0
        self.pauses = 0

    def reset(self) -> None:
        self.count = 0
        self.pauses = 0

    def tick(self) -> bool:
        """Record one processed file; pause if the threshold is reached."""
        self.count += 1
        if self.count < self.pause_after:
            return False

        LOGGER.info(
            "Pausing for %s seconds after %d files", self.pause_time_seconds, self.count
        )
        self._sleep(self.pause_time_seconds)
        self.count = 0
        self.pauses += 1
        if self.cancel_event is not None and self.cancel_event.is_set():
            raise RunCancelledError("Indexing cancelled during throttle pause")
        LOGGER.debug("Resuming scan")
        return True

    def _wait(self, seconds: float) -> None:
        # A set event ends the pause early
        if self.cancel_event is not None:
            self.cancel_event.wait(seconds)
        else:
            time.sleep(seconds)
