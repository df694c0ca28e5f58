"""Cron-driven triggering of indexing runs."""

from __future__ import annotations

import logging
import threading
from datetime import datetime, timezone
from typing import Callable

from croniter import croniter

from galleryindex.index.orchestrator import RecoveryReport, RunOrchestrator, RunResult

LOGGER = logging.getLogger(__name__)


def _utc_now() -> datetime:
    return datetime.now(timezone.utc)


class Scheduler:
    """Fires the startup trigger and then one run per cron tick.

    The clock and stop event are injectable so tests can drive ticks with
    :meth:`run_pending` instead of waiting on the wall clock. Every trigger
    goes through the orchestrator, so a tick that lands while a run is active
    is dropped.
    """

    def __init__(
        self,
        orchestrator: RunOrchestrator,
        cron_expression: str,
        *,
        clock: Callable[[], datetime] = _utc_now,
        stop_event: threading.Event | None = None,
    ) -> None:
        if not croniter.is_valid(cron_expression):
            raise ValueError(f"Invalid cron schedule: {cron_expression!r}")
        self.orchestrator = orchestrator
        self.cron_expression = cron_expression
        self.clock = clock
        self.stop_event = stop_event or threading.Event()
        self._next_due: datetime | None = None

    def next_fire_time(self, after: datetime) -> datetime:
        return croniter(self.cron_expression, after).get_next(datetime)

    def fire(self, trigger: str = "schedule") -> RunResult | None:
        LOGGER.info("Running %s indexing job at %s", trigger, self.clock().isoformat())
        return self.orchestrator.run(trigger)

    def run_pending(self, now: datetime | None = None) -> RunResult | None:
        """Fire once if ``now`` has reached the next due tick."""
        now = now or self.clock()
        if self._next_due is None:
            self._next_due = self.next_fire_time(now)
            return None
        if now < self._next_due:
            return None
        self._next_due = self.next_fire_time(now)
        return self.fire("schedule")

    def start(self, *, run_on_startup: bool = True) -> RecoveryReport:
        """Recover stale state and optionally run the startup trigger."""
        report = self.orchestrator.recover()
        if run_on_startup:
            try:
                self.fire("startup")
            except Exception:
                LOGGER.exception("Startup indexing run failed")
        self._next_due = self.next_fire_time(self.clock())
        return report

    def run_forever(self, *, run_on_startup: bool = True) -> None:
        """Block until :meth:`stop` is called."""
        self.start(run_on_startup=run_on_startup)
        while not self.stop_event.is_set():
            if self._next_due is None:
                self._next_due = self.next_fire_time(self.clock())
            delay = (self._next_due - self.clock()).total_seconds()
            LOGGER.debug("Next indexing run at %s", self._next_due.isoformat())
            if delay > 0 and self.stop_event.wait(delay):
                break
            try:
                self.run_pending()
            except Exception:
                LOGGER.exception("Scheduled indexing run failed")
        LOGGER.info("Scheduler stopped")

    def stop(self) -> None:
        """Stop the loop; a scan sharing this event is cancelled as well."""
        self.stop_event.set()
