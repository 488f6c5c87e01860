"""Scheduler Driver: one recurring timer for the background sweeps."""
import logging
import threading
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Callable, Optional

from planner.config import settings
from planner.services.document_store import DocumentStore
from planner.services.notifications import Notifier
from planner.services.reminders import ReminderDispatcher, ReminderReport
from planner.services.retention import RetentionReaper, RetentionReport

logger = logging.getLogger(__name__)


@dataclass
class SweepReport:
    reminders: Optional[ReminderReport] = None
    retention: Optional[RetentionReport] = None


class SchedulerDriver:
    """Runs the reminder pass and then the retention pass once per period.

    The two passes never overlap. ``stop()`` is honoured between events, so a
    shutdown does not wait for a full scan to finish.
    """

    def __init__(
        self,
        store: DocumentStore,
        notifier: Notifier,
        period_seconds: Optional[float] = None,
        clock: Callable[[], datetime] = lambda: datetime.now(timezone.utc),
    ):
        self.dispatcher = ReminderDispatcher(store, notifier)
        self.reaper = RetentionReaper(store, notifier)
        self.period_seconds = period_seconds or settings.SCHEDULER_PERIOD_SECONDS
        self.clock = clock
        self._stop = threading.Event()
        self._thread: Optional[threading.Thread] = None
        self._lock = threading.Lock()

    @property
    def running(self) -> bool:
        return self._thread is not None and self._thread.is_alive()

    def run_once(self, now: Optional[datetime] = None) -> SweepReport:
        """Run one full period: reminders first, then retention."""
        now = now or self.clock()
        report = SweepReport()
        with self._lock:
            try:
                report.reminders = self.dispatcher.run(now, should_stop=self._stop.is_set)
            except Exception:
                logger.exception("Reminder pass failed")
            if self._stop.is_set():
                return report
            try:
                report.retention = self.reaper.run(now, should_stop=self._stop.is_set)
            except Exception:
                logger.exception("Retention pass failed")
        return report

    def start(self) -> None:
        if self.running:
            logger.warning("Scheduler already running")
            return
        self._stop.clear()
        self._thread = threading.Thread(target=self._loop, name="planner-scheduler", daemon=True)
        self._thread.start()
        logger.info("Started scheduler with a period of %ss", self.period_seconds)

    def stop(self, timeout: Optional[float] = 10.0) -> None:
        if self._thread is None:
            return
        logger.info("Stopping scheduler")
        self._stop.set()
        self._thread.join(timeout)
        if self._thread.is_alive():
            logger.warning("Scheduler thread did not finish within %ss", timeout)
        self._thread = None

    def _loop(self) -> None:
        # Sweep at start-up, then once per period.
        while not self._stop.is_set():
            report = self.run_once()
            logger.info(
                "Scheduled sweep finished: reminders=%s retention=%s",
                report.reminders, report.retention,
            )
            if self._stop.wait(self.period_seconds):
                break
        logger.debug("Scheduler loop exited")
