"""
APScheduler-based CronService for materializing recurring transactions.

Runs the injected processor once at startup and then daily at the
configured wall-clock time. The processor is idempotent within a day
(a series already processed today is not due again), so overlapping or
repeated invocations won't duplicate data.
"""

import logging
from datetime import datetime
from typing import Callable, Optional

from apscheduler.schedulers.background import BackgroundScheduler
from apscheduler.triggers.cron import CronTrigger

logger = logging.getLogger("finance_tracker.scheduler")


class CronService:
    """Background scheduler for the recurring transactions job."""

    def __init__(
        self,
        processor: Callable[[], int],
        hour: int = 0,
        minute: int = 0,
        run_on_startup: bool = True,
    ) -> None:
        self._processor = processor
        self._hour = hour
        self._minute = minute
        self._run_on_startup = run_on_startup
        self._scheduler: Optional[BackgroundScheduler] = None
        self._daily_job_id = "process_recurring_daily"
        self._startup_job_id = "process_recurring_startup"
        self.last_run_at: Optional[datetime] = None

    @property
    def running(self) -> bool:
        return self._scheduler is not None

    def start(self) -> None:
        if self._scheduler is not None:
            logger.info("CronService already started; ignoring duplicate start.")
            return

        scheduler = BackgroundScheduler()

        # Immediate run on startup
        if self._run_on_startup:
            scheduler.add_job(
                self.run_now,
                id=self._startup_job_id,
                next_run_time=datetime.now(),
                replace_existing=True,
                coalesce=True,
                max_instances=1,
                misfire_grace_time=3600,
            )

        # Daily schedule (server local time)
        daily_trigger = CronTrigger(hour=self._hour, minute=self._minute)
        scheduler.add_job(
            self.run_now,
            id=self._daily_job_id,
            trigger=daily_trigger,
            replace_existing=True,
            coalesce=True,
            max_instances=1,
            misfire_grace_time=3600,
        )

        scheduler.start()
        self._scheduler = scheduler
        logger.info(
            "CronService started: recurring job scheduled daily at %02d:%02d (startup run: %s).",
            self._hour,
            self._minute,
            self._run_on_startup,
        )

    def stop(self) -> None:
        if self._scheduler is None:
            return
        try:
            self._scheduler.shutdown(wait=False)
            logger.info("CronService stopped.")
        finally:
            self._scheduler = None

    def run_now(self) -> Optional[int]:
        """Invoke the processor synchronously; failures are logged, not raised."""
        self.last_run_at = datetime.now()
        try:
            processed = self._processor()
            logger.info("process_recurring executed: processed=%s", processed)
            return processed
        except Exception:
            logger.exception("process_recurring failed")
            return None
