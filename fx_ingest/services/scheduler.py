"""Scheduler setup for periodic FX rate refresh."""

from __future__ import annotations

import atexit
import logging
from datetime import UTC, datetime

from apscheduler.schedulers.background import BackgroundScheduler
from apscheduler.triggers.interval import IntervalTrigger
from flask import Flask

from .orchestrator import CycleResult, IngestionOrchestrator, get_orchestrator

logger = logging.getLogger(__name__)

SCHEDULER_EXT_KEY = "apscheduler"
REFRESH_JOB_ID = "refresh_rates"


class RateRefreshScheduler:
    """Own the recurring refresh job and the manual trigger path.

    Both paths run the same orchestrator cycle; the orchestrator's cycle lock
    makes whichever arrives second a skipped cycle.
    """

    def __init__(
        self,
        orchestrator: IngestionOrchestrator,
        *,
        interval_seconds: int = 300,
        timezone: str = "UTC",
        refresh_on_start: bool = True,
        app: Flask | None = None,
    ) -> None:
        if interval_seconds <= 0:
            raise ValueError("interval_seconds must be positive")
        self.orchestrator = orchestrator
        self.interval_seconds = interval_seconds
        self.refresh_on_start = refresh_on_start
        self._app = app
        self._scheduler = BackgroundScheduler(timezone=timezone)

    @property
    def running(self) -> bool:
        return bool(self._scheduler.running)

    def start(self) -> None:
        if self.running:
            return
        self.orchestrator.retry_policy.resume()
        job_options = {}
        if self.refresh_on_start:
            # The interval trigger alone would first fire one full interval after boot.
            job_options["next_run_time"] = datetime.now(UTC)
        self._scheduler.add_job(
            self.tick,
            trigger=IntervalTrigger(seconds=self.interval_seconds),
            id=REFRESH_JOB_ID,
            replace_existing=True,
            max_instances=1,
            coalesce=True,
            **job_options,
        )
        self._scheduler.start()
        logger.info("APScheduler started; refreshing rates every %ss", self.interval_seconds)

    def shutdown(self, wait: bool = False) -> None:
        # Wake any cycle sleeping in a retry backoff before stopping the pool.
        self.orchestrator.retry_policy.cancel()
        if self.running:
            self._scheduler.shutdown(wait=wait)
            logger.info("APScheduler stopped")

    def tick(self) -> CycleResult | None:
        """Scheduled entry point; logs failures instead of raising."""

        try:
            if self._app is not None:
                with self._app.app_context():
                    return self.orchestrator.run_cycle()
            return self.orchestrator.run_cycle()
        except Exception:
            logger.exception("Scheduled rate refresh failed")
            return None

    def trigger_now(self) -> CycleResult:
        """Run one cycle immediately without touching the interval timer."""

        return self.orchestrator.run_cycle()


def init_scheduler(app: Flask) -> RateRefreshScheduler | None:
    """Initialise APScheduler with the periodic refresh job if enabled."""

    if not app.config.get("SCHEDULER_ENABLED", True):
        logger.info("Scheduler disabled via configuration.")
        return None

    existing = app.extensions.get(SCHEDULER_EXT_KEY)
    if existing is not None:
        return existing

    scheduler = RateRefreshScheduler(
        get_orchestrator(app),
        interval_seconds=int(app.config.get("RATES_REFRESH_INTERVAL_SECONDS", 300)),
        timezone=app.config.get("SCHEDULER_TIMEZONE", "UTC"),
        refresh_on_start=bool(app.config.get("SCHEDULER_REFRESH_ON_START", True)),
        app=app,
    )
    scheduler.start()
    app.extensions[SCHEDULER_EXT_KEY] = scheduler
    atexit.register(scheduler.shutdown)
    return scheduler
