"""SchedulerEngine — APScheduler lifecycle for the rotation cycle and retry sweep."""

from __future__ import annotations

import logging
from datetime import UTC, datetime, timedelta
from typing import TYPE_CHECKING

from apscheduler.schedulers.asyncio import AsyncIOScheduler
from apscheduler.triggers.cron import CronTrigger
from apscheduler.triggers.date import DateTrigger

from rotabot.config import settings

if TYPE_CHECKING:
    from rotabot.rotations.cycle import CycleResult, RotationScheduler, SweepResult

logger = logging.getLogger(__name__)

CYCLE_JOB_ID = "rotation-cycle"
SWEEP_JOB_ID = "rotation-retry-sweep"
STARTUP_JOB_ID = "rotation-cycle-startup"


class SchedulerEngine:
    """Drives a RotationScheduler from APScheduler cron jobs.

    Args:
        scheduler: RotationScheduler whose cycle and sweep are triggered.
        timezone: IANA timezone for the cron triggers (default from settings).
        cycle_cron: Crontab for the assignment cycle (default every 15 min).
        sweep_cron: Crontab for the retry sweep (default every 6 h).
    """

    def __init__(
        self,
        scheduler: RotationScheduler,
        timezone: str | None = None,
        cycle_cron: str | None = None,
        sweep_cron: str | None = None,
    ) -> None:
        self._rotations = scheduler
        self._timezone = timezone or settings.scheduler_timezone
        self._cycle_cron = cycle_cron or settings.cycle_cron
        self._sweep_cron = sweep_cron or settings.retry_sweep_cron
        self._scheduler = AsyncIOScheduler(timezone=self._timezone)
        self._running = False

    @property
    def running(self) -> bool:
        return self._running

    def status(self) -> dict[str, bool]:
        """Return whether the engine runs and whether a cycle is in flight."""
        return {"running": self._running, **self._rotations.status()}

    # -- Lifecycle -------------------------------------------------------------

    async def start(self, *, run_on_start: bool | None = None) -> None:
        """Register the cycle and sweep jobs and start the scheduler."""
        if self._running:
            logger.warning("Scheduler already running")
            return

        self._scheduler.add_job(
            self._run_cycle,
            trigger=CronTrigger.from_crontab(self._cycle_cron, timezone=self._timezone),
            id=CYCLE_JOB_ID,
            name="Rotation cycle",
            max_instances=1,
            coalesce=True,
            replace_existing=True,
        )
        self._scheduler.add_job(
            self._run_sweep,
            trigger=CronTrigger.from_crontab(self._sweep_cron, timezone=self._timezone),
            id=SWEEP_JOB_ID,
            name="Rotation retry sweep",
            max_instances=1,
            coalesce=True,
            replace_existing=True,
        )

        if settings.run_scheduler_on_start if run_on_start is None else run_on_start:
            run_at = datetime.now(UTC) + timedelta(seconds=settings.run_on_start_delay_seconds)
            self._scheduler.add_job(
                self._run_cycle,
                trigger=DateTrigger(run_date=run_at),
                id=STARTUP_JOB_ID,
                name="Rotation cycle (startup)",
                replace_existing=True,
            )
            logger.info("Running scheduler shortly after startup (%s)", run_at.isoformat())

        self._scheduler.start()
        self._running = True
        logger.info(
            "Scheduler started: cycle=%r sweep=%r (tz=%s)",
            self._cycle_cron,
            self._sweep_cron,
            self._timezone,
        )

    async def stop(self) -> None:
        """Shut down the scheduler."""
        if self._running:
            self._scheduler.shutdown(wait=False)
            self._running = False
            logger.info("Scheduler stopped")

    # -- Job callbacks -----------------------------------------------------------

    async def _run_cycle(self) -> CycleResult | None:
        logger.info("Scheduler triggered by cron")
        return await self._rotations.run_cycle(datetime.now(UTC))

    async def _run_sweep(self) -> SweepResult | None:
        logger.info("Retry job triggered by cron")
        try:
            return await self._rotations.run_retry_sweep(datetime.now(UTC))
        except Exception:
            logger.exception("Error in retry job")
            return None
