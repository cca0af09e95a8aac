"""
APScheduler configuration and management.

Provides the scheduler for background jobs such as the periodic
housekeeping sweep.
"""

from typing import Any, Dict, List, Optional

import structlog
from apscheduler.schedulers.asyncio import AsyncIOScheduler
from apscheduler.triggers.interval import IntervalTrigger

from platebot.infrastructure.scheduler.housekeeping_job import HousekeepingJob

logger = structlog.get_logger(__name__)

HOUSEKEEPING_JOB_ID = "housekeeping"


class SchedulerManager:
    """
    Manages APScheduler lifecycle and job registration.

    Handles initialization, job registration and shutdown; owned by the
    app lifespan.
    """

    def __init__(self) -> None:
        """Initialize scheduler manager."""
        self.scheduler: Optional[AsyncIOScheduler] = None
        self._housekeeping_job: Optional[HousekeepingJob] = None

    def initialize(self, housekeeping_job: HousekeepingJob, interval_seconds: int = 60) -> None:
        """
        Initialize and configure scheduler with jobs.

        Args:
            housekeeping_job: Sweep job instance
            interval_seconds: Seconds between sweeps
        """
        if self.scheduler is not None:
            logger.warning("Scheduler already initialized")
            return

        self._housekeeping_job = housekeeping_job

        self.scheduler = AsyncIOScheduler(
            timezone="UTC",
            job_defaults={
                "coalesce": True,  # Combine missed runs
                "max_instances": 1,  # One instance at a time
                "misfire_grace_time": interval_seconds,
            },
        )

        self._register_housekeeping_job(interval_seconds)

        logger.info("Scheduler initialized", interval_seconds=interval_seconds)

    def _register_housekeeping_job(self, interval_seconds: int) -> None:
        if self.scheduler is None or self._housekeeping_job is None:
            raise RuntimeError("Scheduler not initialized")

        self.scheduler.add_job(
            self._housekeeping_job.run,
            trigger=IntervalTrigger(seconds=interval_seconds, timezone="UTC"),
            id=HOUSEKEEPING_JOB_ID,
            name="Session and dedup housekeeping",
            replace_existing=True,
        )

    def start(self) -> None:
        """Start scheduler (begin executing jobs). Requires a running event loop."""
        if self.scheduler is None:
            raise RuntimeError("Scheduler not initialized")

        if self.scheduler.running:
            logger.warning("Scheduler already running")
            return

        self.scheduler.start()
        logger.info("Scheduler started")

    def shutdown(self, wait: bool = True) -> None:
        """
        Shutdown scheduler gracefully.

        Args:
            wait: If True, wait for running jobs to complete
        """
        if self.scheduler is None:
            logger.warning("Scheduler not initialized")
            return

        if not self.scheduler.running:
            logger.warning("Scheduler not running")
            return

        self.scheduler.shutdown(wait=wait)
        logger.info("Scheduler shutdown", wait=wait)

    def get_jobs(self) -> List[Dict[str, Any]]:
        """List scheduled jobs (id, name, next run, trigger)."""
        if self.scheduler is None:
            return []

        return [
            {
                "id": job.id,
                "name": job.name,
                "next_run": getattr(job, "next_run_time", None),
                "trigger": str(job.trigger),
            }
            for job in self.scheduler.get_jobs()
        ]
