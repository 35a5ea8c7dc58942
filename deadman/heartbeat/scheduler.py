"""
Heartbeat Scheduler

APScheduler-based timer that drives the scanner on a fixed cadence.
"""

from __future__ import annotations

from datetime import datetime, timezone

import structlog
from apscheduler.executors.asyncio import AsyncIOExecutor
from apscheduler.jobstores.memory import MemoryJobStore
from apscheduler.schedulers.asyncio import AsyncIOScheduler
from apscheduler.triggers.interval import IntervalTrigger

from deadman.heartbeat.scanner import HeartbeatScanner

logger = structlog.get_logger(__name__)

SCAN_JOB_ID = "heartbeat-scan"


class HeartbeatScheduler:
    """
    Runs ``HeartbeatScanner.scan_once`` every ``interval_seconds``.

    APScheduler is told to keep a single instance of the job, and the scanner
    itself skips ticks that arrive while a pass is still in flight.
    """

    def __init__(
        self,
        scanner: HeartbeatScanner,
        interval_seconds: int = 60,
        run_immediately: bool = False,
    ) -> None:
        """
        Initialize the scheduler.

        Args:
            scanner: The scanner to drive
            interval_seconds: Seconds between ticks
            run_immediately: Fire the first tick on start instead of after
                             one interval
        """
        self._scanner = scanner
        self._interval_seconds = interval_seconds
        self._run_immediately = run_immediately
        self._scheduler: AsyncIOScheduler | None = None
        self._running = False

    def _create_scheduler(self) -> AsyncIOScheduler:
        """Create and configure the APScheduler instance."""
        jobstores = {
            "default": MemoryJobStore(),
        }
        executors = {
            "default": AsyncIOExecutor(),
        }
        job_defaults = {
            "coalesce": True,  # Combine missed runs into one
            "max_instances": 1,  # Only one scan at a time
            "misfire_grace_time": self._interval_seconds,
        }

        return AsyncIOScheduler(
            jobstores=jobstores,
            executors=executors,
            job_defaults=job_defaults,
            timezone="UTC",
        )

    async def start(self) -> None:
        """Start the scheduler."""
        if self._running:
            logger.warning("Scheduler already running")
            return

        logger.info("Starting heartbeat scheduler", interval_seconds=self._interval_seconds)
        self._scheduler = self._create_scheduler()

        job_kwargs = {}
        if self._run_immediately:
            job_kwargs["next_run_time"] = datetime.now(timezone.utc)

        self._scheduler.add_job(
            self._tick,
            trigger=IntervalTrigger(seconds=self._interval_seconds),
            id=SCAN_JOB_ID,
            name="heartbeat:scan",
            replace_existing=True,
            **job_kwargs,
        )
        self._scheduler.start()
        self._running = True

    async def stop(self) -> None:
        """Stop scheduling new ticks. An in-flight scan keeps running."""
        if not self._running or self._scheduler is None:
            return

        logger.info("Stopping heartbeat scheduler")
        self._scheduler.shutdown(wait=False)
        self._scheduler = None
        self._running = False
        logger.info("Heartbeat scheduler stopped")

    @property
    def is_running(self) -> bool:
        """Check if scheduler is running."""
        return self._running

    @property
    def next_run_time(self) -> datetime | None:
        """When the next tick fires, if scheduled."""
        if self._scheduler is None:
            return None
        job = self._scheduler.get_job(SCAN_JOB_ID)
        return job.next_run_time if job else None

    async def _tick(self) -> None:
        """
        Run one scheduled scan.

        This is called by APScheduler on every interval.
        """
        try:
            await self._scanner.scan_once(wait=False)
        except Exception as e:
            logger.error("Scheduled scan failed", error=str(e))
