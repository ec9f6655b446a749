"""Recurring sync scheduling."""

from datetime import datetime
from typing import Any, Dict, Optional

from apscheduler.schedulers.asyncio import AsyncIOScheduler
from apscheduler.triggers.interval import IntervalTrigger
from apscheduler.events import EVENT_JOB_ERROR, EVENT_JOB_MISSED

from ..config.settings import get_settings
from ..core import SyncOrchestrator, SyncReport
from ..utils.logging import get_logger


SYNC_JOB_ID = "savebutton_sync"


class SchedulerError(Exception):
    """Raised when scheduler operations fail."""
    pass


class SyncScheduler:
    """Triggers a sync cycle on a fixed interval."""

    def __init__(self, orchestrator: SyncOrchestrator, interval_minutes: Optional[int] = None):
        """Initialize the scheduler.

        Args:
            orchestrator: Orchestrator whose ``trigger_sync`` is run
            interval_minutes: Minutes between cycles, defaults to settings
        """
        self.orchestrator = orchestrator
        self.interval_minutes = max(1, interval_minutes or get_settings().scheduling.sync_interval_minutes)
        self.logger = get_logger(self.__class__.__name__)

        self.scheduler = AsyncIOScheduler(
            job_defaults={
                'coalesce': True,  # Combine multiple pending executions
                'max_instances': 1,  # Only one instance per job
                'misfire_grace_time': 60
            }
        )
        self.scheduler.add_listener(self._job_error, EVENT_JOB_ERROR)
        self.scheduler.add_listener(self._job_missed, EVENT_JOB_MISSED)

        self.run_count = 0
        self.last_run: Optional[datetime] = None

    @property
    def running(self) -> bool:
        return self.scheduler.running

    async def start(self) -> None:
        """Start the scheduler with the recurring sync job."""
        if self.scheduler.running:
            self.logger.warning("Scheduler is already running")
            return

        try:
            self.scheduler.add_job(
                func=self._run_job,
                trigger=IntervalTrigger(minutes=self.interval_minutes),
                id=SYNC_JOB_ID,
                name="Sync with server",
                replace_existing=True
            )
            self.scheduler.start()
        except Exception as e:
            self.logger.error("Failed to start scheduler", error=str(e))
            raise SchedulerError(f"Failed to start scheduler: {e}")

        self.logger.info(
            "Sync scheduler started",
            interval_minutes=self.interval_minutes,
            next_run=self.next_run_time
        )

    async def stop(self, wait: bool = False) -> None:
        if not self.scheduler.running:
            self.logger.warning("Scheduler is not running")
            return

        self.scheduler.shutdown(wait=wait)
        self.logger.info("Sync scheduler stopped")

    @property
    def next_run_time(self) -> Optional[datetime]:
        job = self.scheduler.get_job(SYNC_JOB_ID)
        return getattr(job, "next_run_time", None) if job else None

    async def run_now(self) -> Optional[SyncReport]:
        """Run a cycle immediately, outside the schedule."""
        return await self._run_job()

    async def _run_job(self) -> Optional[SyncReport]:
        self.run_count += 1
        self.last_run = datetime.now()
        return await self.orchestrator.trigger_sync()

    def get_stats(self) -> Dict[str, Any]:
        return {
            "is_running": self.scheduler.running,
            "interval_minutes": self.interval_minutes,
            "run_count": self.run_count,
            "last_run": self.last_run,
            "next_run": self.next_run_time,
        }

    def _job_error(self, event):
        self.logger.error("Scheduled sync raised", job_id=event.job_id, error=str(event.exception))

    def _job_missed(self, event):
        self.logger.warning("Scheduled sync missed", job_id=event.job_id)
