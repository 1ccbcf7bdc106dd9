"""Calendar scheduling of backup and cleanup runs."""

from datetime import datetime
from enum import Enum
from typing import Any, Dict, Optional

from apscheduler.schedulers.asyncio import AsyncIOScheduler
from apscheduler.triggers.cron import CronTrigger

from ._utils import logger, utc_now
from .config import ScheduleConfig
from .errors import BackupError
from .models import ScheduleClass


class BackupJob(str, Enum):
    DAILY_DATABASE = "daily_database"
    WEEKLY_FULL = "weekly_full"
    MONTHLY_FULL = "monthly_full"
    CLEANUP = "cleanup"


BACKUP_JOBS = (BackupJob.DAILY_DATABASE, BackupJob.WEEKLY_FULL, BackupJob.MONTHLY_FULL)


def build_trigger(schedule: ScheduleConfig, job: BackupJob) -> CronTrigger:
    """Create the crontab trigger configured for ``job``."""
    return CronTrigger.from_crontab(getattr(schedule, job.value), timezone=schedule.timezone)


def next_scheduled_run(schedule: ScheduleConfig, now: Optional[datetime] = None) -> Optional[datetime]:
    """Return the earliest upcoming backup run (cleanup excluded)."""
    now = now or utc_now()
    fire_times = [
        build_trigger(schedule, job).get_next_fire_time(None, now)
        for job in BACKUP_JOBS
    ]
    fire_times = [t for t in fire_times if t is not None]
    return min(fire_times) if fire_times else None


class BackupScheduler:
    """Fire orchestrator runs on their calendar cadences.

    ``trigger`` is the whole contract with the orchestrator; the APScheduler
    instance only decides when to call it.
    """

    def __init__(self, orchestrator: Any, schedule: ScheduleConfig):
        """Initialize scheduler.

        Args:
            orchestrator: BackupOrchestrator the jobs are dispatched to
            schedule: Crontab cadences and timezone
        """
        self.orchestrator = orchestrator
        self.schedule = schedule
        self._scheduler: Optional[AsyncIOScheduler] = None

    async def trigger(self, job: BackupJob):
        """Run ``job`` now. Errors propagate to the caller."""
        job = BackupJob(job)
        if job == BackupJob.DAILY_DATABASE:
            return await self.orchestrator.perform_database_backup(ScheduleClass.DAILY)
        if job == BackupJob.WEEKLY_FULL:
            return await self.orchestrator.perform_full_backup(ScheduleClass.WEEKLY)
        if job == BackupJob.MONTHLY_FULL:
            return await self.orchestrator.perform_full_backup(ScheduleClass.MONTHLY)
        return await self.orchestrator.cleanup_old_backups()

    async def _run_job(self, job: BackupJob) -> None:
        logger.info(f"Scheduled job started: {job.value}")
        try:
            await self.trigger(job)
        except BackupError as e:
            logger.error(f"Scheduled job {job.value} failed at stage={e.stage} component={e.component}: {e}")
            return
        except Exception as e:
            logger.error(f"Scheduled job {job.value} failed: {e}")
            return
        logger.info(f"Scheduled job finished: {job.value}")

    def start(self) -> None:
        """Register the crontab jobs and start scheduling. Requires a running event loop."""
        if self._scheduler is not None:
            logger.warning("Backup scheduler already running")
            return

        scheduler = AsyncIOScheduler(timezone=self.schedule.timezone)
        for job in BackupJob:
            scheduler.add_job(
                self._run_job,
                trigger=build_trigger(self.schedule, job),
                args=[job],
                id=job.value,
                name=job.value,
                max_instances=1,
                coalesce=True,
                replace_existing=True,
            )
        scheduler.start()
        self._scheduler = scheduler
        logger.info(f"Backup scheduler started ({self.schedule.timezone})")

    def shutdown(self) -> None:
        if self._scheduler is None:
            return
        self._scheduler.shutdown(wait=False)
        self._scheduler = None
        logger.info("Backup scheduler stopped")

    @property
    def is_running(self) -> bool:
        return self._scheduler is not None

    def next_run_times(self, now: Optional[datetime] = None) -> Dict[BackupJob, Optional[datetime]]:
        now = now or utc_now()
        return {job: build_trigger(self.schedule, job).get_next_fire_time(None, now) for job in BackupJob}

    def next_run_time(self, now: Optional[datetime] = None) -> Optional[datetime]:
        return next_scheduled_run(self.schedule, now)
