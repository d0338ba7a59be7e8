"""Background job scheduler.

APScheduler-based scheduler for the weekly report job. The application
lifespan owns one ``ReportScheduler`` and stops it before the database
engine is disposed.
"""

import uuid
from collections.abc import Callable

from apscheduler.schedulers.asyncio import AsyncIOScheduler
from apscheduler.triggers.cron import CronTrigger

from sugar_monitor.config import Settings, settings
from sugar_monitor.logging_config import correlation_id_ctx, get_logger
from sugar_monitor.services.weekly_report import (
    WeeklyReportService,
    WeeklyReportSummary,
)

logger = get_logger(__name__)

WEEKLY_REPORT_JOB = "weekly_reports"


class ReportScheduler:
    """Runs the weekly report on a cron schedule.

    ``start_all`` and ``stop_all`` are idempotent. A stopped scheduler
    can be started again.
    """

    JOB_NAMES = (WEEKLY_REPORT_JOB,)

    def __init__(
        self,
        weekly_report: WeeklyReportService,
        timezone: str | None = None,
        scheduler_factory: Callable[..., AsyncIOScheduler] = AsyncIOScheduler,
        day_of_week: str = "mon",
        hour: int = 9,
        minute: int = 0,
        enabled: bool = True,
    ):
        self.weekly_report = weekly_report
        self.timezone = timezone
        self.scheduler_factory = scheduler_factory
        self.day_of_week = day_of_week
        self.hour = hour
        self.minute = minute
        self.enabled = enabled
        self._scheduler: AsyncIOScheduler | None = None

    @classmethod
    def from_settings(
        cls,
        weekly_report: WeeklyReportService,
        config: Settings | None = None,
        **kwargs,
    ) -> "ReportScheduler":
        config = config or settings
        return cls(
            weekly_report,
            timezone=config.scheduler_timezone,
            day_of_week=config.weekly_report_day_of_week,
            hour=config.weekly_report_hour,
            minute=config.weekly_report_minute,
            enabled=config.weekly_report_enabled,
            **kwargs,
        )

    @property
    def running(self) -> bool:
        return self._scheduler is not None

    def _add_weekly_report_job(self, scheduler: AsyncIOScheduler) -> None:
        # Server-local time unless a timezone is configured
        trigger_kwargs = {"timezone": self.timezone} if self.timezone else {}
        scheduler.add_job(
            self._run_scheduled_weekly_report,
            trigger=CronTrigger(
                day_of_week=self.day_of_week,
                hour=self.hour,
                minute=self.minute,
                **trigger_kwargs,
            ),
            id=WEEKLY_REPORT_JOB,
            name="Weekly Alert Report",
            replace_existing=True,
            max_instances=1,
        )
        logger.info(
            "Scheduled weekly report job",
            day_of_week=self.day_of_week,
            hour=self.hour,
            minute=self.minute,
            timezone=self.timezone or "local",
        )

    def start_all(self) -> None:
        """Create the scheduler, register the jobs, and start it."""
        if self._scheduler is not None:
            logger.warning("Scheduler already running")
            return

        factory_kwargs = {"timezone": self.timezone} if self.timezone else {}
        scheduler = self.scheduler_factory(**factory_kwargs)

        if self.enabled:
            self._add_weekly_report_job(scheduler)
        else:
            logger.info("Weekly report job disabled")

        scheduler.start()
        self._scheduler = scheduler
        logger.info("Background scheduler started")

    def stop_all(self) -> None:
        """Stop every job. Returns once no further run can be fired."""
        if self._scheduler is None:
            return

        self._scheduler.shutdown(wait=False)
        self._scheduler = None
        logger.info("Background scheduler stopped")

    def restart_job(self, name: str) -> bool:
        """Re-register a job with its trigger.

        Returns:
            False for an unknown job name or a stopped scheduler.
        """
        if name not in self.JOB_NAMES or self._scheduler is None:
            return False

        if self._scheduler.get_job(name) is not None:
            self._scheduler.remove_job(name)
        self._add_weekly_report_job(self._scheduler)
        logger.info("Restarted scheduled job", job=name)
        return True

    def get_jobs_status(self) -> dict[str, bool]:
        """Map each job name to whether it is currently scheduled."""
        return {
            name: (
                self._scheduler is not None
                and self._scheduler.get_job(name) is not None
            )
            for name in self.JOB_NAMES
        }

    async def trigger_weekly_report(self) -> WeeklyReportSummary:
        """Run the weekly report now. Errors propagate to the caller."""
        return await self._run_weekly_report(trigger="manual")

    async def _run_scheduled_weekly_report(self) -> None:
        token = correlation_id_ctx.set(
            f"job-{WEEKLY_REPORT_JOB}-{uuid.uuid4().hex[:12]}"
        )
        try:
            await self._run_weekly_report(trigger="scheduled")
        except Exception as e:
            logger.error("Scheduled weekly report failed", error=str(e))
        finally:
            correlation_id_ctx.reset(token)

    async def _run_weekly_report(self, trigger: str) -> WeeklyReportSummary:
        logger.info("Running weekly report job", trigger=trigger)
        summary = await self.weekly_report.run()
        logger.info(
            "Weekly report job finished",
            trigger=trigger,
            sent=summary.sent,
            skipped=summary.skipped,
            failed=summary.failed,
        )
        return summary
