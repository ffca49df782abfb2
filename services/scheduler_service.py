"""
Scheduled reconciliation runs.

One APScheduler cron job triggers a run with the settings current at
trigger time. A run that overlaps a manual one is skipped, not queued.
"""

from typing import Optional

from apscheduler.schedulers.background import BackgroundScheduler
from apscheduler.triggers.cron import CronTrigger
import structlog

from config.database import DatabaseConnectionError
from exceptions import AppError, ReconciliationInProgressError
from models.run_config import ScheduleConfig
from services.reconciliation_service import get_reconciliation_service
from services.run_settings_service import get_run_settings_service

logger = structlog.get_logger(__name__)

JOB_ID = "inventory_reconciliation"


def run_scheduled_reconciliation() -> None:
    """Job body: load run settings, run, log the outcome."""
    logger.info("scheduled_reconciliation_triggered")
    try:
        run_config = get_run_settings_service().load_run_config()
        result = get_reconciliation_service().run(run_config)
        logger.info(
            "scheduled_reconciliation_complete",
            report_id=result.report_id,
            total_discrepancies=result.report.total_discrepancies
        )
    except ReconciliationInProgressError as e:
        logger.warning("scheduled_reconciliation_skipped", active_run_id=e.details.get("active_run_id"))
    except AppError as e:
        logger.error("scheduled_reconciliation_failed", code=e.code, error=e.message)
    except DatabaseConnectionError as e:
        logger.error("scheduled_reconciliation_failed", code="DATABASE_UNAVAILABLE", error=str(e))


class SchedulerService:
    """Owns the background scheduler and its single cron job."""

    def __init__(self):
        self.scheduler: Optional[BackgroundScheduler] = None
        self.schedule: Optional[ScheduleConfig] = None

    def start(self, schedule: Optional[ScheduleConfig] = None) -> None:
        """
        Start the scheduler and apply a schedule.

        Args:
            schedule: Defaults to the stored schedule settings
        """
        if self.scheduler is not None:
            logger.warning("scheduler_already_running")
            return

        self.scheduler = BackgroundScheduler()
        self.scheduler.start()
        logger.info("scheduler_started")

        self.update_schedule(schedule or get_run_settings_service().load_schedule_config())

    def update_schedule(self, schedule: ScheduleConfig) -> None:
        """
        Add, replace or remove the cron job.

        Raises:
            ValueError: Cron expression rejected by APScheduler
            KeyError: Unknown timezone
        """
        if self.scheduler is None:
            self.schedule = schedule
            return

        if not schedule.enabled:
            if self.scheduler.get_job(JOB_ID) is not None:
                self.scheduler.remove_job(JOB_ID)
            self.schedule = schedule
            logger.info("reconciliation_schedule_disabled")
            return

        trigger = CronTrigger.from_crontab(schedule.cron, timezone=schedule.timezone)
        self.scheduler.add_job(
            run_scheduled_reconciliation,
            trigger,
            id=JOB_ID,
            name="Inventory reconciliation",
            replace_existing=True,
            max_instances=1,
            coalesce=True,
        )
        self.schedule = schedule
        logger.info(
            "reconciliation_scheduled",
            cron=schedule.cron,
            timezone=schedule.timezone
        )

    def shutdown(self) -> None:
        if self.scheduler is not None:
            self.scheduler.shutdown(wait=False)
            self.scheduler = None
            logger.info("scheduler_stopped")

    def get_status(self) -> dict:
        """Scheduler state and next run time."""
        if self.scheduler is None:
            return {"running": False, "enabled": False, "jobs": []}

        jobs = [
            {
                "id": job.id,
                "name": job.name,
                "next_run": str(job.next_run_time) if job.next_run_time else None,
            }
            for job in self.scheduler.get_jobs()
        ]
        return {
            "running": self.scheduler.running,
            "enabled": bool(self.schedule and self.schedule.enabled),
            "cron": self.schedule.cron if self.schedule else None,
            "timezone": self.schedule.timezone if self.schedule else None,
            "jobs": jobs,
        }


# Singleton instance
_scheduler_service: Optional[SchedulerService] = None


def get_scheduler_service() -> SchedulerService:
    """Get or create SchedulerService instance."""
    global _scheduler_service
    if _scheduler_service is None:
        _scheduler_service = SchedulerService()
    return _scheduler_service
