"""Recurring trigger for ingestion runs.

Wraps an APScheduler ``BackgroundScheduler`` with one interval job. The first
run fires after the configured initial delay; later runs follow the fixed
interval. ``max_instances=1`` plus the orchestrator's own run lock keep runs
from overlapping.
"""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Optional

from apscheduler.schedulers.background import BackgroundScheduler
from apscheduler.triggers.interval import IntervalTrigger

from .orchestrator import SCHEDULED_LABEL, Orchestrator
from .utils.logging import get_logger
from .utils.settings import ProcessingConfig

logger = get_logger("cr.scheduler")

JOB_ID = "rss_ingestion"


class IngestionScheduler:
    def __init__(
        self,
        orchestrator: Orchestrator,
        processing: ProcessingConfig | None = None,
        *,
        scheduler: Optional[BackgroundScheduler] = None,
    ) -> None:
        self.orchestrator = orchestrator
        self.processing = processing or orchestrator.config.processing
        self.scheduler = scheduler or BackgroundScheduler(daemon=True, timezone=timezone.utc)

    @property
    def running(self) -> bool:
        return bool(self.scheduler.running)

    def _run_job(self) -> None:
        try:
            self.orchestrator.run_once(SCHEDULED_LABEL)
        except Exception:  # noqa: BLE001 - keep the scheduler alive
            logger.exception("Scheduled ingestion run failed")

    def start(self) -> bool:
        """Register the interval job and start the scheduler.

        Returns False without starting anything when scheduling is disabled.
        """
        if not self.processing.enable_scheduling:
            logger.info("Scheduling disabled in configuration; not starting scheduler")
            return False
        if self.running:
            logger.debug("Scheduler already running")
            return True

        first_run = datetime.now(timezone.utc) + self.processing.initial_delay
        self.scheduler.add_job(
            self._run_job,
            trigger=IntervalTrigger(seconds=self.processing.schedule_interval.total_seconds()),
            id=JOB_ID,
            name="RSS ingestion",
            next_run_time=first_run,
            max_instances=1,
            coalesce=True,
            replace_existing=True,
        )
        self.scheduler.start()
        logger.info(
            "Scheduler started: every %ss, first run at %s",
            self.processing.schedule_interval.total_seconds(),
            first_run.isoformat(),
        )
        return True

    def stop(self, *, wait: bool = True) -> None:
        if not self.running:
            return
        logger.info("Stopping scheduler (wait=%s)", wait)
        self.scheduler.shutdown(wait=wait)

    def next_run_time(self) -> Optional[datetime]:
        job = self.scheduler.get_job(JOB_ID)
        return getattr(job, "next_run_time", None) if job else None
