"""
Lightweight in-process scheduler for the daily billing jobs.
Cron expressions are evaluated in the billing timezone.
"""
from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass, field
from datetime import datetime
from typing import Callable, Dict, List
from zoneinfo import ZoneInfo

from croniter import croniter
from sqlalchemy.orm import Session, sessionmaker

from fetanpay.config import Settings
from fetanpay.services.expiration_backfill import backfill_expiration_dates
from fetanpay.services.expiry_monitor import check_expiring_subscriptions, expire_lapsed_subscriptions

logger = logging.getLogger(__name__)


@dataclass
class ScheduledJob:
    name: str
    schedule_cron: str
    run: Callable[[Session], object]
    next_run_at: datetime | None = field(default=None)


def default_jobs(settings: Settings) -> List[ScheduledJob]:
    return [
        ScheduledJob(
            name="check-expiring-subscriptions",
            schedule_cron="0 9 * * *",
            run=lambda db: check_expiring_subscriptions(
                db, notice_days=settings.expiry_notice_days, tz_name=settings.billing_timezone
            ),
        ),
        ScheduledJob(
            name="check-expired-subscriptions",
            schedule_cron="0 10 * * *",
            run=lambda db: expire_lapsed_subscriptions(db),
        ),
        ScheduledJob(
            name="fix-subscription-expiration",
            schedule_cron="30 2 * * *",
            run=lambda db: backfill_expiration_dates(db, trial_days=settings.trial_days),
        ),
    ]


class BillingScheduler:
    """Polls the clock and runs due billing jobs."""

    def __init__(
        self,
        session_factory: sessionmaker,
        jobs: List[ScheduledJob],
        tz_name: str = "Africa/Addis_Ababa",
        poll_seconds: int = 60,
    ):
        self.session_factory = session_factory
        self.jobs: Dict[str, ScheduledJob] = {job.name: job for job in jobs}
        self.tz = ZoneInfo(tz_name)
        self.poll_seconds = poll_seconds
        self._stop_event = asyncio.Event()
        self._task: asyncio.Task | None = None

    def start(self) -> None:
        """Start scheduler loop as background task."""
        if self._task and not self._task.done():
            return
        self._stop_event.clear()
        now = datetime.now(self.tz)
        for job in self.jobs.values():
            job.next_run_at = self.compute_next_run(job.schedule_cron, now)
        self._task = asyncio.create_task(self._run_loop())
        logger.info("BillingScheduler started with jobs: %s", ", ".join(self.jobs))

    async def stop(self) -> None:
        """Stop scheduler loop and wait for completion."""
        self._stop_event.set()
        if self._task:
            await self._task
        logger.info("BillingScheduler stopped")

    async def _run_loop(self) -> None:
        while not self._stop_event.is_set():
            try:
                await self.tick(datetime.now(self.tz))
            except Exception as exc:
                logger.exception("BillingScheduler tick failed: %s", exc)
            try:
                await asyncio.wait_for(self._stop_event.wait(), timeout=self.poll_seconds)
            except asyncio.TimeoutError:
                pass

    async def tick(self, now: datetime) -> List[str]:
        """Run every job whose next_run_at has passed; return the names that ran."""
        ran = []
        for job in self.jobs.values():
            if job.next_run_at is None or job.next_run_at > now:
                continue
            job.next_run_at = self.compute_next_run(job.schedule_cron, now)
            await asyncio.to_thread(self.run_job, job.name)
            ran.append(job.name)
        return ran

    def run_job(self, name: str):
        job = self.jobs[name]
        db = self.session_factory()
        try:
            result = job.run(db)
            logger.info("Scheduled job %s complete: %s", name, result)
            return result
        except Exception as exc:
            db.rollback()
            logger.exception("Scheduled job %s failed: %s", name, exc)
            return None
        finally:
            db.close()

    def compute_next_run(self, schedule_cron: str, from_dt: datetime) -> datetime:
        return croniter(schedule_cron, from_dt.astimezone(self.tz)).get_next(datetime)
