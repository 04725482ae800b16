from __future__ import annotations

from datetime import datetime
from zoneinfo import ZoneInfo

import pytest

from fetanpay.config import Settings
from fetanpay.services.billing_scheduler import BillingScheduler, ScheduledJob, default_jobs

TZ = ZoneInfo('Africa/Addis_Ababa')


def test_default_jobs_cover_daily_billing_checks():
    jobs = {job.name: job.schedule_cron for job in default_jobs(Settings())}
    assert jobs == {
        'check-expiring-subscriptions': '0 9 * * *',
        'check-expired-subscriptions': '0 10 * * *',
        'fix-subscription-expiration': '30 2 * * *',
    }


def test_compute_next_run_uses_billing_timezone(session_factory):
    scheduler = BillingScheduler(session_factory, jobs=[], tz_name='Africa/Addis_Ababa')
    next_run = scheduler.compute_next_run('0 9 * * *', datetime(2024, 3, 20, 8, 30, tzinfo=TZ))
    assert next_run == datetime(2024, 3, 20, 9, 0, tzinfo=TZ)


@pytest.mark.asyncio
async def test_tick_runs_only_due_jobs(session_factory):
    ran = []
    due = ScheduledJob('due', '0 9 * * *', run=lambda db: ran.append('due'))
    later = ScheduledJob('later', '0 10 * * *', run=lambda db: ran.append('later'))
    scheduler = BillingScheduler(session_factory, jobs=[due, later])
    due.next_run_at = datetime(2024, 3, 20, 9, 0, tzinfo=TZ)
    later.next_run_at = datetime(2024, 3, 20, 10, 0, tzinfo=TZ)

    names = await scheduler.tick(datetime(2024, 3, 20, 9, 0, 30, tzinfo=TZ))

    assert names == ['due']
    assert ran == ['due']
    assert due.next_run_at == datetime(2024, 3, 21, 9, 0, tzinfo=TZ)


def test_failing_job_is_contained(session_factory):
    def boom(db):
        raise RuntimeError('job exploded')

    scheduler = BillingScheduler(session_factory, jobs=[ScheduledJob('boom', '0 9 * * *', run=boom)])
    assert scheduler.run_job('boom') is None


def test_run_job_executes_backfill_against_session(session_factory, make_plan, make_merchant, make_subscription):
    make_subscription(make_merchant(), make_plan())
    scheduler = BillingScheduler(session_factory, jobs=default_jobs(Settings()))

    report = scheduler.run_job('fix-subscription-expiration')

    assert report.updated == 1
