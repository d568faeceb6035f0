from datetime import timedelta

import pytest

from infra.scheduler import (
    DAILY_REVEAL_JOB_ID,
    HISTORY_SYNC_JOB_ID,
    SESSION_CLEANUP_JOB_ID,
    create_scheduler,
)


class _Recorder:
    def __init__(self):
        self.calls = []

    async def sync_all_users(self):
        self.calls.append("sync")
        return {"users": 0, "synced": 0, "failed": 0}

    def run_due_reveals(self):
        self.calls.append("reveal")
        return 0

    def cleanup_expired(self):
        self.calls.append("cleanup")
        return 0


@pytest.mark.integration
def test_create_scheduler_registers_recurring_jobs_without_starting():
    recorder = _Recorder()
    scheduler = create_scheduler(recorder, recorder, recorder, sync_interval_minutes=15)

    jobs = {job.id: job for job in scheduler.get_jobs()}

    assert set(jobs) == {HISTORY_SYNC_JOB_ID, DAILY_REVEAL_JOB_ID, SESSION_CLEANUP_JOB_ID}
    assert jobs[HISTORY_SYNC_JOB_ID].trigger.interval == timedelta(minutes=15)
    assert jobs[DAILY_REVEAL_JOB_ID].trigger.interval == timedelta(minutes=1)
    assert jobs[SESSION_CLEANUP_JOB_ID].trigger.interval == timedelta(hours=6)
    assert scheduler.running is False


@pytest.mark.integration
def test_sync_interval_has_a_floor_of_one_minute():
    recorder = _Recorder()
    scheduler = create_scheduler(recorder, recorder, recorder, sync_interval_minutes=0)
    assert scheduler.get_job(HISTORY_SYNC_JOB_ID).trigger.interval == timedelta(minutes=1)


@pytest.mark.integration
@pytest.mark.asyncio
async def test_job_functions_call_their_services():
    recorder = _Recorder()
    scheduler = create_scheduler(recorder, recorder, recorder)

    for job_id in (HISTORY_SYNC_JOB_ID, DAILY_REVEAL_JOB_ID, SESSION_CLEANUP_JOB_ID):
        await scheduler.get_job(job_id).func()

    assert recorder.calls == ["sync", "reveal", "cleanup"]
