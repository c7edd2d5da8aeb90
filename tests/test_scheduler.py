import asyncio
from datetime import datetime, timedelta, timezone

import pytest

from scheduler import Scheduler


@pytest.mark.asyncio
async def test_job_runs_on_interval():
    calls = []

    async def job(tag):
        calls.append(tag)

    sched = Scheduler()
    sched.every(60, job, "refresh")
    t0 = datetime(2024, 6, 15, tzinfo=timezone.utc)

    assert sched.tick(t0) == 1
    await asyncio.sleep(0)
    assert sched.tick(t0 + timedelta(seconds=30)) == 0
    assert sched.tick(t0 + timedelta(seconds=61)) == 1
    await asyncio.sleep(0)
    assert calls == ["refresh", "refresh"]


@pytest.mark.asyncio
async def test_failing_job_is_logged_not_raised(caplog):
    async def boom():
        raise RuntimeError("db down")

    sched = Scheduler()
    sched.every(1, boom)
    sched.tick(datetime(2024, 6, 15, tzinfo=timezone.utc))
    task = sched.jobs[0][5]
    await task

    assert task.exception() is None
    assert "boom failed: db down" in caplog.text


def test_interval_must_be_positive():
    with pytest.raises(ValueError):
        Scheduler().every(0, None)
