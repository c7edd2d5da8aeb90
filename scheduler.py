import asyncio
import logging
from datetime import datetime, timezone

UTC = timezone.utc
logger = logging.getLogger("uvicorn")


class Scheduler:
    """
    Minimal in-process interval scheduler.
    Usage:
        sched = Scheduler()
        sched.every(3600, coro, arg1, arg2=...)
        await sched.run_forever()
    A job is not started again while its previous run is still going.
    """
    def __init__(self, tick_seconds: float = 1.0):
        self.tick_seconds = tick_seconds
        self.jobs = []  # list[[seconds, coro, args, kwargs, last_run, task]]

    def every(self, seconds: int, coro, *args, **kwargs):
        if seconds <= 0:
            raise ValueError("interval must be positive")
        self.jobs.append([seconds, coro, args, kwargs, None, None])

    async def _run(self, coro, args, kwargs):
        try:
            await coro(*args, **kwargs)
        except Exception as e:
            logger.warning(f"[scheduler] {getattr(coro, '__name__', coro)} failed: {e}")

    def tick(self, now: datetime) -> int:
        started = 0
        for job in self.jobs:
            seconds, coro, args, kwargs, last_run, task = job
            if task is not None and not task.done():
                continue
            if last_run is None or (now - last_run).total_seconds() >= seconds:
                job[5] = asyncio.create_task(self._run(coro, args, kwargs))
                job[4] = now
                started += 1
        return started

    async def run_forever(self):
        while True:
            self.tick(datetime.now(tz=UTC))
            await asyncio.sleep(self.tick_seconds)
