# main.py (lifespan-based)
from __future__ import annotations

import asyncio, logging, contextlib
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from fastapi.routing import APIRoute
from tortoise import Tortoise

from routers import energy, energy_rates, metered_usage, subscriptions, payments, admin_tasks

# Background pieces
from scheduler import Scheduler
from services import config
from services.seeder import seed_if_empty
from services.payment_sync import refresh_outstanding_payments

logger = logging.getLogger("uvicorn")


# ----- scheduled jobs -----
async def _job_refresh_outstanding():
    res = await refresh_outstanding_payments(config.billing_rates())
    if res.failed:
        logger.warning(f"[scheduler] outstanding refresh: {len(res.failed)} payments failed: {res.failed}")


# ----- lifespan -----
@asynccontextmanager
async def lifespan(app: FastAPI):
    # 1) DB init
    await Tortoise.init(
        db_url=config.DB_URL,
        modules={"models": ["models"]},
        use_tz=True,
        timezone="UTC",
    )
    await Tortoise.generate_schemas()

    # 2) Seeds
    if config.SEED_ON_STARTUP:
        await seed_if_empty(logger=logger.info)

    # 3) Scheduler
    sched = Scheduler()
    app.state.scheduler = sched
    if config.PAYMENT_REFRESH_SECONDS > 0:
        sched.every(config.PAYMENT_REFRESH_SECONDS, _job_refresh_outstanding)

    sched_task = asyncio.create_task(sched.run_forever())
    try:
        yield
    finally:
        if not sched_task.done():
            sched_task.cancel()
            with contextlib.suppress(asyncio.CancelledError):
                await sched_task
        await Tortoise.close_connections()


# ----- app & routers -----
app = FastAPI(lifespan=lifespan, title="Energy Billing API")

app.add_middleware(
    CORSMiddleware,
    allow_origins=config.CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
    expose_headers=["Content-Range", "X-Total-Count"],
)

app.include_router(energy.router)
app.include_router(energy_rates.router)
app.include_router(metered_usage.router)
app.include_router(subscriptions.router)
app.include_router(payments.router)
app.include_router(admin_tasks.router)

for route in app.routes:
    if isinstance(route, APIRoute):
        logger.info("%s -> %s", list(route.methods), route.path)
