from __future__ import annotations

import asyncio
import contextlib
import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI

from src.api.v1.debug import router as debug_router
from src.api.v1.health import router as health_router
from src.api.v1.webhooks import router as webhooks_router
from src.config import get_settings
from src.core.relay import get_relay


settings = get_settings()

logging.basicConfig(level=getattr(logging, settings.log_level.upper(), logging.INFO))
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    relay = get_relay()
    sweeper = asyncio.create_task(relay.dedup_store.run_sweeper(settings.dedup_sweep_interval_seconds))

    if settings.public_url:
        await relay.channel.setup()
    else:
        logger.warning("PUBLIC_URL is not set — Telegram webhook is not registered")

    logger.info("Application startup completed (TIMEZONE=%s)", settings.timezone)
    try:
        yield
    finally:
        sweeper.cancel()
        with contextlib.suppress(asyncio.CancelledError):
            await sweeper
        await relay.channel.teardown()
        await relay.dedup_store.close()
        logger.info("Application shutdown completed")


app = FastAPI(
    title="Booking Relay",
    description="Wix Bookings -> Telegram notifications with operator status buttons",
    version="0.1.0",
    docs_url="/api/docs",
    redoc_url="/api/redoc",
    openapi_url="/api/openapi.json",
    lifespan=lifespan,
)

app.include_router(health_router)
app.include_router(webhooks_router)
app.include_router(debug_router)
