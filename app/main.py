from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from typing import AsyncIterator, Optional

from fastapi import FastAPI
from starlette.concurrency import run_in_threadpool

from app.api import router
from logging_config import configure_logging
from services.discovery import DiscoveryError
from services.scheduler import CollectionScheduler, build_default_scheduler
from settings import get_settings

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(_app: FastAPI) -> AsyncIterator[None]:
    settings = get_settings()
    scheduler: Optional[CollectionScheduler] = None

    if not settings.collector_enabled:
        logger.info("Background collector disabled; serving stored data only")
    elif not settings.source_configured:
        logger.warning("Home Assistant is not configured; background collector not started")
    else:
        scheduler = build_default_scheduler()
        try:
            await run_in_threadpool(scheduler.start)
        except DiscoveryError:
            logger.exception("Collector failed to start; serving stored data only")

    try:
        yield
    finally:
        if scheduler is not None:
            await run_in_threadpool(scheduler.stop)
            build_default_scheduler.cache_clear()


def create_app() -> FastAPI:
    configure_logging()
    app = FastAPI(
        title="Graphator",
        description="Home Assistant temperature and humidity collector.",
        version="0.1.0",
        lifespan=lifespan,
    )
    app.include_router(router)
    return app


app = create_app()
