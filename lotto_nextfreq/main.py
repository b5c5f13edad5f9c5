"""FastAPI application entry point."""

import sys
from contextlib import asynccontextmanager

from fastapi import FastAPI
from loguru import logger

from lotto_nextfreq.config import settings
from lotto_nextfreq.core.filter_engine import BucketCache
from lotto_nextfreq.core.snapshot import SnapshotStore

# Configure loguru
logger.remove()
logger.add(sys.stderr, level="DEBUG" if settings.DEBUG else "INFO")
logger.add("logs/app.log", rotation="10 MB", retention="7 days", level="INFO")


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan: startup and shutdown."""
    logger.info("Starting {} ...", settings.APP_NAME)

    from lotto_nextfreq.db.engine import async_session_factory, engine
    from lotto_nextfreq.services.snapshot_service import rebuild_snapshot

    try:
        await rebuild_snapshot(app.state.store, async_session_factory)
    except Exception as e:
        logger.error("Initial snapshot build failed, serving an empty snapshot: {}", e)

    if settings.REBUILD_ENABLED:
        try:
            from lotto_nextfreq.scheduler import start_scheduler
            start_scheduler(app.state.store)
        except Exception as e:
            logger.warning("Failed to start scheduler: {}", e)

    yield

    if settings.REBUILD_ENABLED:
        from lotto_nextfreq.scheduler import stop_scheduler
        stop_scheduler()

    await engine.dispose()
    logger.info("Application shutdown complete")


app = FastAPI(
    title=settings.APP_NAME,
    version="1.0.0",
    description="Historical next-round frequency statistics for 6/45 lotto draws",
    lifespan=lifespan,
)

app.state.store = SnapshotStore()
app.state.bucket_cache = BucketCache()

# Include API routers
from lotto_nextfreq.api.v1.router import api_router  # noqa: E402
app.include_router(api_router, prefix="/api/v1")
