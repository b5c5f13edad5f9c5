"""APScheduler cron job for periodic snapshot rebuilds."""

from apscheduler.schedulers.asyncio import AsyncIOScheduler
from loguru import logger

from lotto_nextfreq.config import settings
from lotto_nextfreq.core.snapshot import SnapshotStore
from lotto_nextfreq.db.engine import async_session_factory

_scheduler: AsyncIOScheduler | None = None


async def _rebuild_job(store: SnapshotStore):
    """Reload the snapshot; on failure the previous snapshot stays live."""
    from lotto_nextfreq.services.snapshot_service import rebuild_snapshot

    try:
        await rebuild_snapshot(store, async_session_factory)
    except Exception as e:
        logger.error("Scheduled snapshot rebuild failed: {}", e)


def start_scheduler(store: SnapshotStore):
    """Start the APScheduler with the weekly rebuild job."""
    global _scheduler
    if _scheduler is not None:
        return

    _scheduler = AsyncIOScheduler(timezone=settings.REBUILD_TIMEZONE)

    # Shortly after the Saturday evening draw
    _scheduler.add_job(
        _rebuild_job, "cron",
        args=[store],
        day_of_week=settings.REBUILD_DAY_OF_WEEK,
        hour=settings.REBUILD_HOUR, minute=settings.REBUILD_MINUTE,
        id="snapshot_rebuild",
    )

    _scheduler.start()
    logger.info("Scheduler started with {} jobs", len(_scheduler.get_jobs()))


def stop_scheduler():
    """Shutdown the scheduler."""
    global _scheduler
    if _scheduler:
        _scheduler.shutdown(wait=False)
        _scheduler = None
        logger.info("Scheduler stopped")


def get_scheduler_status() -> list[dict]:
    """Get status of all scheduled jobs."""
    if not _scheduler:
        return []

    jobs = []
    for job in _scheduler.get_jobs():
        jobs.append({
            "id": job.id,
            "name": job.name,
            "next_run": str(job.next_run_time) if job.next_run_time else None,
            "trigger": str(job.trigger),
        })
    return jobs
