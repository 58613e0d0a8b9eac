import logging

from apscheduler.schedulers.asyncio import AsyncIOScheduler

from cloud_poller.core.config import settings
from cloud_poller.modules.poller.service import run_scheduled_cycle

logger = logging.getLogger(__name__)

POLL_JOB_ID = "provider_usage_poll"


async def scheduled_poll_job() -> None:
    """Scheduler entry point. Only side effects matter: store writes and pushes."""
    try:
        await run_scheduled_cycle()
    except Exception:  # noqa: BLE001
        logger.exception("Scheduled polling cycle failed")


def register_poll_job(scheduler: AsyncIOScheduler, interval_seconds: int) -> None:
    scheduler.add_job(
        scheduled_poll_job,
        "interval",
        seconds=interval_seconds,
        id=POLL_JOB_ID,
        max_instances=1,  # cycles must not overlap
        coalesce=True,
        replace_existing=True,
    )
    logger.info("Registered provider usage poll job (every %ss)", interval_seconds)


def create_scheduler(interval_seconds: int | None = None) -> AsyncIOScheduler | None:
    interval = settings.POLL_INTERVAL_SECONDS if interval_seconds is None else interval_seconds
    if interval <= 0:
        logger.info("POLL_INTERVAL_SECONDS is %s, in-process polling disabled", interval)
        return None

    scheduler = AsyncIOScheduler()
    register_poll_job(scheduler, interval)
    return scheduler
