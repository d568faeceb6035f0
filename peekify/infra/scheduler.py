"""
Periodic background jobs (APScheduler on the server's event loop).
"""
from apscheduler.schedulers.asyncio import AsyncIOScheduler

from services.daily_reveal import DailyRevealService
from services.history_service import HistoryService
from utils.logger import get_logger

logger = get_logger(__name__)

HISTORY_SYNC_JOB_ID = "history_sync"
DAILY_REVEAL_JOB_ID = "daily_reveal"
SESSION_CLEANUP_JOB_ID = "session_cleanup"


def create_scheduler(
    history_service: HistoryService,
    reveal_service: DailyRevealService,
    sessions_repo,
    sync_interval_minutes: int = 30,
) -> AsyncIOScheduler:
    """
    Build the scheduler with the app's recurring jobs. Call .start() from
    inside the running event loop and .shutdown() on exit.
    """
    scheduler = AsyncIOScheduler(timezone="UTC")

    async def sync_history_job():
        await history_service.sync_all_users()

    # Coroutine jobs run on the loop, so the dispatcher queue is only touched from one thread
    async def daily_reveal_job():
        reveal_service.run_due_reveals()

    async def session_cleanup_job():
        sessions_repo.cleanup_expired()

    scheduler.add_job(
        sync_history_job,
        trigger="interval",
        minutes=max(1, int(sync_interval_minutes)),
        id=HISTORY_SYNC_JOB_ID,
        name="Sync listening history from Spotify",
        replace_existing=True,
        max_instances=1,
        coalesce=True,
    )
    scheduler.add_job(
        daily_reveal_job,
        trigger="interval",
        minutes=1,
        id=DAILY_REVEAL_JOB_ID,
        name="Reveal songs of the day",
        replace_existing=True,
        max_instances=1,
        coalesce=True,
    )
    scheduler.add_job(
        session_cleanup_job,
        trigger="interval",
        hours=6,
        id=SESSION_CLEANUP_JOB_ID,
        name="Remove expired auth sessions",
        replace_existing=True,
    )

    logger.info(f"Scheduler configured: history sync every {sync_interval_minutes} min, reveal check every minute")
    return scheduler
