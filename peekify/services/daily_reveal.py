"""
Daily reveal: once a user's local notification time has passed, today's
replay is published as their "daily_song" feed item.
"""
from datetime import datetime
from typing import Optional

from models.models import FEED_TYPE_DAILY_SONG
from repositories.feed_repo import FeedRepository
from repositories.users_repo import UsersRepository
from services.feed_service import FeedService
from services.history_service import HistoryService
from services.notification_dispatcher import NotificationDispatcher
from utils.logger import get_logger
from utils.time_utils import has_local_time_passed, local_day_bounds, utc_now

logger = get_logger(__name__)


def daily_song_key(user_id: str, local_date) -> str:
    return f"{FEED_TYPE_DAILY_SONG}:{user_id}:{local_date.isoformat()}"


class DailyRevealService:
    def __init__(
        self,
        users_repo: UsersRepository,
        feed_repo: FeedRepository,
        feed_service: FeedService,
        history_service: HistoryService,
        dispatcher: Optional[NotificationDispatcher] = None,
    ):
        self.users_repo = users_repo
        self.feed_repo = feed_repo
        self.feed_service = feed_service
        self.history_service = history_service
        self.dispatcher = dispatcher

    def reveal_for_user(self, user_id: str, now: Optional[datetime] = None) -> Optional[dict]:
        """
        Publish today's song for one user.
        Returns the new feed item, or None if there is nothing to reveal or it was already revealed.
        """
        tz_name = self.users_repo.get_timezone(user_id)
        _, _, local_date = local_day_bounds(tz_name, now=now)
        dedupe_key = daily_song_key(user_id, local_date)
        if self.feed_repo.dedupe_key_exists(dedupe_key):
            return None

        replay = self.history_service.get_todays_replay(user_id, now=now)
        if not replay:
            return None

        item, created = self.feed_service.create_feed_item_once(
            user_id, FEED_TYPE_DAILY_SONG, replay, dedupe_key=dedupe_key
        )
        if not created:
            # Revealed concurrently by another run
            return None
        if self.dispatcher:
            self.dispatcher.notify(
                user_id,
                title="Your song of the day is ready",
                body=f"{replay['trackName']} by {replay.get('artistName') or 'Unknown artist'}",
                data={"type": "daily_song", "feedItemId": item["id"]},
            )
        return item

    def run_due_reveals(self, now: Optional[datetime] = None) -> int:
        """Reveal for every user whose notification time has passed today. Returns items created."""
        now = now or utc_now()
        created = 0
        for settings in self.users_repo.list_reveal_settings():
            user_id = settings["id"]
            try:
                if not has_local_time_passed(settings.get("notification_time") or "21:00", settings.get("timezone"), now=now):
                    continue
                if self.reveal_for_user(user_id, now=now):
                    created += 1
            except Exception as e:
                logger.exception(f"Daily reveal failed for user {user_id}: {e}")
        if created:
            logger.info(f"Revealed {created} daily songs")
        return created
