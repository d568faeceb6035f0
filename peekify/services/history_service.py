"""
Listening history: sync from Spotify, history listing, today's replay and stats.
"""
from datetime import date, datetime, timedelta
from typing import Any, Dict, List, Optional, Union

from clients.spotify_client import SpotifyClient, parse_recently_played_item
from repositories.history_repo import HistoryRepository
from repositories.users_repo import UsersRepository
from services.spotify_auth import SpotifyAuthService
from utils.errors import BadRequestError
from utils.logger import get_logger
from utils.time_utils import dt_from_utc_iso, dt_to_utc_iso, local_date_bounds, local_day_bounds, normalize_utc_iso, utc_now

logger = get_logger(__name__)

RECENTLY_PLAYED_PAGE_SIZE = 50
MAX_SYNC_PAGES = 10
MAX_HISTORY_LIMIT = 200
MAX_STATS_DAYS = 365


def _parse_date(value: Union[str, date, None], field_name: str) -> Optional[date]:
    if value is None or value == "":
        return None
    if isinstance(value, date):
        return value
    try:
        return date.fromisoformat(str(value))
    except ValueError:
        raise BadRequestError(f"Invalid {field_name}, expected YYYY-MM-DD")


def _format_play(row: Dict[str, Any]) -> Dict[str, Any]:
    return {
        "id": row["id"],
        "trackId": row["track_id"],
        "trackName": row["track_name"],
        "artistName": row.get("artist_name"),
        "albumName": row.get("album_name"),
        "albumArtUrl": row.get("album_art_url"),
        "trackUri": row.get("track_uri"),
        "durationMs": row.get("duration_ms"),
        "playedAt": row["played_at_utc"],
    }


def _to_epoch_ms(iso_value: str) -> str:
    dt = dt_from_utc_iso(iso_value)
    return str(int(dt.timestamp() * 1000))


class HistoryService:
    def __init__(
        self,
        history_repo: HistoryRepository,
        users_repo: UsersRepository,
        spotify_client: SpotifyClient,
        auth_service: SpotifyAuthService,
    ):
        self.history_repo = history_repo
        self.users_repo = users_repo
        self.spotify_client = spotify_client
        self.auth_service = auth_service

    async def sync_history(self, user_id: str) -> Dict[str, int]:
        """
        Pull plays newer than the latest stored one and store them.

        Pages forward with the `after` cursor until Spotify reports no next
        page, or MAX_SYNC_PAGES pages were read.
        """
        access_token = await self.auth_service.get_valid_access_token(user_id)

        latest = self.history_repo.latest_played_at(user_id)
        after = _to_epoch_ms(latest) if latest else None

        fetched = 0
        synced = 0
        for _ in range(MAX_SYNC_PAGES):
            page = await self.spotify_client.get_recently_played(
                access_token, after=after, limit=RECENTLY_PLAYED_PAGE_SIZE
            )
            items = page.get("items") or []
            fetched += len(items)

            plays = []
            for item in items:
                play = parse_recently_played_item(item)
                if play is None:
                    continue
                play.played_at_utc = normalize_utc_iso(play.played_at_utc)
                plays.append(play)
            synced += self.history_repo.insert_plays(user_id, plays)

            next_after = (page.get("cursors") or {}).get("after")
            if not items or not page.get("next") or not next_after or next_after == after:
                break
            after = next_after

        self.users_repo.mark_synced(user_id)
        logger.info(f"Synced history for user {user_id}: {synced} new of {fetched} fetched")
        return {"synced": synced, "fetched": fetched}

    async def sync_all_users(self) -> Dict[str, int]:
        """Sync every connected user; one user's failure does not stop the rest."""
        ok = 0
        failed = 0
        for user_id in self.users_repo.list_connected_user_ids():
            try:
                await self.sync_history(user_id)
                ok += 1
            except Exception as e:
                failed += 1
                logger.exception(f"History sync failed for user {user_id}: {e}")
        if ok or failed:
            logger.info(f"History sync run finished: {ok} ok, {failed} failed")
        return {"ok": ok, "failed": failed}

    def get_history(
        self,
        user_id: str,
        start_date: Union[str, date, None] = None,
        end_date: Union[str, date, None] = None,
        limit: int = 50,
        offset: int = 0,
    ) -> Dict[str, Any]:
        """Plays newest first; start_date/end_date are inclusive days in the user's timezone."""
        start = _parse_date(start_date, "startDate")
        end = _parse_date(end_date, "endDate")
        if start and end and start > end:
            raise BadRequestError("startDate must not be after endDate")

        tz_name = self.users_repo.get_timezone(user_id)
        start_utc = local_date_bounds(start, start, tz_name)[0] if start else None
        end_utc = local_date_bounds(end, end, tz_name)[1] if end else None

        limit = max(1, min(int(limit), MAX_HISTORY_LIMIT))
        offset = max(0, int(offset))
        rows = self.history_repo.list_plays(user_id, start_utc, end_utc, limit=limit, offset=offset)
        history = [_format_play(row) for row in rows]
        return {"history": history, "pagination": {"limit": limit, "offset": offset, "count": len(history)}}

    def get_todays_replay(self, user_id: str, now: Optional[datetime] = None) -> Optional[Dict[str, Any]]:
        """Most played track of the current day in the user's timezone, or None."""
        tz_name = self.users_repo.get_timezone(user_id)
        start_utc, end_utc, local_date = local_day_bounds(tz_name, now=now)
        top = self.history_repo.top_track_between(user_id, start_utc, end_utc)
        if not top:
            return None
        return {
            "date": local_date.isoformat(),
            "trackId": top["track_id"],
            "trackName": top["track_name"],
            "artistName": top.get("artist_name"),
            "albumName": top.get("album_name"),
            "albumArtUrl": top.get("album_art_url"),
            "trackUri": top.get("track_uri"),
            "durationMs": top.get("duration_ms"),
            "playCount": int(top["play_count"]),
            "lastPlayedAt": top["last_played_at_utc"],
        }

    def get_stats(self, user_id: str, days: int = 30, now: Optional[datetime] = None) -> Dict[str, Any]:
        days = max(1, min(int(days), MAX_STATS_DAYS))
        since = dt_to_utc_iso((now or utc_now()) - timedelta(days=days))
        stats = self.history_repo.get_stats(user_id, since)

        top_tracks: List[Dict[str, Any]] = [
            {
                "trackId": row["track_id"],
                "trackName": row["track_name"],
                "artistName": row.get("artist_name"),
                "albumArtUrl": row.get("album_art_url"),
                "playCount": int(row["play_count"]),
            }
            for row in stats["top_tracks"]
        ]
        top_artists = [
            {"artistName": row["artist_name"], "playCount": int(row["play_count"])}
            for row in stats["top_artists"]
        ]
        return {
            "days": days,
            "totalPlays": stats["total_plays"],
            "uniqueTracks": stats["unique_tracks"],
            "uniqueArtists": stats["unique_artists"],
            "totalMinutes": round(stats["total_ms"] / 60000),
            "topTracks": top_tracks,
            "topArtists": top_artists,
        }
