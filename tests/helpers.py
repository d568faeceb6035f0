"""
Shared builders for tests that run against the SQLite test database.
"""
import uuid
from datetime import datetime, timedelta, timezone

from models.models import Play
from repositories.feed_repo import FeedRepository
from repositories.users_repo import UsersRepository


def make_user(display_name="Test User", username=None, refresh_token="refresh-token", expires_in=3600, **profile):
    """Create a user as the Spotify login would, then apply any profile fields."""
    repo = UsersRepository()
    user = repo.upsert_spotify_user(
        spotify_id=f"spotify-{uuid.uuid4().hex[:12]}",
        display_name=display_name,
        email=None,
        profile_picture_url=None,
        access_token="access-token",
        refresh_token=refresh_token,
        expires_at=datetime.now(timezone.utc) + timedelta(seconds=expires_in),
    )
    fields = dict(profile)
    if username:
        fields["username"] = username
    if fields:
        user = repo.update_profile(user["id"], fields)
    return user


def make_feed_item(user_id, content=None, item_type="daily_song", dedupe_key=None):
    feed_item_id = FeedRepository().create_feed_item(
        user_id, item_type, content if content is not None else {"trackName": "Song"}, dedupe_key=dedupe_key
    )
    return feed_item_id


def make_play(track_id, played_at, track_name=None, artist_name="Artist", duration_ms=180000):
    return Play(
        track_id=track_id,
        track_name=track_name or f"Track {track_id}",
        played_at_utc=played_at,
        artist_name=artist_name,
        album_name="Album",
        album_art_url=None,
        track_uri=f"spotify:track:{track_id}",
        duration_ms=duration_ms,
    )


class RecordingDispatcher:
    """Stands in for NotificationDispatcher and records what would be delivered."""

    def __init__(self):
        self.events = []
        self.pushes = []

    def publish(self, event, data, rooms):
        self.events.append((event, data, list(rooms)))

    def notify(self, user_id, title, body, data=None):
        self.pushes.append((user_id, title, body, data or {}))
