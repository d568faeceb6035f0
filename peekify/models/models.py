from dataclasses import dataclass
from datetime import datetime
from typing import Optional


@dataclass
class AuthSession:
    session_token: str
    user_id: str
    created_at: datetime
    expires_at: datetime


@dataclass
class SpotifyTokens:
    user_id: str
    access_token: Optional[str]
    refresh_token: Optional[str]
    expires_at: Optional[datetime]  # UTC


@dataclass
class Play:
    """One entry of a user's recently-played history."""
    track_id: str
    track_name: str
    played_at_utc: str
    artist_name: Optional[str] = None
    album_name: Optional[str] = None
    album_art_url: Optional[str] = None
    track_uri: Optional[str] = None
    duration_ms: Optional[int] = None


FRIEND_REQUEST_PENDING = "pending"
FRIEND_REQUEST_ACCEPTED = "accepted"
FRIEND_REQUEST_DECLINED = "declined"

PRIVACY_LEVELS = ("private", "friends", "public")

FEED_TYPE_DAILY_SONG = "daily_song"
