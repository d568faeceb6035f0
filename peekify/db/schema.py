"""
Table definitions (SQLAlchemy Core).

Repositories query these tables with raw SQL; this module is the single
place the columns are declared. PostgreSQL deployments apply the same
schema through Alembic (db/alembic/versions); ensure_schema() is used for
SQLite in local development and tests.
"""
from typing import Optional

from sqlalchemy import (
    CheckConstraint,
    Column,
    ForeignKey,
    Index,
    Integer,
    MetaData,
    PrimaryKeyConstraint,
    Table,
    Text,
    UniqueConstraint,
    text,
)
from sqlalchemy.engine import Engine

from db.postgres_db import get_engine

metadata = MetaData()

users = Table(
    "users",
    metadata,
    Column("id", Text, primary_key=True),
    Column("spotify_id", Text, nullable=False, unique=True),
    Column("email", Text, nullable=True),
    Column("display_name", Text, nullable=True),
    Column("profile_picture_url", Text, nullable=True),
    Column("username", Text, nullable=True, unique=True),
    Column("bio", Text, nullable=True),
    Column("privacy_level", Text, nullable=False, server_default="friends"),
    Column("timezone", Text, nullable=False, server_default="UTC"),
    Column("notification_time", Text, nullable=False, server_default="21:00"),
    Column("spotify_access_token", Text, nullable=True),
    Column("spotify_refresh_token", Text, nullable=True),
    Column("spotify_token_expires_at_utc", Text, nullable=True),
    Column("last_synced_at_utc", Text, nullable=True),
    Column("created_at_utc", Text, nullable=False),
    Column("updated_at_utc", Text, nullable=False),
    CheckConstraint("privacy_level IN ('private', 'friends', 'public')", name="ck_users_privacy_level"),
)

auth_sessions = Table(
    "auth_sessions",
    metadata,
    Column("session_token", Text, primary_key=True),
    Column("user_id", Text, ForeignKey("users.id", ondelete="CASCADE"), nullable=False),
    Column("created_at_utc", Text, nullable=False),
    Column("expires_at_utc", Text, nullable=False),
)
Index("ix_auth_sessions_user", auth_sessions.c.user_id)

feed_items = Table(
    "feed_items",
    metadata,
    Column("id", Text, primary_key=True),
    Column("user_id", Text, ForeignKey("users.id", ondelete="CASCADE"), nullable=False),
    Column("type", Text, nullable=False),
    Column("content_json", Text, nullable=False),
    Column("dedupe_key", Text, nullable=True, unique=True),
    Column("created_at_utc", Text, nullable=False),
)
Index("ix_feed_items_created", feed_items.c.created_at_utc)
Index("ix_feed_items_user_created", feed_items.c.user_id, feed_items.c.created_at_utc)

comments = Table(
    "comments",
    metadata,
    Column("id", Text, primary_key=True),
    Column("feed_item_id", Text, ForeignKey("feed_items.id", ondelete="CASCADE"), nullable=False),
    Column("user_id", Text, ForeignKey("users.id", ondelete="CASCADE"), nullable=False),
    Column("content", Text, nullable=False),
    Column("created_at_utc", Text, nullable=False),
)
Index("ix_comments_feed_item", comments.c.feed_item_id, comments.c.created_at_utc)

comment_likes = Table(
    "comment_likes",
    metadata,
    Column("comment_id", Text, ForeignKey("comments.id", ondelete="CASCADE"), nullable=False),
    Column("user_id", Text, ForeignKey("users.id", ondelete="CASCADE"), nullable=False),
    Column("created_at_utc", Text, nullable=False),
    PrimaryKeyConstraint("comment_id", "user_id"),
)

reactions = Table(
    "reactions",
    metadata,
    Column("id", Text, primary_key=True),
    Column("feed_item_id", Text, ForeignKey("feed_items.id", ondelete="CASCADE"), nullable=False),
    Column("user_id", Text, ForeignKey("users.id", ondelete="CASCADE"), nullable=False),
    Column("emoji", Text, nullable=False),
    Column("created_at_utc", Text, nullable=False),
    UniqueConstraint("feed_item_id", "user_id", "emoji", name="uq_reactions_item_user_emoji"),
)

friends = Table(
    "friends",
    metadata,
    Column("user_id", Text, ForeignKey("users.id", ondelete="CASCADE"), nullable=False),
    Column("friend_id", Text, ForeignKey("users.id", ondelete="CASCADE"), nullable=False),
    Column("created_at_utc", Text, nullable=False),
    PrimaryKeyConstraint("user_id", "friend_id"),
    CheckConstraint("user_id <> friend_id", name="ck_friends_not_self"),
)

friend_requests = Table(
    "friend_requests",
    metadata,
    Column("id", Text, primary_key=True),
    Column("sender_id", Text, ForeignKey("users.id", ondelete="CASCADE"), nullable=False),
    Column("receiver_id", Text, ForeignKey("users.id", ondelete="CASCADE"), nullable=False),
    Column("status", Text, nullable=False, server_default="pending"),
    Column("created_at_utc", Text, nullable=False),
    Column("updated_at_utc", Text, nullable=False),
    CheckConstraint("sender_id <> receiver_id", name="ck_friend_requests_not_self"),
    CheckConstraint("status IN ('pending', 'accepted', 'declined')", name="ck_friend_requests_status"),
)
# One pending request per ordered pair
Index(
    "uq_friend_requests_pending_pair",
    friend_requests.c.sender_id,
    friend_requests.c.receiver_id,
    unique=True,
    sqlite_where=text("status = 'pending'"),
    postgresql_where=text("status = 'pending'"),
)
Index("ix_friend_requests_receiver", friend_requests.c.receiver_id, friend_requests.c.status)

listening_history = Table(
    "listening_history",
    metadata,
    Column("id", Text, primary_key=True),
    Column("user_id", Text, ForeignKey("users.id", ondelete="CASCADE"), nullable=False),
    Column("track_id", Text, nullable=False),
    Column("track_name", Text, nullable=False),
    Column("artist_name", Text, nullable=True),
    Column("album_name", Text, nullable=True),
    Column("album_art_url", Text, nullable=True),
    Column("track_uri", Text, nullable=True),
    Column("duration_ms", Integer, nullable=True),
    Column("played_at_utc", Text, nullable=False),
    UniqueConstraint("user_id", "played_at_utc", name="uq_listening_history_user_played"),
)
Index("ix_listening_history_user_played", listening_history.c.user_id, listening_history.c.played_at_utc)

push_subscriptions = Table(
    "push_subscriptions",
    metadata,
    Column("id", Text, primary_key=True),
    Column("user_id", Text, ForeignKey("users.id", ondelete="CASCADE"), nullable=False),
    Column("endpoint", Text, nullable=False, unique=True),
    Column("p256dh", Text, nullable=False),
    Column("auth", Text, nullable=False),
    Column("created_at_utc", Text, nullable=False),
)
Index("ix_push_subscriptions_user", push_subscriptions.c.user_id)


def ensure_schema(engine: Optional[Engine] = None) -> None:
    """Create any missing tables (idempotent)."""
    metadata.create_all(engine or get_engine())
