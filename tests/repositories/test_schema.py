import pytest
from sqlalchemy import inspect

from db.schema import ensure_schema, metadata


@pytest.mark.repo
def test_ensure_schema_creates_every_table_and_is_idempotent(database):
    ensure_schema(database)
    tables = set(inspect(database).get_table_names())
    assert set(metadata.tables) <= tables
    assert {"users", "feed_items", "comments", "comment_likes", "reactions", "friends", "friend_requests",
            "listening_history", "auth_sessions", "push_subscriptions"} <= tables
