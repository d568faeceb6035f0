import uuid
from typing import Any, Dict, List, Optional

from sqlalchemy import text

from db.postgres_db import get_db_session
from utils.time_utils import utc_now_iso


class ReactionsRepository:
    """Repository for emoji reactions on feed items."""

    def add_reaction(self, feed_item_id: str, user_id: str, emoji: str) -> Optional[str]:
        """
        Add a reaction.
        Returns the reaction id, or None if this user already reacted with this emoji.
        """
        reaction_id = str(uuid.uuid4())
        with get_db_session() as session:
            result = session.execute(
                text("""
                    INSERT INTO reactions(id, feed_item_id, user_id, emoji, created_at_utc)
                    VALUES (:id, :feed_item_id, :user_id, :emoji, :created_at_utc)
                    ON CONFLICT (feed_item_id, user_id, emoji) DO NOTHING;
                """),
                {
                    "id": reaction_id,
                    "feed_item_id": feed_item_id,
                    "user_id": user_id,
                    "emoji": emoji,
                    "created_at_utc": utc_now_iso(),
                },
            )
            if result.rowcount == 0:
                return None
        return reaction_id

    def remove_reactions(self, feed_item_id: str, user_id: str) -> int:
        """Remove every reaction the user left on the item. Returns rows removed."""
        with get_db_session() as session:
            result = session.execute(
                text("DELETE FROM reactions WHERE feed_item_id = :feed_item_id AND user_id = :user_id;"),
                {"feed_item_id": feed_item_id, "user_id": user_id},
            )
            return result.rowcount or 0

    def list_reactions(self, feed_item_id: str) -> List[Dict[str, Any]]:
        with get_db_session() as session:
            rows = session.execute(
                text("""
                    SELECT r.id, r.emoji, r.user_id, r.created_at_utc,
                           u.display_name, u.profile_picture_url, u.username
                    FROM reactions r
                    JOIN users u ON r.user_id = u.id
                    WHERE r.feed_item_id = :feed_item_id
                    ORDER BY r.created_at_utc DESC, r.id DESC;
                """),
                {"feed_item_id": feed_item_id},
            ).fetchall()
            return [dict(row._mapping) for row in rows]
