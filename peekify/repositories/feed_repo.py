import json
import uuid
from typing import Any, Dict, List, Optional

from sqlalchemy import text

from db.postgres_db import get_db_session
from utils.time_utils import utc_now_iso

FEED_ITEM_SELECT = """
    SELECT
        f.id,
        f.user_id,
        f.type,
        f.content_json,
        f.created_at_utc,
        u.display_name,
        u.profile_picture_url
    FROM feed_items f
    JOIN users u ON f.user_id = u.id
"""


def _parse_feed_row(row) -> Dict[str, Any]:
    item = dict(row._mapping)
    try:
        item["content"] = json.loads(item.pop("content_json") or "null")
    except (TypeError, ValueError):
        item["content"] = None
    return item


class FeedRepository:
    """Repository for feed items. Items are immutable once created."""

    def create_feed_item(
        self,
        user_id: str,
        item_type: str,
        content: Any,
        dedupe_key: Optional[str] = None,
    ) -> Optional[str]:
        """
        Create a feed item.
        Returns the new id, or None when dedupe_key already belongs to another item.
        """
        feed_item_id = str(uuid.uuid4())
        with get_db_session() as session:
            result = session.execute(
                text("""
                    INSERT INTO feed_items(id, user_id, type, content_json, dedupe_key, created_at_utc)
                    VALUES (:id, :user_id, :type, :content_json, :dedupe_key, :created_at_utc)
                    ON CONFLICT DO NOTHING;
                """),
                {
                    "id": feed_item_id,
                    "user_id": user_id,
                    "type": item_type,
                    "content_json": json.dumps(content, ensure_ascii=False),
                    "dedupe_key": dedupe_key,
                    "created_at_utc": utc_now_iso(),
                },
            )
            if result.rowcount == 0:
                return None
        return feed_item_id

    def get_feed_item(self, feed_item_id: str) -> Optional[Dict[str, Any]]:
        """Get a feed item joined with its owner's public fields."""
        with get_db_session() as session:
            row = session.execute(
                text(FEED_ITEM_SELECT + " WHERE f.id = :id LIMIT 1;"),
                {"id": feed_item_id},
            ).fetchone()
            return _parse_feed_row(row) if row else None

    def get_feed_item_by_dedupe_key(self, dedupe_key: str) -> Optional[Dict[str, Any]]:
        with get_db_session() as session:
            row = session.execute(
                text(FEED_ITEM_SELECT + " WHERE f.dedupe_key = :dedupe_key LIMIT 1;"),
                {"dedupe_key": dedupe_key},
            ).fetchone()
            return _parse_feed_row(row) if row else None

    def dedupe_key_exists(self, dedupe_key: str) -> bool:
        with get_db_session() as session:
            row = session.execute(
                text("SELECT 1 FROM feed_items WHERE dedupe_key = :dedupe_key LIMIT 1;"),
                {"dedupe_key": dedupe_key},
            ).fetchone()
            return bool(row)

    def get_owner_id(self, feed_item_id: str) -> Optional[str]:
        with get_db_session() as session:
            owner = session.execute(
                text("SELECT user_id FROM feed_items WHERE id = :id LIMIT 1;"),
                {"id": feed_item_id},
            ).scalar()
            return str(owner) if owner is not None else None

    def list_feed_items(
        self,
        user_id: Optional[str] = None,
        limit: int = 50,
        offset: int = 0,
    ) -> List[Dict[str, Any]]:
        """
        List feed items newest first, with comment and reaction counts.
        user_id restricts the list to one owner.
        """
        where = "WHERE f.user_id = :user_id" if user_id else ""
        with get_db_session() as session:
            rows = session.execute(
                text(f"""
                    SELECT
                        f.id,
                        f.user_id,
                        f.type,
                        f.content_json,
                        f.created_at_utc,
                        u.display_name,
                        u.profile_picture_url,
                        (SELECT COUNT(*) FROM comments c WHERE c.feed_item_id = f.id) AS comment_count,
                        (SELECT COUNT(*) FROM reactions r WHERE r.feed_item_id = f.id) AS reaction_count
                    FROM feed_items f
                    JOIN users u ON f.user_id = u.id
                    {where}
                    ORDER BY f.created_at_utc DESC, f.id DESC
                    LIMIT :limit OFFSET :offset;
                """),
                {"user_id": user_id, "limit": limit, "offset": offset},
            ).fetchall()
            return [_parse_feed_row(row) for row in rows]
