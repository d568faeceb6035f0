import uuid
from typing import Any, Dict, List, Optional, Tuple

from sqlalchemy import text

from db.postgres_db import get_db_session, row_to_dict
from utils.time_utils import utc_now_iso


class CommentsRepository:
    """Repository for comments on feed items and the likes on those comments."""

    def add_comment(self, feed_item_id: str, user_id: str, content: str) -> Dict[str, Any]:
        """Insert a comment and return it joined with the author's profile fields."""
        comment_id = str(uuid.uuid4())
        with get_db_session() as session:
            session.execute(
                text("""
                    INSERT INTO comments(id, feed_item_id, user_id, content, created_at_utc)
                    VALUES (:id, :feed_item_id, :user_id, :content, :created_at_utc);
                """),
                {
                    "id": comment_id,
                    "feed_item_id": feed_item_id,
                    "user_id": user_id,
                    "content": content,
                    "created_at_utc": utc_now_iso(),
                },
            )
            row = session.execute(
                text("""
                    SELECT c.id, c.feed_item_id, c.user_id, c.content, c.created_at_utc,
                           u.display_name, u.profile_picture_url, u.username
                    FROM comments c
                    JOIN users u ON c.user_id = u.id
                    WHERE c.id = :id;
                """),
                {"id": comment_id},
            ).fetchone()
            return row_to_dict(row)

    def get_comment(self, comment_id: str) -> Optional[Dict[str, Any]]:
        with get_db_session() as session:
            row = session.execute(
                text("""
                    SELECT id, feed_item_id, user_id, content, created_at_utc
                    FROM comments WHERE id = :id LIMIT 1;
                """),
                {"id": comment_id},
            ).fetchone()
            return row_to_dict(row)

    def list_comments(self, feed_item_id: str, viewer_id: Optional[str] = None) -> List[Dict[str, Any]]:
        """
        Comments on a feed item, oldest first, with like counts.
        When viewer_id is given each row also carries is_liked (0/1).
        """
        is_liked = (
            "EXISTS(SELECT 1 FROM comment_likes cl2 WHERE cl2.comment_id = c.id AND cl2.user_id = :viewer_id)"
            if viewer_id
            else "NULL"
        )
        with get_db_session() as session:
            rows = session.execute(
                text(f"""
                    SELECT
                        c.id, c.feed_item_id, c.user_id, c.content, c.created_at_utc,
                        u.display_name, u.profile_picture_url, u.username,
                        (SELECT COUNT(*) FROM comment_likes cl WHERE cl.comment_id = c.id) AS like_count,
                        {is_liked} AS is_liked
                    FROM comments c
                    JOIN users u ON c.user_id = u.id
                    WHERE c.feed_item_id = :feed_item_id
                    ORDER BY c.created_at_utc ASC, c.id ASC;
                """),
                {"feed_item_id": feed_item_id, "viewer_id": viewer_id},
            ).fetchall()
            return [dict(row._mapping) for row in rows]

    def delete_comment_by_author(self, comment_id: str, user_id: str) -> bool:
        """Delete the comment only if user_id wrote it. Likes go with it (ON DELETE CASCADE)."""
        with get_db_session() as session:
            result = session.execute(
                text("DELETE FROM comments WHERE id = :id AND user_id = :user_id;"),
                {"id": comment_id, "user_id": user_id},
            )
            return result.rowcount > 0

    def toggle_like(self, comment_id: str, user_id: str) -> Tuple[bool, int]:
        """
        Flip the caller's like on a comment in a single transaction.

        Returns:
            (liked, like_count) after the toggle
        """
        with get_db_session() as session:
            deleted = session.execute(
                text("DELETE FROM comment_likes WHERE comment_id = :comment_id AND user_id = :user_id;"),
                {"comment_id": comment_id, "user_id": user_id},
            ).rowcount

            liked = False
            if not deleted:
                # A concurrent toggle may have inserted first; the like exists either way.
                session.execute(
                    text("""
                        INSERT INTO comment_likes(comment_id, user_id, created_at_utc)
                        VALUES (:comment_id, :user_id, :created_at_utc)
                        ON CONFLICT DO NOTHING;
                    """),
                    {"comment_id": comment_id, "user_id": user_id, "created_at_utc": utc_now_iso()},
                )
                liked = True

            count = session.execute(
                text("SELECT COUNT(*) FROM comment_likes WHERE comment_id = :comment_id;"),
                {"comment_id": comment_id},
            ).scalar()
            return liked, int(count or 0)

    def list_likes(self, comment_id: str) -> List[Dict[str, Any]]:
        """Users who liked a comment, most recent like first."""
        with get_db_session() as session:
            rows = session.execute(
                text("""
                    SELECT u.id AS user_id, u.display_name, u.profile_picture_url, u.username,
                           cl.created_at_utc AS liked_at
                    FROM comment_likes cl
                    JOIN users u ON cl.user_id = u.id
                    WHERE cl.comment_id = :comment_id
                    ORDER BY cl.created_at_utc DESC;
                """),
                {"comment_id": comment_id},
            ).fetchall()
            return [dict(row._mapping) for row in rows]
