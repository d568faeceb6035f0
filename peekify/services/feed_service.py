"""
Service for the social feed: feed items, comments, comment likes and reactions.

Results are returned in the JSON shape the web client consumes (camelCase).
Realtime events and push notifications are queued on the dispatcher only
after the corresponding write has committed.
"""
from typing import Any, Dict, List, Optional, Tuple

from sqlalchemy.exc import IntegrityError

from db.postgres_db import is_unique_violation
from repositories.comments_repo import CommentsRepository
from repositories.feed_repo import FeedRepository
from repositories.reactions_repo import ReactionsRepository
from repositories.users_repo import UsersRepository
from services.notification_dispatcher import FEED_ROOM, NotificationDispatcher, feed_item_room, user_room
from utils.errors import BadRequestError, ForbiddenError, NotFoundError
from utils.logger import get_logger

logger = get_logger(__name__)

MAX_FEED_LIMIT = 100


def _format_feed_item(item: Dict[str, Any]) -> Dict[str, Any]:
    formatted = {
        "id": item["id"],
        "userId": item["user_id"],
        "type": item["type"],
        "content": item["content"],
        "createdAt": item["created_at_utc"],
        "user": {
            "displayName": item.get("display_name"),
            "profilePicture": item.get("profile_picture_url"),
        },
    }
    if "comment_count" in item:
        formatted["stats"] = {
            "comments": int(item["comment_count"] or 0),
            "reactions": int(item["reaction_count"] or 0),
        }
    return formatted


def _format_comment(row: Dict[str, Any]) -> Dict[str, Any]:
    comment = {
        "id": row["id"],
        "content": row["content"],
        "createdAt": row["created_at_utc"],
        "userId": row["user_id"],
        "user": {
            "displayName": row.get("display_name"),
            "profilePicture": row.get("profile_picture_url"),
            "username": row.get("username"),
        },
    }
    if "like_count" in row:
        comment["likeCount"] = int(row["like_count"] or 0)
        if row.get("is_liked") is not None:
            comment["isLiked"] = bool(row["is_liked"])
    return comment


def _format_reaction_user(row: Dict[str, Any]) -> Dict[str, Any]:
    return {
        "id": row["user_id"],
        "displayName": row.get("display_name"),
        "profilePicture": row.get("profile_picture_url"),
        "username": row.get("username"),
    }


class FeedService:
    def __init__(
        self,
        feed_repo: FeedRepository,
        comments_repo: CommentsRepository,
        reactions_repo: ReactionsRepository,
        users_repo: UsersRepository,
        dispatcher: Optional[NotificationDispatcher] = None,
    ):
        self.feed_repo = feed_repo
        self.comments_repo = comments_repo
        self.reactions_repo = reactions_repo
        self.users_repo = users_repo
        self.dispatcher = dispatcher

    def _require_owner(self, feed_item_id: str) -> str:
        owner_id = self.feed_repo.get_owner_id(feed_item_id)
        if owner_id is None:
            raise NotFoundError("Feed item not found")
        return owner_id

    # ---- feed items ----

    def list_feed(self, user_id: Optional[str] = None, limit: int = 50, offset: int = 0) -> Dict[str, Any]:
        limit = max(1, min(int(limit), MAX_FEED_LIMIT))
        offset = max(0, int(offset))
        items = self.feed_repo.list_feed_items(user_id=user_id, limit=limit, offset=offset)
        feed_items = [_format_feed_item(item) for item in items]
        return {
            "feedItems": feed_items,
            "pagination": {"limit": limit, "offset": offset, "count": len(feed_items)},
        }

    def create_feed_item(
        self,
        owner_id: str,
        item_type: Optional[str],
        content: Any,
        dedupe_key: Optional[str] = None,
    ) -> Dict[str, Any]:
        """
        Create a feed item for owner_id and announce it.
        With a dedupe_key that already exists the existing item is returned unchanged.
        """
        feed_item, _ = self.create_feed_item_once(owner_id, item_type, content, dedupe_key=dedupe_key)
        return feed_item

    def create_feed_item_once(
        self,
        owner_id: str,
        item_type: Optional[str],
        content: Any,
        dedupe_key: Optional[str] = None,
    ) -> Tuple[Dict[str, Any], bool]:
        """Like create_feed_item, also reporting whether a new row was inserted."""
        if not item_type or content is None:
            raise BadRequestError("Type and content are required")

        feed_item_id = self.feed_repo.create_feed_item(owner_id, item_type, content, dedupe_key=dedupe_key)
        if feed_item_id is None:
            existing = self.feed_repo.get_feed_item_by_dedupe_key(dedupe_key)
            logger.info(f"Feed item for {dedupe_key} already exists")
            return _format_feed_item(existing), False

        feed_item = _format_feed_item(self.feed_repo.get_feed_item(feed_item_id))
        if self.dispatcher:
            self.dispatcher.publish("feed:update", feed_item, [FEED_ROOM, user_room(owner_id)])
        logger.info(f"Feed item created: {feed_item_id} by user {owner_id}")
        return feed_item, True

    # ---- comments ----

    def get_comments(self, feed_item_id: str, viewer_id: Optional[str] = None) -> List[Dict[str, Any]]:
        self._require_owner(feed_item_id)
        return [_format_comment(row) for row in self.comments_repo.list_comments(feed_item_id, viewer_id)]

    def add_comment(self, feed_item_id: str, user_id: str, content: Optional[str]) -> Dict[str, Any]:
        content = (content or "").strip()
        if not content:
            raise BadRequestError("Comment content is required")
        owner_id = self._require_owner(feed_item_id)

        comment = _format_comment(self.comments_repo.add_comment(feed_item_id, user_id, content))
        if self.dispatcher:
            self.dispatcher.publish("comment:new", {**comment, "feedItemId": feed_item_id}, [feed_item_room(feed_item_id)])
            if owner_id != user_id:
                author = comment["user"]["displayName"] or "Someone"
                self.dispatcher.notify(
                    owner_id,
                    title="New comment",
                    body=f"{author} commented on your song",
                    data={"type": "comment", "feedItemId": feed_item_id, "commentId": comment["id"]},
                )
        logger.info(f"Comment added: {comment['id']} on {feed_item_id} by user {user_id}")
        return comment

    def delete_comment(self, comment_id: str, user_id: str) -> None:
        comment = self.comments_repo.get_comment(comment_id)
        if not comment:
            raise NotFoundError("Comment not found")
        if comment["user_id"] != user_id:
            raise ForbiddenError("You can only delete your own comments")
        if not self.comments_repo.delete_comment_by_author(comment_id, user_id):
            # Removed between the check and the delete
            raise NotFoundError("Comment not found")
        logger.info(f"Comment deleted: {comment_id} by user {user_id}")

    def toggle_comment_like(self, comment_id: str, user_id: str) -> Dict[str, Any]:
        if not self.comments_repo.get_comment(comment_id):
            raise NotFoundError("Comment not found")
        try:
            liked, like_count = self.comments_repo.toggle_like(comment_id, user_id)
        except IntegrityError as e:
            # The comment was deleted mid-toggle (foreign key)
            raise NotFoundError("Comment not found") from e
        logger.info(f"Comment {'liked' if liked else 'unliked'}: {comment_id} by user {user_id}")
        return {"liked": liked, "likeCount": like_count}

    def get_comment_likes(self, comment_id: str) -> Dict[str, Any]:
        if not self.comments_repo.get_comment(comment_id):
            raise NotFoundError("Comment not found")
        likes = [
            {
                "userId": row["user_id"],
                "displayName": row.get("display_name"),
                "profilePicture": row.get("profile_picture_url"),
                "username": row.get("username"),
                "likedAt": row["liked_at"],
            }
            for row in self.comments_repo.list_likes(comment_id)
        ]
        return {"likes": likes, "count": len(likes)}

    # ---- reactions ----

    def add_reaction(self, feed_item_id: str, user_id: str, emoji: Optional[str]) -> Dict[str, Any]:
        emoji = (emoji or "").strip()
        if not emoji:
            raise BadRequestError("Emoji is required")
        owner_id = self._require_owner(feed_item_id)

        try:
            reaction_id = self.reactions_repo.add_reaction(feed_item_id, user_id, emoji)
        except IntegrityError as e:
            if is_unique_violation(e):
                raise BadRequestError("You already reacted with this emoji") from e
            raise
        if reaction_id is None:
            raise BadRequestError("You already reacted with this emoji")

        reaction = {"id": reaction_id, "emoji": emoji, "userId": user_id}
        if self.dispatcher:
            user = self.users_repo.get_public_profile(user_id) or {}
            event = {
                **reaction,
                "feedItemId": feed_item_id,
                "user": {
                    "displayName": user.get("display_name"),
                    "profilePicture": user.get("profile_picture_url"),
                },
            }
            self.dispatcher.publish("reaction:new", event, [feed_item_room(feed_item_id)])
            if owner_id != user_id:
                self.dispatcher.notify(
                    owner_id,
                    title="New reaction",
                    body=f"{user.get('display_name') or 'Someone'} reacted {emoji} to your song",
                    data={"type": "reaction", "feedItemId": feed_item_id, "reactionId": reaction_id},
                )
        logger.info(f"Reaction added: {emoji} on {feed_item_id} by user {user_id}")
        return reaction

    def remove_reaction(self, feed_item_id: str, user_id: str) -> int:
        self._require_owner(feed_item_id)
        removed = self.reactions_repo.remove_reactions(feed_item_id, user_id)
        if not removed:
            raise NotFoundError("No reaction found to remove")
        logger.info(f"Reaction removed from {feed_item_id} by user {user_id}")
        return removed

    def get_reactions(self, feed_item_id: str) -> Dict[str, Any]:
        self._require_owner(feed_item_id)
        reactions = [
            {
                "id": row["id"],
                "emoji": row["emoji"],
                "createdAt": row["created_at_utc"],
                "user": _format_reaction_user(row),
            }
            for row in self.reactions_repo.list_reactions(feed_item_id)
        ]

        # dicts keep insertion order, so the summary follows the reaction list
        summary: Dict[str, Dict[str, Any]] = {}
        for reaction in reactions:
            entry = summary.setdefault(reaction["emoji"], {"emoji": reaction["emoji"], "count": 0, "users": []})
            entry["count"] += 1
            entry["users"].append(reaction["user"])

        return {"reactions": reactions, "summary": list(summary.values()), "totalCount": len(reactions)}
