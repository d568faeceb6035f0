"""
Feed endpoints: feed items, their comments and their reactions.
"""

from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query

from services.feed_service import FeedService
from utils.errors import AppError
from utils.logger import get_logger
from ..dependencies import get_current_user, get_feed_service
from ..schemas import AddCommentRequest, AddReactionRequest, CreateFeedItemRequest

router = APIRouter(prefix="/feed", tags=["feed"])
logger = get_logger(__name__)


@router.get("")
async def get_feed(
    user_id: Optional[str] = Query(None, alias="userId"),
    limit: int = Query(50),
    offset: int = Query(0),
    current_user_id: str = Depends(get_current_user),
    feed_service: FeedService = Depends(get_feed_service),
):
    """Feed items newest first; userId restricts to one user's items."""
    try:
        result = feed_service.list_feed(user_id=user_id, limit=limit, offset=offset)
        return {"success": True, **result}
    except AppError:
        raise
    except Exception as e:
        logger.exception(f"Error getting feed: {e}")
        raise HTTPException(status_code=500, detail="Failed to get feed")


@router.post("", status_code=201)
async def create_feed_item(
    body: CreateFeedItemRequest,
    user_id: str = Depends(get_current_user),
    feed_service: FeedService = Depends(get_feed_service),
):
    try:
        feed_item = feed_service.create_feed_item(user_id, body.type, body.content)
        return {"success": True, "feedItem": feed_item}
    except AppError:
        raise
    except Exception as e:
        logger.exception(f"Error creating feed item: {e}")
        raise HTTPException(status_code=500, detail="Failed to create feed item")


@router.get("/{feed_item_id}/comments")
async def get_comments(
    feed_item_id: str,
    user_id: str = Depends(get_current_user),
    feed_service: FeedService = Depends(get_feed_service),
):
    try:
        comments = feed_service.get_comments(feed_item_id, viewer_id=user_id)
        return {"success": True, "comments": comments}
    except AppError:
        raise
    except Exception as e:
        logger.exception(f"Error getting comments for {feed_item_id}: {e}")
        raise HTTPException(status_code=500, detail="Failed to get comments")


@router.post("/{feed_item_id}/comments", status_code=201)
async def add_comment(
    feed_item_id: str,
    body: AddCommentRequest,
    user_id: str = Depends(get_current_user),
    feed_service: FeedService = Depends(get_feed_service),
):
    try:
        comment = feed_service.add_comment(feed_item_id, user_id, body.content)
        return {"success": True, "comment": comment}
    except AppError:
        raise
    except Exception as e:
        logger.exception(f"Error adding comment to {feed_item_id}: {e}")
        raise HTTPException(status_code=500, detail="Failed to add comment")


@router.post("/{feed_item_id}/reactions", status_code=201)
async def add_reaction(
    feed_item_id: str,
    body: AddReactionRequest,
    user_id: str = Depends(get_current_user),
    feed_service: FeedService = Depends(get_feed_service),
):
    try:
        reaction = feed_service.add_reaction(feed_item_id, user_id, body.emoji)
        return {"success": True, "reaction": reaction}
    except AppError:
        raise
    except Exception as e:
        logger.exception(f"Error adding reaction to {feed_item_id}: {e}")
        raise HTTPException(status_code=500, detail="Failed to add reaction")


@router.delete("/{feed_item_id}/reactions")
async def remove_reaction(
    feed_item_id: str,
    user_id: str = Depends(get_current_user),
    feed_service: FeedService = Depends(get_feed_service),
):
    try:
        feed_service.remove_reaction(feed_item_id, user_id)
        return {"success": True, "message": "Reaction removed"}
    except AppError:
        raise
    except Exception as e:
        logger.exception(f"Error removing reaction from {feed_item_id}: {e}")
        raise HTTPException(status_code=500, detail="Failed to remove reaction")


@router.get("/{feed_item_id}/reactions")
async def get_reactions(
    feed_item_id: str,
    user_id: str = Depends(get_current_user),
    feed_service: FeedService = Depends(get_feed_service),
):
    try:
        return {"success": True, **feed_service.get_reactions(feed_item_id)}
    except AppError:
        raise
    except Exception as e:
        logger.exception(f"Error getting reactions for {feed_item_id}: {e}")
        raise HTTPException(status_code=500, detail="Failed to get reactions")
