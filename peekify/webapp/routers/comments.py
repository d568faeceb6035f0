"""
Comment endpoints (delete, like toggle, likers).
"""

from fastapi import APIRouter, Depends, HTTPException

from services.feed_service import FeedService
from utils.errors import AppError
from utils.logger import get_logger
from ..dependencies import get_current_user, get_feed_service

router = APIRouter(prefix="/comments", tags=["comments"])
logger = get_logger(__name__)


@router.delete("/{comment_id}")
async def delete_comment(
    comment_id: str,
    user_id: str = Depends(get_current_user),
    feed_service: FeedService = Depends(get_feed_service),
):
    """Delete a comment. Only its author may do this."""
    try:
        feed_service.delete_comment(comment_id, user_id)
        return {"success": True, "message": "Comment deleted"}
    except AppError:
        raise
    except Exception as e:
        logger.exception(f"Error deleting comment {comment_id}: {e}")
        raise HTTPException(status_code=500, detail="Failed to delete comment")


@router.post("/{comment_id}/like")
async def toggle_comment_like(
    comment_id: str,
    user_id: str = Depends(get_current_user),
    feed_service: FeedService = Depends(get_feed_service),
):
    try:
        return {"success": True, **feed_service.toggle_comment_like(comment_id, user_id)}
    except AppError:
        raise
    except Exception as e:
        logger.exception(f"Error toggling like on comment {comment_id}: {e}")
        raise HTTPException(status_code=500, detail="Failed to toggle like")


@router.get("/{comment_id}/likes")
async def get_comment_likes(
    comment_id: str,
    user_id: str = Depends(get_current_user),
    feed_service: FeedService = Depends(get_feed_service),
):
    try:
        return {"success": True, **feed_service.get_comment_likes(comment_id)}
    except AppError:
        raise
    except Exception as e:
        logger.exception(f"Error getting likes for comment {comment_id}: {e}")
        raise HTTPException(status_code=500, detail="Failed to get likes")
