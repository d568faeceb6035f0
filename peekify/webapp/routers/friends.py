"""
Friend request and friendship endpoints.
"""

from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query

from services.friends_service import FriendsService
from utils.errors import AppError
from utils.logger import get_logger
from ..dependencies import get_current_user, get_friends_service
from ..schemas import FriendRequestAction, FriendRequestCreate

router = APIRouter(prefix="/friends", tags=["friends"])
logger = get_logger(__name__)


@router.post("/request")
async def send_friend_request(
    body: FriendRequestCreate,
    user_id: str = Depends(get_current_user),
    friends_service: FriendsService = Depends(get_friends_service),
):
    """Send a friend request (accepts an opposite pending request instead, if any)."""
    try:
        result = friends_service.send_request(user_id, body.user_id)
        if result["autoAccepted"]:
            return {"success": True, "message": result["message"], "friendship": result["friendship"]}
        return {"success": True, "friendRequest": result["friendRequest"]}
    except AppError:
        raise
    except Exception as e:
        logger.exception(f"Error sending friend request: {e}")
        raise HTTPException(status_code=500, detail="Failed to send friend request")


@router.post("/accept")
async def accept_friend_request(
    body: FriendRequestAction,
    user_id: str = Depends(get_current_user),
    friends_service: FriendsService = Depends(get_friends_service),
):
    try:
        result = friends_service.accept_request(body.request_id, user_id)
        return {"success": True, "message": "Friend request accepted", **result}
    except AppError:
        raise
    except Exception as e:
        logger.exception(f"Error accepting friend request: {e}")
        raise HTTPException(status_code=500, detail="Failed to accept friend request")


@router.post("/decline")
async def decline_friend_request(
    body: FriendRequestAction,
    user_id: str = Depends(get_current_user),
    friends_service: FriendsService = Depends(get_friends_service),
):
    try:
        friends_service.decline_request(body.request_id, user_id)
        return {"success": True, "message": "Friend request declined"}
    except AppError:
        raise
    except Exception as e:
        logger.exception(f"Error declining friend request: {e}")
        raise HTTPException(status_code=500, detail="Failed to decline friend request")


@router.get("")
async def get_friends(
    user_id: str = Depends(get_current_user),
    friends_service: FriendsService = Depends(get_friends_service),
):
    try:
        return {"success": True, **friends_service.get_friends(user_id)}
    except AppError:
        raise
    except Exception as e:
        logger.exception(f"Error getting friends: {e}")
        raise HTTPException(status_code=500, detail="Failed to get friends")


@router.get("/requests")
async def get_friend_requests(
    request_type: Optional[str] = Query(None, alias="type"),
    user_id: str = Depends(get_current_user),
    friends_service: FriendsService = Depends(get_friends_service),
):
    """Pending requests; type=received|sent returns one side only."""
    try:
        return {"success": True, **friends_service.get_friend_requests(user_id, request_type)}
    except AppError:
        raise
    except Exception as e:
        logger.exception(f"Error getting friend requests: {e}")
        raise HTTPException(status_code=500, detail="Failed to get friend requests")


@router.delete("/{friend_id}")
async def remove_friend(
    friend_id: str,
    user_id: str = Depends(get_current_user),
    friends_service: FriendsService = Depends(get_friends_service),
):
    try:
        friends_service.remove_friend(user_id, friend_id)
        return {"success": True, "message": "Friend removed"}
    except AppError:
        raise
    except Exception as e:
        logger.exception(f"Error removing friend {friend_id}: {e}")
        raise HTTPException(status_code=500, detail="Failed to remove friend")
