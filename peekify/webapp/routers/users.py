"""
User profile and user search endpoints.
"""

from typing import Any, Dict, Optional

from fastapi import APIRouter, Body, Depends, File, HTTPException, Query, UploadFile

from services.avatar_service import MAX_AVATAR_BYTES, AvatarService
from services.profile_service import ProfileService
from utils.errors import AppError, BadRequestError
from utils.logger import get_logger
from ..dependencies import get_avatar_service, get_current_user, get_profile_service

router = APIRouter(prefix="/users", tags=["users"])
logger = get_logger(__name__)


@router.get("/me")
async def get_my_profile(
    user_id: str = Depends(get_current_user),
    profile_service: ProfileService = Depends(get_profile_service),
):
    try:
        return {"success": True, "user": profile_service.get_profile(user_id)}
    except AppError:
        raise
    except Exception as e:
        logger.exception(f"Error getting profile for user {user_id}: {e}")
        raise HTTPException(status_code=500, detail="Failed to get profile")


@router.patch("/me")
async def update_my_profile(
    payload: Dict[str, Any] = Body(...),
    user_id: str = Depends(get_current_user),
    profile_service: ProfileService = Depends(get_profile_service),
):
    """
    Partial profile update. Accepts any of displayName, email, username, bio,
    privacyLevel, timezone, notificationTime.
    """
    try:
        return {"success": True, "user": profile_service.update_profile(user_id, payload)}
    except AppError:
        raise
    except Exception as e:
        logger.exception(f"Error updating profile for user {user_id}: {e}")
        raise HTTPException(status_code=500, detail="Failed to update profile")


@router.post("/me/avatar")
async def upload_avatar(
    avatar: Optional[UploadFile] = File(None),
    user_id: str = Depends(get_current_user),
    avatar_service: AvatarService = Depends(get_avatar_service),
):
    """Upload a profile picture (multipart field "avatar", images only, 5MB max)."""
    try:
        if avatar is None:
            raise BadRequestError("No file uploaded")
        # Read one byte past the limit so oversize uploads are detected without buffering them fully
        data = await avatar.read(MAX_AVATAR_BYTES + 1)
        url = avatar_service.save_avatar(user_id, avatar.content_type, data)
        return {"success": True, "profilePicture": url}
    except AppError:
        raise
    except Exception as e:
        logger.exception(f"Error uploading avatar for user {user_id}: {e}")
        raise HTTPException(status_code=500, detail="Failed to upload avatar")


@router.get("/search")
async def search_users(
    q: Optional[str] = Query(None),
    limit: int = Query(20),
    user_id: str = Depends(get_current_user),
    profile_service: ProfileService = Depends(get_profile_service),
):
    try:
        return {"success": True, **profile_service.search_users(q, limit=limit)}
    except AppError:
        raise
    except Exception as e:
        logger.exception(f"Error searching users: {e}")
        raise HTTPException(status_code=500, detail="Failed to search users")


@router.get("/{target_user_id}")
async def get_user(
    target_user_id: str,
    user_id: str = Depends(get_current_user),
    profile_service: ProfileService = Depends(get_profile_service),
):
    try:
        return {"success": True, "user": profile_service.get_public_profile(target_user_id)}
    except AppError:
        raise
    except Exception as e:
        logger.exception(f"Error getting user {target_user_id}: {e}")
        raise HTTPException(status_code=500, detail="Failed to get user")
