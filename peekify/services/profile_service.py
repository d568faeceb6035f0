"""
Service for user profiles and user search.
"""
from typing import Any, Dict, Optional, Union

from pydantic import ValidationError
from sqlalchemy.exc import IntegrityError

from db.postgres_db import is_unique_violation
from models.profile import ProfileUpdate, first_error_message
from repositories.users_repo import UsersRepository
from utils.errors import BadRequestError, NotFoundError
from utils.logger import get_logger

logger = get_logger(__name__)

MIN_SEARCH_LENGTH = 2
MAX_SEARCH_LIMIT = 50


def format_private_profile(user: Dict[str, Any]) -> Dict[str, Any]:
    return {
        "id": user["id"],
        "spotifyId": user.get("spotify_id"),
        "email": user.get("email"),
        "displayName": user.get("display_name"),
        "profilePicture": user.get("profile_picture_url"),
        "username": user.get("username"),
        "bio": user.get("bio"),
        "privacyLevel": user.get("privacy_level"),
        "timezone": user.get("timezone"),
        "notificationTime": user.get("notification_time"),
        "createdAt": user.get("created_at_utc"),
    }


def format_public_profile(user: Dict[str, Any]) -> Dict[str, Any]:
    return {
        "id": user["id"],
        "displayName": user.get("display_name"),
        "profilePicture": user.get("profile_picture_url"),
        "username": user.get("username"),
        "bio": user.get("bio"),
        "privacyLevel": user.get("privacy_level"),
        "createdAt": user.get("created_at_utc"),
    }


class ProfileService:
    """Service for reading and updating user profiles."""

    def __init__(self, users_repo: UsersRepository):
        self.users_repo = users_repo

    def get_profile(self, user_id: str) -> Dict[str, Any]:
        user = self.users_repo.get_profile(user_id)
        if not user:
            raise NotFoundError("User not found")
        return format_private_profile(user)

    def get_public_profile(self, user_id: str) -> Dict[str, Any]:
        user = self.users_repo.get_public_profile(user_id)
        if not user:
            raise NotFoundError("User not found")
        return format_public_profile(user)

    def update_profile(self, user_id: str, update: Union[ProfileUpdate, Dict[str, Any]]) -> Dict[str, Any]:
        """
        Apply a partial update. Every present field is validated before anything is written.
        """
        if not isinstance(update, ProfileUpdate):
            try:
                update = ProfileUpdate.model_validate(update or {})
            except ValidationError as e:
                raise BadRequestError(first_error_message(e)) from e

        fields = update.model_dump(exclude_unset=True)
        if not fields:
            raise BadRequestError("No fields to update")

        username = fields.get("username")
        if username and self.users_repo.is_username_taken(username, exclude_user_id=user_id):
            raise BadRequestError("Username is already taken")

        try:
            user = self.users_repo.update_profile(user_id, fields)
        except IntegrityError as e:
            if is_unique_violation(e):
                raise BadRequestError("Username is already taken") from e
            raise
        if not user:
            raise NotFoundError("User not found")

        logger.info(f"User profile updated: {user_id} ({', '.join(sorted(fields))})")
        return format_private_profile(user)

    def search_users(self, query: Optional[str], limit: int = 20) -> Dict[str, Any]:
        term = (query or "").strip()
        if len(term) < MIN_SEARCH_LENGTH:
            raise BadRequestError("Search query must be at least 2 characters")
        limit = max(1, min(int(limit), MAX_SEARCH_LIMIT))

        users = [
            {
                "id": row["id"],
                "displayName": row.get("display_name"),
                "profilePicture": row.get("profile_picture_url"),
                "username": row.get("username"),
                "bio": row.get("bio"),
            }
            for row in self.users_repo.search_users(term, limit=limit)
        ]
        return {"users": users, "count": len(users), "query": query}
