"""
Avatar service for storing uploaded profile pictures.
"""
import os
import uuid
from typing import Optional

from repositories.users_repo import UsersRepository
from utils.errors import BadRequestError
from utils.logger import get_logger

logger = get_logger(__name__)

MAX_AVATAR_BYTES = 5 * 1024 * 1024

# Raster formats only, no SVG
ALLOWED_IMAGE_TYPES = {
    "image/png": "png",
    "image/jpeg": "jpg",
    "image/gif": "gif",
    "image/webp": "webp",
}


class AvatarService:
    """Service for managing user avatar/profile pictures."""

    def __init__(self, media_dir: str, public_base_url: str, users_repo: UsersRepository):
        self.media_dir = media_dir
        self.public_base_url = public_base_url.rstrip("/")
        self.users_repo = users_repo
        self.avatars_dir = os.path.join(media_dir, "avatars")
        # Ensure avatars directory exists
        os.makedirs(self.avatars_dir, exist_ok=True)

    def save_avatar(self, user_id: str, content_type: Optional[str], data: Optional[bytes]) -> str:
        """
        Store an uploaded image and point the user's profile picture at it.

        Returns:
            Public URL of the stored image
        """
        if data is None:
            raise BadRequestError("No file uploaded")
        content_type = (content_type or "").split(";", 1)[0].strip().lower()
        if content_type not in ALLOWED_IMAGE_TYPES:
            raise BadRequestError("Only image files are allowed")
        if len(data) > MAX_AVATAR_BYTES:
            raise BadRequestError("File too large (max 5MB)")
        if not data:
            raise BadRequestError("No file uploaded")

        file_name = f"{user_id}-{uuid.uuid4()}.{ALLOWED_IMAGE_TYPES[content_type]}"
        path = os.path.join(self.avatars_dir, file_name)
        with open(path, "wb") as f:
            f.write(data)

        url = f"{self.public_base_url}/media/avatars/{file_name}"
        self.users_repo.set_profile_picture(user_id, url)
        logger.info(f"Profile picture uploaded for user {user_id}: {file_name}")
        return url
