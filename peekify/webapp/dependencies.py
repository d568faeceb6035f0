"""
Shared dependencies for FastAPI routes.
"""

from typing import Optional

from fastapi import Cookie, Depends, Header, HTTPException, Request

from services.avatar_service import AvatarService
from services.feed_service import FeedService
from services.friends_service import FriendsService
from services.history_service import HistoryService
from services.profile_service import ProfileService
from services.spotify_auth import SpotifyAuthService
from utils.logger import get_logger

logger = get_logger(__name__)

SESSION_COOKIE = "session_token"


def extract_session_token(authorization: Optional[str], cookie_token: Optional[str]) -> Optional[str]:
    """Bearer token from the Authorization header, else the session cookie."""
    if authorization and authorization.startswith("Bearer "):
        token = authorization[7:].strip()
        if token:
            return token
    return cookie_token or None


async def get_current_user(
    request: Request,
    authorization: Optional[str] = Header(None),
    session_token: Optional[str] = Cookie(None),
) -> str:
    """
    Resolve the session and return the internal user id.
    Accepts `Authorization: Bearer <session_token>` or the session_token cookie.
    """
    token = extract_session_token(authorization, session_token)
    if not token:
        raise HTTPException(status_code=401, detail="Authentication required")

    session = request.app.state.auth_session_repo.get_session(token)
    if not session:
        raise HTTPException(status_code=401, detail="Invalid or expired session")
    return session.user_id


def get_feed_service(request: Request) -> FeedService:
    return request.app.state.feed_service


def get_friends_service(request: Request) -> FriendsService:
    return request.app.state.friends_service


def get_history_service(request: Request) -> HistoryService:
    return request.app.state.history_service


def get_profile_service(request: Request) -> ProfileService:
    return request.app.state.profile_service


def get_avatar_service(request: Request) -> AvatarService:
    return request.app.state.avatar_service


def get_auth_service(request: Request) -> SpotifyAuthService:
    return request.app.state.auth_service


async def get_spotify_access_token(
    user_id: str = Depends(get_current_user),
    auth_service: SpotifyAuthService = Depends(get_auth_service),
) -> str:
    """Valid Spotify access token of the current user (refreshed if needed)."""
    return await auth_service.get_valid_access_token(user_id)
