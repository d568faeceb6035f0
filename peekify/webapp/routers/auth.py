"""
Authentication endpoints (Spotify OAuth login, session management).
"""

from typing import Optional

from fastapi import APIRouter, Cookie, Depends, Header, HTTPException, Request, Response

from services.profile_service import format_private_profile
from services.spotify_auth import SpotifyAuthService
from utils.errors import AppError
from utils.logger import get_logger
from ..dependencies import SESSION_COOKIE, extract_session_token, get_auth_service, get_current_user
from ..schemas import AuthCallbackRequest

router = APIRouter(prefix="/auth", tags=["auth"])
logger = get_logger(__name__)


@router.get("/login")
async def login(auth_service: SpotifyAuthService = Depends(get_auth_service)):
    """URL of the Spotify consent screen; the frontend redirects the browser there."""
    return {"success": True, "authUrl": auth_service.build_authorize_url()}


@router.post("/callback")
async def callback(
    request: Request,
    response: Response,
    body: AuthCallbackRequest,
    auth_service: SpotifyAuthService = Depends(get_auth_service),
):
    """
    Exchange the authorization code and open a session.
    The session token is returned in the body and set as an HttpOnly cookie.
    """
    try:
        session, user = await auth_service.login_with_code(body.code)
        response.set_cookie(
            key=SESSION_COOKIE,
            value=session.session_token,
            max_age=int((session.expires_at - session.created_at).total_seconds()),
            httponly=True,
            samesite="lax",
            secure=request.app.state.config.environment in ("production", "prod"),
        )
        return {
            "success": True,
            "token": session.session_token,
            "expiresAt": session.expires_at.isoformat(),
            "user": format_private_profile(user),
        }
    except AppError:
        raise
    except Exception as e:
        logger.exception(f"Error in Spotify callback: {e}")
        raise HTTPException(status_code=500, detail="Authentication failed")


@router.get("/me")
async def me(request: Request, user_id: str = Depends(get_current_user)):
    try:
        user = request.app.state.users_repo.get_profile(user_id)
        if not user:
            raise HTTPException(status_code=401, detail="User no longer exists")
        return {"success": True, "authenticated": True, "user": format_private_profile(user)}
    except HTTPException:
        raise
    except Exception as e:
        logger.exception(f"Error getting current user: {e}")
        raise HTTPException(status_code=500, detail="Failed to get current user")


@router.post("/logout")
async def logout(
    request: Request,
    response: Response,
    authorization: Optional[str] = Header(None),
    session_token: Optional[str] = Cookie(None),
):
    """Delete the session (if any) and clear the cookie. Always succeeds."""
    token = extract_session_token(authorization, session_token)
    if token:
        request.app.state.auth_session_repo.delete_session(token)
    response.delete_cookie(SESSION_COOKIE)
    return {"success": True, "message": "Logged out"}
