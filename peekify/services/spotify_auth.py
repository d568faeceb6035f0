"""
Spotify OAuth: login URL, code exchange and access-token refresh.
"""
import secrets
from datetime import timedelta
from typing import Any, Dict, Optional, Tuple
from urllib.parse import urlencode

from app_config import AppConfig
from clients.spotify_client import AUTHORIZE_URL, SpotifyClient
from models.models import AuthSession
from repositories.auth_session_repo import AuthSessionRepository
from repositories.users_repo import UsersRepository
from utils.errors import BadRequestError, ProviderError, UnauthorizedError
from utils.logger import get_logger
from utils.time_utils import utc_now

logger = get_logger(__name__)

# Refresh when the stored token expires within this window
REFRESH_SKEW = timedelta(seconds=60)


def _expires_at(token_payload: Dict[str, Any]):
    return utc_now() + timedelta(seconds=int(token_payload.get("expires_in") or 3600))


class SpotifyAuthService:
    def __init__(
        self,
        config: AppConfig,
        spotify_client: SpotifyClient,
        users_repo: UsersRepository,
        sessions_repo: AuthSessionRepository,
    ):
        self.config = config
        self.spotify_client = spotify_client
        self.users_repo = users_repo
        self.sessions_repo = sessions_repo

    def build_authorize_url(self, state: Optional[str] = None) -> str:
        """URL the browser is sent to for the Spotify consent screen."""
        params = {
            "client_id": self.config.spotify_client_id,
            "response_type": "code",
            "redirect_uri": self.config.spotify_redirect_uri,
            "scope": self.config.spotify_scopes,
            "state": state or secrets.token_urlsafe(16),
        }
        return f"{AUTHORIZE_URL}?{urlencode(params)}"

    async def login_with_code(self, code: str) -> Tuple[AuthSession, Dict[str, Any]]:
        """
        Complete the OAuth flow: exchange the code, load the Spotify profile,
        upsert the user and open a session.

        Returns:
            (session, user profile dict)
        """
        if not code:
            raise BadRequestError("Authorization code is required")

        try:
            tokens = await self.spotify_client.exchange_code(code, self.config.spotify_redirect_uri)
        except ProviderError as e:
            if e.status_code in (400, 401):
                raise BadRequestError("Invalid authorization code") from e
            raise

        access_token = tokens["access_token"]
        me = await self.spotify_client.get_me(access_token)
        if not me.get("id"):
            raise ProviderError("Spotify profile has no id")

        images = me.get("images") or []
        user = self.users_repo.upsert_spotify_user(
            spotify_id=me["id"],
            display_name=me.get("display_name"),
            email=me.get("email"),
            profile_picture_url=images[0].get("url") if images else None,
            access_token=access_token,
            refresh_token=tokens.get("refresh_token"),
            expires_at=_expires_at(tokens),
        )
        session = self.sessions_repo.create_session(user["id"], expires_in_days=self.config.session_days)
        logger.info(f"User {user['id']} logged in with Spotify account {me['id']}")
        return session, user

    async def get_valid_access_token(self, user_id: str) -> str:
        """
        Access token for user_id, refreshed first if it is missing or about to expire.
        Raises UnauthorizedError when the user never connected Spotify or revoked access.
        """
        tokens = self.users_repo.get_spotify_tokens(user_id)
        if tokens is None or not tokens.refresh_token:
            raise UnauthorizedError("Not authenticated with Spotify")

        if tokens.access_token and tokens.expires_at and tokens.expires_at - REFRESH_SKEW > utc_now():
            return tokens.access_token

        try:
            payload = await self.spotify_client.refresh_access_token(tokens.refresh_token)
        except ProviderError as e:
            if e.status_code in (400, 401):
                logger.warning(f"Spotify refresh rejected for user {user_id}: {e.message}")
                raise UnauthorizedError("Not authenticated with Spotify") from e
            raise

        self.users_repo.save_spotify_tokens(
            user_id,
            access_token=payload["access_token"],
            expires_at=_expires_at(payload),
            refresh_token=payload.get("refresh_token"),
        )
        logger.debug(f"Refreshed Spotify access token for user {user_id}")
        return payload["access_token"]
