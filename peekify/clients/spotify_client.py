"""
Thin async wrapper around the Spotify Web API and accounts service.

Every call takes a user access token; obtaining and refreshing that token is
the job of services/spotify_auth.py. Non-2xx responses are raised as
ProviderError with the status mapped to what the frontend expects.
"""

import base64
from typing import Any, Dict, List, Optional

import httpx

from models.models import Play
from utils.errors import ProviderError
from utils.logger import get_logger

logger = get_logger(__name__)

API_BASE_URL = "https://api.spotify.com/v1"
ACCOUNTS_BASE_URL = "https://accounts.spotify.com"
TOKEN_URL = f"{ACCOUNTS_BASE_URL}/api/token"
AUTHORIZE_URL = f"{ACCOUNTS_BASE_URL}/authorize"


def _provider_message(response: httpx.Response) -> str:
    try:
        data = response.json()
    except ValueError:
        return response.text or f"Spotify API error ({response.status_code})"
    error = data.get("error") if isinstance(data, dict) else None
    if isinstance(error, dict):
        return error.get("message") or f"Spotify API error ({response.status_code})"
    if isinstance(error, str):
        return data.get("error_description") or error
    return f"Spotify API error ({response.status_code})"


def map_provider_error(response: httpx.Response) -> ProviderError:
    """Translate a failed Spotify response into a ProviderError."""
    message = _provider_message(response)
    lowered = message.lower()
    if response.status_code == 404 or "no active device" in lowered:
        return ProviderError("No active device found", 404)
    if response.status_code == 403 or "premium" in lowered:
        return ProviderError("Premium required", 403)
    if response.status_code == 401:
        return ProviderError("Not authenticated with Spotify", 401)
    return ProviderError(message, 502)


def parse_recently_played_item(item: Dict[str, Any]) -> Optional[Play]:
    """Convert one item of /me/player/recently-played into a Play."""
    track = item.get("track") or {}
    track_id = track.get("id")
    played_at = item.get("played_at")
    if not track_id or not played_at:
        return None

    artists = [a.get("name") for a in track.get("artists") or [] if a.get("name")]
    album = track.get("album") or {}
    images = album.get("images") or []
    return Play(
        track_id=track_id,
        track_name=track.get("name") or "",
        played_at_utc=played_at,
        artist_name=", ".join(artists) or None,
        album_name=album.get("name"),
        album_art_url=images[0].get("url") if images else None,
        track_uri=track.get("uri"),
        duration_ms=track.get("duration_ms"),
    )


class SpotifyClient:
    """Spotify Web API client. Pass `transport` to plug in httpx.MockTransport in tests."""

    def __init__(
        self,
        client_id: str,
        client_secret: str,
        transport: Optional[httpx.AsyncBaseTransport] = None,
        timeout: float = 10.0,
    ):
        self.client_id = client_id
        self.client_secret = client_secret
        self._transport = transport
        self._timeout = timeout

    def _client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(transport=self._transport, timeout=self._timeout)

    def _basic_auth_header(self) -> str:
        raw = f"{self.client_id}:{self.client_secret}".encode("utf-8")
        return "Basic " + base64.b64encode(raw).decode("ascii")

    async def _token_request(self, data: Dict[str, str]) -> Dict[str, Any]:
        async with self._client() as client:
            response = await client.post(
                TOKEN_URL,
                data=data,
                headers={"Authorization": self._basic_auth_header()},
            )
        if response.status_code != 200:
            logger.warning(f"Spotify token request ({data.get('grant_type')}) failed: {response.status_code}")
            # invalid_grant / invalid_client keep their status so callers can tell them apart
            status = response.status_code if response.status_code in (400, 401) else 502
            raise ProviderError(_provider_message(response), status)
        return response.json()

    async def exchange_code(self, code: str, redirect_uri: str) -> Dict[str, Any]:
        """Exchange an authorization code for access and refresh tokens."""
        return await self._token_request(
            {"grant_type": "authorization_code", "code": code, "redirect_uri": redirect_uri}
        )

    async def refresh_access_token(self, refresh_token: str) -> Dict[str, Any]:
        return await self._token_request({"grant_type": "refresh_token", "refresh_token": refresh_token})

    async def _request(
        self,
        method: str,
        path: str,
        access_token: str,
        params: Optional[Dict[str, Any]] = None,
        json: Optional[Dict[str, Any]] = None,
    ) -> Optional[Dict[str, Any]]:
        async with self._client() as client:
            response = await client.request(
                method,
                f"{API_BASE_URL}{path}",
                params=params,
                json=json,
                headers={"Authorization": f"Bearer {access_token}"},
            )
        if response.status_code >= 400:
            raise map_provider_error(response)
        if response.status_code == 204 or not response.content:
            return None
        return response.json()

    async def get_me(self, access_token: str) -> Dict[str, Any]:
        return await self._request("GET", "/me", access_token) or {}

    async def get_recently_played(
        self,
        access_token: str,
        after: Optional[str] = None,
        limit: int = 50,
    ) -> Dict[str, Any]:
        params: Dict[str, Any] = {"limit": limit}
        if after:
            params["after"] = after
        return await self._request("GET", "/me/player/recently-played", access_token, params=params) or {}

    async def add_to_queue(self, access_token: str, uri: str, device_id: Optional[str] = None) -> None:
        params = {"uri": uri}
        if device_id:
            params["device_id"] = device_id
        await self._request("POST", "/me/player/queue", access_token, params=params)

    async def play(self, access_token: str, uri: str, device_id: Optional[str] = None) -> None:
        params = {"device_id": device_id} if device_id else None
        await self._request("PUT", "/me/player/play", access_token, params=params, json={"uris": [uri]})

    async def get_devices(self, access_token: str) -> List[Dict[str, Any]]:
        data = await self._request("GET", "/me/player/devices", access_token) or {}
        return data.get("devices") or []

    async def get_currently_playing(self, access_token: str) -> Optional[Dict[str, Any]]:
        """None when nothing is playing (Spotify answers 204)."""
        return await self._request("GET", "/me/player/currently-playing", access_token)

    async def search(self, access_token: str, query: str, search_type: str = "track", limit: int = 20) -> Dict[str, Any]:
        params = {"q": query, "type": search_type, "limit": limit}
        return await self._request("GET", "/search", access_token, params=params) or {}
