import json

import httpx
import pytest

from clients.spotify_client import SpotifyClient, map_provider_error, parse_recently_played_item
from utils.errors import ProviderError


def _client(handler):
    return SpotifyClient("client-id", "client-secret", transport=httpx.MockTransport(handler))


def _error(status, message):
    return httpx.Response(status, json={"error": {"status": status, "message": message}})


@pytest.mark.unit
@pytest.mark.parametrize(
    "status, message, expected_status, expected_message",
    [
        (404, "Device not found", 404, "No active device found"),
        (400, "Player command failed: No active device found", 404, "No active device found"),
        (403, "Player command failed: Premium required", 403, "Premium required"),
        (401, "The access token expired", 401, "Not authenticated with Spotify"),
        (500, "Server error", 502, "Server error"),
    ],
)
def test_map_provider_error(status, message, expected_status, expected_message):
    err = map_provider_error(_error(status, message))
    assert isinstance(err, ProviderError)
    assert err.status_code == expected_status
    assert err.message == expected_message


@pytest.mark.unit
def test_parse_recently_played_item():
    item = {
        "played_at": "2025-03-01T08:05:09.123Z",
        "track": {
            "id": "t1",
            "name": "Song",
            "uri": "spotify:track:t1",
            "duration_ms": 200000,
            "artists": [{"name": "A"}, {"name": "B"}],
            "album": {"name": "Album", "images": [{"url": "https://img/large"}, {"url": "https://img/small"}]},
        },
    }
    play = parse_recently_played_item(item)
    assert play.track_id == "t1"
    assert play.artist_name == "A, B"
    assert play.album_art_url == "https://img/large"
    assert play.played_at_utc == "2025-03-01T08:05:09.123Z"

    assert parse_recently_played_item({"played_at": "2025-03-01T08:05:09Z", "track": {}}) is None
    assert parse_recently_played_item({"track": {"id": "t1"}}) is None


@pytest.mark.unit
@pytest.mark.asyncio
async def test_exchange_code_posts_form_with_basic_auth():
    seen = {}

    def handler(request: httpx.Request):
        seen["url"] = str(request.url)
        seen["auth"] = request.headers.get("Authorization")
        seen["body"] = request.content.decode()
        return httpx.Response(200, json={"access_token": "a", "refresh_token": "r", "expires_in": 3600})

    tokens = await _client(handler).exchange_code("the-code", "http://localhost/callback")
    assert tokens["access_token"] == "a"
    assert seen["url"] == "https://accounts.spotify.com/api/token"
    assert seen["auth"].startswith("Basic ")
    assert "grant_type=authorization_code" in seen["body"]
    assert "code=the-code" in seen["body"]


@pytest.mark.unit
@pytest.mark.asyncio
async def test_token_request_keeps_invalid_grant_status():
    def handler(request):
        return httpx.Response(400, json={"error": "invalid_grant", "error_description": "Invalid authorization code"})

    with pytest.raises(ProviderError) as exc_info:
        await _client(handler).exchange_code("bad", "http://localhost/callback")
    assert exc_info.value.status_code == 400
    assert exc_info.value.message == "Invalid authorization code"


@pytest.mark.unit
@pytest.mark.asyncio
async def test_currently_playing_204_is_none():
    def handler(request):
        assert request.headers["Authorization"] == "Bearer tok"
        return httpx.Response(204)

    assert await _client(handler).get_currently_playing("tok") is None


@pytest.mark.unit
@pytest.mark.asyncio
async def test_play_sends_uris_and_device():
    seen = {}

    def handler(request):
        seen["method"] = request.method
        seen["params"] = dict(request.url.params)
        seen["json"] = json.loads(request.content)
        return httpx.Response(204)

    await _client(handler).play("tok", "spotify:track:t1", device_id="dev-1")
    assert seen["method"] == "PUT"
    assert seen["params"] == {"device_id": "dev-1"}
    assert seen["json"] == {"uris": ["spotify:track:t1"]}


@pytest.mark.unit
@pytest.mark.asyncio
async def test_add_to_queue_without_device_maps_to_404():
    def handler(request):
        assert request.url.params["uri"] == "spotify:track:t1"
        return _error(404, "Player command failed: No active device found")

    with pytest.raises(ProviderError) as exc_info:
        await _client(handler).add_to_queue("tok", "spotify:track:t1")
    assert exc_info.value.status_code == 404


@pytest.mark.unit
@pytest.mark.asyncio
async def test_recently_played_passes_after_cursor():
    def handler(request):
        assert request.url.path == "/v1/me/player/recently-played"
        assert request.url.params["after"] == "1700000000000"
        assert request.url.params["limit"] == "50"
        return httpx.Response(200, json={"items": [], "next": None})

    page = await _client(handler).get_recently_played("tok", after="1700000000000")
    assert page == {"items": [], "next": None}
